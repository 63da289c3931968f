#!/usr/bin/env python3
"""
PayMaster Decision Service Startup Script

This script starts the PayMaster FastAPI service exposing the yield
allocation optimizer and risk assessment engine.

Usage:
    python run.py [--port PORT] [--host HOST] [--env ENV]

Environment Variables:
    PAYMASTER_PORT: Port to run the service on (default: 8002)
    ENV: Environment (development/production)
    LOG_LEVEL: Logging level (DEBUG/INFO/WARNING/ERROR)
"""

import argparse
import sys

import structlog
import uvicorn

from paymaster.config import settings

logger = structlog.get_logger()

def parse_arguments():
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description="PayMaster Decision Service - yield allocation and risk assessment"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=settings.PAYMASTER_PORT,
        help=f"Port to run the service on (default: {settings.PAYMASTER_PORT})"
    )

    parser.add_argument(
        "--host", "-H",
        type=str,
        default="0.0.0.0",
        help="Host to bind the service to (default: 0.0.0.0)"
    )

    parser.add_argument(
        "--env", "-e",
        type=str,
        choices=["development", "production"],
        default=settings.ENV,
        help=f"Environment mode (default: {settings.ENV})"
    )

    parser.add_argument(
        "--reload", "-r",
        action="store_true",
        help="Enable auto-reload for development"
    )

    parser.add_argument(
        "--log-level", "-l",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=settings.LOG_LEVEL,
        help=f"Log level (default: {settings.LOG_LEVEL})"
    )

    return parser.parse_args()

def main():
    """Main entry point"""
    args = parse_arguments()

    try:
        logger.info("Starting PayMaster decision service",
                   host=args.host,
                   port=args.port,
                   env=args.env)

        # Engines hold in-process state, so a single worker serves every request
        uvicorn.run(
            "paymaster.main:app",
            host=args.host,
            port=args.port,
            log_level=args.log_level.lower(),
            access_log=True,
            reload=args.reload or args.env == "development",
        )

    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    except Exception as e:
        logger.error("Failed to start server", error=str(e))
        sys.exit(1)

if __name__ == "__main__":
    main()
