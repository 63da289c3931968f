from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import structlog
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from . import __version__
from .config import settings
from .error_handling import ErrorCollector, InvalidArgumentError, NotFoundError
from .risk_engine import RiskAssessmentEngine
from .routes import router
from .yield_optimizer import YieldAllocationOptimizer

logging.basicConfig(format="%(message)s", level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

# Application lifespan manager
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Starting PayMaster decision service",
               environment=settings.ENV,
               risk_preference=app.state.yield_optimizer.risk_preference,
               protocols=len(app.state.yield_optimizer.protocols))
    yield
    logger.info("PayMaster decision service shutdown complete")


def _error_response(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": detail,
            "status_code": status_code,
            "timestamp": datetime.utcnow().isoformat()
        }
    )


def create_app(
    yield_optimizer: Optional[YieldAllocationOptimizer] = None,
    risk_engine: Optional[RiskAssessmentEngine] = None
) -> FastAPI:
    """Build the service around its own engine instances"""
    app = FastAPI(
        title="PayMaster Decision Service",
        description="Yield allocation and risk assessment engines for automated payments",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    app.state.yield_optimizer = yield_optimizer or YieldAllocationOptimizer()
    app.state.risk_engine = risk_engine or RiskAssessmentEngine()
    app.state.error_collector = ErrorCollector()
    app.state.started_at = time.time()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time

        logger.info("Request completed",
                   method=request.method,
                   url=str(request.url),
                   status_code=response.status_code,
                   process_time=round(process_time, 3))

        response.headers["X-Process-Time"] = str(process_time)
        return response

    @app.exception_handler(InvalidArgumentError)
    async def invalid_argument_handler(request: Request, exc: InvalidArgumentError):
        app.state.error_collector.record_error(exc, {"method": request.method, "path": request.url.path})
        return _error_response(400, str(exc))

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        app.state.error_collector.record_error(exc, {"method": request.method, "path": request.url.path})
        return _error_response(404, str(exc))

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        """Malformed numeric strings surface as float() parse failures"""
        app.state.error_collector.record_error(exc, {"method": request.method, "path": request.url.path})
        return _error_response(422, str(exc))

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        logger.warning("HTTP exception",
                      method=request.method,
                      url=str(request.url),
                      status_code=exc.status_code,
                      detail=exc.detail)
        return _error_response(exc.status_code, exc.detail)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler for unhandled errors"""
        app.state.error_collector.record_error(exc, {"method": request.method, "path": request.url.path})
        return _error_response(500, "Internal server error")

    app.include_router(router)

    @app.get("/")
    async def root():
        """Root endpoint with service information"""
        return {
            "service": "PayMaster Decision Service",
            "version": __version__,
            "status": "operational",
            "timestamp": datetime.utcnow().isoformat(),
            "endpoints": {
                "status": "/api/status",
                "protocols": "/api/yield/protocols",
                "optimize": "/api/yield/optimize",
                "rebalance": "/api/yield/rebalance",
                "assessment": "/api/risk/assessment",
                "thresholds": "/api/risk/thresholds",
                "market_data": "/api/risk/market-data",
                "docs": "/docs"
            }
        }

    return app


app = create_app()
