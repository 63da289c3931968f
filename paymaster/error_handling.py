"""
Error types for the decision engines and a collector used by the service for observability
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List
import structlog

logger = structlog.get_logger()


class PayMasterError(Exception):
    """Base class for errors raised by the decision engines"""
    pass


class InvalidArgumentError(PayMasterError, ValueError):
    """Raised when an argument is out of range or malformed (risk preference, threshold ordering)"""
    pass


class NotFoundError(PayMasterError, LookupError):
    """Raised when an update references an unknown protocol or asset"""
    pass


class ErrorCollector:
    """Collects and analyzes errors for better observability"""

    def __init__(self, max_errors: int = 1000):
        self.errors: List[Dict] = []
        self.error_counts: Dict[str, int] = {}
        self.max_errors = max_errors

    def record_error(self, error: Exception, context: Dict[str, Any] = None):
        """Record an error with context"""
        error_info = {
            "timestamp": datetime.utcnow().isoformat(),
            "type": type(error).__name__,
            "message": str(error),
            "context": context or {},
        }

        self.errors.append(error_info)

        # Maintain size limit
        if len(self.errors) > self.max_errors:
            self.errors = self.errors[-self.max_errors:]

        error_type = type(error).__name__
        self.error_counts[error_type] = self.error_counts.get(error_type, 0) + 1

        logger.error(
            "Error recorded",
            error_type=error_type,
            error_message=str(error),
            context=context
        )

    def get_error_summary(self, hours: int = 24) -> Dict:
        """Get error summary for the last N hours"""
        cutoff_time = datetime.utcnow() - timedelta(hours=hours)

        recent_errors = [
            error for error in self.errors
            if datetime.fromisoformat(error["timestamp"]) > cutoff_time
        ]

        error_types = {}
        for error in recent_errors:
            error_type = error["type"]
            if error_type not in error_types:
                error_types[error_type] = {"count": 0, "examples": []}

            error_types[error_type]["count"] += 1
            if len(error_types[error_type]["examples"]) < 3:
                error_types[error_type]["examples"].append({
                    "message": error["message"],
                    "timestamp": error["timestamp"],
                    "context": error["context"]
                })

        return {
            "time_window_hours": hours,
            "total_errors": len(recent_errors),
            "error_types": error_types,
            "most_common_errors": [
                name for name, _ in sorted(
                    error_types.items(),
                    key=lambda x: x[1]["count"],
                    reverse=True
                )[:5]
            ]
        }
