"""
ExamGate - Centralized Logging Configuration
Supports both development (plain text) and production (JSON structured) logging
"""

import logging
import sys
import json
import traceback
import uuid
from datetime import datetime
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional
from contextvars import ContextVar

from app.core.config import settings


# Context variables for request tracing
request_id_var: ContextVar[str] = ContextVar('request_id', default='')
tenant_id_var: ContextVar[str] = ContextVar('tenant_id', default='')

_STANDARD_RECORD_KEYS = {
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
    'message', 'taskName', 'request_id', 'tenant_id',
}


def get_request_id() -> str:
    """Get current request ID from context"""
    return request_id_var.get() or ''


def set_request_id(request_id: str) -> None:
    """Set request ID in context"""
    request_id_var.set(request_id)


def get_tenant_id() -> str:
    """Get current tenant ID from context"""
    return tenant_id_var.get() or ''


def set_tenant_id(tenant_id: str) -> None:
    """Set tenant ID in context"""
    tenant_id_var.set(tenant_id)


def generate_request_id() -> str:
    """Generate a unique request ID"""
    return str(uuid.uuid4())[:8]


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging in production.
    One object per line, ready for ELK / CloudWatch ingestion.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = get_request_id()
        if request_id:
            log_data["request_id"] = request_id

        tenant_id = get_tenant_id()
        if tenant_id:
            log_data["tenant_id"] = tenant_id

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info) if record.exc_info[0] else None
            }

        # Extra fields passed through logger.*(extra=...)
        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_KEYS and not key.startswith('_'):
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ContextualFormatter(logging.Formatter):
    """Readable development formatter that includes request and tenant ids"""

    def format(self, record: logging.LogRecord) -> str:
        record.request_id = get_request_id() or '-'
        record.tenant_id = get_tenant_id() or '-'
        return super().format(record)


class ExamGateLogger(logging.Logger):
    """
    Custom logger with convenience methods for structured logging
    """

    def log_issuance(self, examination_id: str, total: int, generated: int,
                     skipped: int, failed: int, **kwargs) -> None:
        """Log the outcome of a hall ticket batch"""
        level = logging.WARNING if failed else logging.INFO
        self.log(
            level,
            f"Hall tickets for exam {examination_id}: "
            f"{generated} generated, {skipped} skipped, {failed} failed of {total}",
            extra={
                "event_type": "hall_ticket_issuance",
                "examination_id": str(examination_id),
                "total_students": total,
                "generated": generated,
                "skipped": skipped,
                "failed": failed,
                **kwargs
            }
        )

    def log_verification(self, valid: bool, reason: Optional[str] = None,
                         ticket_id: Optional[str] = None, **kwargs) -> None:
        """Log a gate check-in attempt"""
        level = logging.INFO if valid else logging.WARNING
        self.log(
            level,
            f"Hall ticket check-in: {'valid' if valid else 'invalid'}" +
            (f" ({reason})" if reason else "") +
            (f" - {ticket_id}" if ticket_id else ""),
            extra={
                "event_type": "hall_ticket_verification",
                "verification_valid": valid,
                "verification_reason": reason,
                "hall_ticket_id": ticket_id,
                **kwargs
            }
        )

    def log_error_with_context(self, error: Exception, context: str = None,
                               **kwargs) -> None:
        """Log error with full context"""
        self.error(
            f"Error in {context}: {type(error).__name__}: {str(error)}",
            exc_info=True,
            extra={
                "event_type": "error",
                "error_type": type(error).__name__,
                "error_message": str(error),
                "error_context": context,
                **kwargs
            }
        )

    def log_performance(self, operation: str, duration_ms: float,
                        threshold_ms: float = 1000, **kwargs) -> None:
        """Log performance metrics, warn if over threshold"""
        level = logging.WARNING if duration_ms > threshold_ms else logging.DEBUG
        self.log(
            level,
            f"Performance: {operation} took {duration_ms:.2f}ms" +
            (f" (threshold: {threshold_ms}ms)" if duration_ms > threshold_ms else ""),
            extra={
                "event_type": "performance",
                "operation": operation,
                "duration_ms": duration_ms,
                "threshold_ms": threshold_ms,
                "exceeded_threshold": duration_ms > threshold_ms,
                **kwargs
            }
        )


def setup_logging() -> ExamGateLogger:
    """Setup logging configuration based on environment"""

    logging.setLoggerClass(ExamGateLogger)

    # app.* module loggers propagate to "app", which shares the same handlers
    logger = logging.getLogger("examgate")
    logger.__class__ = ExamGateLogger
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    logger.handlers.clear()

    app_logger = logging.getLogger("app")
    app_logger.setLevel(logger.level)
    app_logger.handlers.clear()

    is_production = settings.ENVIRONMENT == "production"

    if is_production:
        formatter = JSONFormatter()
        file_formatter = formatter
        backup_count = 10
    else:
        detailed_format = (
            "%(asctime)s | %(levelname)-8s | "
            "[%(request_id)s] [%(tenant_id)s] | "
            "%(name)s:%(lineno)d | %(message)s"
        )
        simple_format = "%(levelname)-8s | [%(request_id)s] %(message)s"
        formatter = ContextualFormatter(simple_format)
        file_formatter = ContextualFormatter(detailed_format)
        backup_count = 5

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)

    handlers = [console_handler]

    if settings.LOG_FILE:
        log_file = Path(settings.LOG_FILE)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10485760,  # 10MB
            backupCount=backup_count
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(file_formatter)
        handlers.append(file_handler)

    for handler in handlers:
        logger.addHandler(handler)
        app_logger.addHandler(handler)

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    logger.debug(
        "Logging initialized",
        extra={
            "environment": settings.ENVIRONMENT,
            "log_level": settings.LOG_LEVEL,
            "json_logging": is_production
        }
    )

    return logger


# Create logger instance
logger: ExamGateLogger = setup_logging()


# Convenience exports
__all__ = [
    'logger',
    'setup_logging',
    'get_request_id',
    'set_request_id',
    'get_tenant_id',
    'set_tenant_id',
    'generate_request_id',
    'ExamGateLogger',
]
