"""
Structured logging configuration
Emits one JSON object per record so log shippers can index the fields.
"""

import logging
import logging.handlers
import os
import re
import sys
import json
import time
import traceback
from datetime import datetime
from typing import Any, Dict, Optional
from contextvars import ContextVar
import uuid
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

# Context variables for request tracking
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
correlation_id_var: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)

class StructuredFormatter(logging.Formatter):
    """JSON formatter carrying service metadata and the request context"""

    def __init__(self, service_name: str, version: str):
        super().__init__()
        self.service_name = service_name
        self.version = version
        self.environment = os.getenv('ENVIRONMENT', 'development')

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "@timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "environment": self.environment,
            "version": self.version,
        }

        trace_context = _trace_context()
        if trace_context:
            log_obj["trace"] = trace_context

        log_obj["location"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
            "module": record.module
        }

        if record.exc_info:
            log_obj["error"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "stacktrace": traceback.format_exception(*record.exc_info)
            }

        if hasattr(record, 'extra_fields'):
            log_obj["custom"] = record.extra_fields

        return json.dumps(log_obj, default=str)

def _trace_context() -> Optional[Dict[str, Any]]:
    context = {
        "request_id": request_id_var.get(),
        "correlation_id": correlation_id_var.get(),
        "user_id": user_id_var.get(),
    }
    context = {k: v for k, v in context.items() if v}
    return context or None

class SecurityFilter(logging.Filter):
    """Masks credential values such as ``password=...`` or ``"access_token": "..."``"""

    SENSITIVE_FIELDS = ('password', 'client_secret', 'access_token', 'token', 'api_key', 'authorization')
    _pattern = re.compile(
        r'(?i)("?(?:%s)"?\s*[:=]\s*"?)([^",\s}]+)' % '|'.join(SENSITIVE_FIELDS)
    )

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self._pattern.sub(r'\1***REDACTED***', record.msg)
        return True

def setup_logging(
    service_name: str,
    level: str = "INFO",
    version: str = "1.0.0",
    log_file: Optional[str] = None
) -> None:
    """
    Setup structured logging for the service

    Args:
        service_name: Name reported in every record
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        version: Service version reported in every record
        log_file: Optional path of a rotating log file
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers = []

    formatter = StructuredFormatter(service_name, version)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(SecurityFilter())
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10485760,  # 10MB
            backupCount=5
        )
        file_handler.setFormatter(formatter)
        file_handler.addFilter(SecurityFilter())
        root_logger.addHandler(file_handler)

    logging.getLogger('uvicorn').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

    root_logger.info(
        "Logging initialized",
        extra={
            'extra_fields': {
                'service': service_name,
                'level': level,
                'file': log_file
            }
        }
    )

class LoggerAdapter(logging.LoggerAdapter):
    """Copies the request context into ``extra`` of every call"""

    def process(self, msg, kwargs):
        extra = kwargs.get('extra', {})
        extra.update(_trace_context() or {})
        kwargs['extra'] = extra
        return msg, kwargs

def get_logger(name: str) -> LoggerAdapter:
    return LoggerAdapter(logging.getLogger(name), {})

def set_request_context(
    request_id: Optional[str] = None,
    correlation_id: Optional[str] = None,
    user_id: Optional[str] = None
) -> None:
    request_id_var.set(request_id)
    correlation_id_var.set(correlation_id)
    user_id_var.set(user_id)

def generate_request_id() -> str:
    return str(uuid.uuid4())

def _request_fields(request: Request, **more: Any) -> Dict[str, Any]:
    return {'extra_fields': {'method': request.method, 'path': request.url.path, **more}}

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Binds the request context, logs each request and echoes X-Request-ID.

    The acting operator comes from ``X-User-Id``, set by the auth layer in
    front of the service.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get('X-Request-ID') or generate_request_id()
        set_request_context(
            request_id=request_id,
            correlation_id=request.headers.get('X-Correlation-ID'),
            user_id=request.headers.get('X-User-Id')
        )

        logger = get_logger(__name__)
        line = f"{request.method} {request.url.path}"
        logger.info(
            f"Request started: {line}",
            extra=_request_fields(request, client_host=request.client.host if request.client else None)
        )

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.error(f"Request failed: {line}", exc_info=True, extra=_request_fields(request, duration_ms=elapsed_ms))
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"Request completed: {line}",
            extra=_request_fields(request, status_code=response.status_code, duration_ms=round(elapsed_ms, 2))
        )
        response.headers['X-Request-ID'] = request_id
        return response
