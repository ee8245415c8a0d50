"""
Logging helpers shared by the application entry point and the HTTP layer.

- `log_application_lifecycle()` records startup/shutdown milestones with structured details.
- `log_error_with_context()` logs an exception together with the operation that raised it.
- `RequestLoggingMiddleware` logs method, path, status code and duration of every request.
"""

import time
from typing import Any, Callable, Dict, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from agency_cms.managers.logging_manager import get_logger

lifecycle_logger = get_logger(prefix="[LIFECYCLE]")
error_logger = get_logger(prefix="[ERROR]")
request_logger = get_logger(prefix="[REQUEST]")

SKIP_PATHS = ("/metrics", "/health")


def log_application_lifecycle(event: str, details: Optional[Dict[str, Any]] = None) -> None:
    """Log an application lifecycle event such as `startup_initiated` or `store_closed`."""
    if details:
        rendered = ", ".join(f"{key}={value}" for key, value in details.items())
        lifecycle_logger.info("%s: %s", event, rendered)
    else:
        lifecycle_logger.info("%s", event)


def log_error_with_context(error: BaseException, context: Optional[Dict[str, Any]] = None) -> None:
    """Log `error` with its traceback and the operation context it occurred in."""
    context = context or {}
    operation = context.get("operation", "unknown")
    extra = ", ".join(f"{key}={value}" for key, value in context.items() if key != "operation")
    error_logger.error(
        "%s failed: %s: %s%s",
        operation,
        type(error).__name__,
        error,
        f" ({extra})" if extra else "",
        exc_info=error,
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs every HTTP request with its outcome and timing."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in SKIP_PATHS:
            return await call_next(request)

        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.time() - start_time
            log_error_with_context(
                e, {"operation": "http_request", "method": request.method, "path": request.url.path}
            )
            request_logger.error("%s %s raised after %.3fs", request.method, request.url.path, duration)
            raise

        duration = time.time() - start_time
        log = request_logger.warning if response.status_code >= 500 else request_logger.info
        log("%s %s -> %d in %.3fs", request.method, request.url.path, response.status_code, duration)
        return response
