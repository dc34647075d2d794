# jsoncomms/middlewares.py

"""
Access logging for services that decode bodies with `JSONTools`.

`AccessLogMiddleware` writes one "request completed" line per request to the
"jsoncomms.access" logger. Besides method, path, status and duration, the
line carries:

- request_id:     the correlation ID set by `CorrelationIdMiddleware`
- json_rejection: the `RequestDecodeError` class name when `read_json`
                  turned the body down, otherwise None

Rejected bodies are logged at WARNING so they stand out from normal traffic.
"""

import logging
import time
from typing import Any, Dict

from asgi_correlation_id import correlation_id
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("jsoncomms.access")


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def access_fields(request: Request, status: int, started: float) -> Dict[str, Any]:
    """Structured fields shared by every access-log line."""
    return {
        "method": request.method,
        "path": request.url.path,
        "status": status,
        "duration_ms": _elapsed_ms(started),
        "request_id": correlation_id.get(),
        "json_rejection": getattr(request.state, "json_rejection", None),
    }


class AccessLogMiddleware(BaseHTTPMiddleware):
    """
    Must sit inside `CorrelationIdMiddleware` (added before it) so the
    correlation ID is set when a line is written.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("request failed", extra=access_fields(request, 500, started))
            raise

        fields = access_fields(request, response.status_code, started)
        level = logging.WARNING if fields["json_rejection"] else logging.INFO
        logger.log(level, "request completed", extra=fields)
        return response
