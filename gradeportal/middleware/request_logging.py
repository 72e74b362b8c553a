from __future__ import annotations

import logging
import time
from typing import Dict, Iterable

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"
SENSITIVE_HEADERS = frozenset({"authorization", "cookie", "x-seed-secret", "set-cookie"})


def redact_headers(headers: Iterable[tuple], sensitive: frozenset = SENSITIVE_HEADERS) -> Dict[str, str]:
    return {
        name: (REDACTED if name.lower() in sensitive else value)
        for name, value in headers
    }


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs one line per request and one per response; secrets never reach the log."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        started = time.perf_counter()
        headers = redact_headers(request.headers.items())
        logger.info(f"Request: {request.method} {request.url.path} Headers: {headers}")

        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"Response: {request.method} {request.url.path} "
            f"status={response.status_code} duration_ms={elapsed_ms:.1f}"
        )
        return response
