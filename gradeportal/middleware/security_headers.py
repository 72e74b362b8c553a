from __future__ import annotations

from typing import Dict, Mapping

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# The service only ever returns JSON, so nothing may be framed, sniffed or loaded.
DEFAULT_HEADERS: Dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    "Referrer-Policy": "no-referrer",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=(), payment=(), usb=()",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds security headers to every response.

    HSTS is added only when ``hsts_max_age`` is positive, and API responses
    (``/api/...``) are marked ``Cache-Control: no-store`` since they carry
    account and grade data.
    """

    def __init__(
        self,
        app,
        *,
        hsts_max_age: int = 31536000,
        extra_headers: Mapping[str, str] | None = None,
    ):
        super().__init__(app)
        self.headers = dict(DEFAULT_HEADERS)
        if hsts_max_age > 0:
            self.headers["Strict-Transport-Security"] = f"max-age={hsts_max_age}; includeSubDomains"
        if extra_headers:
            self.headers.update(extra_headers)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store"
        return response
