"""
Deployable ASGI application: the API plus the edge middleware.

Run with ``uvicorn gradeportal.entrypoint:app``.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI

from . import config
from .app import create_app
from .middleware.rate_limit import RateLimitMiddleware
from .middleware.security_headers import SecurityHeadersMiddleware

logger = logging.getLogger(__name__)


def build_app() -> FastAPI:
    application = create_app()

    # Add security headers middleware (always enabled)
    application.add_middleware(SecurityHeadersMiddleware)

    # Rate limiting is added last so it runs first
    if config.rate_limit_disabled():
        logger.warning("Rate limiting is DISABLED. Only use this in trusted environments.")
        return application

    requests = config.rate_limit_requests()
    window = config.rate_limit_window_seconds()
    logger.info(f"Rate limiting enabled: {requests} attempts per {window} seconds on sign-in and seeding")
    application.add_middleware(RateLimitMiddleware, requests=requests, window_seconds=window)
    return application


app = build_app()
