from __future__ import annotations

import logging

from fastapi import FastAPI

from .errors import register_exception_handlers
from .logging_config import configure_logging
from .middleware.request_logging import LoggingMiddleware
from .routes import admin, auth, dashboard, submissions, system

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build the API with its routers, error handlers and request logging."""
    configure_logging()

    app = FastAPI(
        title="Grade Portal API",
        version="1.0.0",
        description="Role-based project submission and grading portal",
    )
    register_exception_handlers(app)
    app.add_middleware(LoggingMiddleware)

    app.include_router(system.router)
    app.include_router(auth.router)
    app.include_router(submissions.router)
    app.include_router(dashboard.router)
    app.include_router(admin.router)

    logger.info("Grade Portal API initialised")
    return app


app = create_app()
