"""
Runtime configuration read from environment variables.

Values are looked up on every call so that deployments (and tests) can change
the environment without re-importing modules.
"""

from __future__ import annotations

import logging
import os
from typing import List, Optional

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"
DEFAULT_USERS_TABLE = "portal_users"
DEFAULT_SUBMISSIONS_TABLE = "portal_submissions"
DEFAULT_CREDENTIALS_TABLE = "portal_credentials"
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
DEFAULT_JWT_EXPIRATION_MINUTES = 60
DEFAULT_RESET_EXPIRATION_MINUTES = 30

_DISABLED_VALUES = {"false", "0", "no"}


def _int_env(name: str, default: int, *, minimum: int = 1, maximum: int | None = None) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except (ValueError, TypeError) as e:
        logger.warning(f"Invalid {name} value: {raw!r}. Error: {e}. Using default: {default}")
        return default
    if value < minimum:
        logger.warning(f"Invalid {name} value: {raw}. Must be >= {minimum}. Using default: {default}")
        return default
    if maximum is not None and value > maximum:
        logger.warning(f"{name} value {value} exceeds maximum ({maximum}). Using default: {default}")
        return default
    return value


def is_production() -> bool:
    return os.getenv("PYTHON_ENV", "development").lower() == "production"


def storage_backend() -> str:
    return os.getenv("STORAGE_BACKEND", "memory").lower()


def aws_region() -> str:
    return os.getenv("AWS_REGION", os.getenv("AWS_DEFAULT_REGION", DEFAULT_REGION))


def aws_endpoint_url() -> Optional[str]:
    # e.g. http://localhost:4566 for LocalStack
    return os.getenv("AWS_ENDPOINT_URL") or None


def users_table() -> str:
    return os.getenv("DDB_TABLE_USERS", DEFAULT_USERS_TABLE)


def submissions_table() -> str:
    return os.getenv("DDB_TABLE_SUBMISSIONS", DEFAULT_SUBMISSIONS_TABLE)


def credentials_table() -> str:
    return os.getenv("DDB_TABLE_CREDENTIALS", DEFAULT_CREDENTIALS_TABLE)


def normalize_allowed_domain(value: Optional[str]) -> str:
    """Return the configured email domain, or "" when the restriction is off."""
    v = (value or "").strip()
    if not v:
        return ""
    return "" if v.lower() in _DISABLED_VALUES else v


def allowed_email_domain() -> str:
    return normalize_allowed_domain(os.getenv("ALLOWED_EMAIL_DOMAIN"))


def initial_admin_emails() -> List[str]:
    raw = os.getenv("INITIAL_ADMIN_EMAILS", "")
    return [v.strip() for v in raw.split(",") if v.strip()]


def jwt_expiration_minutes() -> int:
    return _int_env("JWT_EXPIRATION_MINUTES", DEFAULT_JWT_EXPIRATION_MINUTES)


def password_reset_expiration_minutes() -> int:
    return _int_env("PASSWORD_RESET_EXPIRATION_MINUTES", DEFAULT_RESET_EXPIRATION_MINUTES, maximum=1440)


def password_reset_webhook_url() -> Optional[str]:
    return os.getenv("PASSWORD_RESET_WEBHOOK_URL") or None


def default_page_size() -> int:
    return _int_env("PAGE_SIZE", DEFAULT_PAGE_SIZE, maximum=MAX_PAGE_SIZE)


def rate_limit_disabled() -> bool:
    return os.getenv("DISABLE_RATE_LIMIT", "").lower() == "true"


def rate_limit_requests() -> int:
    return _int_env("RATE_LIMIT_REQUESTS", 30, maximum=10000)


def rate_limit_window_seconds() -> int:
    return _int_env("RATE_LIMIT_WINDOW_SECONDS", 60, maximum=3600)


def log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()


def cloudwatch_log_group() -> Optional[str]:
    return os.getenv("CLOUDWATCH_LOG_GROUP") or None
