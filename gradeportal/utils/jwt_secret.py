"""
Retrieval of the JWT signing secret.

In production the secret comes only from AWS Secrets Manager
(``JWT_SECRET_NAME``, a JSON document with a ``jwt_secret`` field) and any
failure is fatal. In development ``JWT_SECRET`` is used when set, then Secrets
Manager is tried, and as a last resort a temporary secret is generated.
"""

from __future__ import annotations

import json
import logging
import os
import secrets as secrets_module
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from .. import config
from ..aws_clients import secretsmanager_client

logger = logging.getLogger(__name__)

DEFAULT_SECRET_NAME = "gradeportal-jwt-secret"

_JWT_SECRET_CACHE: Optional[str] = None


def _read_from_secrets_manager(secret_name: str) -> str:
    response = secretsmanager_client().get_secret_value(SecretId=secret_name)
    secret_string = response.get("SecretString")
    if not secret_string:
        raise ValueError("SecretString is empty")
    jwt_secret = json.loads(secret_string).get("jwt_secret")
    if not jwt_secret:
        raise ValueError("jwt_secret field not found in secret")
    return jwt_secret


def get_jwt_secret() -> str:
    """
    Return the signing secret, caching it for the life of the process.

    Raises:
        RuntimeError: In production if Secrets Manager cannot provide the secret
    """
    global _JWT_SECRET_CACHE

    if _JWT_SECRET_CACHE is not None:
        return _JWT_SECRET_CACHE

    production = config.is_production()
    if not production:
        env_secret = os.getenv("JWT_SECRET")
        if env_secret:
            logger.info("Using JWT_SECRET from environment variable (development mode)")
            _JWT_SECRET_CACHE = env_secret
            return env_secret

    secret_name = os.getenv("JWT_SECRET_NAME", DEFAULT_SECRET_NAME)
    try:
        _JWT_SECRET_CACHE = _read_from_secrets_manager(secret_name)
        logger.info(f"Retrieved JWT secret from Secrets Manager: {secret_name}")
        return _JWT_SECRET_CACHE
    except (ClientError, BotoCoreError, ValueError) as e:
        if production:
            message = f"Could not load JWT secret '{secret_name}' from Secrets Manager: {e}"
            logger.error(message)
            raise RuntimeError(message) from e
        logger.warning(
            f"JWT secret unavailable from Secrets Manager ({e}). "
            "Generating a temporary secret for local development."
        )

    _JWT_SECRET_CACHE = secrets_module.token_urlsafe(32)
    return _JWT_SECRET_CACHE


def clear_jwt_secret_cache() -> None:
    """Clear the cached secret (tests, secret rotation)."""
    global _JWT_SECRET_CACHE
    _JWT_SECRET_CACHE = None
