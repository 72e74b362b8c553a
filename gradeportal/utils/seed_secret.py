"""
Shared secret guarding the bootstrap endpoint that seeds the first admins.

``ADMIN_SEED_SECRET`` takes precedence. Otherwise, when
``ADMIN_SEED_SECRET_NAME`` is set, the secret is read from AWS Secrets Manager
(a JSON document with a ``seed_secret`` field). With neither configured the
seed endpoint stays disabled.
"""

from __future__ import annotations

import hmac
import json
import logging
import os
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..aws_clients import secretsmanager_client

logger = logging.getLogger(__name__)

_SEED_SECRET_CACHE: Optional[str] = None


def get_seed_secret() -> Optional[str]:
    global _SEED_SECRET_CACHE

    env_secret = os.getenv("ADMIN_SEED_SECRET")
    if env_secret:
        return env_secret

    secret_name = os.getenv("ADMIN_SEED_SECRET_NAME")
    if not secret_name:
        return None
    if _SEED_SECRET_CACHE is not None:
        return _SEED_SECRET_CACHE

    try:
        response = secretsmanager_client().get_secret_value(SecretId=secret_name)
        secret_data = json.loads(response.get("SecretString") or "{}")
        value = secret_data.get("seed_secret")
        if not value:
            raise ValueError("seed_secret field not found in secret")
    except (ClientError, BotoCoreError, ValueError) as e:
        logger.error(f"Could not load seed secret '{secret_name}': {e}")
        return None

    _SEED_SECRET_CACHE = value
    return value


def seed_secret_matches(provided: Optional[str], expected: str) -> bool:
    if not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def clear_seed_secret_cache() -> None:
    global _SEED_SECRET_CACHE
    _SEED_SECRET_CACHE = None
