"""
Identity provider: credential records, password hashing and bearer tokens.

A credential (``email`` -> ``uid`` + bcrypt hash) is the identity half of an
account; the profile half lives in the ``users`` collection. Tokens are HS256
JWTs whose ``sub`` claim is the account uid.
"""

from __future__ import annotations

import hashlib
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt

from .. import config
from ..utils.jwt_secret import get_jwt_secret
from .document_store import DocumentStore

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
JWT_ISSUER = "gradeportal"
RESET_AUDIENCE = "password-reset"
MIN_PASSWORD_LENGTH = 6


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat()


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def new_uid() -> str:
    return uuid.uuid4().hex


def create_jwt_token(uid: str, email: str, expires_in: Optional[timedelta] = None) -> Dict[str, Any]:
    """Issue a signed token for ``uid``.

    Returns:
        ``{"token", "expires_at", "jti"}`` with ``expires_at`` as ISO-8601
    """
    now = utc_now()
    expires_at = now + (expires_in or timedelta(minutes=config.jwt_expiration_minutes()))
    jti = uuid.uuid4().hex
    payload = {
        "sub": uid,
        "email": email,
        "iss": JWT_ISSUER,
        "iat": now,
        "exp": expires_at,
        "jti": jti,
    }
    token = jwt.encode(payload, get_jwt_secret(), algorithm=JWT_ALGORITHM)
    return {"token": token, "expires_at": isoformat(expires_at), "jti": jti}


def verify_jwt_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the token's claims, or ``None`` if it is invalid or expired."""
    try:
        payload = jwt.decode(
            token,
            get_jwt_secret(),
            algorithms=[JWT_ALGORITHM],
            issuer=JWT_ISSUER,
            options={"require": ["sub", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired token")
        return None
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected invalid token: {type(e).__name__}")
        return None
    return payload


def provision_identity(store: DocumentStore, email: str, password: str, display_name: str) -> Dict[str, Any]:
    """
    Create the credential for a new account.

    Raises:
        ConflictError: If the email is already provisioned
    """
    record = {
        "email": email.lower(),
        "uid": new_uid(),
        "passwordHash": hash_password(password),
        "displayName": display_name,
        "disabled": False,
        "createdAt": isoformat(utc_now()),
    }
    created = store.create_credential(record)
    logger.info(f"Provisioned identity uid={created['uid']}")
    return created


def authenticate(store: DocumentStore, email: str, password: str) -> Optional[Dict[str, Any]]:
    """Return the credential when the email/password pair is valid."""
    credential = store.get_credential(email)
    if credential is None or credential.get("disabled"):
        return None
    if not verify_password(password, credential.get("passwordHash", "")):
        return None
    return credential


def set_password(store: DocumentStore, email: str, password: str) -> Dict[str, Any]:
    """Replace the stored hash for ``email``."""
    updated = store.update_credential(
        email,
        {"passwordHash": hash_password(password), "passwordChangedAt": isoformat(utc_now())},
    )
    logger.info(f"Password updated for uid={updated.get('uid')}")
    return updated


def _hash_fingerprint(credential: Dict[str, Any]) -> str:
    return hashlib.sha256(credential.get("passwordHash", "").encode("utf-8")).hexdigest()[:16]


def create_reset_token(credential: Dict[str, Any]) -> Dict[str, Any]:
    """
    Issue a password-reset token for ``credential``.

    The token carries a fingerprint of the current hash, so it stops working
    once the password changes. Its audience keeps it from being accepted as
    a bearer token.
    """
    now = utc_now()
    expires_at = now + timedelta(minutes=config.password_reset_expiration_minutes())
    payload = {
        "sub": credential["uid"],
        "email": credential["email"],
        "iss": JWT_ISSUER,
        "aud": RESET_AUDIENCE,
        "iat": now,
        "exp": expires_at,
        "pwd": _hash_fingerprint(credential),
    }
    token = jwt.encode(payload, get_jwt_secret(), algorithm=JWT_ALGORITHM)
    return {"token": token, "expires_at": isoformat(expires_at)}


def verify_reset_token(store: DocumentStore, token: str) -> Optional[Dict[str, Any]]:
    """Return the credential a reset token was issued for, or ``None``."""
    try:
        payload = jwt.decode(
            token,
            get_jwt_secret(),
            algorithms=[JWT_ALGORITHM],
            issuer=JWT_ISSUER,
            audience=RESET_AUDIENCE,
            options={"require": ["sub", "email", "exp", "pwd"]},
        )
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected reset token: {type(e).__name__}")
        return None

    credential = store.get_credential(payload["email"])
    if credential is None or credential.get("disabled") or credential.get("uid") != payload["sub"]:
        return None
    if payload["pwd"] != _hash_fingerprint(credential):
        logger.info("Rejected reset token: password already changed")
        return None
    return credential
