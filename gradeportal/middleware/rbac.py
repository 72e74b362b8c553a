"""
Authorization gate for the portal's protected endpoints.

Every check here is read-then-decide: the bearer token is verified, the
caller's account is loaded and its stored role is compared against the
endpoint's requirement. The role is always taken from the ``users`` record,
never from token claims. Rejections raise before any handler code (and so
before any write) runs.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from fastapi import Depends, Request

from ..errors import AuthenticationError, AuthorizationError
from ..schemas import Role
from ..services.auth_service import verify_jwt_token
from ..services.document_store import DocumentStore, get_document_store
from ..session import SessionContext
from ..utils.auth import extract_bearer_token, redact_token

logger = logging.getLogger(__name__)


def get_session(
    request: Request,
    store: DocumentStore = Depends(get_document_store),
) -> SessionContext:
    """
    Dependency resolving the caller of the current request.

    Raises:
        AuthenticationError(401): Missing, malformed, expired or forged token
        AuthorizationError(403): Token is valid but no account record exists
    """
    token = extract_bearer_token(request.headers)
    payload = verify_jwt_token(token)
    if not payload:
        logger.warning(f"Access denied: invalid or expired token {redact_token(token)}")
        raise AuthenticationError("Invalid or expired authentication token")

    uid = payload.get("sub")
    profile = store.get_user(uid)
    if profile is None:
        logger.warning(f"Access denied: no account record for uid={uid}")
        raise AuthorizationError("Account not registered. Contact admin.")

    role = Role.parse(profile.get("role"))
    if role is None:
        logger.warning(f"Access denied: uid={uid} has unknown role {profile.get('role')!r}")
        raise AuthorizationError("Account has no valid role")

    return SessionContext(
        uid=uid,
        email=str(profile.get("email") or payload.get("email") or ""),
        role=role,
        profile=profile,
        claims=payload,
    )


_ROLE_MESSAGES = {
    Role.ADMIN: "Forbidden: Admins only",
    Role.TEACHER: "Unauthorized: Only teachers can grade submissions",
    Role.STUDENT: "Forbidden: Students only",
}


def require_role(*roles: Role) -> Callable[..., SessionContext]:
    """Build a dependency that admits only callers holding one of ``roles``."""

    def dependency(session: SessionContext = Depends(get_session)) -> SessionContext:
        if not session.has_role(*roles):
            logger.warning(
                f"Access denied: uid={session.uid} role={session.role.value} "
                f"required={[r.value for r in roles]}"
            )
            message = _ROLE_MESSAGES[roles[0]] if len(roles) == 1 else "Forbidden"
            raise AuthorizationError(message)
        return session

    return dependency


require_admin = require_role(Role.ADMIN)
require_teacher = require_role(Role.TEACHER)
require_student = require_role(Role.STUDENT)


def ensure_assigned_teacher(session: SessionContext, submission: Mapping[str, Any]) -> None:
    """Only the submission's assigned teacher may grade it."""
    if submission.get("assignedTeacherUid") != session.uid:
        logger.warning(
            f"Grading denied: uid={session.uid} is not assigned to submission {submission.get('id')}"
        )
        raise AuthorizationError("Unauthorized: You are not assigned to grade this submission")


def ensure_can_view_submission(session: SessionContext, submission: Mapping[str, Any]) -> None:
    """Students see their own submissions, teachers their assigned ones, admins all."""
    if session.role is Role.ADMIN:
        return
    if session.role is Role.STUDENT and submission.get("studentUid") == session.uid:
        return
    if session.role is Role.TEACHER and submission.get("assignedTeacherUid") == session.uid:
        return
    raise AuthorizationError("You do not have access to this submission")


def log_admin_operation(
    operation: str,
    session: Optional[SessionContext],
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """Audit line for admin and bootstrap operations."""
    log_entry: Dict[str, Any] = {
        "event_type": "admin_operation",
        "operation": operation,
        "user_id": session.uid if session else None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if details:
        log_entry["details"] = details
    logger.info(f"ADMIN_OPERATION: {log_entry}")
