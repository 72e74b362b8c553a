"""
Account operations: provisioning, admin seeding, sign-in, profile completion,
password changes and resets, and the admin directory listings.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

import requests
from botocore.exceptions import ClientError
from email_validator import EmailNotValidError, validate_email

from .. import config
from ..errors import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    NotFoundError,
    PortalError,
    ValidationError,
)
from ..middleware.rbac import log_admin_operation
from ..schemas import PROVISIONABLE_ROLES, CreateUserRequest, Role
from ..session import SessionContext
from . import auth_service
from .document_store import DocumentStore
from .query_builder import Cursor, UserListFilters, build_user_query

logger = logging.getLogger(__name__)

USER_NOT_FOUND_MESSAGE = "Auth user not found. Create the user first."
NO_ACCOUNT_FOR_EMAIL = "No account found with this email"
INVALID_RESET_TOKEN = "Invalid or expired reset token"
DEPARTMENT_SCAN_LIMIT = 100


def _check_email(email: str) -> None:
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValidationError("Invalid email address") from exc


def _check_password(password: str) -> None:
    if len(password) < auth_service.MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {auth_service.MIN_PASSWORD_LENGTH} characters"
        )


def email_domain_allowed(email: str, domain: Optional[str] = None) -> bool:
    allowed = config.allowed_email_domain() if domain is None else domain
    if not allowed:
        return True
    return email.lower().endswith(f"@{allowed.lower()}")


def create_account(store: DocumentStore, session: SessionContext, request: CreateUserRequest) -> Dict[str, Any]:
    """
    Provision a credential and write the matching profile.

    The two writes are sequential and not transactional.

    Raises:
        ValidationError: Missing fields, bad role or email, disallowed domain, short password
        ConflictError: The email is already provisioned
    """
    email = (request.email or "").strip()
    full_name = (request.fullName or "").strip()
    password = request.tempPassword or ""
    if not email or not full_name or not request.role or not password:
        raise ValidationError("Missing required fields")

    role = Role.parse(request.role)
    if role not in PROVISIONABLE_ROLES:
        raise ValidationError("Invalid role")

    _check_email(email)
    if not email_domain_allowed(email):
        raise ValidationError(f"Only {config.allowed_email_domain()} emails are allowed")
    _check_password(password)

    credential = auth_service.provision_identity(store, email, password, full_name)

    now = auth_service.isoformat(auth_service.utc_now())
    record = {
        **request.profile_fields(role),
        "uid": credential["uid"],
        "email": email,
        "fullName": full_name,
        "role": role.value,
        "profileCompleted": True,
        "createdAt": now,
        "updatedAt": now,
    }
    store.put_user(record)
    log_admin_operation("create_user", session, {"uid": record["uid"], "role": role.value})
    return record


def resolve_seed_emails(body_emails: Iterable[Any]) -> List[str]:
    """Configured emails followed by request emails, de-duplicated in order."""
    emails: List[str] = []
    for raw in [*config.initial_admin_emails(), *body_emails]:
        email = str(raw).strip()
        if email and email not in emails:
            emails.append(email)
    return emails


def _promote_to_admin(store: DocumentStore, email: str) -> Dict[str, Any]:
    credential = store.get_credential(email)
    if credential is None:
        return {"email": email, "status": "error", "message": USER_NOT_FOUND_MESSAGE}

    uid = credential["uid"]
    existing = store.get_user(uid) or {}
    now = auth_service.isoformat(auth_service.utc_now())
    store.put_user(
        {
            **existing,
            "uid": uid,
            "email": existing.get("email") or email,
            "fullName": credential.get("displayName") or email.split("@")[0],
            "role": Role.ADMIN.value,
            "profileCompleted": True,
            "createdAt": existing.get("createdAt") or now,
            "updatedAt": now,
        }
    )
    return {"email": email, "status": "ok", "uid": uid}


def seed_admins(store: DocumentStore, emails: List[str]) -> List[Dict[str, Any]]:
    """Grant the admin role to each already-provisioned email.

    Each email is handled independently; a failure is reported in its result
    entry and does not stop the others.
    """
    if not emails:
        raise ValidationError("No emails provided")

    results = []
    for email in emails:
        try:
            results.append(_promote_to_admin(store, email))
        except (PortalError, ClientError) as e:
            logger.error(f"Failed to seed admin {email}: {e}")
            results.append({"email": email, "status": "error", "message": str(e) or "Unknown error"})
    log_admin_operation(
        "seed_initial_admins",
        None,
        {"requested": len(emails), "ok": sum(1 for r in results if r["status"] == "ok")},
    )
    return results


def sign_in(store: DocumentStore, email: Optional[str], password: Optional[str]) -> Dict[str, Any]:
    """
    Exchange an email/password pair for a bearer token.

    Raises:
        ValidationError: Missing email or password
        AuthorizationError: Disallowed email domain, or no account record for the credential
        AuthenticationError: Unknown email or wrong password
    """
    email = (email or "").strip()
    if not email or not password:
        raise ValidationError("Email and password are required")
    if not email_domain_allowed(email):
        raise AuthorizationError("Email domain not allowed")

    credential = auth_service.authenticate(store, email, password)
    if credential is None:
        logger.info("Sign-in rejected: bad credentials")
        raise AuthenticationError("Invalid email or password")

    profile = store.get_user(credential["uid"])
    if profile is None:
        # Accounts are only ever created by an admin; never auto-create here.
        raise AuthorizationError("Account not registered. Contact admin.")

    token = auth_service.create_jwt_token(credential["uid"], credential["email"])
    logger.info(f"Signed in uid={credential['uid']} as {profile.get('role')}")
    return {"token": token["token"], "expiresAt": token["expires_at"], "user": profile}


def complete_profile(store: DocumentStore, session: SessionContext, full_name: Optional[str]) -> Dict[str, Any]:
    name = (full_name or "").strip()
    if not name:
        raise ValidationError("Full name is required")
    return store.update_user(
        session.uid,
        {
            "fullName": name,
            "profileCompleted": True,
            "updatedAt": auth_service.isoformat(auth_service.utc_now()),
        },
    )


def change_password(
    store: DocumentStore,
    session: SessionContext,
    current_password: Optional[str],
    new_password: Optional[str],
) -> Dict[str, Any]:
    """
    Replace the caller's password after re-checking the current one.

    Raises:
        ValidationError: Missing fields, short new password, or wrong current password
    """
    if not current_password or not new_password:
        raise ValidationError("Current password and new password are required")
    _check_password(new_password)
    if auth_service.authenticate(store, session.email, current_password) is None:
        logger.warning(f"Password change rejected for uid={session.uid}: current password mismatch")
        raise ValidationError("Current password is incorrect")

    auth_service.set_password(store, session.email, new_password)
    return {"success": True, "message": "Password updated"}


def _deliver_reset_token(email: str, token: Dict[str, Any]) -> bool:
    """POST the token to the configured mailer hook; returns False when none is set."""
    url = config.password_reset_webhook_url()
    if not url:
        return False
    try:
        response = requests.post(
            url,
            json={"email": email, "resetToken": token["token"], "expiresAt": token["expires_at"]},
            timeout=10,
        )
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        logger.error(f"Password reset delivery failed: {type(e).__name__}")
        raise PortalError("Failed to send password reset email") from e
    return True


def request_password_reset(store: DocumentStore, email: Optional[str]) -> Dict[str, Any]:
    """
    Issue a reset token for ``email``.

    With ``PASSWORD_RESET_WEBHOOK_URL`` set the token goes to that hook. Without
    it the token is returned in the response, outside production only.

    Raises:
        ValidationError: Missing email
        NotFoundError: No credential for the email
        ConfigurationError: Production without a delivery hook
    """
    email = (email or "").strip()
    if not email:
        raise ValidationError("Email is required")
    credential = store.get_credential(email)
    if credential is None or credential.get("disabled"):
        raise NotFoundError(NO_ACCOUNT_FOR_EMAIL)

    token = auth_service.create_reset_token(credential)
    result: Dict[str, Any] = {"success": True, "message": "Password reset email sent"}
    if not _deliver_reset_token(credential["email"], token):
        if config.is_production():
            raise ConfigurationError("Password reset delivery is not configured")
        result["resetToken"] = token["token"]
    result["expiresAt"] = token["expires_at"]
    logger.info(f"Password reset issued for uid={credential['uid']}")
    return result


def confirm_password_reset(store: DocumentStore, token: Optional[str], new_password: Optional[str]) -> Dict[str, Any]:
    """
    Set a new password using a reset token.

    Raises:
        ValidationError: Missing fields, short password, or an invalid, expired or used token
    """
    if not token or not new_password:
        raise ValidationError("Reset token and new password are required")
    _check_password(new_password)
    credential = auth_service.verify_reset_token(store, token)
    if credential is None:
        raise ValidationError(INVALID_RESET_TOKEN)

    auth_service.set_password(store, credential["email"], new_password)
    return {"success": True, "message": "Password updated"}



def get_account(store: DocumentStore, uid: str) -> Dict[str, Any]:
    record = store.get_user(uid)
    if record is None:
        raise NotFoundError("User not found")
    return record


def list_users_page(
    store: DocumentStore,
    filters: UserListFilters,
    cursor: Optional[str] = None,
    page_size: Optional[int] = None,
) -> Dict[str, Any]:
    """One page of the admin directory.

    ``hasNext`` is true when the page came back full, so an exact multiple of
    the page size yields one trailing empty page.
    """
    start_after = Cursor.decode(cursor) if cursor else None
    query = build_user_query(filters, start_after, page_size)
    items = store.list_users(query)
    return {
        "items": items,
        "nextCursor": Cursor.from_record(items[-1]).encode() if items else None,
        "hasNext": len(items) == query.limit,
        "pageSize": query.limit,
    }


def list_teachers(store: DocumentStore) -> List[Dict[str, Any]]:
    """Every teacher in name order, for the assignee picker on new submissions."""
    filters = UserListFilters(role=Role.TEACHER.value)
    teachers: List[Dict[str, Any]] = []
    cursor: Optional[Cursor] = None
    while True:
        page = store.list_users(build_user_query(filters, cursor, config.MAX_PAGE_SIZE))
        teachers.extend(
            {k: r.get(k) for k in ("uid", "fullName", "email", "department", "title") if r.get(k) is not None}
            for r in page
        )
        if len(page) < config.MAX_PAGE_SIZE:
            return teachers
        cursor = Cursor.from_record(page[-1])


def list_departments(store: DocumentStore, role: Optional[str] = None) -> List[str]:
    """Distinct non-blank departments among the first records that have one."""
    equals = UserListFilters(role=role).equalities()
    values = store.field_values("department", equals, DEPARTMENT_SCAN_LIMIT)
    return sorted({v.strip() for v in values if isinstance(v, str) and v.strip()})
