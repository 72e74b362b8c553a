from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..middleware.rbac import get_session
from ..schemas import (
    ChangePasswordRequest,
    CompleteProfileRequest,
    LoginRequest,
    PasswordResetConfirmRequest,
    PasswordResetRequest,
)
from ..services import user_service
from ..services.document_store import DocumentStore, get_document_store
from ..session import SessionContext

router = APIRouter(prefix="/api", tags=["Auth"])


@router.post("/auth/login", openapi_extra={"security": []}, summary="Sign in with email and password")
def login(
    payload: LoginRequest,
    store: DocumentStore = Depends(get_document_store),
) -> Dict[str, Any]:
    return user_service.sign_in(store, payload.email, payload.password)


@router.get("/me", summary="Current account")
def me(session: SessionContext = Depends(get_session)) -> Dict[str, Any]:
    return session.profile


@router.post("/profile/complete", summary="Set display name and mark the profile complete")
def complete_profile(
    payload: CompleteProfileRequest,
    session: SessionContext = Depends(get_session),
    store: DocumentStore = Depends(get_document_store),
) -> Dict[str, Any]:
    return user_service.complete_profile(store, session, payload.fullName)


@router.post("/auth/change-password", summary="Replace the caller's password")
def change_password(
    payload: ChangePasswordRequest,
    session: SessionContext = Depends(get_session),
    store: DocumentStore = Depends(get_document_store),
) -> Dict[str, Any]:
    return user_service.change_password(store, session, payload.currentPassword, payload.newPassword)


@router.post(
    "/auth/password-reset/request",
    openapi_extra={"security": []},
    summary="Issue a password-reset token for an email",
)
def request_password_reset(
    payload: PasswordResetRequest,
    store: DocumentStore = Depends(get_document_store),
) -> Dict[str, Any]:
    return user_service.request_password_reset(store, payload.email)


@router.post(
    "/auth/password-reset/confirm",
    openapi_extra={"security": []},
    summary="Set a new password with a reset token",
)
def confirm_password_reset(
    payload: PasswordResetConfirmRequest,
    store: DocumentStore = Depends(get_document_store),
) -> Dict[str, Any]:
    return user_service.confirm_password_reset(store, payload.token, payload.newPassword)
