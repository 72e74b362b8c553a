from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from starlette.concurrency import run_in_threadpool

from ..errors import AuthorizationError, ConfigurationError
from ..middleware.rbac import require_admin
from ..schemas import AdminStats, CreateUserRequest, CreateUserResponse, SeedResponse, UserPage
from ..services import stats_service, user_service
from ..services.document_store import DocumentStore, get_document_store
from ..services.query_builder import UserListFilters
from ..session import SessionContext
from ..utils.seed_secret import get_seed_secret, seed_secret_matches

router = APIRouter(prefix="/api/admin", tags=["Admin"])

SEED_SECRET_HEADER = "x-seed-secret"


@router.post(
    "/create-user",
    status_code=status.HTTP_201_CREATED,
    response_model=CreateUserResponse,
    summary="Provision a student or teacher account",
)
def create_user(
    payload: CreateUserRequest,
    session: SessionContext = Depends(require_admin),
    store: DocumentStore = Depends(get_document_store),
) -> CreateUserResponse:
    record = user_service.create_account(store, session, payload)
    return CreateUserResponse(
        id=record["uid"],
        uid=record["uid"],
        role=record["role"],
        email=record["email"],
        fullName=record["fullName"],
    )


@router.post(
    "/seed-initial",
    response_model=SeedResponse,
    summary="Grant the admin role to the initial administrator accounts",
)
async def seed_initial(
    request: Request,
    store: DocumentStore = Depends(get_document_store),
) -> SeedResponse:
    expected = get_seed_secret()
    if not expected:
        raise ConfigurationError("Server not configured for seeding")
    if not seed_secret_matches(request.headers.get(SEED_SECRET_HEADER), expected):
        raise AuthorizationError("Forbidden")

    # The body is optional and a malformed one is treated as empty.
    try:
        body = await request.json()
    except ValueError:
        body = {}
    raw_emails = body.get("emails") if isinstance(body, dict) else None
    emails = user_service.resolve_seed_emails(raw_emails if isinstance(raw_emails, list) else [])

    results = await run_in_threadpool(user_service.seed_admins, store, emails)
    return SeedResponse(results=results)


@router.get("/users", response_model=UserPage, summary="Filtered, paginated account directory")
def list_users(
    role: Optional[str] = Query(None, description="student, teacher, admin or all"),
    search: Optional[str] = Query(None, description="Case-sensitive full-name prefix"),
    department: Optional[str] = Query(None),
    course: Optional[str] = Query(None),
    branch: Optional[str] = Query(None),
    batch: Optional[str] = Query(None),
    title: Optional[str] = Query(None),
    cursor: Optional[str] = Query(None, description="nextCursor of the previous page"),
    page_size: Optional[int] = Query(None, alias="pageSize"),
    session: SessionContext = Depends(require_admin),
    store: DocumentStore = Depends(get_document_store),
) -> Dict[str, Any]:
    filters = UserListFilters(
        role=role,
        search=search,
        department=department,
        course=course,
        branch=branch,
        batch=batch,
        title=title,
    )
    return user_service.list_users_page(store, filters, cursor, page_size)


@router.get("/users/{uid}", summary="Account detail")
def get_user(
    uid: str,
    session: SessionContext = Depends(require_admin),
    store: DocumentStore = Depends(get_document_store),
) -> Dict[str, Any]:
    return user_service.get_account(store, uid)


@router.get("/stats", response_model=AdminStats, summary="Account and submission counts")
def get_stats(
    session: SessionContext = Depends(require_admin),
    store: DocumentStore = Depends(get_document_store),
) -> Dict[str, int]:
    return stats_service.overview_stats(store)


@router.get("/departments", response_model=List[str], summary="Known departments")
def get_departments(
    role: Optional[str] = Query(None),
    session: SessionContext = Depends(require_admin),
    store: DocumentStore = Depends(get_document_store),
) -> List[str]:
    return user_service.list_departments(store, role)
