"""
Role-specific landing data behind a single dispatch point.

Each role maps to exactly one builder; adding a role means adding one entry
to ``DASHBOARDS``.
"""

from __future__ import annotations

from typing import Any, Callable, Dict

from fastapi import APIRouter, Depends

from ..middleware.rbac import get_session
from ..schemas import Role
from ..services import stats_service, submission_service
from ..services.document_store import DocumentStore, get_document_store
from ..session import SessionContext

router = APIRouter(prefix="/api", tags=["Dashboard"])


def _submissions_dashboard(store: DocumentStore, session: SessionContext) -> Dict[str, Any]:
    submissions = submission_service.list_submissions_for(store, session)
    return {
        "role": session.role.value,
        "profileCompleted": session.profile_completed,
        "counts": submission_service.summarize(submissions),
        "submissions": submissions,
    }


def _admin_dashboard(store: DocumentStore, session: SessionContext) -> Dict[str, Any]:
    return {
        "role": session.role.value,
        "profileCompleted": True,
        "stats": stats_service.overview_stats(store),
        "recentSubmissions": stats_service.recent_submissions(store),
    }


DASHBOARDS: Dict[Role, Callable[[DocumentStore, SessionContext], Dict[str, Any]]] = {
    Role.STUDENT: _submissions_dashboard,
    Role.TEACHER: _submissions_dashboard,
    Role.ADMIN: _admin_dashboard,
}


@router.get("/dashboard", summary="Landing data for the caller's role")
def dashboard(
    session: SessionContext = Depends(get_session),
    store: DocumentStore = Depends(get_document_store),
) -> Dict[str, Any]:
    return DASHBOARDS[session.role](store, session)
