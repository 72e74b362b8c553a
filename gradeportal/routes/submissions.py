from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, status

from ..middleware.rbac import get_session, require_student, require_teacher
from ..schemas import CreateSubmissionRequest, GradeRequest, GradeResponse
from ..services import submission_service, user_service
from ..services.document_store import DocumentStore, get_document_store
from ..session import SessionContext

router = APIRouter(prefix="/api", tags=["Submissions"])


@router.post("/grade", response_model=GradeResponse, summary="Grade an assigned submission")
def grade(
    payload: GradeRequest,
    session: SessionContext = Depends(require_teacher),
    store: DocumentStore = Depends(get_document_store),
) -> GradeResponse:
    data = submission_service.grade_submission(store, session, payload)
    return GradeResponse(data=data)


@router.post(
    "/submissions",
    status_code=status.HTTP_201_CREATED,
    summary="Submit a project link for grading",
)
def create_submission(
    payload: CreateSubmissionRequest,
    session: SessionContext = Depends(require_student),
    store: DocumentStore = Depends(get_document_store),
) -> Dict[str, Any]:
    return submission_service.create_submission(store, session, payload)


@router.get("/submissions", summary="Own or assigned submissions, newest first")
def list_submissions(
    session: SessionContext = Depends(get_session),
    store: DocumentStore = Depends(get_document_store),
) -> List[Dict[str, Any]]:
    return submission_service.list_submissions_for(store, session)


@router.get("/submissions/{submission_id}", summary="Submission detail")
def get_submission(
    submission_id: str,
    session: SessionContext = Depends(get_session),
    store: DocumentStore = Depends(get_document_store),
) -> Dict[str, Any]:
    return submission_service.get_submission_for(store, session, submission_id)


@router.get("/teachers", summary="Teachers a submission can be assigned to")
def list_teachers(
    session: SessionContext = Depends(get_session),
    store: DocumentStore = Depends(get_document_store),
) -> List[Dict[str, Any]]:
    return user_service.list_teachers(store)
