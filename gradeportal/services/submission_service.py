"""
Submission lifecycle: students create, the assigned teacher grades.

Status moves ``pending`` -> ``graded`` on the first grade. Later grades
overwrite grade, feedback, gradedAt and gradedBy; there is no way back to
``pending``. Grading is check-then-write and not transactional, so two
concurrent grades of the same submission resolve as last write wins.
"""

from __future__ import annotations

import logging
import math
import uuid
from typing import Any, Callable, Dict, List

from pydantic import HttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..middleware.rbac import ensure_assigned_teacher, ensure_can_view_submission
from ..schemas import CreateSubmissionRequest, GradeRequest, Role, SubmissionStatus
from ..session import SessionContext
from . import auth_service
from .document_store import DocumentStore

logger = logging.getLogger(__name__)

MIN_GRADE = 0
MAX_GRADE = 100

_url_adapter = TypeAdapter(HttpUrl)


def _require_text(value: Any, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label} is required")
    return value.strip()


def create_submission(
    store: DocumentStore, session: SessionContext, request: CreateSubmissionRequest
) -> Dict[str, Any]:
    title = _require_text(request.title, "Title")
    description = _require_text(request.description, "Description")
    teacher_uid = _require_text(request.assignedTeacherUid, "Assigned teacher")
    drive_link = _require_text(request.driveLink, "Project link")
    try:
        _url_adapter.validate_python(drive_link)
    except PydanticValidationError as exc:
        raise ValidationError("Project link must be a valid http(s) URL") from exc

    teacher = store.get_user(teacher_uid)
    if teacher is None or teacher.get("role") != Role.TEACHER.value:
        raise ValidationError("Assigned teacher not found")

    record = {
        "id": uuid.uuid4().hex,
        "title": title,
        "description": description,
        "status": SubmissionStatus.PENDING.value,
        "submittedAt": auth_service.isoformat(auth_service.utc_now()),
        "studentUid": session.uid,
        "studentName": session.full_name,
        "assignedTeacherUid": teacher_uid,
        "driveLink": drive_link,
    }
    if request.linkTitle and request.linkTitle.strip():
        record["linkTitle"] = request.linkTitle.strip()

    created = store.put_submission(record)
    logger.info(f"Submission {created['id']} created by uid={session.uid} for teacher uid={teacher_uid}")
    return created


def validate_grade_request(request: GradeRequest) -> None:
    grade = request.grade
    feedback = request.feedback
    if not request.submissionId or grade is None or feedback is None or feedback == "":
        raise ValidationError("Missing required fields: submissionId, grade, and feedback")
    if (
        isinstance(grade, bool)
        or not isinstance(grade, (int, float))
        or (isinstance(grade, float) and not math.isfinite(grade))
        or grade < MIN_GRADE
        or grade > MAX_GRADE
    ):
        raise ValidationError("Grade must be a number between 0 and 100")
    if not isinstance(feedback, str) or not feedback.strip():
        raise ValidationError("Feedback must be a non-empty string")


def grade_submission(store: DocumentStore, session: SessionContext, request: GradeRequest) -> Dict[str, Any]:
    """
    Attach a grade and feedback and mark the submission graded.

    Raises:
        ValidationError: Missing fields, grade outside [0, 100], blank feedback
        NotFoundError: Unknown submission
        AuthorizationError: Caller is not the assigned teacher
    """
    validate_grade_request(request)

    submission = store.get_submission(request.submissionId)
    if submission is None:
        raise NotFoundError("Submission not found")
    ensure_assigned_teacher(session, submission)

    graded_at = auth_service.isoformat(auth_service.utc_now())
    feedback = request.feedback.strip()
    store.update_submission(
        request.submissionId,
        {
            "grade": request.grade,
            "feedback": feedback,
            "status": SubmissionStatus.GRADED.value,
            "gradedAt": graded_at,
            "gradedBy": session.uid,
        },
    )
    if submission.get("status") == SubmissionStatus.GRADED.value:
        logger.info(f"Submission {request.submissionId} re-graded by uid={session.uid}")
    else:
        logger.info(f"Submission {request.submissionId} graded by uid={session.uid}")

    return {
        "submissionId": request.submissionId,
        "grade": request.grade,
        "feedback": feedback,
        "gradedAt": graded_at,
    }


def _student_submissions(store: DocumentStore, session: SessionContext) -> List[Dict[str, Any]]:
    return store.list_submissions("studentUid", session.uid)


def _teacher_submissions(store: DocumentStore, session: SessionContext) -> List[Dict[str, Any]]:
    return store.list_submissions("assignedTeacherUid", session.uid)


_SUBMISSION_LISTS: Dict[Role, Callable[[DocumentStore, SessionContext], List[Dict[str, Any]]]] = {
    Role.STUDENT: _student_submissions,
    Role.TEACHER: _teacher_submissions,
}


def list_submissions_for(store: DocumentStore, session: SessionContext) -> List[Dict[str, Any]]:
    """The caller's own (student) or assigned (teacher) submissions, newest first."""
    lister = _SUBMISSION_LISTS.get(session.role)
    if lister is None:
        raise AuthorizationError("Submissions are listed for students and teachers only")
    return lister(store, session)


def get_submission_for(store: DocumentStore, session: SessionContext, submission_id: str) -> Dict[str, Any]:
    submission = store.get_submission(submission_id)
    if submission is None:
        raise NotFoundError("Submission not found")
    ensure_can_view_submission(session, submission)
    return submission


def summarize(submissions: List[Dict[str, Any]]) -> Dict[str, int]:
    pending = sum(1 for s in submissions if s.get("status") == SubmissionStatus.PENDING.value)
    return {"total": len(submissions), "pending": pending, "graded": len(submissions) - pending}
