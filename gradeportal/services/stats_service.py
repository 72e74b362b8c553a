from __future__ import annotations

from typing import Any, Dict, List

from ..schemas import Role, SubmissionStatus
from .document_store import DocumentStore

RECENT_SUBMISSIONS_LIMIT = 5


def overview_stats(store: DocumentStore) -> Dict[str, int]:
    """Account counts per role plus total and pending submissions."""
    return {
        "students": store.count_users({"role": Role.STUDENT.value}),
        "teachers": store.count_users({"role": Role.TEACHER.value}),
        "admins": store.count_users({"role": Role.ADMIN.value}),
        "submissions": store.count_submissions(),
        "pending": store.count_submissions(SubmissionStatus.PENDING.value),
    }


def recent_submissions(store: DocumentStore, limit: int = RECENT_SUBMISSIONS_LIMIT) -> List[Dict[str, Any]]:
    return [
        {
            "id": s.get("id"),
            "title": s.get("title", ""),
            "studentName": s.get("studentName", ""),
            "status": s.get("status", SubmissionStatus.PENDING.value),
            "submittedAt": s.get("submittedAt"),
        }
        for s in store.recent_submissions(limit)
    ]
