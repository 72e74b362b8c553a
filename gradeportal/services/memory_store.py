from __future__ import annotations

import copy
import threading
from typing import Any, Dict, List, Mapping, Optional

from ..errors import ConflictError, NotFoundError
from .query_builder import UserListQuery

Record = Dict[str, Any]


class MemoryDocumentStore:
    """In-memory document store for local development and tests.

    Records are deep-copied on the way in and out so callers never share
    state with the store.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: Dict[str, Record] = {}
        self._submissions: Dict[str, Record] = {}
        self._credentials: Dict[str, Record] = {}

    # users

    def get_user(self, uid: str) -> Optional[Record]:
        with self._lock:
            record = self._users.get(uid)
            return copy.deepcopy(record) if record is not None else None

    def put_user(self, record: Mapping[str, Any]) -> Record:
        with self._lock:
            stored = copy.deepcopy(dict(record))
            self._users[stored["uid"]] = stored
            return copy.deepcopy(stored)

    def update_user(self, uid: str, changes: Mapping[str, Any]) -> Record:
        with self._lock:
            record = self._users.get(uid)
            if record is None:
                raise NotFoundError("User not found")
            record.update(copy.deepcopy(dict(changes)))
            return copy.deepcopy(record)

    def list_users(self, query: UserListQuery) -> List[Record]:
        with self._lock:
            matching = [r for r in self._users.values() if query.matches(r)]
        matching.sort(key=UserListQuery.sort_key)
        if query.start_after is not None:
            boundary = query.start_after.sort_key()
            matching = [r for r in matching if UserListQuery.sort_key(r) > boundary]
        return [copy.deepcopy(r) for r in matching[: query.limit]]

    def count_users(self, equals: Mapping[str, str]) -> int:
        with self._lock:
            return sum(
                1 for r in self._users.values() if all(r.get(k) == v for k, v in equals.items())
            )

    def field_values(self, field: str, equals: Mapping[str, str], limit: int) -> List[str]:
        with self._lock:
            values = [
                r[field]
                for r in self._users.values()
                if r.get(field) is not None and all(r.get(k) == v for k, v in equals.items())
            ]
        return sorted(values)[:limit]

    # submissions

    def get_submission(self, submission_id: str) -> Optional[Record]:
        with self._lock:
            record = self._submissions.get(submission_id)
            return copy.deepcopy(record) if record is not None else None

    def put_submission(self, record: Mapping[str, Any]) -> Record:
        with self._lock:
            stored = copy.deepcopy(dict(record))
            self._submissions[stored["id"]] = stored
            return copy.deepcopy(stored)

    def update_submission(self, submission_id: str, changes: Mapping[str, Any]) -> Record:
        with self._lock:
            record = self._submissions.get(submission_id)
            if record is None:
                raise NotFoundError("Submission not found")
            record.update(copy.deepcopy(dict(changes)))
            return copy.deepcopy(record)

    def list_submissions(self, field: str, value: str) -> List[Record]:
        with self._lock:
            matching = [copy.deepcopy(r) for r in self._submissions.values() if r.get(field) == value]
        matching.sort(key=lambda r: r.get("submittedAt", ""), reverse=True)
        return matching

    def recent_submissions(self, limit: int) -> List[Record]:
        with self._lock:
            records = [copy.deepcopy(r) for r in self._submissions.values()]
        records.sort(key=lambda r: r.get("submittedAt", ""), reverse=True)
        return records[:limit]

    def count_submissions(self, status: Optional[str] = None) -> int:
        with self._lock:
            if status is None:
                return len(self._submissions)
            return sum(1 for r in self._submissions.values() if r.get("status") == status)

    # credentials

    def get_credential(self, email: str) -> Optional[Record]:
        with self._lock:
            record = self._credentials.get(email.lower())
            return copy.deepcopy(record) if record is not None else None

    def create_credential(self, record: Mapping[str, Any]) -> Record:
        with self._lock:
            key = str(record["email"]).lower()
            if key in self._credentials:
                raise ConflictError("Email already exists")
            stored = copy.deepcopy(dict(record))
            stored["email"] = key
            self._credentials[key] = stored
            return copy.deepcopy(stored)

    def update_credential(self, email: str, changes: Mapping[str, Any]) -> Record:
        with self._lock:
            record = self._credentials.get(email.lower())
            if record is None:
                raise NotFoundError("Credential not found")
            record.update(copy.deepcopy(dict(changes)))
            return copy.deepcopy(record)
