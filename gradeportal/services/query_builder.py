"""
Composes filtered, cursor-paginated list queries over the ``users`` collection.

A query is a plain value object; each document store backend knows how to run
it. The builder itself never touches storage:

  * equality filters are only added for non-empty selections
  * results are always ordered by ``fullName`` ascending
  * a search term becomes the inclusive range ``[term, term + PREFIX_SENTINEL]``
    over ``fullName``, i.e. a case-sensitive prefix match
  * the window is ``limit`` records starting strictly after ``start_after``
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from .. import config
from ..errors import ValidationError
from ..schemas import Role

PREFIX_SENTINEL = "\uf8ff"
ORDER_FIELD = "fullName"
ALL_ROLES = "all"

# Filter name -> stored attribute, in the order the constraints are applied.
EQUALITY_FIELDS: Tuple[str, ...] = ("role", "department", "course", "branch", "batch", "title")


def _is_set(value: Optional[str]) -> bool:
    return value is not None and str(value).strip() != ""


@dataclass(frozen=True)
class UserListFilters:
    role: Optional[str] = None
    search: Optional[str] = None
    department: Optional[str] = None
    course: Optional[str] = None
    branch: Optional[str] = None
    batch: Optional[str] = None
    title: Optional[str] = None

    def equalities(self) -> Dict[str, str]:
        selected: Dict[str, str] = {}
        for name in EQUALITY_FIELDS:
            value = getattr(self, name)
            if not _is_set(value):
                continue
            if name == "role":
                if value == ALL_ROLES:
                    continue
                if Role.parse(value) is None:
                    raise ValidationError(f"Invalid role filter '{value}'")
            selected[name] = value
        return selected

    def search_term(self) -> str:
        return (self.search or "").strip()

    def as_params(self) -> Dict[str, str]:
        """Non-empty filters as query-string parameters."""
        return {
            name: getattr(self, name)
            for name in ("role", "search", "department", "course", "branch", "batch", "title")
            if _is_set(getattr(self, name))
        }


@dataclass(frozen=True)
class Cursor:
    """Position of the last record of a page: its ordering key plus its id."""

    uid: str
    full_name: str

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Cursor":
        return cls(uid=str(record["uid"]), full_name=str(record.get(ORDER_FIELD, "")))

    def sort_key(self) -> Tuple[str, str]:
        return (self.full_name, self.uid)

    def encode(self) -> str:
        raw = json.dumps({"u": self.uid, "n": self.full_name}, separators=(",", ":"))
        return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")

    @classmethod
    def decode(cls, token: str) -> "Cursor":
        padded = token + "=" * (-len(token) % 4)
        try:
            data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8"))
            return cls(uid=str(data["u"]), full_name=str(data["n"]))
        except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError) as exc:
            raise ValidationError("Invalid cursor") from exc


@dataclass(frozen=True)
class NameRange:
    start: str
    end: str

    @classmethod
    def for_prefix(cls, term: str) -> "NameRange":
        return cls(start=term, end=term + PREFIX_SENTINEL)

    def contains(self, value: str) -> bool:
        return self.start <= value <= self.end


@dataclass(frozen=True)
class UserListQuery:
    equals: Dict[str, str] = field(default_factory=dict)
    order_by: str = ORDER_FIELD
    name_range: Optional[NameRange] = None
    start_after: Optional[Cursor] = None
    limit: int = config.DEFAULT_PAGE_SIZE

    def matches(self, record: Mapping[str, Any]) -> bool:
        for name, value in self.equals.items():
            if record.get(name) != value:
                return False
        if self.name_range is not None:
            name = record.get(self.order_by)
            if not isinstance(name, str) or not self.name_range.contains(name):
                return False
        return True

    @staticmethod
    def sort_key(record: Mapping[str, Any]) -> Tuple[str, str]:
        return (str(record.get(ORDER_FIELD, "")), str(record.get("uid", "")))


def build_user_query(
    filters: UserListFilters,
    cursor: Optional[Cursor] = None,
    page_size: Optional[int] = None,
) -> UserListQuery:
    size = page_size if page_size is not None else config.default_page_size()
    if size < 1 or size > config.MAX_PAGE_SIZE:
        raise ValidationError(f"pageSize must be between 1 and {config.MAX_PAGE_SIZE}")

    term = filters.search_term()
    return UserListQuery(
        equals=filters.equalities(),
        name_range=NameRange.for_prefix(term) if term else None,
        start_after=cursor,
        limit=size,
    )
