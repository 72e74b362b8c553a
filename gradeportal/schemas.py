from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import AliasChoices, BaseModel, Field


class Role(str, Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: Any) -> Optional["Role"]:
        try:
            return cls(value)
        except ValueError:
            return None


PROVISIONABLE_ROLES = (Role.STUDENT, Role.TEACHER)


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    GRADED = "graded"


# Profile attributes an admin may set when provisioning an account.
PROFILE_FIELDS = ("department", "phone", "externalId", "course", "branch", "batch", "title")
ROLE_ONLY_FIELDS = {
    Role.STUDENT: ("course", "branch", "batch"),
    Role.TEACHER: ("title",),
}


class CreateUserRequest(BaseModel):
    """Body of POST /api/admin/create-user. Presence is checked by the service."""

    email: Optional[str] = None
    fullName: Optional[str] = None
    role: Optional[str] = None
    tempPassword: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("tempPassword", "tempCredential")
    )
    department: Optional[str] = None
    phone: Optional[str] = None
    externalId: Optional[str] = None
    course: Optional[str] = None
    branch: Optional[str] = None
    batch: Optional[str] = None
    title: Optional[str] = None

    def profile_fields(self, role: Role) -> dict:
        """Non-blank optional attributes that apply to ``role``."""
        foreign = {
            name
            for other, names in ROLE_ONLY_FIELDS.items()
            if other is not role
            for name in names
        }
        values = {}
        for name in PROFILE_FIELDS:
            if name in foreign:
                continue
            value = getattr(self, name)
            if isinstance(value, str) and value.strip():
                values[name] = value.strip()
        return values


class CreateUserResponse(BaseModel):
    success: bool = True
    id: str
    uid: str
    role: Role
    email: str
    fullName: str


class SeedResult(BaseModel):
    email: str
    status: str
    message: Optional[str] = None
    uid: Optional[str] = None


class SeedResponse(BaseModel):
    results: List[SeedResult]


class GradeRequest(BaseModel):
    submissionId: Optional[str] = None
    # Left untyped so that strings and booleans reach the numeric check
    grade: Any = None
    feedback: Any = None


class GradeData(BaseModel):
    submissionId: str
    grade: Union[int, float]
    feedback: str
    gradedAt: str


class GradeResponse(BaseModel):
    success: bool = True
    message: str = "Grade submitted successfully"
    data: GradeData


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class CompleteProfileRequest(BaseModel):
    fullName: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    currentPassword: Optional[str] = None
    newPassword: Optional[str] = None


class PasswordResetRequest(BaseModel):
    email: Optional[str] = None


class PasswordResetConfirmRequest(BaseModel):
    token: Optional[str] = None
    newPassword: Optional[str] = None


class CreateSubmissionRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    assignedTeacherUid: Optional[str] = None
    driveLink: Optional[str] = None
    linkTitle: Optional[str] = None


class UserPage(BaseModel):
    items: List[dict]
    nextCursor: Optional[str] = None
    hasNext: bool
    pageSize: int


class AdminStats(BaseModel):
    students: int
    teachers: int
    admins: int
    submissions: int
    pending: int
