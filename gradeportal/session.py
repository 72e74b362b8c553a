from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

from .schemas import Role


@dataclass(frozen=True)
class SessionContext:
    """The verified caller of one request.

    Built by the authorization gate and passed explicitly to handlers and
    services; nothing about the caller is kept in module state.
    """

    uid: str
    email: str
    role: Role
    profile: Dict[str, Any] = field(default_factory=dict)
    claims: Dict[str, Any] = field(default_factory=dict)

    @property
    def full_name(self) -> str:
        return str(self.profile.get("fullName", ""))

    @property
    def profile_completed(self) -> bool:
        return bool(self.profile.get("profileCompleted"))

    def has_role(self, *roles: Role) -> bool:
        return self.role in roles
