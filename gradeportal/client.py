"""
Thin HTTP client for the portal API.

``ClientSession`` holds the signed-in caller between calls, ``PortalClient``
wraps the endpoints and ``UserDirectory`` drives the admin account listing
through a :class:`~gradeportal.services.pager.Pager`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from .schemas import Role
from .services.pager import PageResult, Pager
from .services.query_builder import UserListFilters

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class PortalClientError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")


@dataclass
class ClientSession:
    """The signed-in caller, as far as the client knows."""

    token: Optional[str] = None
    expires_at: Optional[str] = None
    user: Dict[str, Any] = field(default_factory=dict)

    @property
    def active(self) -> bool:
        return self.token is not None

    @property
    def role(self) -> Optional[Role]:
        return Role.parse(self.user.get("role"))

    def initialize(self, token: str, user: Dict[str, Any], expires_at: Optional[str] = None) -> None:
        self.token = token
        self.expires_at = expires_at
        self.user = dict(user)

    def update(self, user: Dict[str, Any]) -> None:
        self.user = {**self.user, **user}

    def teardown(self) -> None:
        self.token = None
        self.expires_at = None
        self.user = {}


class PortalClient:
    def __init__(
        self,
        base_url: str,
        session: Optional[ClientSession] = None,
        http: Optional[requests.Session] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or ClientSession()
        self.http = http or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = dict(kwargs.pop("headers", None) or {})
        if self.session.token:
            headers["Authorization"] = f"Bearer {self.session.token}"
        try:
            response = self.http.request(
                method,
                f"{self.base_url}{path}",
                headers=headers,
                timeout=self.timeout,
                **kwargs,
            )
        except requests.exceptions.RequestException as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise PortalClientError(0, str(e)) from e

        if response.status_code >= 400:
            try:
                message = response.json().get("error") or response.reason
            except ValueError:
                message = response.text or response.reason
            raise PortalClientError(response.status_code, str(message))
        return response.json()

    def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        data = self._request("POST", "/api/auth/login", json={"email": email, "password": password})
        self.session.initialize(data["token"], data["user"], data.get("expiresAt"))
        return data["user"]

    def sign_out(self) -> None:
        """Forget the token locally; the server keeps no session to revoke."""
        self.session.teardown()

    def me(self) -> Dict[str, Any]:
        user = self._request("GET", "/api/me")
        self.session.update(user)
        return user

    def complete_profile(self, full_name: str) -> Dict[str, Any]:
        user = self._request("POST", "/api/profile/complete", json={"fullName": full_name})
        self.session.update(user)
        return user

    def change_password(self, current_password: str, new_password: str) -> Dict[str, Any]:
        body = {"currentPassword": current_password, "newPassword": new_password}
        return self._request("POST", "/api/auth/change-password", json=body)

    def request_password_reset(self, email: str) -> Dict[str, Any]:
        return self._request("POST", "/api/auth/password-reset/request", json={"email": email})

    def confirm_password_reset(self, token: str, new_password: str) -> Dict[str, Any]:
        body = {"token": token, "newPassword": new_password}
        return self._request("POST", "/api/auth/password-reset/confirm", json=body)

    def create_user(self, email: str, full_name: str, role: str, temp_password: str, **profile) -> Dict[str, Any]:
        body = {"email": email, "fullName": full_name, "role": role, "tempPassword": temp_password, **profile}
        return self._request("POST", "/api/admin/create-user", json=body)

    def seed(self, secret: str, emails: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        data = self._request(
            "POST",
            "/api/admin/seed-initial",
            headers={"x-seed-secret": secret},
            json={"emails": emails or []},
        )
        return data["results"]

    def create_submission(self, **fields) -> Dict[str, Any]:
        return self._request("POST", "/api/submissions", json=fields)

    def submissions(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/submissions")

    def grade(self, submission_id: str, grade: float, feedback: str) -> Dict[str, Any]:
        body = {"submissionId": submission_id, "grade": grade, "feedback": feedback}
        return self._request("POST", "/api/grade", json=body)["data"]

    def list_users(
        self,
        filters: UserListFilters,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = filters.as_params()
        if cursor:
            params["cursor"] = cursor
        if page_size:
            params["pageSize"] = page_size
        return self._request("GET", "/api/admin/users", params=params)


class UserDirectory:
    """Admin account listing: filters in, pages out.

    Changing the filters always invalidates the pager, so a cursor captured
    under one filter set is never sent with another.
    """

    def __init__(self, client: PortalClient, page_size: int = 20) -> None:
        self.client = client
        self.filters = UserListFilters()
        self.pager = Pager(fetch_page=self._fetch_page, page_size=page_size)

    def _fetch_page(self, cursor: Optional[str], page_size: int) -> PageResult:
        data = self.client.list_users(self.filters, cursor, page_size)
        return PageResult(items=data["items"], last_cursor=data.get("nextCursor"))

    def set_filters(self, filters: UserListFilters) -> List[Dict[str, Any]]:
        self.filters = filters
        self.pager.invalidate()
        return self.pager.fetch(0)

    def load(self) -> List[Dict[str, Any]]:
        return self.pager.reset_and_fetch()

    def next(self) -> List[Dict[str, Any]]:
        return self.pager.next_page()

    def previous(self) -> List[Dict[str, Any]]:
        return self.pager.previous_page()

    def refresh(self) -> List[Dict[str, Any]]:
        return self.pager.refresh()
