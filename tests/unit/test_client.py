"""
Tests for the HTTP client, its session object and the user directory
"""
from unittest.mock import MagicMock

import pytest
import requests

from gradeportal.client import ClientSession, PortalClient, PortalClientError, UserDirectory
from gradeportal.schemas import Role
from gradeportal.services.pager import StaleCursorError
from gradeportal.services.query_builder import UserListFilters


def _response(status_code=200, body=None, reason="OK"):
    response = MagicMock()
    response.status_code = status_code
    response.reason = reason
    response.json.return_value = body
    return response


@pytest.fixture
def http():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def portal(http):
    return PortalClient("http://portal.local/", http=http)


class TestClientSession:
    def test_lifecycle(self):
        session = ClientSession()
        assert not session.active

        session.initialize("tok", {"uid": "u1", "role": "teacher"}, "2030-01-01T00:00:00+00:00")
        assert session.active
        assert session.role is Role.TEACHER

        session.update({"fullName": "T"})
        assert session.user == {"uid": "u1", "role": "teacher", "fullName": "T"}

        session.teardown()
        assert not session.active
        assert session.user == {}
        assert session.role is None


class TestPortalClient:
    def test_sign_in_initializes_session_and_sends_token(self, portal, http):
        http.request.side_effect = [
            _response(body={"token": "tok", "expiresAt": "later", "user": {"uid": "u1", "role": "admin"}}),
            _response(body={"uid": "u1", "role": "admin", "fullName": "Ada"}),
        ]

        portal.sign_in("a@school.edu", "pw123456")
        portal.me()

        login_call, me_call = http.request.call_args_list
        assert login_call.args == ("POST", "http://portal.local/api/auth/login")
        assert "Authorization" not in login_call.kwargs["headers"]
        assert me_call.kwargs["headers"]["Authorization"] == "Bearer tok"
        assert portal.session.user["fullName"] == "Ada"

    def test_sign_out_tears_down(self, portal):
        portal.session.initialize("tok", {"uid": "u1"})
        portal.sign_out()
        assert portal.session.token is None

    def test_error_body_becomes_exception(self, portal, http):
        http.request.return_value = _response(409, {"error": "Email already exists"}, "Conflict")
        with pytest.raises(PortalClientError) as excinfo:
            portal.create_user("a@school.edu", "A B", "student", "pw123456")
        assert excinfo.value.status_code == 409
        assert excinfo.value.message == "Email already exists"

    def test_non_json_error(self, portal, http):
        response = _response(502, reason="Bad Gateway")
        response.json.side_effect = ValueError("no json")
        response.text = ""
        http.request.return_value = response
        with pytest.raises(PortalClientError, match="Bad Gateway"):
            portal.submissions()

    def test_transport_failure(self, portal, http):
        http.request.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(PortalClientError) as excinfo:
            portal.submissions()
        assert excinfo.value.status_code == 0

    def test_seed_sends_secret_header(self, portal, http):
        http.request.return_value = _response(body={"results": [{"email": "a@school.edu", "status": "ok"}]})
        results = portal.seed("s3cret", ["a@school.edu"])
        assert results[0]["status"] == "ok"
        assert http.request.call_args.kwargs["headers"]["x-seed-secret"] == "s3cret"

    def test_grade_returns_data(self, portal, http):
        http.request.return_value = _response(body={"success": True, "data": {"submissionId": "s1", "grade": 90}})
        assert portal.grade("s1", 90, "good") == {"submissionId": "s1", "grade": 90}
        assert http.request.call_args.kwargs["json"] == {"submissionId": "s1", "grade": 90, "feedback": "good"}

    def test_password_reset_round(self, portal, http):
        http.request.return_value = _response(body={"success": True, "resetToken": "tok"})
        assert portal.request_password_reset("a@school.edu")["resetToken"] == "tok"

        http.request.return_value = _response(body={"success": True, "message": "Password updated"})
        portal.confirm_password_reset("tok", "newpass1")
        args = http.request.call_args
        assert args.args[1] == "http://portal.local/api/auth/password-reset/confirm"
        assert args.kwargs["json"] == {"token": "tok", "newPassword": "newpass1"}


def _page(names, cursor=None):
    return _response(
        body={
            "items": [{"uid": n.lower(), "fullName": n} for n in names],
            "nextCursor": cursor,
            "hasNext": False,
            "pageSize": 2,
        }
    )


class TestUserDirectory:
    def test_navigation_sends_cursors(self, portal, http):
        http.request.side_effect = [_page(["Ada", "Bob"], "c1"), _page(["Cy"], "c2"), _page(["Ada", "Bob"], "c1")]
        directory = UserDirectory(portal, page_size=2)

        assert [u["fullName"] for u in directory.load()] == ["Ada", "Bob"]
        assert [u["fullName"] for u in directory.next()] == ["Cy"]
        directory.previous()

        params = [c.kwargs["params"] for c in http.request.call_args_list]
        assert params[0] == {"pageSize": 2}
        assert params[1] == {"pageSize": 2, "cursor": "c1"}
        assert params[2] == {"pageSize": 2}

    def test_filter_change_invalidates_cursors(self, portal, http):
        http.request.side_effect = [_page(["Ada", "Bob"], "c1"), _page(["Ada"], "c9")]
        directory = UserDirectory(portal, page_size=2)
        directory.load()

        directory.set_filters(UserListFilters(role="student", search="A"))

        last = http.request.call_args.kwargs["params"]
        assert last == {"role": "student", "search": "A", "pageSize": 2}
        assert directory.pager.cursor_by_page == {1: "c9"}
        with pytest.raises(StaleCursorError):
            directory.pager.fetch(2)

    def test_failed_page_keeps_previous_items(self, portal, http):
        http.request.side_effect = [_page(["Ada", "Bob"], "c1"), _response(500, {"error": "Internal server error"})]
        directory = UserDirectory(portal, page_size=2)
        directory.load()

        with pytest.raises(PortalClientError):
            directory.next()
        assert [u["fullName"] for u in directory.pager.items] == ["Ada", "Bob"]
        assert directory.pager.current_page == 0
