"""
Tests for password hashing, token issue/verify and credential provisioning
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import jwt
import pytest

from gradeportal.errors import ConflictError
from gradeportal.services import auth_service
from gradeportal.services.memory_store import MemoryDocumentStore


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = auth_service.hash_password("pw123456")
        assert hashed != "pw123456"
        assert auth_service.verify_password("pw123456", hashed)
        assert not auth_service.verify_password("wrong", hashed)

    def test_malformed_hash_is_rejected(self):
        assert auth_service.verify_password("pw123456", "not-a-bcrypt-hash") is False


class TestTokens:
    def test_round_trip_claims(self):
        issued = auth_service.create_jwt_token("u1", "a@school.edu")
        claims = auth_service.verify_jwt_token(issued["token"])
        assert claims["sub"] == "u1"
        assert claims["email"] == "a@school.edu"
        assert claims["iss"] == auth_service.JWT_ISSUER
        assert claims["jti"] == issued["jti"]
        assert "role" not in claims

    def test_expired_token_rejected(self):
        issued = auth_service.create_jwt_token("u1", "a@school.edu", expires_in=timedelta(seconds=-5))
        assert auth_service.verify_jwt_token(issued["token"]) is None

    def test_token_signed_with_other_secret_rejected(self):
        forged = jwt.encode(
            {"sub": "u1", "iss": auth_service.JWT_ISSUER, "iat": 0, "exp": 9999999999},
            "another-secret",
            algorithm="HS256",
        )
        assert auth_service.verify_jwt_token(forged) is None

    def test_token_without_subject_rejected(self):
        token = jwt.encode(
            {"iss": auth_service.JWT_ISSUER, "iat": 0, "exp": 9999999999},
            "test-jwt-secret",
            algorithm="HS256",
        )
        assert auth_service.verify_jwt_token(token) is None

    def test_garbage_token_rejected(self):
        assert auth_service.verify_jwt_token("not.a.jwt") is None

    def test_expiration_from_environment(self, monkeypatch):
        monkeypatch.setenv("JWT_EXPIRATION_MINUTES", "5")
        with patch.object(auth_service, "utc_now") as mock_now:
            mock_now.return_value = datetime(2024, 1, 1, tzinfo=timezone.utc)
            issued = auth_service.create_jwt_token("u1", "a@school.edu")
        assert issued["expires_at"] == "2024-01-01T00:05:00+00:00"


class TestProvisioning:
    @pytest.fixture
    def memory(self):
        return MemoryDocumentStore()

    def test_provision_then_authenticate(self, memory):
        created = auth_service.provision_identity(memory, "New@School.edu", "pw123456", "New Person")
        assert created["email"] == "new@school.edu"
        assert "pw123456" not in created["passwordHash"]

        found = auth_service.authenticate(memory, "new@school.edu", "pw123456")
        assert found["uid"] == created["uid"]
        assert auth_service.authenticate(memory, "new@school.edu", "wrong") is None
        assert auth_service.authenticate(memory, "missing@school.edu", "pw123456") is None

    def test_duplicate_email_conflicts(self, memory):
        auth_service.provision_identity(memory, "a@school.edu", "pw123456", "A")
        with pytest.raises(ConflictError):
            auth_service.provision_identity(memory, "A@school.edu", "pw123456", "A again")

    def test_disabled_credential_cannot_authenticate(self, memory):
        created = auth_service.provision_identity(memory, "a@school.edu", "pw123456", "A")
        memory._credentials[created["email"]]["disabled"] = True
        assert auth_service.authenticate(memory, "a@school.edu", "pw123456") is None
