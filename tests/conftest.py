"""
Pytest configuration and fixtures
"""
import os
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

# Module-level app construction reads these, so set them before any import
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["DISABLE_RATE_LIMIT"] = "true"
os.environ.pop("CLOUDWATCH_LOG_GROUP", None)

from fastapi.testclient import TestClient  # noqa: E402

from gradeportal.services import auth_service  # noqa: E402
from gradeportal.services.document_store import set_document_store  # noqa: E402
from gradeportal.services.memory_store import MemoryDocumentStore  # noqa: E402
from gradeportal.utils.jwt_secret import clear_jwt_secret_cache  # noqa: E402
from gradeportal.utils.seed_secret import clear_seed_secret_cache  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Every test starts from development defaults with no optional features configured"""
    monkeypatch.setenv("JWT_SECRET", "test-jwt-secret")
    monkeypatch.setenv("PYTHON_ENV", "development")
    for name in (
        "ALLOWED_EMAIL_DOMAIN",
        "ADMIN_SEED_SECRET",
        "ADMIN_SEED_SECRET_NAME",
        "INITIAL_ADMIN_EMAILS",
        "PAGE_SIZE",
        "PASSWORD_RESET_WEBHOOK_URL",
        "PASSWORD_RESET_EXPIRATION_MINUTES",
        "DDB_TABLE_USERS",
        "DDB_TABLE_SUBMISSIONS",
        "DDB_TABLE_CREDENTIALS",
    ):
        monkeypatch.delenv(name, raising=False)
    clear_jwt_secret_cache()
    clear_seed_secret_cache()
    yield
    clear_jwt_secret_cache()
    clear_seed_secret_cache()


@pytest.fixture(autouse=True)
def fast_password_hashing():
    """Cheap bcrypt work factor so provisioning tests stay quick"""
    salt = auth_service.bcrypt.gensalt(rounds=4)
    with patch.object(auth_service.bcrypt, "gensalt", return_value=salt):
        yield


@pytest.fixture
def store():
    memory = MemoryDocumentStore()
    set_document_store(memory)
    yield memory
    set_document_store(None)


@pytest.fixture
def client(store):
    from gradeportal.app import create_app

    with TestClient(create_app()) as test_client:
        yield test_client


@pytest.fixture
def make_account(store):
    """Write an account record directly; returns the stored record."""
    counter = {"n": 0}

    def _make(role, full_name, email=None, **extra):
        counter["n"] += 1
        uid = extra.pop("uid", None) or f"{role}-{counter['n']}"
        record = {
            "uid": uid,
            "email": email or f"{uid}@school.edu",
            "fullName": full_name,
            "role": role,
            "profileCompleted": True,
            "createdAt": "2024-01-01T00:00:00+00:00",
            **extra,
        }
        return store.put_user(record)

    return _make


@pytest.fixture
def auth_headers():
    def _headers(record):
        token = auth_service.create_jwt_token(record["uid"], record["email"])["token"]
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def admin(make_account):
    return make_account("admin", "Ada Admin")


@pytest.fixture
def teacher(make_account):
    return make_account("teacher", "Tess Teacher", department="CSE", title="Professor")


@pytest.fixture
def other_teacher(make_account):
    return make_account("teacher", "Otto Other", department="ECE")


@pytest.fixture
def student(make_account):
    return make_account("student", "Sam Student", department="CSE", course="BTech")


@pytest.fixture
def submission(store, student, teacher):
    return store.put_submission(
        {
            "id": "sub-1",
            "title": "Compiler project",
            "description": "A small compiler",
            "status": "pending",
            "submittedAt": "2024-03-01T10:00:00+00:00",
            "studentUid": student["uid"],
            "studentName": student["fullName"],
            "assignedTeacherUid": teacher["uid"],
            "driveLink": "https://drive.example.com/file/1",
        }
    )
