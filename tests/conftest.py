"""
Pytest configuration and shared fixtures.

Settings are read at import time, so the environment is pointed at a
throwaway SQLite database and models directory before anything from
``backend`` is imported.
"""

import copy
import os
import shutil
import tempfile
import uuid
from datetime import datetime, timezone

_TMP_DIR = tempfile.mkdtemp(prefix="dynamic-platform-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["MODELS_DIR"] = os.path.join(_TMP_DIR, "models")
os.environ["MODEL_STORE"] = "file"
os.environ["JWT_SECRET"] = "test-secret-key"
os.environ["ALLOW_REGISTER_ROLE"] = "true"

import pytest
from fastapi.testclient import TestClient

from backend.core.config import settings
from backend.core.security import Principal, create_access_token
from backend.db.base import Base
from backend.db.seeds.seed_roles import seed_roles
from backend.db.session import SessionLocal, engine, init_db
from backend.main import app
from backend.services.model_registry import build_definition, model_registry


PRODUCT = {
    "name": "Product",
    "fields": [
        {"name": "title", "type": "string", "required": True},
        {"name": "price", "type": "number"},
        {"name": "inStock", "type": "boolean", "default": True},
    ],
    "rbac": {"ADMIN": ["all"], "MANAGER": ["create", "read", "update"], "VIEWER": ["read"]},
}

TASK = {
    "name": "Task",
    "fields": [
        {"name": "title", "type": "string", "required": True},
        {"name": "done", "type": "boolean", "default": False},
        {"name": "due", "type": "date"},
    ],
    "ownerField": "ownerId",
    "rbac": {
        "ADMIN": ["all"],
        "MANAGER": ["create", "read", "update", "delete"],
        "VIEWER": ["read"],
    },
}


def pytest_sessionfinish(session, exitstatus):
    engine.dispose()
    shutil.rmtree(_TMP_DIR, ignore_errors=True)


# ============================================================================
# STATE
# ============================================================================


@pytest.fixture(autouse=True)
def clean_state():
    """Fresh tables, seeded roles and no published models for every test."""
    import backend.models  # noqa: F401

    Base.metadata.drop_all(bind=engine)
    init_db()
    db = SessionLocal()
    try:
        seed_roles(db)
    finally:
        db.close()

    shutil.rmtree(settings.MODELS_DIR, ignore_errors=True)
    model_registry.load()
    yield
    model_registry.load()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


# ============================================================================
# PRINCIPALS AND TOKENS
# ============================================================================


def make_token(role: str, user_id: str = None, email: str = None) -> str:
    user_id = user_id or str(uuid.uuid4())
    return create_access_token({
        "sub": user_id,
        "email": email or f"{role.lower()}-{user_id[:8]}@test.local",
        "role": role,
    })


@pytest.fixture
def headers_for():
    """Factory: bearer headers for a role (and optionally a fixed user id)."""

    def _headers(role: str, user_id: str = None) -> dict:
        return {"Authorization": f"Bearer {make_token(role, user_id)}"}

    return _headers


@pytest.fixture
def admin_headers(headers_for):
    return headers_for("ADMIN", "admin-1")


@pytest.fixture
def manager_headers(headers_for):
    return headers_for("MANAGER", "manager-a")


@pytest.fixture
def other_manager_headers(headers_for):
    return headers_for("MANAGER", "manager-b")


@pytest.fixture
def viewer_headers(headers_for):
    return headers_for("VIEWER", "viewer-1")


# ============================================================================
# DEFINITIONS
# ============================================================================


@pytest.fixture
def make_definition():
    """Factory: normalized ModelDefinition from a payload, without publishing it."""

    def _make(payload: dict):
        now = datetime.now(timezone.utc)
        return build_definition(payload, created_at=now, updated_at=now)

    return _make


@pytest.fixture
def make_principal():
    def _make(role: str, user_id: str = "user-1") -> Principal:
        return Principal(id=user_id, role=role)

    return _make


@pytest.fixture
def product_payload():
    return copy.deepcopy(PRODUCT)


@pytest.fixture
def task_payload():
    return copy.deepcopy(TASK)


@pytest.fixture
def published_product(client, admin_headers, product_payload):
    res = client.post("/api/models", json=product_payload, headers=admin_headers)
    assert res.status_code == 201, res.json()
    return res.json()["data"]


@pytest.fixture
def published_task(client, admin_headers, task_payload):
    res = client.post("/api/models", json=task_payload, headers=admin_headers)
    assert res.status_code == 201, res.json()
    return res.json()["data"]
