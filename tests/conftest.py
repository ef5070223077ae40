import os
import threading
from contextlib import contextmanager

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from datetime import datetime, timedelta, UTC
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from jose import jwt

from window_ledger.database import get_db
from window_ledger.models.base import Base
from window_ledger.config import settings
# Import all model classes to ensure they're registered with SQLAlchemy
from window_ledger.models.record import Record  # noqa: F401
from window_ledger.models.collection import Collection
from window_ledger.repositories.resource_store import ResourceStore, StoreResult, open_store
from window_ledger.services.sync_loop import SyncHub
# Import FastAPI app AFTER model imports
from window_ledger.main import app

TENANT_A = "tenant-a"
TENANT_B = "tenant-b"
ADMIN_ID = "admin-1"
STAFF_ID = "staff-alice"
OTHER_STAFF_ID = "staff-bob"

# Test database (SQLite in-memory for speed)
# Use StaticPool to ensure all connections share the same in-memory database
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

_sync_lock = threading.Lock()


@contextmanager
def serialized_test_store():
    """Store for sync worker threads; they share the single in-memory connection"""
    with _sync_lock:
        with open_store(TestingSessionLocal) as store:
            yield store


class FlakyStore(ResourceStore):
    """ResourceStore that rejects chosen (operation, record id) pairs"""

    def __init__(self, db, fail: set[tuple[str, str]] | None = None):
        super().__init__(db)
        self.fail = fail or set()

    def update(self, collection, tenant_id, record_id, partial):
        if ("update", record_id) in self.fail:
            return StoreResult(success=False, id=record_id, error="injected failure")
        return super().update(collection, tenant_id, record_id, partial)

    def delete(self, collection, tenant_id, record_id):
        if ("delete", record_id) in self.fail:
            return StoreResult(success=False, id=record_id, error="injected failure")
        return super().delete(collection, tenant_id, record_id)

    def add(self, collection, tenant_id, data, record_id=None):
        if ("add", collection.value) in self.fail:
            return StoreResult(success=False, error="injected failure")
        return super().add(collection, tenant_id, data, record_id=record_id)


@pytest.fixture(scope="function")
def db_session():
    """Create fresh database for each test"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def store(db_session):
    """Resource store with two staff members seeded in tenant A"""
    resource_store = ResourceStore(db_session)
    seed_staff(resource_store, TENANT_A, ADMIN_ID, "Boss", role="admin")
    seed_staff(resource_store, TENANT_A, STAFF_ID, "Alice")
    seed_staff(resource_store, TENANT_A, OTHER_STAFF_ID, "Bob")
    return resource_store


@pytest.fixture(scope="function")
def client(db_session, store):
    """FastAPI test client with test database"""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        app.state.sync_hub = SyncHub(store_factory=serialized_test_store)
        yield test_client
    app.dependency_overrides.clear()


def seed_staff(store: ResourceStore, tenant_id: str, staff_id: str, name: str, role: str = "staff"):
    """Staff records are owned by the auth collaborator; tests write them directly"""
    result = store.add(Collection.STAFF, tenant_id, {"name": name, "role": role}, record_id=staff_id)
    assert result.success
    return result.id


def create_test_token(
    user_id: str = ADMIN_ID,
    tenant_id: str = TENANT_A,
    role: str = "admin",
    expired: bool = False,
) -> str:
    """
    Generate valid JWT token for testing.

    Args:
        user_id: Staff id to embed in 'sub' claim
        tenant_id: Tenant partition key
        role: 'admin' or 'staff'
        expired: If True, create expired token

    Returns:
        Encoded JWT token
    """
    if expired:
        exp = datetime.now(UTC) - timedelta(minutes=5)
    else:
        exp = datetime.now(UTC) + timedelta(minutes=15)

    payload = {
        "sub": user_id,
        "tenant_id": tenant_id,
        "role": role,
        "exp": exp,
        "iat": datetime.now(UTC),
    }

    token = jwt.encode(payload, settings.SECRET_KEY, algorithm="HS256")
    return token


@pytest.fixture
def admin_headers():
    """Authorization headers for the tenant A admin"""
    return {"Authorization": f"Bearer {create_test_token()}"}


@pytest.fixture
def staff_headers():
    """Authorization headers for staff member Alice"""
    token = create_test_token(user_id=STAFF_ID, role="staff")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_staff_headers():
    """Authorization headers for staff member Bob"""
    token = create_test_token(user_id=OTHER_STAFF_ID, role="staff")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def tenant_b_admin_headers():
    """Authorization headers for the admin of another tenant"""
    token = create_test_token(user_id="admin-b", tenant_id=TENANT_B)
    return {"Authorization": f"Bearer {token}"}
