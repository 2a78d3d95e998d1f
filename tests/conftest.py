"""
Barangay Portal - Shared Test Fixtures
In-memory MongoDB (mongomock), sessions for a resident and an official,
and HTTP clients bound to the app.
"""

import os
import tempfile
from datetime import timedelta
from typing import AsyncGenerator

import mongomock
import pytest
from bson import ObjectId
from httpx import ASGITransport, AsyncClient

# Configure test environment BEFORE importing app
os.environ["MONGO_URI"] = "mongodb://localhost:27017"
os.environ["MONGO_DB"] = "barangay_test"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="barangay-uploads-")
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["OVERDUE_SWEEP_INTERVAL_SECONDS"] = "0"

from barangay.main import app
from barangay.core import maintenance
from barangay.core.config import get_settings
from barangay.core.database import CASES, init_db, set_database
from barangay.core.security import SESSIONS, create_session
from barangay.core.user_context import UserContext, UserRole
from barangay.core.utc import utc_now


# =============================================================================
# Core Fixtures
# =============================================================================

@pytest.fixture
def anyio_backend():
    """Use asyncio for async tests."""
    return "asyncio"


@pytest.fixture(autouse=True)
def db():
    """Fresh in-memory database for every test."""
    database = mongomock.MongoClient(tz_aware=True)["barangay_test"]
    init_db(database)
    set_database(database)
    maintenance.invalidate()
    yield database
    set_database(None)
    SESSIONS.clear()
    maintenance.invalidate()


@pytest.fixture(autouse=True)
def settings(tmp_path):
    """Settings with a per-test upload directory."""
    test_settings = get_settings().model_copy(update={"upload_dir": str(tmp_path / "uploads")})
    app.dependency_overrides[get_settings] = lambda: test_settings
    yield test_settings
    app.dependency_overrides.pop(get_settings, None)


# =============================================================================
# Users and sessions
# =============================================================================

@pytest.fixture
def resident():
    return UserContext(username="juan", name="Juan Dela Cruz", role=UserRole.USER)


@pytest.fixture
def official():
    return UserContext(username="kapitan", name="Kap. Santos", role=UserRole.ADMIN)


@pytest.fixture
def resident_session():
    return create_session({"username": "Juan", "name": "Juan Dela Cruz", "role": "user"})


@pytest.fixture
def admin_session():
    # Legacy account record: admin-ness carried by isAdmin rather than role
    return create_session({"username": "kapitan", "name": "Kap. Santos", "isAdmin": True})


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def resident_client(resident_session, settings) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        cookies={settings.session_cookie_name: resident_session.session_id},
    ) as ac:
        yield ac


@pytest.fixture
async def admin_client(admin_session, settings) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        cookies={settings.session_cookie_name: admin_session.session_id},
    ) as ac:
        yield ac


# =============================================================================
# Case documents
# =============================================================================

@pytest.fixture
def make_case(db):
    """Insert a case document directly; returns the stored document."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        now = utc_now()
        doc = {
            "_id": ObjectId(),
            "caseId": f"C-{counter['n']:04d}",
            "status": "Reported",
            "typeOfCase": "Theft",
            "description": "Bicycle taken from the front yard.",
            "placeOfIncident": "Purok 3",
            "dateOfIncident": now - timedelta(days=2),
            "complainant": {"name": "Juan Dela Cruz", "address": "Purok 3", "contact": "0917"},
            "respondent": {"name": "Pedro Reyes", "address": "Purok 4", "contact": ""},
            "reportedBy": {"username": "juan", "name": "Juan Dela Cruz"},
            "priority": "Medium",
            "harassmentType": None,
            "seniorCategory": None,
            "seniorInvolved": False,
            "evidences": [],
            "hearings": [],
            "patawagForms": [],
            "statusHistory": [],
            "resolveDate": None,
            "cancelDate": None,
            "cancellationReason": "",
            "createdAt": now,
            "updatedAt": now,
        }
        doc.update(overrides)
        db[CASES].insert_one(doc)
        return doc

    return _make
