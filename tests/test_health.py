"""
Health endpoint tests.
"""

from unittest.mock import MagicMock

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from barangay.core.database import get_db
from barangay.main import app


@pytest.fixture
def fake_db():
    db = MagicMock()
    app.dependency_overrides[get_db] = lambda: db
    yield db
    app.dependency_overrides.pop(get_db, None)


@pytest.mark.anyio
async def test_healthy(client, fake_db):
    fake_db.command.return_value = {"ok": 1}
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["database"] == "ok"
    fake_db.command.assert_called_once_with("ping")


@pytest.mark.anyio
async def test_database_unreachable(client, fake_db):
    fake_db.command.side_effect = ServerSelectionTimeoutError("no servers")
    response = await client.get("/health")
    assert response.status_code == 503
    assert response.json()["status"] == "degraded"
