"""Fixtures for tests that drive the engine against a real SQLite file."""

import pytest

from src.core import db_client
from src.core.config import settings


@pytest.fixture
async def sqlite_db(tmp_path, monkeypatch):
    """Fresh on-disk database with the full schema, closed after the test."""
    monkeypatch.setattr(settings, "sqlite_db_path", str(tmp_path / "engine.db"))
    await db_client.init_db()
    yield
    await db_client.close_connection()
