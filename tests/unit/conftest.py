"""Pytest configuration and fixtures for unit tests."""

from unittest.mock import AsyncMock

import pytest

from src.modules.tasks import service
from tests.unit.mocks import InMemoryDBClient


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def patched_db(monkeypatch, in_memory_db):
    """Patches src.core.db_client functions to use InMemoryDBClient."""
    monkeypatch.setattr("src.core.db_client.create_record", in_memory_db.create_record)
    monkeypatch.setattr("src.core.db_client.get_record", in_memory_db.get_record)
    monkeypatch.setattr("src.core.db_client.update_record", in_memory_db.update_record)
    monkeypatch.setattr("src.core.db_client.delete_record", in_memory_db.delete_record)
    monkeypatch.setattr("src.core.db_client.list_records", in_memory_db.list_records)
    monkeypatch.setattr("src.core.db_client.list_all_records", in_memory_db.list_all_records)
    monkeypatch.setattr("src.core.db_client.get_first_record", in_memory_db.get_first_record)
    monkeypatch.setattr("src.core.db_client.transaction", in_memory_db.transaction)
    monkeypatch.setattr("src.core.db_client.read_view", in_memory_db.read_view)

    return in_memory_db


@pytest.fixture
def mock_notify_operator(monkeypatch):
    """Capture operator alerts raised by the dependency integrity check."""
    notify = AsyncMock(return_value=False)
    monkeypatch.setattr("src.modules.tasks.dependencies.notify_operator", notify)
    return notify


@pytest.fixture
def task_factory(patched_db, now):
    """Factory for creating tasks through the service layer.

    Usage:
        task = await task_factory(title="Buy paint", base_priority=80)
    """
    counter = {"n": 0}

    async def _create_task(**kwargs):
        counter["n"] += 1
        data = {"title": f"Task {counter['n']}", **kwargs}
        return await service.create_task(data, now=now)

    return _create_task
