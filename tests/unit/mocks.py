"""In-memory stand-in for src.core.db_client used by the unit tests."""

import asyncio
import copy
import json
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any

from src.core.db_client import DatabaseError, RecordNotFoundError, utc_now_iso


# field op "json-escaped value"
_CONDITION = re.compile(r'^\s*([A-Za-z_][\w.]*)\s*(!=|=|~)\s*"((?:[^"\\]|\\.)*)"\s*$')

Record = dict[str, Any]


def _matches(filter_query: str, record: Record) -> bool:
    """Evaluate an `&&`-joined list of `=`, `!=` and `~` conditions against one record."""
    for condition in filter_query.split("&&"):
        match = _CONDITION.match(condition)
        if match is None:
            raise DatabaseError(f"Invalid filter syntax: {condition.strip()}")
        field, op, raw = match.groups()
        expected = json.loads(f'"{raw}"')
        actual = record.get(field)

        if op == "~":
            if expected.lower() not in str(actual or "").lower():
                return False
        elif isinstance(actual, bool) and expected in ("true", "false"):
            if (actual == (expected == "true")) != (op == "="):
                return False
        elif (str("" if actual is None else actual) == expected) != (op == "="):
            return False
    return True


def _sorted(records: list[Record], sort: str) -> list[Record]:
    if not sort:
        return records
    field = sort.lstrip("+-")
    return sorted(records, key=lambda r: str(r.get(field) or ""), reverse=sort.startswith("-"))


class InMemoryDBClient:
    """Dictionary-backed replacement for the aiosqlite CRUD functions.

    Collections are created on first write. `transaction()` works on a private
    copy of every collection and publishes it on success, so other callers
    never see uncommitted writes and a failed block leaves nothing behind.
    `read_view()` pins a copy of the committed collections for its block.
    """

    def __init__(self) -> None:
        self._tables: dict[str, dict[str, Record]] = {}
        self._next_id = 1000
        self._writer = asyncio.Lock()
        self._working: ContextVar[dict[str, dict[str, Record]] | None] = ContextVar("_working", default=None)
        self._pinned: ContextVar[dict[str, dict[str, Record]] | None] = ContextVar("_pinned", default=None)

    def _visible(self) -> dict[str, dict[str, Record]]:
        working = self._working.get()
        if working is not None:
            return working
        pinned = self._pinned.get()
        return self._tables if pinned is None else pinned

    @asynccontextmanager
    async def _write(self) -> AsyncIterator[dict[str, dict[str, Record]]]:
        working = self._working.get()
        if working is not None:
            yield working
            return
        async with self._writer:
            yield self._tables

    def _existing(self, tables: dict[str, dict[str, Record]], collection: str, record_id: str) -> Record:
        if not isinstance(record_id, str):
            raise DatabaseError(f"Record ID must be a string, got {type(record_id)}")
        record = tables.get(collection, {}).get(record_id)
        if record is None:
            raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")
        return record

    def _select(self, collection: str, filter_query: str, sort: str) -> list[Record]:
        records = list(self._visible().get(collection, {}).values())
        if filter_query:
            records = [r for r in records if _matches(filter_query, r)]
        return _sorted(records, sort)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Atomic block; a nested call joins the enclosing one."""
        if self._working.get() is not None:
            yield
            return

        async with self._writer:
            working = copy.deepcopy(self._tables)
            token = self._working.set(working)
            try:
                yield
            finally:
                self._working.reset(token)
            self._tables = working

    @asynccontextmanager
    async def read_view(self) -> AsyncIterator[None]:
        """Consistent committed snapshot; joins an enclosing transaction or view."""
        if self._working.get() is not None or self._pinned.get() is not None:
            yield
            return

        token = self._pinned.set(copy.deepcopy(self._tables))
        try:
            yield
        finally:
            self._pinned.reset(token)

    async def create_record(self, collection: str, data: Record) -> Record:
        if not isinstance(data, dict):
            raise DatabaseError(f"Data must be a dictionary, got {type(data)}")
        async with self._write() as tables:
            record_id = str(self._next_id)
            self._next_id += 1
            stamp = utc_now_iso()
            record = {"id": record_id, "created": stamp, "updated": stamp, **data}
            tables.setdefault(collection, {})[record_id] = record
            return copy.deepcopy(record)

    async def get_record(self, collection: str, record_id: str) -> Record:
        return copy.deepcopy(self._existing(self._visible(), collection, record_id))

    async def update_record(self, collection: str, record_id: str, data: Record) -> Record:
        if not isinstance(data, dict):
            raise DatabaseError(f"Data must be a dictionary, got {type(data)}")
        async with self._write() as tables:
            record = self._existing(tables, collection, record_id)
            record.update(data)
            record["updated"] = utc_now_iso()
            return copy.deepcopy(record)

    async def delete_record(self, collection: str, record_id: str) -> bool:
        async with self._write() as tables:
            self._existing(tables, collection, record_id)
            del tables[collection][record_id]
            return True

    async def list_records(
        self,
        collection: str,
        page: int = 1,
        per_page: int = 50,
        filter_query: str = "",
        sort: str = "-created",
    ) -> list[Record]:
        offset = (page - 1) * per_page
        window = self._select(collection, filter_query, sort)[offset : offset + per_page]
        return copy.deepcopy(window)

    async def list_all_records(self, collection: str, filter_query: str = "", sort: str = "") -> list[Record]:
        return copy.deepcopy(self._select(collection, filter_query, sort))

    async def get_first_record(self, collection: str, filter_query: str) -> Record | None:
        matches = self._select(collection, filter_query, "")
        return copy.deepcopy(matches[0]) if matches else None
