"""SQLite database client wrapper with CRUD operations and atomic transactions."""

import asyncio
import json
import logging
import re
import threading
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite

from src.core.config import constants, settings


logger = logging.getLogger(__name__)


class DatabaseError(RuntimeError):
    """Storage operation failed."""


class RecordNotFoundError(KeyError):
    """Record with the requested id does not exist."""


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in filter queries via json.dumps."""
    return json.dumps(str(value), ensure_ascii=False)[1:-1]


def utc_now_iso() -> str:
    """Return the current UTC time in the ISO format used for record timestamps."""
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def _convert_record_ids(record: dict[str, Any]) -> dict[str, Any]:
    """Convert integer ID and foreign key fields to strings for Pydantic compatibility."""
    converted = record.copy()
    for key, value in converted.items():
        if isinstance(value, int) and not isinstance(value, bool) and (key == "id" or key.endswith("_id")):
            converted[key] = str(value)
    return converted


def _to_db_value(val: Any) -> Any:
    """Serialize a Python value into something SQLite can bind."""
    if isinstance(val, datetime):
        return val.isoformat()
    if isinstance(val, dict | list):
        return json.dumps(val)
    return val


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


_COMPARISON_RE = re.compile(r"""(\w+)\s*(!=|>=|<=|=|>|<|~)\s*(['"])((?:\\.|(?!\3).)*)\3""")


def _parse_value(value: str, *, is_like: bool = False) -> str | bool:
    """Parse a filter value for binding.

    Digit strings stay text: SQLite coerces them when the column is numeric,
    and text columns such as user ids must keep leading zeros.
    """
    if is_like:
        escaped = value.replace("%", "\\%").replace("_", "\\_")
        return f"%{escaped}%"

    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False

    return value


def _get_sql_operator(op: str) -> str:
    """Map filter operator to SQL operator."""
    op_map = {
        "=": "=",
        "!=": "!=",
        ">": ">",
        "<": "<",
        ">=": ">=",
        "<=": "<=",
        "~": "LIKE",
    }
    sql_op = op_map.get(op)
    if not sql_op:
        msg = f"Unsupported operator: {op}"
        raise ValueError(msg)
    return sql_op


def _unescape(raw: str, quote: str) -> str:
    """Undo the escaping applied by sanitize_param (double quotes) or by hand (single quotes)."""
    if quote == '"':
        return json.loads(f'"{raw}"')
    return re.sub(r"\\(.)", r"\1", raw)


def _parse_single_comparison(comparison: str) -> tuple[str, str | int | float | None]:
    """Parse a single comparison expression into a SQL condition and parameter."""
    match = _COMPARISON_RE.fullmatch(comparison.strip())
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field = match.group(1)
    op = match.group(2)
    raw_value = _unescape(match.group(4), match.group(3))

    sql_op = _get_sql_operator(op)
    is_like = sql_op == "LIKE"
    value = _parse_value(raw_value, is_like=is_like)

    if is_like:
        return f"{field} LIKE ? ESCAPE '\\'", value
    return f"{field} {sql_op} ?", value


def _parse_or_group(or_group: str) -> tuple[str, list[str | int | float | None]]:
    """Parse a parenthesized OR group into a SQL condition and parameters."""
    inner = or_group[1:-1]  # Remove parentheses
    or_parts = [p.strip() for p in inner.split("||")]
    or_conditions = []
    or_params = []

    for part in or_parts:
        cond, value = _parse_single_comparison(part)
        or_conditions.append(cond)
        or_params.append(value)

    return f"({' OR '.join(or_conditions)})", or_params


def _split_and_conditions(filter_query: str) -> list[str]:
    """Split filter query by && while preserving parenthesized groups."""
    parts = []
    current = ""
    paren_depth = 0

    for char in filter_query:
        if char == "(":
            paren_depth += 1
        elif char == ")":
            paren_depth -= 1

        current += char

        if paren_depth == 0 and current.endswith("&&"):
            parts.append(current[:-2].strip())
            current = ""

    if current.strip():
        parts.append(current.strip())

    return parts


def parse_filter(filter_query: str) -> tuple[str, list[str | int | float | None]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list."""
    if not filter_query:
        return "", []

    parts = _split_and_conditions(filter_query)
    conditions = []
    params = []

    for raw_part in parts:
        part = raw_part.strip()

        # Handle parenthesized OR groups
        if part.startswith("(") and part.endswith(")"):
            cond, cond_params = _parse_or_group(part)
            conditions.append(cond)
            params.extend(cond_params)
        else:
            cond, value = _parse_single_comparison(part)
            conditions.append(cond)
            params.append(value)

    return " AND ".join(conditions), params


def parse_sort(sort: str) -> str:
    """Translate '+field' / '-field' / 'field [ASC|DESC]' into a safe ORDER BY clause."""
    safe_sort = "id ASC"
    if not sort:
        return safe_sort

    clauses = []
    for raw in sort.split(","):
        item = raw.strip()
        prefixed = re.match(r"^([+-])([A-Za-z_][A-Za-z0-9_]*)$", item)
        if prefixed:
            direction = "DESC" if prefixed.group(1) == "-" else "ASC"
            clauses.append(f"{prefixed.group(2)} {direction}")
            continue
        plain = re.match(r"^([A-Za-z_][A-Za-z0-9_]*)\s*(ASC|DESC)?$", item, re.IGNORECASE)
        if plain:
            clauses.append(f"{plain.group(1)} {(plain.group(2) or 'ASC').upper()}")
            continue
        logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
        return safe_sort

    # id as final tie-breaker keeps pagination stable
    if not any(clause.startswith("id ") for clause in clauses):
        clauses.append("id ASC")
    return ", ".join(clauses)


_db_connections: dict[tuple[int, int, str, str], aiosqlite.Connection] = {}

# Locks bind to the loop they are first awaited on, so each loop gets its own
_connect_locks: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock] = weakref.WeakKeyDictionary()
# Serializes writers: SQLite allows one writer and the writer connection is shared
_write_locks: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock] = weakref.WeakKeyDictionary()

_in_transaction: ContextVar[bool] = ContextVar("_in_transaction", default=False)
_read_view: ContextVar[aiosqlite.Connection | None] = ContextVar("_read_view", default=None)

_WRITER = "write"
_READER = "read"


def _loop_lock(registry: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock]) -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    lock = registry.get(loop)
    if lock is None:
        lock = registry[loop] = asyncio.Lock()
    return lock


def _cache_key(path: Path, role: str) -> tuple[int, int, str, str]:
    return threading.get_ident(), id(asyncio.get_running_loop()), str(path), role


async def _open(path: Path) -> aiosqlite.Connection:
    path.parent.mkdir(parents=True, exist_ok=True)
    # Autocommit mode; transactions are opened explicitly
    conn = await aiosqlite.connect(str(path), isolation_level=None)
    await conn.execute("PRAGMA foreign_keys = ON")
    await conn.execute("PRAGMA journal_mode = WAL")
    return conn


async def _cached_connection(role: str, db_path: str | None) -> aiosqlite.Connection:
    path = get_db_path(db_path)
    cache_key = _cache_key(path, role)

    if cache_key in _db_connections:
        return _db_connections[cache_key]

    # Create new connection with async lock to prevent races
    async with _loop_lock(_connect_locks):
        # Double-check after acquiring lock
        if cache_key in _db_connections:
            return _db_connections[cache_key]

        conn = await _open(path)
        _db_connections[cache_key] = conn

        logger.info(
            "Created new SQLite connection",
            extra={"db_path": str(path), "role": role, "thread_id": cache_key[0], "loop_id": cache_key[1]},
        )
        return conn


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or create the cached writer connection for the current thread, loop, and db path."""
    return await _cached_connection(_WRITER, db_path)


async def _read_connection() -> aiosqlite.Connection:
    """Pick the connection a read runs on.

    Inside a transaction reads see its own uncommitted writes. Inside a read
    view they share its snapshot. Otherwise they go to a separate reader
    connection that only ever sees committed data.
    """
    if _in_transaction.get():
        return await get_connection()
    view = _read_view.get()
    if view is not None:
        return view
    return await _cached_connection(_READER, None)


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached SQLite connections for the current thread, loop, and db path."""
    path = get_db_path(db_path)
    for role in (_WRITER, _READER):
        cache_key = _cache_key(path, role)
        if cache_key not in _db_connections:
            continue

        async with _loop_lock(_connect_locks):
            conn = _db_connections.pop(cache_key, None)
        if conn is not None:
            await conn.close()
            logger.info(
                "Closed SQLite connection",
                extra={"role": role, "thread_id": cache_key[0], "loop_id": cache_key[1], "db_path": str(path)},
            )


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema by delegating to schema.init_db()."""
    from src.core import schema

    await schema.init_db(db_path=db_path)


@asynccontextmanager
async def transaction() -> AsyncIterator[None]:
    """Run the enclosed writes as one atomic unit.

    Nested use joins the outer transaction. Any exception, including task
    cancellation, rolls back every write made inside the block. Reads inside
    the block run on the writer connection and see its pending writes.
    """
    if _in_transaction.get():
        yield
        return

    async with _loop_lock(_write_locks):
        conn = await get_connection()
        await conn.execute("BEGIN IMMEDIATE")
        token = _in_transaction.set(True)
        try:
            yield
        except BaseException:
            await conn.rollback()
            logger.warning("Rolled back transaction")
            raise
        else:
            await conn.commit()
        finally:
            _in_transaction.reset(token)


@asynccontextmanager
async def read_view() -> AsyncIterator[None]:
    """Run the enclosed reads against one consistent snapshot of committed data.

    The view holds a dedicated connection with an open read transaction, so
    writes committed while it is open stay invisible to it. Inside a
    transaction or another view the block joins the enclosing one.
    """
    if _in_transaction.get() or _read_view.get() is not None:
        yield
        return

    conn = await _open(get_db_path())
    token = _read_view.set(conn)
    try:
        await conn.execute("BEGIN")
        yield
    finally:
        _read_view.reset(token)
        await conn.close()


@asynccontextmanager
async def _write_scope() -> AsyncIterator[aiosqlite.Connection]:
    """Yield a connection for a single write, committing unless inside a transaction."""
    conn = await get_connection()
    if _in_transaction.get():
        yield conn
        return
    async with _loop_lock(_write_locks):
        yield conn
        await conn.commit()


async def create_record(*, collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a new record and return it with its assigned id."""
    _validate_collection_name(collection)
    now = utc_now_iso()
    payload = {"created": now, "updated": now, **data}

    columns = list(payload.keys())
    columns_str = ", ".join(columns)
    placeholders_str = ", ".join("?" for _ in columns)
    values = [_to_db_value(payload[key]) for key in columns]

    try:
        async with _write_scope() as conn:
            query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608
            cursor = await conn.execute(query, values)
            record_id = cursor.lastrowid
            record = await _fetch_by_id(conn, collection, record_id)
    except aiosqlite.OperationalError as e:
        if "no such table" in str(e):
            logger.error("Table not found", extra={"collection": collection})
            msg = f"Table '{collection}' does not exist. Call init_db() first."
            raise DatabaseError(msg) from e
        logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
        raise DatabaseError(f"Failed to create record in {collection}: {e}") from e
    except aiosqlite.Error as e:
        logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
        raise DatabaseError(f"Failed to create record in {collection}: {e}") from e

    logger.debug("Created record", extra={"collection": collection, "record_id": record_id})
    return record


async def _fetch_by_id(conn: aiosqlite.Connection, collection: str, record_id: str | int) -> dict[str, Any] | None:
    query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
    cursor = await conn.execute(query, (int(record_id),))
    row = await cursor.fetchone()
    if row is None:
        return None
    columns = [description[0] for description in cursor.description]
    return _convert_record_ids(dict(zip(columns, row, strict=True)))


async def get_record(*, collection: str, record_id: str) -> dict[str, Any]:
    """Fetch a single record by ID, raising RecordNotFoundError if not found."""
    _validate_collection_name(collection)
    if not str(record_id).isdigit():
        raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")

    try:
        conn = await _read_connection()
        record = await _fetch_by_id(conn, collection, record_id)
    except aiosqlite.Error as e:
        logger.error("get_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        raise DatabaseError(f"Failed to get record from {collection}: {e}") from e

    if record is None:
        raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")
    return record


async def update_record(*, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Update a record by ID and return the updated record."""
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    _validate_collection_name(collection)
    if not str(record_id).isdigit():
        raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")

    payload = {**data, "updated": utc_now_iso()}
    set_clause = ", ".join(f"{key} = ?" for key in payload)
    values = [_to_db_value(val) for val in payload.values()]
    values.append(int(record_id))

    try:
        async with _write_scope() as conn:
            query = f"UPDATE {collection} SET {set_clause} WHERE id = ?"  # noqa: S608 - collection is validated
            cursor = await conn.execute(query, values)
            record = await _fetch_by_id(conn, collection, record_id) if cursor.rowcount else None
    except aiosqlite.Error as e:
        logger.error("update_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        raise DatabaseError(f"Failed to update record in {collection}: {e}") from e

    if record is None:
        raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")

    logger.debug("Updated record", extra={"collection": collection, "record_id": record_id})
    return record


async def delete_record(*, collection: str, record_id: str) -> None:
    """Delete a record by ID, raising RecordNotFoundError if not found."""
    _validate_collection_name(collection)
    if not str(record_id).isdigit():
        raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")

    try:
        async with _write_scope() as conn:
            query = f"DELETE FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
            cursor = await conn.execute(query, (int(record_id),))
            rowcount = cursor.rowcount
    except aiosqlite.Error as e:
        logger.error("delete_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        raise DatabaseError(f"Failed to delete record from {collection}: {e}") from e

    if rowcount == 0:
        raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")

    logger.debug("Deleted record", extra={"collection": collection, "record_id": record_id})


async def list_records(
    *,
    collection: str,
    page: int = 1,
    per_page: int = 50,
    filter_query: str = "",
    sort: str = "",
) -> list[dict[str, Any]]:
    """List records with optional filtering, sorting, and pagination."""
    _validate_collection_name(collection)

    where_clause = ""
    params: list[Any] = []
    if filter_query:
        where_clause, params = parse_filter(filter_query)
        where_clause = f"WHERE {where_clause}"

    offset = (page - 1) * per_page
    order_by = parse_sort(sort)
    query = f"SELECT * FROM {collection} {where_clause} ORDER BY {order_by} LIMIT ? OFFSET ?"  # noqa: S608
    params.extend([per_page, offset])

    try:
        conn = await _read_connection()
        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        columns = [description[0] for description in cursor.description]
    except aiosqlite.Error as e:
        logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
        raise DatabaseError(f"Failed to list records from {collection}: {e}") from e

    return [_convert_record_ids(dict(zip(columns, row, strict=True))) for row in rows]


async def list_all_records(
    *,
    collection: str,
    filter_query: str = "",
    sort: str = "",
) -> list[dict[str, Any]]:
    """Page through list_records until every matching record has been read."""
    per_page = constants.DEFAULT_PER_PAGE_LIMIT
    records: list[dict[str, Any]] = []
    page = 1
    while True:
        batch = await list_records(
            collection=collection,
            page=page,
            per_page=per_page,
            filter_query=filter_query,
            sort=sort,
        )
        records.extend(batch)
        if len(batch) < per_page:
            return records
        page += 1


async def get_first_record(*, collection: str, filter_query: str) -> dict[str, Any] | None:
    """Return the first record matching the filter, or None."""
    records = await list_records(collection=collection, per_page=1, filter_query=filter_query)
    return records[0] if records else None
