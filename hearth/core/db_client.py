"""SQLite database handle with a small connection pool, transactions and CRUD operations."""

import asyncio
import json
import logging
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any
from uuid import UUID, uuid4

import aiosqlite

from hearth.core.config import settings


logger = logging.getLogger(__name__)


class DatabaseError(RuntimeError):
    """A database operation failed."""


class RecordNotFoundError(KeyError):
    """No record exists with the requested id."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "record not found"


class UniqueConstraintError(DatabaseError):
    """An insert or update violated a UNIQUE constraint."""


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | UUID | None) -> str:
    """Escape a value for safe embedding in filter queries via json.dumps."""
    return json.dumps(str(value))[1:-1]


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _to_db_value(value: Any) -> Any:
    """Convert a Python value to something sqlite3 can bind."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, dict | list):
        return json.dumps(value)
    if isinstance(value, bool):
        return int(value)
    return value


def _parse_value(value: str, *, is_like: bool = False) -> str | int | float | bool | None:
    """Parse a string value to the appropriate Python type for SQLite."""
    if is_like:
        return value.replace("%", "\\%").replace("_", "\\_")

    if value.isdigit():
        return int(value)
    if value.replace(".", "", 1).isdigit():
        return float(value)

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


def _parse_single_comparison(comparison: str) -> tuple[str, str | int | float | None]:
    """Parse a single comparison expression into a SQL condition and parameter."""
    match = re.match(
        r"""(\w+)\s*(>=|<=|!=|=|>|<|~)\s*(['"])([^'"]*)\3""",
        comparison,
    )
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field = match.group(1)
    op = match.group(2)
    raw_value = match.group(4)

    sql_op = _get_sql_operator(op)
    is_like = sql_op == "LIKE"
    value = _parse_value(raw_value, is_like=is_like)

    if is_like:
        return f"{field} LIKE ? ESCAPE '\\'", f"%{value}%"
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
    """Parse filter syntax into a SQL WHERE clause and parameter list.

    Supports comparisons joined by ``&&`` and parenthesized ``||`` groups, e.g.
    ``task_definition_id = "abc" && (status = "NOT_STARTED" || status = "IN_PROGRESS")``.
    """
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


def _safe_sort(sort: str) -> str:
    """Validate an ORDER BY expression, falling back to the primary key."""
    if sort:
        sort_pattern = re.match(r"^[A-Za-z_][A-Za-z0-9_]*\s*(ASC|DESC)?$", sort.strip(), re.IGNORECASE)
        if sort_pattern:
            return sort.strip()
        logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
    return "id ASC"


def _wrap_error(e: Exception, *, action: str, collection: str) -> DatabaseError:
    """Translate a driver error into the matching DatabaseError subclass."""
    if isinstance(e, aiosqlite.IntegrityError) and "UNIQUE" in str(e):
        return UniqueConstraintError(f"Unique constraint violated in {collection}: {e}")
    if isinstance(e, aiosqlite.OperationalError) and "no such table" in str(e):
        return DatabaseError(f"Table '{collection}' does not exist. Call init_db() first.")
    return DatabaseError(f"Failed to {action} {collection}: {e}")


class Session:
    """CRUD operations bound to one pooled connection.

    Obtained from ``Database.transaction()`` or ``Database.session()``; never
    shared between concurrent tasks.
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def execute_script(self, script: str) -> None:
        """Run a multi-statement DDL script."""
        await self._conn.executescript(script)

    async def create_record(self, *, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a new record and return it; an ``id`` is generated when absent."""
        _validate_collection_name(collection)
        record = {"id": str(uuid4()), **data} if "id" not in data else dict(data)

        columns = list(record.keys())
        columns_str = ", ".join(columns)
        placeholders_str = ", ".join("?" for _ in columns)
        values = [_to_db_value(record[key]) for key in columns]

        query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608 - collection is validated
        try:
            await self._conn.execute(query, values)
        except aiosqlite.Error as e:
            logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
            raise _wrap_error(e, action="create record in", collection=collection) from e

        logger.debug("Created record", extra={"collection": collection, "record_id": record["id"]})
        return {key: _to_db_value(value) for key, value in record.items()}

    async def get_record(self, *, collection: str, record_id: str | UUID) -> dict[str, Any]:
        """Fetch a single record by ID, raising RecordNotFoundError if not found."""
        _validate_collection_name(collection)
        query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        try:
            cursor = await self._conn.execute(query, (str(record_id),))
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            logger.error("get_record_failed", extra={"collection": collection, "record_id": str(record_id)})
            raise _wrap_error(e, action="get record from", collection=collection) from e

        if row is None:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        columns = [description[0] for description in cursor.description]
        return dict(zip(columns, row, strict=True))

    async def update_record(
        self, *, collection: str, record_id: str | UUID, data: dict[str, Any]
    ) -> dict[str, Any]:
        """Update a record by ID and return the updated record."""
        if not data:
            msg = "Empty update payload"
            raise ValueError(msg)

        _validate_collection_name(collection)
        set_clause = ", ".join(f"{key} = ?" for key in data)
        values = [_to_db_value(val) for val in data.values()]
        values.append(str(record_id))

        query = f"UPDATE {collection} SET {set_clause} WHERE id = ?"  # noqa: S608 - collection is validated
        try:
            cursor = await self._conn.execute(query, values)
        except aiosqlite.Error as e:
            logger.error("update_record_failed", extra={"collection": collection, "record_id": str(record_id)})
            raise _wrap_error(e, action="update record in", collection=collection) from e

        if cursor.rowcount == 0:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        logger.debug("Updated record", extra={"collection": collection, "record_id": str(record_id)})
        return await self.get_record(collection=collection, record_id=record_id)

    async def list_records(
        self,
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
        query = f"SELECT * FROM {collection} {where_clause} ORDER BY {_safe_sort(sort)} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
        params.extend([per_page, offset])

        try:
            cursor = await self._conn.execute(query, params)
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
            raise _wrap_error(e, action="list records from", collection=collection) from e

        columns = [description[0] for description in cursor.description]
        return [dict(zip(columns, row, strict=True)) for row in rows]

    async def get_first_record(self, *, collection: str, filter_query: str) -> dict[str, Any] | None:
        """Return the first record matching the filter, or None."""
        records = await self.list_records(collection=collection, filter_query=filter_query, per_page=1)
        return records[0] if records else None


class Database:
    """Explicit handle over a pool of aiosqlite connections.

    Usage:
        db = Database(db_path="./data/hearth.db")
        await db.open()
        async with db.transaction() as session:
            await session.create_record(collection="members", data={"name": "Aiko"})
        await db.close()
    """

    def __init__(
        self,
        *,
        db_path: str | None = None,
        pool_size: int | None = None,
        busy_timeout_ms: int | None = None,
    ) -> None:
        self.path = get_db_path(db_path)
        self.pool_size = pool_size or settings.db_pool_size
        self.busy_timeout_ms = settings.db_busy_timeout_ms if busy_timeout_ms is None else busy_timeout_ms
        self._pool: asyncio.Queue[aiosqlite.Connection] = asyncio.Queue()
        self._connections: list[aiosqlite.Connection] = []

    @property
    def is_open(self) -> bool:
        return bool(self._connections)

    async def open(self) -> None:
        """Create the pooled connections. Idempotent."""
        if self.is_open:
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)
        for _ in range(self.pool_size):
            # isolation_level=None: transactions are issued explicitly by transaction()
            conn = await aiosqlite.connect(str(self.path), isolation_level=None)
            await conn.execute("PRAGMA foreign_keys = ON")
            await conn.execute("PRAGMA journal_mode = WAL")
            await conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}")
            self._connections.append(conn)
            self._pool.put_nowait(conn)

        logger.info("Opened SQLite pool", extra={"db_path": str(self.path), "pool_size": self.pool_size})

    async def close(self) -> None:
        """Close every pooled connection."""
        for conn in self._connections:
            try:
                await conn.close()
            except aiosqlite.Error as e:
                logger.warning("Error closing SQLite connection", extra={"error": str(e)})
        self._connections.clear()
        self._pool = asyncio.Queue()
        logger.info("Closed SQLite pool", extra={"db_path": str(self.path)})

    @asynccontextmanager
    async def _acquire(self) -> AsyncIterator[aiosqlite.Connection]:
        if not self.is_open:
            msg = "Database is not open. Call open() first."
            raise DatabaseError(msg)
        conn = await self._pool.get()
        try:
            yield conn
        finally:
            self._pool.put_nowait(conn)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Session]:
        """Run a unit of work: commit on normal exit, roll back on any exception."""
        async with self._acquire() as conn:
            try:
                await conn.execute("BEGIN IMMEDIATE")
            except aiosqlite.Error as e:
                logger.error("begin_transaction_failed", extra={"db_path": str(self.path), "error": str(e)})
                raise _wrap_error(e, action="begin transaction on", collection="database") from e
            try:
                yield Session(conn)
            except BaseException:
                await conn.rollback()
                raise
            try:
                await conn.commit()
            except aiosqlite.Error as e:
                logger.error("commit_failed", extra={"db_path": str(self.path), "error": str(e)})
                await conn.rollback()
                raise _wrap_error(e, action="commit transaction on", collection="database") from e

    @asynccontextmanager
    async def session(self) -> AsyncIterator[Session]:
        """Borrow a connection for reads outside of an explicit transaction."""
        async with self._acquire() as conn:
            yield Session(conn)

    async def ping(self) -> bool:
        """Return True when the database answers a trivial query."""
        if not self.is_open:
            return False
        try:
            async with self._acquire() as conn:
                cursor = await conn.execute("SELECT 1")
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            logger.warning("SQLite ping failed", extra={"error": str(e)})
            return False
        return row is not None


async def init_db(db: Database) -> None:
    """Initialize the database schema by delegating to schema.init_db()."""
    from hearth.core import schema  # noqa: PLC0415

    await schema.init_db(db)
