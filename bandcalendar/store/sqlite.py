"""SQLite-backed event store using aiosqlite."""

from __future__ import annotations

import asyncio
import datetime
import json
import logging
import uuid
from collections.abc import Sequence
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

import aiosqlite

from ..core.clock import now_iso
from ..core.exceptions import StoreError
from .base import Condition, Op, OrderBy, Record, Table

logger = logging.getLogger(__name__)

_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS events (
        id TEXT PRIMARY KEY,
        organization_id TEXT NOT NULL,
        kind TEXT NOT NULL,
        name TEXT,
        date TEXT NOT NULL,
        start_time TEXT NOT NULL,
        end_time TEXT NOT NULL,
        location TEXT NOT NULL DEFAULT '',
        notes TEXT,
        setlist_id TEXT,
        setlist_name TEXT,
        pay_cents INTEGER,
        is_potential INTEGER NOT NULL DEFAULT 0,
        required_member_ids TEXT NOT NULL DEFAULT '[]',
        is_recurring INTEGER NOT NULL DEFAULT 0,
        recurrence_frequency TEXT,
        recurrence_days TEXT,
        recurrence_until TEXT,
        parent_event_id TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_events_org_date ON events(organization_id, date)",
    "CREATE INDEX IF NOT EXISTS idx_events_parent ON events(parent_event_id)",
    "CREATE INDEX IF NOT EXISTS idx_events_is_recurring ON events(is_recurring)",
    """
    CREATE TABLE IF NOT EXISTS candidate_dates (
        id TEXT PRIMARY KEY,
        event_id TEXT NOT NULL REFERENCES events(id) ON DELETE CASCADE,
        date TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        UNIQUE(event_id, date)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_candidate_dates_event ON candidate_dates(event_id)",
    """
    CREATE TABLE IF NOT EXISTS availability_responses (
        id TEXT PRIMARY KEY,
        event_id TEXT NOT NULL REFERENCES events(id) ON DELETE CASCADE,
        candidate_date_id TEXT REFERENCES candidate_dates(id) ON DELETE CASCADE,
        member_id TEXT NOT NULL,
        response TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_responses_event_member
    ON availability_responses(event_id, member_id)
    """,
]

_COLUMNS: dict[Table, tuple[str, ...]] = {
    Table.EVENTS: (
        "id", "organization_id", "kind", "name", "date", "start_time", "end_time",
        "location", "notes", "setlist_id", "setlist_name", "pay_cents", "is_potential",
        "required_member_ids", "is_recurring", "recurrence_frequency", "recurrence_days",
        "recurrence_until", "parent_event_id", "created_at", "updated_at",
    ),
    Table.CANDIDATE_DATES: ("id", "event_id", "date", "created_at", "updated_at"),
    Table.AVAILABILITY_RESPONSES: (
        "id", "event_id", "candidate_date_id", "member_id", "response",
        "created_at", "updated_at",
    ),
}

_JSON_COLUMNS = {"required_member_ids", "recurrence_days"}
_BOOL_COLUMNS = {"is_potential", "is_recurring"}

_SQL_OPS = {Op.EQ: "=", Op.GTE: ">=", Op.LTE: "<="}


def _encode(column: str, value: Any) -> Any:
    if column in _JSON_COLUMNS and value is not None:
        return json.dumps(list(value))
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    return value


def _decode(row: aiosqlite.Row) -> Record:
    record: Record = {}
    for column in row.keys():
        value = row[column]
        if column in _JSON_COLUMNS and value is not None:
            value = json.loads(value)
        elif column in _BOOL_COLUMNS:
            value = bool(value)
        record[column] = value
    return record


class SqliteStore:
    """EventStore implementation over a local SQLite database.

    Each operation opens its own connection; the schema is created lazily on
    first use.
    """

    def __init__(self, database_path: Union[Path, str]):
        """Initialize store.

        Args:
            database_path: Path to SQLite database file
        """
        self.database_path = Path(database_path)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialized = False
        self._initialization_lock: Optional[asyncio.Lock] = None

        logger.info("SQLite store configured (lazy): %s", self.database_path)

    @classmethod
    def from_settings(cls, settings: Any) -> "SqliteStore":
        return cls(settings.database_path)

    async def initialize(self) -> None:
        """Create tables and indexes if needed."""
        if self._initialized:
            return

        if self._initialization_lock is None:
            self._initialization_lock = asyncio.Lock()

        async with self._initialization_lock:
            if self._initialized:
                return
            try:
                async with aiosqlite.connect(str(self.database_path)) as db:
                    await db.execute("PRAGMA journal_mode=WAL")
                    await db.execute("PRAGMA synchronous=NORMAL")
                    for statement in _SCHEMA:
                        await db.execute(statement)
                    await db.commit()
            except aiosqlite.Error as e:
                raise StoreError(f"Failed to initialize database {self.database_path}") from e

            self._initialized = True
            logger.info("SQLite store initialized: %s", self.database_path)

    def _connect(self) -> aiosqlite.Connection:
        return aiosqlite.connect(str(self.database_path))

    @staticmethod
    def _check_column(table: Table, column: str) -> str:
        if column not in _COLUMNS[table]:
            raise StoreError(f"Unknown column {column!r} for table {table.value}")
        return column

    def _where(self, table: Table, filters: Sequence[Condition]) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        for condition in filters:
            column = self._check_column(table, condition.field)
            if condition.op == Op.IS_NULL or (condition.op == Op.EQ and condition.value is None):
                clauses.append(f"{column} IS NULL")
            elif condition.op == Op.IN:
                values = list(condition.value)
                if not values:
                    clauses.append("0")
                    continue
                clauses.append(f"{column} IN ({', '.join('?' for _ in values)})")
                params.extend(_encode(column, v) for v in values)
            else:
                clauses.append(f"{column} {_SQL_OPS[condition.op]} ?")
                params.append(_encode(column, condition.value))
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    async def insert(self, table: Table, fields: Record) -> Record:
        table = Table(table)
        await self.initialize()

        record = dict(fields)
        record.setdefault("id", uuid.uuid4().hex)
        timestamp = now_iso()
        record.setdefault("created_at", timestamp)
        record.setdefault("updated_at", timestamp)

        columns = [self._check_column(table, column) for column in record]
        sql = (
            f"INSERT INTO {table.value} ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})"
        )
        try:
            async with self._connect() as db:
                await db.execute("PRAGMA foreign_keys=ON")
                await db.execute(sql, [_encode(c, record[c]) for c in columns])
                await db.commit()
        except aiosqlite.Error as e:
            raise StoreError(f"Insert into {table.value} failed") from e

        stored = await self.select_one(table, [Condition("id", Op.EQ, record["id"])])
        if stored is None:
            raise StoreError(f"Inserted record {record['id']} not found in {table.value}")
        return stored

    async def update(self, table: Table, record_id: str, fields: Record) -> Record:
        table = Table(table)
        await self.initialize()

        values = {k: v for k, v in fields.items() if k != "id"}
        values["updated_at"] = now_iso()
        columns = [self._check_column(table, column) for column in values]
        assignments = ", ".join(f"{column} = ?" for column in columns)
        params = [_encode(c, values[c]) for c in columns] + [record_id]

        try:
            async with self._connect() as db:
                await db.execute("PRAGMA foreign_keys=ON")
                cursor = await db.execute(
                    f"UPDATE {table.value} SET {assignments} WHERE id = ?", params
                )
                await db.commit()
                updated = cursor.rowcount
        except aiosqlite.Error as e:
            raise StoreError(f"Update of {record_id} in {table.value} failed") from e

        if updated == 0:
            raise StoreError(f"No record {record_id} in {table.value}")

        stored = await self.select_one(table, [Condition("id", Op.EQ, record_id)])
        if stored is None:
            raise StoreError(f"No record {record_id} in {table.value}")
        return stored

    async def delete(self, table: Table, filters: Sequence[Condition]) -> int:
        table = Table(table)
        await self.initialize()
        where, params = self._where(table, filters)
        try:
            async with self._connect() as db:
                await db.execute("PRAGMA foreign_keys=ON")
                cursor = await db.execute(f"DELETE FROM {table.value}{where}", params)
                await db.commit()
                return cursor.rowcount
        except aiosqlite.Error as e:
            raise StoreError(f"Delete from {table.value} failed") from e

    async def select_many(
        self,
        table: Table,
        filters: Sequence[Condition] = (),
        order_by: Sequence[OrderBy] = (),
    ) -> list[Record]:
        table = Table(table)
        await self.initialize()
        where, params = self._where(table, filters)
        order = ""
        if order_by:
            order = " ORDER BY " + ", ".join(
                f"{self._check_column(table, o.field)} {'DESC' if o.descending else 'ASC'}"
                for o in order_by
            )
        try:
            async with self._connect() as db:
                db.row_factory = aiosqlite.Row
                async with db.execute(f"SELECT * FROM {table.value}{where}{order}", params) as cursor:
                    rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StoreError(f"Select from {table.value} failed") from e
        return [_decode(row) for row in rows]

    async def select_one(self, table: Table, filters: Sequence[Condition]) -> Optional[Record]:
        table = Table(table)
        await self.initialize()
        where, params = self._where(table, filters)
        try:
            async with self._connect() as db:
                db.row_factory = aiosqlite.Row
                async with db.execute(
                    f"SELECT * FROM {table.value}{where} LIMIT 1", params
                ) as cursor:
                    row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StoreError(f"Select from {table.value} failed") from e
        return _decode(row) if row is not None else None
