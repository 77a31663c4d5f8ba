"""Dict-backed async store.

Useful for tests and for embedders that keep state elsewhere. Every call is
recorded in ``calls`` so callers can assert how many store operations an
engine operation issued and in which order.
"""

from __future__ import annotations

import copy
import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

from ..core.clock import now_iso
from ..core.exceptions import StoreError
from .base import Condition, OrderBy, Record, Table, matches_all, sort_records

logger = logging.getLogger(__name__)

# Child tables removed along with a parent row, as the SQLite schema cascades
_CASCADES: dict[Table, list[tuple[Table, str]]] = {
    Table.EVENTS: [
        (Table.CANDIDATE_DATES, "event_id"),
        (Table.AVAILABILITY_RESPONSES, "event_id"),
    ],
    Table.CANDIDATE_DATES: [(Table.AVAILABILITY_RESPONSES, "candidate_date_id")],
}


@dataclass
class StoreCall:
    """One recorded store operation."""

    method: str
    table: Table
    args: dict[str, Any] = field(default_factory=dict)


class InMemoryStore:
    """EventStore implementation holding records in dicts keyed by id."""

    def __init__(self) -> None:
        self._tables: dict[Table, dict[str, Record]] = {table: {} for table in Table}
        self.calls: list[StoreCall] = []

    def _table(self, table: Table) -> dict[str, Record]:
        return self._tables[Table(table)]

    def calls_for(self, method: str, table: Optional[Table] = None) -> list[StoreCall]:
        """Return recorded calls of method, optionally limited to one table."""
        return [
            call
            for call in self.calls
            if call.method == method and (table is None or call.table == table)
        ]

    def reset_calls(self) -> None:
        self.calls.clear()

    def seed(self, table: Table, record: Record) -> Record:
        """Put a record in place without recording a call (test setup)."""
        stored = copy.deepcopy(record)
        stored.setdefault("id", uuid.uuid4().hex)
        self._table(table)[stored["id"]] = stored
        return copy.deepcopy(stored)

    def all_records(self, table: Table) -> list[Record]:
        return [copy.deepcopy(record) for record in self._table(table).values()]

    async def insert(self, table: Table, fields: Record) -> Record:
        self.calls.append(StoreCall("insert", Table(table), {"fields": dict(fields)}))
        record = copy.deepcopy(fields)
        record.setdefault("id", uuid.uuid4().hex)
        timestamp = now_iso()
        record.setdefault("created_at", timestamp)
        record.setdefault("updated_at", timestamp)
        rows = self._table(table)
        if record["id"] in rows:
            raise StoreError(f"Duplicate id {record['id']} in {Table(table).value}")
        rows[record["id"]] = record
        return copy.deepcopy(record)

    async def update(self, table: Table, record_id: str, fields: Record) -> Record:
        self.calls.append(
            StoreCall("update", Table(table), {"record_id": record_id, "fields": dict(fields)})
        )
        rows = self._table(table)
        if record_id not in rows:
            raise StoreError(f"No record {record_id} in {Table(table).value}")
        rows[record_id].update(copy.deepcopy(fields))
        rows[record_id]["updated_at"] = now_iso()
        return copy.deepcopy(rows[record_id])

    async def delete(self, table: Table, filters: Sequence[Condition]) -> int:
        self.calls.append(StoreCall("delete", Table(table), {"filters": list(filters)}))
        rows = self._table(table)
        doomed = [record_id for record_id, record in rows.items() if matches_all(record, filters)]
        for record_id in doomed:
            del rows[record_id]
        self._cascade(Table(table), doomed)
        return len(doomed)

    def _cascade(self, table: Table, record_ids: list[str]) -> None:
        if not record_ids:
            return
        for child_table, column in _CASCADES.get(table, []):
            rows = self._table(child_table)
            orphans = [rid for rid, record in rows.items() if record.get(column) in record_ids]
            for record_id in orphans:
                del rows[record_id]
            self._cascade(child_table, orphans)

    async def select_many(
        self,
        table: Table,
        filters: Sequence[Condition] = (),
        order_by: Sequence[OrderBy] = (),
    ) -> list[Record]:
        self.calls.append(
            StoreCall(
                "select_many", Table(table), {"filters": list(filters), "order_by": list(order_by)}
            )
        )
        found = [
            copy.deepcopy(record)
            for record in self._table(table).values()
            if matches_all(record, filters)
        ]
        return sort_records(found, order_by)

    async def select_one(self, table: Table, filters: Sequence[Condition]) -> Optional[Record]:
        self.calls.append(StoreCall("select_one", Table(table), {"filters": list(filters)}))
        for record in self._table(table).values():
            if matches_all(record, filters):
                return copy.deepcopy(record)
        return None
