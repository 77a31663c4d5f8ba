"""Store protocol and filter conditions used by the scheduling engine.

The engine never speaks a query language. It issues insert/update/delete/select
calls with lists of simple conditions that every store implementation can
evaluate. Records are plain dicts; dates are ISO 8601 strings.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol

Record = dict[str, Any]


class Table(str, Enum):
    """Tables the engine reads and writes."""

    EVENTS = "events"
    CANDIDATE_DATES = "candidate_dates"
    AVAILABILITY_RESPONSES = "availability_responses"


class Op(str, Enum):
    """Supported comparison operators."""

    EQ = "eq"
    IN = "in"
    GTE = "gte"
    LTE = "lte"
    IS_NULL = "is_null"


@dataclass(frozen=True)
class Condition:
    """One filter condition on a record field."""

    field: str
    op: Op
    value: Any = None

    def matches(self, record: Record) -> bool:
        actual = record.get(self.field)
        if self.op == Op.IS_NULL:
            return actual is None
        if self.op == Op.EQ:
            return actual == self.value
        if self.op == Op.IN:
            return actual in self.value
        if actual is None:
            return False
        if self.op == Op.GTE:
            return actual >= self.value
        if self.op == Op.LTE:
            return actual <= self.value
        raise ValueError(f"Unsupported operator: {self.op}")


@dataclass(frozen=True)
class OrderBy:
    """Sort key for select_many."""

    field: str
    descending: bool = False


def eq(field: str, value: Any) -> Condition:
    return Condition(field, Op.EQ, value)


def in_(field: str, values: Iterable[Any]) -> Condition:
    return Condition(field, Op.IN, tuple(values))


def gte(field: str, value: Any) -> Condition:
    return Condition(field, Op.GTE, value)


def lte(field: str, value: Any) -> Condition:
    return Condition(field, Op.LTE, value)


def is_null(field: str) -> Condition:
    return Condition(field, Op.IS_NULL)


def matches_all(record: Record, filters: Sequence[Condition]) -> bool:
    return all(condition.matches(record) for condition in filters)


def sort_records(records: list[Record], order_by: Sequence[OrderBy]) -> list[Record]:
    """Sort records by order_by keys; None sorts first."""
    result = list(records)
    for order in reversed(order_by):
        result.sort(
            key=lambda r, f=order.field: (r.get(f) is not None, r.get(f)),
            reverse=order.descending,
        )
    return result


class EventStore(Protocol):
    """Abstract persistence used by the engine.

    Every call is a suspension point and is atomic on its own; the engine
    never groups calls into a transaction.
    """

    async def insert(self, table: Table, fields: Record) -> Record:
        """Insert a record and return it with its generated id."""
        ...

    async def update(self, table: Table, record_id: str, fields: Record) -> Record:
        """Update fields of one record by id and return the stored record."""
        ...

    async def delete(self, table: Table, filters: Sequence[Condition]) -> int:
        """Delete every record matching filters and return how many were removed."""
        ...

    async def select_many(
        self,
        table: Table,
        filters: Sequence[Condition] = (),
        order_by: Sequence[OrderBy] = (),
    ) -> list[Record]:
        """Return records matching filters, sorted by order_by."""
        ...

    async def select_one(
        self, table: Table, filters: Sequence[Condition]
    ) -> Optional[Record]:
        """Return the first record matching filters, or None."""
        ...
