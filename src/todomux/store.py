"""Persistence gateway over a shared sqlite3 connection.

A ``Gateway`` is bound to one record ``Shape`` and exposes the same small set of
operations for every record type: create, find_all, find_by_id, save and
soft_delete. The table for a shape is provisioned on first use, so callers never
need to order migrations against requests.

Calls are synchronous and block the calling task until SQLite returns; the
connection is shared between requests without extra locking.
"""

import logging
import sqlite3
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from todomux.errors import NotFoundError, StoreError

logger = logging.getLogger(__name__)


class Record(Protocol):
    @property
    def id(self) -> int: ...


@dataclass(slots=True, frozen=True)
class Column:
    name: str
    sql_type: str


@dataclass(slots=True, frozen=True)
class Shape[R: Record]:
    """How a record type maps onto a table.

    ``columns`` lists the mutable columns; ``id`` is always an autoincrement
    primary key. Soft-delete shapes also get ``created_at``, ``updated_at`` and
    ``deleted_at`` columns maintained by the gateway.
    """

    name: str
    table: str
    columns: tuple[Column, ...]
    from_row: Callable[[sqlite3.Row], R]
    to_row: Callable[[R], dict[str, object]]
    soft_delete: bool = False


def connect(path: str) -> sqlite3.Connection:
    """Open the shared connection in autocommit mode, rows addressable by name."""
    db = sqlite3.connect(path, check_same_thread=False, isolation_level=None)
    db.row_factory = sqlite3.Row
    return db


def like_pattern(substring: str) -> str:
    """LIKE pattern matching substring literally, for use with ESCAPE '\\'."""
    escaped = (
        substring.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    )
    return f"%{escaped}%"


class Gateway[R: Record]:
    __slots__ = ("_db", "_provisioned", "shape")

    def __init__(self, db: sqlite3.Connection, shape: Shape[R]) -> None:
        self._db = db
        self.shape = shape
        self._provisioned = False

    def migrate(self) -> None:
        """Create the shape's table if it does not exist. Idempotent."""
        table = self.shape.table
        columns = [
            "id INTEGER PRIMARY KEY AUTOINCREMENT",
            *(f"{c.name} {c.sql_type}" for c in self.shape.columns),
        ]
        statements = []
        if self.shape.soft_delete:
            columns += [
                "created_at TEXT NOT NULL",
                "updated_at TEXT NOT NULL",
                "deleted_at TEXT",
            ]
            statements.append(
                f"CREATE INDEX IF NOT EXISTS idx_{table}_deleted_at "
                f"ON {table} (deleted_at);"
            )
        statements.insert(
            0, f"CREATE TABLE IF NOT EXISTS {table} ({', '.join(columns)});"
        )
        try:
            self._db.executescript("\n".join(statements))
        except sqlite3.Error as e:
            logger.exception("provisioning table %s failed", table)
            msg = f"failed to provision {table}"
            raise StoreError(msg) from e
        self._provisioned = True

    def create(self, record: R) -> R:
        """Insert record, returning it with its assigned id."""
        row = self.shape.to_row(record)
        if self.shape.soft_delete:
            now = _now()
            row |= {"created_at": now, "updated_at": now}
        names = ", ".join(row)
        marks = ", ".join("?" for _ in row)
        rows = self._execute(
            "create",
            f"INSERT INTO {self.shape.table} ({names}) VALUES ({marks}) RETURNING *",
            tuple(row.values()),
        )
        return self.shape.from_row(rows[0])

    def find_all(self, where: str | None = None, params: Sequence[object] = ()) -> list[R]:
        """Live records matching the optional SQL condition, in insertion order."""
        clauses = []
        if self.shape.soft_delete:
            clauses.append("deleted_at IS NULL")
        if where:
            clauses.append(f"({where})")
        sql = f"SELECT * FROM {self.shape.table}"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        rows = self._execute("find", sql + " ORDER BY id", tuple(params))
        return [self.shape.from_row(row) for row in rows]

    def find_by_id(self, id: int) -> R:
        records = self.find_all("id = ?", (id,))
        if not records:
            raise NotFoundError(f"{self.shape.name} not found")
        return records[0]

    def save(self, record: R) -> R:
        """Persist the mutable columns of an existing live record.

        Never inserts: an unknown or soft-deleted id raises NotFoundError.
        """
        row = self.shape.to_row(record)
        live = ""
        if self.shape.soft_delete:
            row["updated_at"] = _now()
            live = " AND deleted_at IS NULL"
        assignments = ", ".join(f"{name} = ?" for name in row)
        rows = self._execute(
            "save",
            f"UPDATE {self.shape.table} SET {assignments} WHERE id = ?{live} RETURNING *",
            (*row.values(), record.id),
        )
        if not rows:
            raise NotFoundError(f"{self.shape.name} not found")
        return self.shape.from_row(rows[0])

    def soft_delete(self, record: R) -> None:
        """Mark a live record deleted; it stays in the table but out of reads."""
        if not self.shape.soft_delete:
            msg = f"{self.shape.name} records do not support soft delete"
            raise ValueError(msg)
        rows = self._execute(
            "delete",
            f"UPDATE {self.shape.table} SET deleted_at = ? "
            "WHERE id = ? AND deleted_at IS NULL RETURNING id",
            (_now(), record.id),
        )
        if not rows:
            raise NotFoundError(f"{self.shape.name} not found")

    def _execute(
        self, operation: str, sql: str, params: tuple[object, ...]
    ) -> list[sqlite3.Row]:
        if not self._provisioned:
            self.migrate()
        try:
            return self._db.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            logger.exception("%s on %s failed", operation, self.shape.table)
            msg = f"failed to {operation} {self.shape.name.lower()}"
            raise StoreError(msg) from e


def _now() -> str:
    return datetime.now(UTC).isoformat()
