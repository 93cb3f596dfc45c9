"""
NewsArena Table Store
=====================

Minimal table-oriented persistence interface (insert, upsert, select, update
with filter predicates) consumed by the repositories, plus its SQLite
implementation on top of the pooled DatabaseConnection.
"""

import json
import re
import sqlite3
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, date
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..database.connection import DatabaseConnection
from ..utils.exceptions import DatabaseError, ErrorCode
from ..utils.logging import get_logger_for_component


@dataclass(frozen=True)
class Filter:
    """Column predicate used by select and update."""

    column: str
    op: str
    value: Any = None

    OPS = ("eq", "in", "is_null", "not_null")

    @classmethod
    def eq(cls, column: str, value: Any) -> "Filter":
        return cls(column, "eq", value)

    @classmethod
    def in_(cls, column: str, values: Iterable[Any]) -> "Filter":
        return cls(column, "in", tuple(values))

    @classmethod
    def is_null(cls, column: str) -> "Filter":
        return cls(column, "is_null")

    @classmethod
    def not_null(cls, column: str) -> "Filter":
        return cls(column, "not_null")


class TableStore(ABC):
    """Abstract table store."""

    @abstractmethod
    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert one row and return it with its generated id."""

    @abstractmethod
    def upsert(
        self,
        table: str,
        rows: Sequence[Dict[str, Any]],
        conflict_key: str,
        ignore_duplicates: bool = False,
    ) -> int:
        """Insert rows; on conflict of ``conflict_key`` skip or overwrite.

        Returns:
            Number of rows the store reports as written
        """

    @abstractmethod
    def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        columns: Optional[Sequence[str]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Return matching rows as plain dicts."""

    @abstractmethod
    def update(
        self,
        table: str,
        row_id: str,
        patch: Dict[str, Any],
        filters: Sequence[Filter] = (),
    ) -> int:
        """Patch the row with ``row_id`` if it also matches ``filters``.

        Returns:
            Number of rows changed
        """


class SQLiteTableStore(TableStore):
    """TableStore backed by SQLite.

    Lists and dicts are stored as JSON text, datetimes as ISO-8601 strings,
    booleans as integers. Rows without an ``id`` get a uuid4.
    """

    IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
    JSON_COLUMNS = {"tags"}
    BOOL_COLUMNS = {"is_active", "is_featured"}

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("table_store")

    def _ident(self, name: str) -> str:
        if not self.IDENTIFIER_PATTERN.match(name):
            raise DatabaseError(
                f"Invalid identifier: {name!r}",
                error_code=ErrorCode.DATABASE_ERROR,
                recoverable=False,
            )
        return name

    @staticmethod
    def _encode(value: Any) -> Any:
        if isinstance(value, (list, dict, tuple)):
            return json.dumps(list(value) if isinstance(value, tuple) else value)
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, Enum):
            return value.value
        return value

    def _decode_row(self, row: sqlite3.Row) -> Dict[str, Any]:
        data = dict(row)
        for key in self.JSON_COLUMNS & data.keys():
            if isinstance(data[key], str):
                data[key] = json.loads(data[key])
        for key in self.BOOL_COLUMNS & data.keys():
            if data[key] is not None:
                data[key] = bool(data[key])
        return data

    def _where(self, filters: Sequence[Filter]) -> tuple:
        clauses = []
        params: List[Any] = []

        for f in filters:
            column = self._ident(f.column)
            if f.op == "eq":
                clauses.append(f"{column} = ?")
                params.append(self._encode(f.value))
            elif f.op == "in":
                if not f.value:
                    clauses.append("0")
                    continue
                placeholders = ", ".join("?" for _ in f.value)
                clauses.append(f"{column} IN ({placeholders})")
                params.extend(self._encode(v) for v in f.value)
            elif f.op == "is_null":
                clauses.append(f"{column} IS NULL")
            elif f.op == "not_null":
                clauses.append(f"{column} IS NOT NULL")
            else:
                raise DatabaseError(
                    f"Unsupported filter operation: {f.op}",
                    error_code=ErrorCode.DATABASE_ERROR,
                    recoverable=False,
                )

        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    def _prepare(self, row: Dict[str, Any]) -> Dict[str, Any]:
        prepared = dict(row)
        prepared.setdefault("id", str(uuid.uuid4()))
        return prepared

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        table = self._ident(table)
        prepared = self._prepare(row)
        columns = [self._ident(c) for c in prepared]
        query = (
            f"INSERT INTO {table} ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})"
        )

        try:
            self.db.execute_update(
                query, tuple(self._encode(prepared[c]) for c in columns)
            )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Insert into {table} failed: {e}",
                query=query,
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

        return prepared

    def upsert(
        self,
        table: str,
        rows: Sequence[Dict[str, Any]],
        conflict_key: str,
        ignore_duplicates: bool = False,
    ) -> int:
        if not rows:
            return 0

        table = self._ident(table)
        conflict_key = self._ident(conflict_key)
        prepared = [self._prepare(r) for r in rows]
        columns = [self._ident(c) for c in prepared[0]]

        if ignore_duplicates:
            on_conflict = "DO NOTHING"
        else:
            assignments = ", ".join(
                f"{c} = excluded.{c}" for c in columns if c not in ("id", conflict_key)
            )
            on_conflict = f"DO UPDATE SET {assignments}" if assignments else "DO NOTHING"

        query = (
            f"INSERT INTO {table} ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)}) "
            f"ON CONFLICT({conflict_key}) {on_conflict}"
        )
        params = [tuple(self._encode(r.get(c)) for c in columns) for r in prepared]

        try:
            written = self.db.execute_many(query, params)
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Upsert into {table} failed: {e}",
                query=query,
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

        self.logger.debug(
            f"Upserted {len(prepared)} rows into {table}",
            extra={"table": table, "rows": len(prepared), "written": written},
        )
        return written

    def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        columns: Optional[Sequence[str]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        table = self._ident(table)
        column_sql = ", ".join(self._ident(c) for c in columns) if columns else "*"
        where, params = self._where(filters)
        query = f"SELECT {column_sql} FROM {table}{where}"

        if order_by:
            query += f" ORDER BY {self._ident(order_by)} {'DESC' if descending else 'ASC'}"
        if limit is not None:
            query += " LIMIT ?"
            params.append(int(limit))

        try:
            rows = self.db.execute_query(query, tuple(params))
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Select from {table} failed: {e}",
                query=query,
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

        return [self._decode_row(row) for row in rows]

    def update(
        self,
        table: str,
        row_id: str,
        patch: Dict[str, Any],
        filters: Sequence[Filter] = (),
    ) -> int:
        if not patch:
            return 0

        table = self._ident(table)
        assignments = ", ".join(f"{self._ident(c)} = ?" for c in patch)
        where, params = self._where([Filter.eq("id", row_id), *filters])
        query = f"UPDATE {table} SET {assignments}{where}"

        try:
            return self.db.execute_update(
                query, tuple(self._encode(v) for v in patch.values()) + tuple(params)
            )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Update of {table} failed: {e}",
                query=query,
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e
