"""Fluent SQL query builder running on a DB-API connection."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator, Mapping

SUPPORTED_FUNCTIONS = frozenset(
    {
        "NOW()", "CURRENT_TIMESTAMP", "UUID()", "RAND()", "CURDATE()",
        "CURTIME()", "UNIX_TIMESTAMP()", "UTC_TIMESTAMP()", "SYSDATE()",
        "LOCALTIME()", "LOCALTIMESTAMP()", "PI()", "DATABASE()", "USER()",
        "VERSION()",
    }
)
SLOW_QUERY_SECONDS = 0.02

_log = logging.getLogger(__name__)


def _quote(name: str) -> str:
    return f"`{name}`"


def _quote_unless_dotted(name: str) -> str:
    return name if "." in name else _quote(name)


def _assignments(data: Mapping[str, Any]) -> tuple[list[str], list[Any]]:
    parts: list[str] = []
    values: list[Any] = []
    for column, value in data.items():
        name = _quote_unless_dotted(column)
        if isinstance(value, str) and value.upper() in SUPPORTED_FUNCTIONS:
            parts.append(f"{name} = {value}")
        else:
            parts.append(f"{name} = %s")
            values.append(value)
    return parts, values


class QueryBuilder:
    """Builds SELECT, INSERT, UPDATE and upsert statements for one table."""

    def __init__(self, connection: Any = None, database: str | None = None, logger: Any = None) -> None:
        self.connection = connection
        self.database = database
        self.logger = logger
        self.table_name: str | None = None
        self.fields: list[str] = ["*"]
        self.joins: list[str] = []
        self.conditions: list[str] = []
        self.bindings: list[Any] = []
        self.orders: list[str] = []
        self.assignments: list[str] = []
        self.limit_count: int | None = None
        self.offset_count: int | None = None
        self.with_total = False

    # -- building -------------------------------------------------------

    def table(self, table_name: str) -> QueryBuilder:
        self.table_name = table_name
        return self

    def select(self, *fields: str) -> QueryBuilder:
        if fields:
            self.fields = list(fields)
        return self

    def total(self) -> QueryBuilder:
        """Add a ``total`` column holding the row count before limit and offset."""
        self.with_total = True
        return self

    def inner_join(self, table: str, first: str, operator: str, second: str | None = None) -> QueryBuilder:
        return self._join("INNER", table, first, operator, second)

    def left_join(self, table: str, first: str, operator: str, second: str | None = None) -> QueryBuilder:
        return self._join("LEFT", table, first, operator, second)

    def right_join(self, table: str, first: str, operator: str, second: str | None = None) -> QueryBuilder:
        return self._join("RIGHT", table, first, operator, second)

    def _join(self, kind: str, table: str, first: str, operator: str, second: str | None) -> QueryBuilder:
        if second is None:
            second, operator = operator, "="
        self.joins.append(
            f"{kind} JOIN {_quote(table)} ON "
            f"{_quote_unless_dotted(first)} {operator} {_quote_unless_dotted(second)}"
        )
        return self

    def where(self, column: str, operator: Any, *args: Any) -> QueryBuilder:
        """Add a condition; ``where(col, value)`` means ``col = value``."""
        if args:
            op, value = str(operator), args[0]
        else:
            op, value = "=", operator
        if op == "LIKE" and isinstance(value, str):
            value = f"%{value}%"
        if "(" not in column and "." not in column:
            column = _quote(column)
        placeholder = "%s"
        if op == "IN" and not isinstance(value, (list, tuple, set, frozenset)):
            placeholder = "(%s)"
        if isinstance(value, (set, frozenset)):
            value = tuple(value)
        self.conditions.append(f"{column} {op} {placeholder}")
        self.bindings.append(value)
        return self

    def order_by(self, column: str, direction: str = "ASC") -> QueryBuilder:
        """Add a sort key; an unknown direction is logged and ignored."""
        direction = direction.upper()
        if direction not in ("ASC", "DESC"):
            _log.warning("Invalid order direction: %s", direction)
            return self
        self.orders.append(f"{_quote_unless_dotted(column)} {direction}")
        return self

    def limit(self, num: int) -> QueryBuilder:
        self.limit_count = num
        return self

    def offset(self, num: int) -> QueryBuilder:
        self.offset_count = num
        return self

    def increase(self, target: str, number: int = 1) -> QueryBuilder:
        """Add ``target = target + number`` to the next update."""
        self.assignments.append(f"{target} = {target} + {number}")
        return self

    # -- running --------------------------------------------------------

    def _require_table(self) -> str:
        if self.table_name is None:
            if self.logger is not None:
                self.logger.action(True, "Table is required")
            raise ValueError("Table is required")
        return self.table_name

    def _where_clause(self) -> str:
        return " WHERE " + " AND ".join(self.conditions) if self.conditions else ""

    @contextmanager
    def _run(self, query: str, params: list[Any]) -> Iterator[Any]:
        if self.connection is None:
            if self.logger is not None:
                self.logger.action(True, "Database connection is not available")
            raise ConnectionError("database connection is not available")
        with self.connection.cursor() as cursor:
            start = time.perf_counter()
            cursor.execute(query, tuple(params) or None)
            elapsed = time.perf_counter() - start
            if elapsed > SLOW_QUERY_SECONDS and self.logger is not None:
                self.logger.action(False, f"Slow Query: {elapsed * 1000:.3f}ms", query)
            yield cursor

    def get(self) -> list[Any]:
        """Run the SELECT and return all rows."""
        table = self._require_table()
        names = []
        for name in self.fields:
            if name == "*" or any(ch in name for ch in ".()"):
                names.append(name)
            else:
                names.append(_quote(name))
        query = f"SELECT {', '.join(names)} FROM {_quote(table)}"
        if self.joins:
            query += " " + " ".join(self.joins)
        query += self._where_clause()
        if self.with_total:
            query = f"SELECT COUNT(*) OVER() AS total, data.* FROM ({query}) AS data"
        if self.orders:
            query += " ORDER BY " + ", ".join(self.orders)
        if self.limit_count is not None:
            query += f" LIMIT {self.limit_count}"
        if self.offset_count is not None:
            query += f" OFFSET {self.offset_count}"
        with self._run(query, self.bindings) as cursor:
            return list(cursor.fetchall())

    def insert(self, data: Mapping[str, Any]) -> int:
        """Insert one row and return its generated id."""
        table = self._require_table()
        columns = ", ".join(_quote(column) for column in data)
        placeholders = ", ".join("%s" for _ in data)
        query = f"INSERT INTO {_quote(table)} ({columns}) VALUES ({placeholders})"
        with self._run(query, list(data.values())) as cursor:
            return cursor.lastrowid

    def update(self, data: Mapping[str, Any] | None = None) -> int:
        """Update matching rows and return how many were affected."""
        table = self._require_table()
        parts, values = _assignments(data) if data else ([], [])
        query = f"UPDATE {_quote(table)} SET {', '.join(self.assignments + parts)}"
        query += self._where_clause()
        with self._run(query, values + self.bindings) as cursor:
            return cursor.rowcount

    def upsert(self, data: Mapping[str, Any], update_data: str | Mapping[str, Any] | None = None) -> int:
        """Insert a row, updating it on a duplicate key; return the row id."""
        table = self._require_table()
        columns = [_quote(column) for column in data]
        values = list(data.values())
        update_values: list[Any] = []
        if update_data is None:
            defaults = ", ".join(f"{column} = VALUES({column})" for column in columns)
            clause = f" ON DUPLICATE KEY UPDATE {defaults}"
        elif isinstance(update_data, str):
            clause = f" ON DUPLICATE KEY UPDATE {update_data}"
        elif isinstance(update_data, Mapping):
            parts, update_values = _assignments(update_data)
            clause = f" ON DUPLICATE KEY UPDATE {', '.join(parts)}"
        else:
            clause = ""
        placeholders = ", ".join("%s" for _ in columns)
        query = f"INSERT INTO {_quote(table)} ({', '.join(columns)}) VALUES ({placeholders}){clause}"
        with self._run(query, values + update_values) as cursor:
            return cursor.lastrowid