"""Database handles the operations run their statements through."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple
import re

import duckdb


Row = Tuple[Any, ...]

_INSERT_RE = re.compile(r"^\s*INSERT\s", re.IGNORECASE)
_RETURNING_RE = re.compile(r"\sRETURNING\s", re.IGNORECASE)


def _params(args: Sequence[Any]) -> Optional[List[Any]]:
    return list(args) if args else None


@dataclass
class ExecResult:
    """Outcome of a mutating statement."""
    rows_affected: int
    last_insert_id: Optional[int] = None


class Rows:
    """An open result cursor.

    Iterate to fetch rows. The cursor is released by ``close`` or on leaving
    a ``with`` block, whichever comes first. ``on_close`` receives the number
    of rows fetched; when fetching raised, ``on_error`` receives the error
    instead.
    """

    def __init__(self, cursor: Any, on_close: Optional[Callable[[int], None]] = None,
                 on_error: Optional[Callable[[Exception], None]] = None):
        self._cursor = cursor
        self._on_close = on_close
        self._on_error = on_error
        self._closed = False
        self.row_count = 0
        self.error: Optional[Exception] = None

    def fetchone(self) -> Optional[Row]:
        try:
            row = self._cursor.fetchone()
        except Exception as e:
            self.error = e
            raise
        if row is not None:
            self.row_count += 1
        return row

    def __iter__(self) -> Iterator[Row]:
        while True:
            row = self.fetchone()
            if row is None:
                break
            yield row

    def fetchall(self) -> List[Row]:
        return list(self)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._cursor.close()
        finally:
            if self.error is not None:
                if self._on_error is not None:
                    self._on_error(self.error)
            elif self._on_close is not None:
                self._on_close(self.row_count)

    def __enter__(self) -> "Rows":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class DatabaseHandle(ABC):
    """Minimal surface the CRUD operations need from a database."""

    @abstractmethod
    def query(self, sql: str, args: Sequence[Any] = ()) -> Rows:
        """Run a statement returning rows."""

    @abstractmethod
    def query_row(self, sql: str, args: Sequence[Any] = ()) -> Optional[Row]:
        """Run a statement and return its first row, or None."""

    @abstractmethod
    def exec(self, sql: str, args: Sequence[Any] = ()) -> ExecResult:
        """Run a mutating statement."""

    def close(self) -> None:
        pass


class DuckDBHandle(DatabaseHandle):
    """Handle over a DuckDB connection.

    Each statement runs on its own cursor. DuckDB reports no ``lastrowid``,
    so INSERT statements get ``RETURNING <id_column>`` appended.
    """

    def __init__(self, connection: duckdb.DuckDBPyConnection, id_column: str = "id"):
        self.connection = connection
        self.id_column = id_column

    def _cursor(self) -> duckdb.DuckDBPyConnection:
        return self.connection.cursor()

    def query(self, sql: str, args: Sequence[Any] = ()) -> Rows:
        cursor = self._cursor()
        try:
            cursor.execute(sql, _params(args))
        except Exception:
            cursor.close()
            raise
        return Rows(cursor)

    def query_row(self, sql: str, args: Sequence[Any] = ()) -> Optional[Row]:
        cursor = self._cursor()
        try:
            cursor.execute(sql, _params(args))
            return cursor.fetchone()
        finally:
            cursor.close()

    def exec(self, sql: str, args: Sequence[Any] = ()) -> ExecResult:
        cursor = self._cursor()
        try:
            if _INSERT_RE.match(sql) and not _RETURNING_RE.search(sql):
                returning_sql = f"{sql.rstrip().rstrip(';')} RETURNING {self.id_column};"
                cursor.execute(returning_sql, _params(args))
                returned = cursor.fetchall()
                last_id = returned[-1][0] if returned else None
                return ExecResult(rows_affected=len(returned), last_insert_id=last_id)

            cursor.execute(sql, _params(args))
            # DML without RETURNING yields a single "Count" row
            row = cursor.fetchone()
            return ExecResult(rows_affected=int(row[0]) if row else 0)
        finally:
            cursor.close()

    def close(self) -> None:
        self.connection.close()


class DBAPIHandle(DatabaseHandle):
    """Handle over a PEP 249 connection using the qmark paramstyle (e.g. sqlite3)."""

    def __init__(self, connection: Any, autocommit: bool = True):
        self.connection = connection
        self.autocommit = autocommit

    def query(self, sql: str, args: Sequence[Any] = ()) -> Rows:
        cursor = self.connection.cursor()
        try:
            cursor.execute(sql, tuple(args))
        except Exception:
            cursor.close()
            raise
        return Rows(cursor)

    def query_row(self, sql: str, args: Sequence[Any] = ()) -> Optional[Row]:
        cursor = self.connection.cursor()
        try:
            cursor.execute(sql, tuple(args))
            return cursor.fetchone()
        finally:
            cursor.close()

    def exec(self, sql: str, args: Sequence[Any] = ()) -> ExecResult:
        cursor = self.connection.cursor()
        try:
            cursor.execute(sql, tuple(args))
            result = ExecResult(
                rows_affected=cursor.rowcount if cursor.rowcount is not None else 0,
                last_insert_id=getattr(cursor, "lastrowid", None)
            )
        finally:
            cursor.close()
        if self.autocommit:
            self.connection.commit()
        return result

    def close(self) -> None:
        self.connection.close()


def connect_handle(connection: Any, id_column: str = "id") -> DatabaseHandle:
    """Wrap a DuckDB or PEP 249 connection in the matching handle."""
    if isinstance(connection, DatabaseHandle):
        return connection
    if isinstance(connection, duckdb.DuckDBPyConnection):
        return DuckDBHandle(connection, id_column=id_column)
    if hasattr(connection, "cursor"):
        return DBAPIHandle(connection)
    raise TypeError(f"Unsupported database connection: {type(connection).__name__}")
