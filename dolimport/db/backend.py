from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import psycopg2
from psycopg2 import sql

"""Storage backend used by the import engine.

The engine talks to the database only through the StorageBackend protocol:
plain queries, single-row INSERT with RETURNING of the generated key, column
introspection and distinct-value loading for existence checks.

PostgresBackend implements it on a psycopg2 connection. Values are always
bound as parameters and identifiers quoted with psycopg2.sql, so no manual
escaping happens anywhere in the engine.

Statement boundaries:
- autocommit connection: every statement commits on its own (normal import)
- non-autocommit connection: each INSERT runs inside a savepoint so that a
  failed statement does not abort the surrounding transaction (simulation)
"""

__all__ = [
    "StorageBackend",
    "InsertError",
    "BackendUnavailableError",
    "StatementMetrics",
    "PostgresBackend",
    "identifier",
]


class InsertError(Exception):
    """One statement failed; the connection is still usable."""


class BackendUnavailableError(Exception):
    """The connection is gone; the run cannot continue."""


@dataclass(frozen=True)
class StatementMetrics:
    """Timing of a single INSERT."""
    table: str
    elapsed_seconds: float
    start_time: float
    end_time: float


class StorageBackend(Protocol):
    def query(self, statement: Any, params: Sequence[Any] | None = None) -> list[tuple[Any, ...]]: ...

    def execute(self, statement: Any, params: Sequence[Any] | None = None) -> int: ...

    def insert(
        self,
        table: str,
        columns: Sequence[str],
        values: Sequence[Any],
        returning: str | None = None,
    ) -> Any: ...

    def has_column(self, table: str, column: str) -> bool: ...

    def column_values(self, column: str, table: str) -> set[str]: ...


def identifier(name: str) -> sql.Identifier:
    """Quote a possibly schema-qualified name (``schema.table``)."""
    return sql.Identifier(*name.split("."))


class PostgresBackend:
    """StorageBackend on a psycopg2 connection."""

    SAVEPOINT = "dolimport_stmt"

    def __init__(
        self,
        connection: Any,
        metrics_callback: Callable[[StatementMetrics], None] | None = None,
    ) -> None:
        self.connection = connection
        self.metrics_callback = metrics_callback

    def _unavailable(self) -> bool:
        return bool(getattr(self.connection, "closed", 0))

    def query(self, statement: Any, params: Sequence[Any] | None = None) -> list[tuple[Any, ...]]:
        try:
            with self.connection.cursor() as cur:
                cur.execute(statement, params)
                return list(cur.fetchall())
        except psycopg2.Error as e:
            if self._unavailable():
                raise BackendUnavailableError(str(e)) from e
            raise

    def execute(self, statement: Any, params: Sequence[Any] | None = None) -> int:
        try:
            with self.connection.cursor() as cur:
                cur.execute(statement, params)
                return cur.rowcount
        except psycopg2.Error as e:
            if self._unavailable():
                raise BackendUnavailableError(str(e)) from e
            raise

    def insert(
        self,
        table: str,
        columns: Sequence[str],
        values: Sequence[Any],
        returning: str | None = None,
    ) -> Any:
        """INSERT one row and return the generated key (None without returning).

        Raises:
            InsertError: statement rejected by the database
            BackendUnavailableError: connection lost
        """
        stmt = sql.SQL("INSERT INTO {} ({}) VALUES ({})").format(
            identifier(table),
            sql.SQL(", ").join(sql.Identifier(c) for c in columns),
            sql.SQL(", ").join(sql.Placeholder() * len(columns)),
        )
        if returning:
            stmt = stmt + sql.SQL(" RETURNING {}").format(sql.Identifier(returning))

        use_savepoint = not self.connection.autocommit
        start_time = time.time()
        try:
            with self.connection.cursor() as cur:
                if use_savepoint:
                    cur.execute(f"SAVEPOINT {self.SAVEPOINT}")
                try:
                    cur.execute(stmt, list(values))
                    new_id = cur.fetchone()[0] if returning else None
                except psycopg2.Error:
                    if use_savepoint and not self._unavailable():
                        cur.execute(f"ROLLBACK TO SAVEPOINT {self.SAVEPOINT}")
                    raise
                if use_savepoint:
                    cur.execute(f"RELEASE SAVEPOINT {self.SAVEPOINT}")
        except psycopg2.Error as e:
            if self._unavailable():
                raise BackendUnavailableError(str(e)) from e
            message = (getattr(e, "pgerror", None) or str(e)).strip()
            raise InsertError(message) from e
        finally:
            end_time = time.time()
            if self.metrics_callback is not None:
                self.metrics_callback(
                    StatementMetrics(
                        table=table,
                        elapsed_seconds=end_time - start_time,
                        start_time=start_time,
                        end_time=end_time,
                    )
                )
        return new_id

    def has_column(self, table: str, column: str) -> bool:
        parts = table.split(".")
        if len(parts) == 2:
            rows = self.query(
                "SELECT 1 FROM information_schema.columns"
                " WHERE table_schema = %s AND table_name = %s AND column_name = %s",
                (parts[0], parts[1], column),
            )
        else:
            rows = self.query(
                "SELECT 1 FROM information_schema.columns"
                " WHERE table_schema = current_schema() AND table_name = %s AND column_name = %s",
                (table, column),
            )
        return bool(rows)

    def column_values(self, column: str, table: str) -> set[str]:
        stmt = sql.SQL("SELECT DISTINCT {} FROM {}").format(sql.Identifier(column), identifier(table))
        return {str(r[0]) for r in self.query(stmt) if r[0] is not None}
