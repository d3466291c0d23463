from __future__ import annotations

import psycopg2
import pytest

from dolimport.db.backend import BackendUnavailableError, InsertError, PostgresBackend, identifier
from tests.fakes import render_sql


class DummyCursor:
    def __init__(self, conn: "DummyConnection") -> None:
        self.conn = conn
        self.rowcount = 0

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, statement, params=None):
        text = render_sql(statement)
        self.conn.statements.append((text, params))
        if self.conn.fail_on and self.conn.fail_on in text:
            if self.conn.close_on_failure:
                self.conn.closed = 1
            raise psycopg2.Error("duplicate key value violates unique constraint")
        self.rowcount = self.conn.rowcount

    def fetchone(self):
        return self.conn.rows[0]

    def fetchall(self):
        return list(self.conn.rows)


class DummyConnection:
    def __init__(self, autocommit: bool = True, rows=None, fail_on: str | None = None,
                 close_on_failure: bool = False) -> None:
        self.autocommit = autocommit
        self.rows = rows or [(11,)]
        self.fail_on = fail_on
        self.close_on_failure = close_on_failure
        self.closed = 0
        self.rowcount = 3
        self.statements: list[tuple[str, object]] = []

    def cursor(self):
        return DummyCursor(self)


def test_identifier_schema_qualified():
    assert render_sql(identifier("public.llx_societe")) == '"public"."llx_societe"'


def test_insert_returning_binds_values():
    conn = DummyConnection()
    metrics = []
    backend = PostgresBackend(conn, metrics_callback=metrics.append)
    new_id = backend.insert("llx_societe", ["nom", "client"], ["ACME", None], returning="rowid")

    assert new_id == 11
    assert conn.statements == [
        ('INSERT INTO "llx_societe" ("nom", "client") VALUES (%s, %s) RETURNING "rowid"', ["ACME", None]),
    ]
    assert len(metrics) == 1
    assert metrics[0].table == "llx_societe"
    assert metrics[0].elapsed_seconds >= 0


def test_insert_without_returning():
    conn = DummyConnection()
    assert PostgresBackend(conn).insert("t", ["a"], [1]) is None
    assert conn.statements[0][0] == 'INSERT INTO "t" ("a") VALUES (%s)'


def test_insert_failure_becomes_insert_error():
    conn = DummyConnection(fail_on="INSERT")
    metrics = []
    backend = PostgresBackend(conn, metrics_callback=metrics.append)
    with pytest.raises(InsertError, match="duplicate key"):
        backend.insert("t", ["a"], [1], returning="rowid")
    # timing is recorded for failed statements too
    assert len(metrics) == 1


def test_savepoint_when_not_autocommit():
    conn = DummyConnection(autocommit=False)
    PostgresBackend(conn).insert("t", ["a"], [1], returning="rowid")
    texts = [s for s, _ in conn.statements]
    assert texts[0] == "SAVEPOINT dolimport_stmt"
    assert texts[-1] == "RELEASE SAVEPOINT dolimport_stmt"


def test_rollback_to_savepoint_on_failure():
    conn = DummyConnection(autocommit=False, fail_on="INSERT")
    with pytest.raises(InsertError):
        PostgresBackend(conn).insert("t", ["a"], [1])
    texts = [s for s, _ in conn.statements]
    assert texts[-1] == "ROLLBACK TO SAVEPOINT dolimport_stmt"


def test_lost_connection_is_unavailable():
    conn = DummyConnection(fail_on="INSERT", close_on_failure=True)
    with pytest.raises(BackendUnavailableError):
        PostgresBackend(conn).insert("t", ["a"], [1])


def test_query_error_propagates_when_connection_alive():
    conn = DummyConnection(fail_on="SELECT")
    with pytest.raises(psycopg2.Error):
        PostgresBackend(conn).query("SELECT 1")


def test_execute_returns_rowcount():
    conn = DummyConnection()
    assert PostgresBackend(conn).execute("DELETE FROM t WHERE import_key = %s", ("k",)) == 3


def test_has_column():
    conn = DummyConnection(rows=[(1,)])
    backend = PostgresBackend(conn)
    assert backend.has_column("llx_societe", "entity") is True
    assert conn.statements[-1][1] == ("llx_societe", "entity")
    # unqualified names only match the current schema
    assert "table_schema = current_schema()" in conn.statements[-1][0]
    backend.has_column("public.llx_societe", "entity")
    assert conn.statements[-1][1] == ("public", "llx_societe", "entity")
    assert "table_schema = %s" in conn.statements[-1][0]

    conn.rows = []
    assert backend.has_column("llx_societe", "entity") is False


def test_column_values_are_strings():
    conn = DummyConnection(rows=[(1,), (2,), (None,)])
    assert PostgresBackend(conn).column_values("rowid", "llx_c_typent") == {"1", "2"}
    assert conn.statements[0][0] == 'SELECT DISTINCT "rowid" FROM "llx_c_typent"'
