from __future__ import annotations

from datetime import UTC, datetime

import pytest

from dolimport.models.import_result import IssueKind, RowResult
from dolimport.models.processing_result import ImportSummary, StatementStatsAccumulator


def test_row_result_flags():
    r = RowResult(line_number=1)
    assert not r.failed and not r.is_empty_line
    assert r.status == 1
    r.add_warning(IssueKind.EMPTY_LINE, "Line 1: empty line")
    assert r.is_empty_line and not r.failed
    issue = r.add_error(IssueKind.REGEX, "bad", table="llx_societe", column="client")
    assert r.failed
    assert issue.column == "client"


def test_total_inserts():
    now = datetime.now(UTC)
    s = ImportSummary(
        source_file="a.csv", import_key="K", total_rows=2, success_rows=2, failed_rows=0,
        empty_rows=0, inserted_per_table={"a": 2, "b": 1}, start_time=now, end_time=now,
        elapsed_seconds=0.0, throughput_rows_per_sec=0.0,
    )
    assert s.total_inserts == 3
    assert s.row_results == []


def test_statement_stats_empty():
    assert StatementStatsAccumulator().get_stats() == (0, 0.0, 0.0)


def test_statement_stats_single():
    acc = StatementStatsAccumulator()
    acc.add_statement_time(0.5)
    assert acc.get_stats() == (1, 0.5, 0.5)


def test_statement_stats_p95():
    acc = StatementStatsAccumulator()
    for i in range(1, 21):
        acc.add_statement_time(i / 100)
    total, avg, p95 = acc.get_stats()
    assert total == 20
    assert avg == pytest.approx(0.105)
    assert 0.19 <= p95 <= 0.20
