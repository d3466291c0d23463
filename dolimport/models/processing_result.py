from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from datetime import datetime

from .import_result import RowResult

"""Run-level result models for the CSV import engine.

ImportSummary aggregates the per-row results of one run for the SUMMARY line
and the CLI exit code. StatementStatsAccumulator collects INSERT timings.
"""


@dataclass(frozen=True)
class ImportSummary:
    """Aggregated results of one import run."""
    source_file: str
    import_key: str
    total_rows: int  # rows read (empty lines included)
    success_rows: int  # rows without any error (empty lines excluded)
    failed_rows: int  # rows with at least one error
    empty_rows: int  # rows skipped with an EMPTY_LINE warning
    inserted_per_table: dict[str, int]
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    throughput_rows_per_sec: float
    aborted: bool = False  # stopped early because max_errors was reached
    # Statement timing statistics
    total_statements: int = 0
    avg_statement_seconds: float = 0.0
    p95_statement_seconds: float = 0.0
    row_results: list[RowResult] = field(default_factory=list)

    @property
    def total_inserts(self) -> int:
        return sum(self.inserted_per_table.values())


class StatementStatsAccumulator:
    """Accumulate INSERT timing measurements and derive summary statistics."""

    def __init__(self) -> None:
        self.statement_times: list[float] = []

    def add_statement_time(self, elapsed_seconds: float) -> None:
        self.statement_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Return (total_statements, avg_seconds, p95_seconds)."""
        if not self.statement_times:
            return (0, 0.0, 0.0)

        total = len(self.statement_times)
        avg = statistics.mean(self.statement_times)

        if total == 1:
            p95 = self.statement_times[0]
        else:
            p95 = statistics.quantiles(
                self.statement_times, n=20, method='inclusive'
            )[18]  # 95th percentile

        return (total, avg, p95)
