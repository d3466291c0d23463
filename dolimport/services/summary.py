from __future__ import annotations

from ..models.processing_result import ImportSummary

"""SUMMARY line rendering for the import CLI."""


def _format_number(value: float) -> str:
    # integers without decimals, very small values without scientific notation
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip('0').rstrip('.')
    return str(round(value, 3))


def render_summary_line(summary: ImportSummary) -> str:
    """Render the SUMMARY line of one run.

    Format:
    SUMMARY rows={total} success={success} failed={failed} empty={empty}
    inserts={inserts} import_key={key} elapsed_sec={elapsed} throughput_rps={rps}

    Examples:
        >>> from datetime import datetime, timezone
        >>> start = datetime(2026, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
        >>> end = datetime(2026, 1, 1, 10, 0, 2, tzinfo=timezone.utc)
        >>> s = ImportSummary(
        ...     source_file="a.csv", import_key="20260101100000", total_rows=10,
        ...     success_rows=9, failed_rows=1, empty_rows=0,
        ...     inserted_per_table={"llx_societe": 9}, start_time=start, end_time=end,
        ...     elapsed_seconds=2.0, throughput_rows_per_sec=5.0,
        ... )
        >>> render_summary_line(s)  # doctest: +ELLIPSIS
        'SUMMARY rows=10 success=9 failed=1 empty=0 inserts=9 import_key=20260101100000 ...'
    """
    line = (
        f"SUMMARY rows={summary.total_rows} "
        f"success={summary.success_rows} "
        f"failed={summary.failed_rows} "
        f"empty={summary.empty_rows} "
        f"inserts={summary.total_inserts} "
        f"import_key={summary.import_key} "
        f"elapsed_sec={_format_number(summary.elapsed_seconds)} "
        f"throughput_rps={_format_number(summary.throughput_rows_per_sec)}"
    )
    if summary.aborted:
        line += " aborted=1"
    return line
