from __future__ import annotations

import json
from pathlib import Path

from dolimport.logging.error_log import FILE_LEVEL, ErrorLogBuffer, ErrorRecord
from dolimport.models.import_result import IssueKind, RowResult

KEYS = {"timestamp", "file", "row", "table", "error_type", "message", "import_key"}


def test_error_log_buffer_flush(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("a.csv", 1, "llx_societe", "NOT_NULL", "missing", "K"))
    buf.append(ErrorRecord.create("a.csv", 2, "llx_societe", "STORAGE", "duplicate key", "K"))
    path = buf.flush()
    assert path.exists()
    assert path.parent == Path("logs")
    assert path.name.startswith("errors-") and path.suffix == ".log"
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    for raw in lines:
        assert set(json.loads(raw)) == KEYS
    assert len(buf) == 0


def test_error_log_buffer_multiple_flushes(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("a.csv", 1, "t", "REGEX", "m", "K"))
    path = buf.flush()
    size1 = path.stat().st_size
    buf.append(ErrorRecord.create("a.csv", 2, "t", "REGEX", "m2", "K"))
    path2 = buf.flush()
    assert path == path2
    assert path2.stat().st_size > size1


def test_empty_flush_creates_no_file(tmp_path: Path):
    buf = ErrorLogBuffer(logs_dir=tmp_path / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()


def test_append_row_one_record_per_error(tmp_path: Path):
    result = RowResult(line_number=4)
    result.add_error(IssueKind.NOT_NULL, "Column 1: mandatory value missing for Name", table="llx_societe")
    result.add_error(IssueKind.STORAGE, "boom")
    result.add_warning(IssueKind.EMPTY_LINE, "ignored")
    buf = ErrorLogBuffer(logs_dir=tmp_path)
    buf.append_row("a.csv", result, "K")
    path = buf.flush()
    records = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [(r["row"], r["table"], r["error_type"]) for r in records] == [
        (4, "llx_societe", "NOT_NULL"),
        (4, FILE_LEVEL, "STORAGE"),
    ]
    assert all(r["import_key"] == "K" for r in records)
