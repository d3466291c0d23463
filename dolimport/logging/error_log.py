from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from dolimport.models.error_record import ErrorRecord
from dolimport.models.import_result import RowResult

"""Error log buffering.

- JSON Lines, fixed record layout (no extra keys)
- one ``logs/errors-YYYYMMDD-HHMMSS.log`` (UTC) per run, created on first flush
- records are buffered and written when flush() is called
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"
FILE_LEVEL = "<FILE_LEVEL>"


class ErrorLogBuffer:
    """In-memory buffer of error records. flush() appends them as JSON Lines.

    Not thread safe (imports run serially).
    """
    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir or LOGS_DIR

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def append_row(self, file: str, result: RowResult, import_key: str) -> None:
        """Append one record per error of a row result."""
        for issue in result.errors:
            self._records.append(
                ErrorRecord.create(
                    file=file,
                    row=result.line_number,
                    table=issue.table or FILE_LEVEL,
                    error_type=issue.kind.value,
                    message=issue.message,
                    import_key=import_key,
                )
            )

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Write buffered records; return the log path, None when nothing was written."""
        if not self._records:
            return self._file_path
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
