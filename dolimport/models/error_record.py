from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for error logging.

One record per error found while importing a row. row=-1 is used for
file-level errors (source cannot be opened, run aborted) where no row is
known.

The record layout is fixed by dolimport/config/schemas/error_log.json.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: source filename being imported
        row: source line number (1-based). -1 for file-level errors
        table: destination table, or "<FILE_LEVEL>"
        error_type: issue kind (NOT_NULL, FOREIGN_KEY, REGEX, STORAGE, IO)
        message: human readable description or backend message
        import_key: batch identifier of the run
    """
    timestamp: str
    file: str
    row: int
    table: str
    error_type: str
    message: str
    import_key: str

    @staticmethod
    def create(file: str, row: int, table: str, error_type: str, message: str,
               import_key: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            row=row,
            table=table,
            error_type=error_type,
            message=message,
            import_key=import_key,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
