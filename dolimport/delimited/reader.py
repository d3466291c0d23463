from __future__ import annotations

import csv
from collections.abc import Iterator
from pathlib import Path
from typing import IO

import pandas as pd

from dolimport.models.cell import Cell, Row
from dolimport.models.config_models import CsvOptions

"""Delimited text reader.

The file is opened as ISO-8859-1 so that every byte maps to exactly one
character; the csv module splits records on ASCII separators, which never
occur inside a multi-byte UTF-8 sequence. Each field is then decoded on its
own: with a forced charset, or by keeping valid UTF-8 and transcoding
anything else from ISO-8859-1.
"""

__all__ = [
    "SourceOpenError",
    "CsvReader",
    "count_lines",
    "preview",
]

_RAW_ENCODING = "latin-1"
_UTF8_BOM = "\ufeff"


class SourceOpenError(OSError):
    """Raised when the input file cannot be opened."""


def _is_utf8_name(charset: str) -> bool:
    return charset.lower().replace("-", "").replace("_", "") == "utf8"


def decode_field(raw: str, force_charset: str | None = None) -> str:
    """Decode one field read as ISO-8859-1 into its real text."""
    data = raw.encode(_RAW_ENCODING)
    if force_charset:
        if _is_utf8_name(force_charset):
            return data.decode("utf-8", errors="replace")
        return data.decode(force_charset, errors="replace")
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return raw  # already the ISO-8859-1 reading


class CsvReader:
    """Row-at-a-time reader for one delimited text file.

    Usage:
        with CsvReader(options) as reader:
            reader.open(path)
            for row in reader:
                ...
    """

    def __init__(self, options: CsvOptions | None = None) -> None:
        self.options = options or CsvOptions()
        self.path: Path | None = None
        self._handle: IO[str] | None = None
        self._records: Iterator[list[str]] | None = None
        self._line = 0
        self.columns = 0  # field count of the last record read

    def _dialect_kwargs(self) -> dict[str, object]:
        opts = self.options
        kwargs: dict[str, object] = {
            "delimiter": opts.separator,
            "quotechar": opts.enclosure,
        }
        if opts.escape == opts.enclosure:
            kwargs["doublequote"] = True
        else:
            kwargs["doublequote"] = False
            kwargs["escapechar"] = opts.escape
        return kwargs

    def open(self, path: Path) -> None:
        """Open (or reopen from the top) the input file.

        Raises:
            SourceOpenError: If the file cannot be opened
        """
        self.close()
        try:
            handle = open(path, "r", encoding=_RAW_ENCODING, newline="")
        except OSError as e:
            raise SourceOpenError(f"failed to open file {path}: {e}") from e
        self.path = Path(path)
        self._handle = handle
        self._records = csv.reader(handle, **self._dialect_kwargs())
        self._line = 0

    def read_header(self) -> int:
        """Header lines are handled by the caller; nothing is consumed here."""
        return 0

    def read_record(self) -> Row | None:
        """Return the next Row, or None at end of input."""
        if self._records is None:
            raise SourceOpenError("file is not open")
        try:
            tokens = next(self._records)
        except StopIteration:
            return None
        except csv.Error as e:
            raise SourceOpenError(f"failed to read {self.path} near line {self._line + 1}: {e}") from e

        self._line += 1
        charset = self.options.force_charset
        values = [decode_field(t, charset) for t in tokens]
        if self._line == 1 and values and values[0].startswith(_UTF8_BOM):
            values[0] = values[0][len(_UTF8_BOM):]
        self.columns = len(values)
        cells = tuple(Cell.from_token(v, self.options.empty_as_null) for v in values)
        return Row(line_number=self._line, cells=cells)

    def skip(self, count: int) -> int:
        """Skip up to ``count`` records; return how many were skipped."""
        skipped = 0
        while skipped < count and self.read_record() is not None:
            skipped += 1
        return skipped

    def __iter__(self) -> Iterator[Row]:
        while True:
            row = self.read_record()
            if row is None:
                return
            yield row

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
        self._handle = None
        self._records = None

    def __enter__(self) -> CsvReader:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()


def count_lines(path: Path) -> int:
    """Count physical lines of a file (progress total).

    ``\\n``, ``\\r\\n`` and a lone ``\\r`` each end a line.
    """
    with open(path, "r", encoding=_RAW_ENCODING, newline="") as f:
        return sum(1 for _ in f)


def preview(path: Path, options: CsvOptions | None = None, nrows: int = 5) -> pd.DataFrame:
    """Read the first rows of a file as strings for display.

    Fields are kept verbatim (no NA conversion); malformed lines are skipped.
    """
    opts = options or CsvOptions()
    encoding = opts.force_charset or "utf-8"
    if _is_utf8_name(encoding):
        encoding = "utf-8-sig"
    kwargs: dict[str, object] = {}
    if opts.escape != opts.enclosure:
        kwargs["escapechar"] = opts.escape
        kwargs["doublequote"] = False
    return pd.read_csv(
        path,
        sep=opts.separator,
        quotechar=opts.enclosure,
        header=None,
        dtype=str,
        keep_default_na=False,
        na_filter=False,
        nrows=nrows,
        encoding=encoding,
        encoding_errors="replace",
        engine="python",
        on_bad_lines="skip",
        **kwargs,
    )
