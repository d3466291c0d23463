from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

"""Per-row import result models.

Every anomaly found while inserting one input row is surfaced as an Issue
tagged with a kind. Warnings never block insertion; errors block the insert
of the destination table they belong to.
"""

__all__ = [
    "IssueKind",
    "Issue",
    "RowResult",
]


class IssueKind(str, Enum):
    EMPTY_LINE = "EMPTY_LINE"  # warning
    NOT_NULL = "NOT_NULL"  # missing mandatory value
    FOREIGN_KEY = "FOREIGN_KEY"  # lookup or existence check failed
    REGEX = "REGEX"  # pattern mismatch
    STORAGE = "STORAGE"  # statement failed in the backend
    IO = "IO"  # source open/read failure


@dataclass(frozen=True)
class Issue:
    kind: IssueKind
    message: str
    table: str | None = None
    column: str | None = None


@dataclass
class RowResult:
    """Warnings and errors accumulated for one input row.

    inserted maps table name -> generated id for each successful insert, in
    insertion order. Rows already inserted stay even when a later table of
    the same row fails.
    """
    line_number: int
    warnings: list[Issue] = field(default_factory=list)
    errors: list[Issue] = field(default_factory=list)
    inserted: dict[str, int | None] = field(default_factory=dict)

    @property
    def status(self) -> int:
        # the driver always reports a non-negative status; details are in errors
        return 1

    @property
    def failed(self) -> bool:
        return bool(self.errors)

    @property
    def is_empty_line(self) -> bool:
        return any(w.kind is IssueKind.EMPTY_LINE for w in self.warnings)

    def add_error(self, kind: IssueKind, message: str, table: str | None = None,
                  column: str | None = None) -> Issue:
        issue = Issue(kind=kind, message=message, table=table, column=column)
        self.errors.append(issue)
        return issue

    def add_warning(self, kind: IssueKind, message: str) -> Issue:
        issue = Issue(kind=kind, message=message)
        self.warnings.append(issue)
        return issue
