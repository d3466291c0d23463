from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

"""Per-run mutable state of one import.

Every cache the engine needs lives here and is passed explicitly to the
mapper and the insertion driver. A RunContext belongs to one run; two runs
never share one.
"""

__all__ = [
    "RunContext",
    "new_import_key",
]

IMPORT_KEY_FMT = "%Y%m%d%H%M%S"


def new_import_key(now: datetime | None = None) -> str:
    """Batch identifier stamped on every inserted row (YYYYMMDDHHMMSS, UTC)."""
    return (now or datetime.now(UTC)).strftime(IMPORT_KEY_FMT)


@dataclass
class RunContext:
    import_key: str
    user_id: int
    entity: int = 1
    # (loader, rule, input) -> resolved id, None for a failed lookup
    conversion_cache: dict[tuple[str, str, str], Any] = field(default_factory=dict)
    # (column, table) -> valid values
    fk_cache: dict[tuple[str, str], frozenset[str]] = field(default_factory=dict)
    # table -> most recent generated id in this run
    last_insert_ids: dict[str, Any] = field(default_factory=dict)
    # table -> carries an entity column
    entity_tables: dict[str, bool] = field(default_factory=dict)

    @classmethod
    def create(cls, user_id: int, entity: int = 1, import_key: str | None = None) -> RunContext:
        return cls(import_key=import_key or new_import_key(), user_id=user_id, entity=entity)
