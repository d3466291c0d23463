from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol

from psycopg2 import sql

from dolimport.db.backend import StorageBackend, identifier
from dolimport.models.descriptor import LoaderSpec

"""Entity loaders used by lookup conversion rules.

A loader turns a natural key (code, reference or label) into the id of a
row of a dictionary or business table. Loaders are built once per run from
the descriptor's ``loaders`` section.
"""

logger = logging.getLogger(__name__)


class EntityLoader(Protocol):
    def fetch(self, code: str | None = None, label: str | None = None) -> Any | None: ...


class TableLoader:
    """Look up ``id_column`` of ``table`` by code, or by label."""

    def __init__(self, spec: LoaderSpec, backend: StorageBackend) -> None:
        self.spec = spec
        self.backend = backend

    def _fetch_by(self, column: str, value: str) -> Any | None:
        stmt = sql.SQL("SELECT {} FROM {} WHERE {} = %s").format(
            sql.Identifier(self.spec.id_column),
            identifier(self.spec.table),
            sql.Identifier(column),
        )
        rows = self.backend.query(stmt, (value,))
        if not rows:
            return None
        if len(rows) > 1:
            logger.warning(
                "loader=%s %s=%r matches %d rows, using the first",
                self.spec.name, column, value, len(rows),
            )
        return rows[0][0]

    def fetch(self, code: str | None = None, label: str | None = None) -> Any | None:
        if code:
            return self._fetch_by(self.spec.code_column, code)
        if label:
            if not self.spec.label_column:
                return None
            return self._fetch_by(self.spec.label_column, label)
        return None


def build_loaders(specs: Mapping[str, LoaderSpec], backend: StorageBackend) -> dict[str, EntityLoader]:
    return {name: TableLoader(spec, backend) for name, spec in specs.items()}
