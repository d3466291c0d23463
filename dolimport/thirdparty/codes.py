from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol

from psycopg2 import sql

from dolimport.db.backend import StorageBackend, identifier
from dolimport.models.config_models import CodeConfig

"""Thirdparty code generation.

Customer and supplier codes follow the ``{prefix}{yymm}-{nnnn}`` numbering
(CU2610-0001, SU2610-0001): the counter restarts every month and continues
from the highest code already stored for that month.

Accounting codes are the configured prefix followed by the thirdparty code.
Without a prefix no accounting code is generated (empty string), which the
import engine stores as NULL.
"""

__all__ = [
    "CodeGenerator",
    "SequentialCodeGenerator",
]

SOCIETE_TABLE = "llx_societe"


class CodeGenerator(Protocol):
    def customer_code(self) -> str: ...

    def supplier_code(self) -> str: ...

    def customer_accounting_code(self, code: str | None = None) -> str: ...

    def supplier_accounting_code(self, code: str | None = None) -> str: ...


class SequentialCodeGenerator:
    def __init__(
        self,
        backend: StorageBackend,
        config: CodeConfig | None = None,
        table: str = SOCIETE_TABLE,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.backend = backend
        self.config = config or CodeConfig()
        self.table = table
        self._clock = clock or (lambda: datetime.now(UTC))

    def _next_code(self, column: str, prefix: str) -> str:
        if not prefix:
            return ""
        stem = f"{prefix}{self._clock().strftime('%y%m')}-"
        stmt = sql.SQL("SELECT MAX({col}) FROM {table} WHERE {col} LIKE %s").format(
            col=sql.Identifier(column),
            table=identifier(self.table),
        )
        rows = self.backend.query(stmt, (stem + "%",))
        current = rows[0][0] if rows else None
        counter = 0
        if current:
            suffix = str(current)[len(stem):]
            if suffix.isdigit():
                counter = int(suffix)
        return f"{stem}{counter + 1:04d}"

    def customer_code(self) -> str:
        return self._next_code("code_client", self.config.customer_prefix)

    def supplier_code(self) -> str:
        return self._next_code("code_fournisseur", self.config.supplier_prefix)

    def customer_accounting_code(self, code: str | None = None) -> str:
        prefix = self.config.customer_accounting_prefix
        return f"{prefix}{code or ''}" if prefix else ""

    def supplier_accounting_code(self, code: str | None = None) -> str:
        prefix = self.config.supplier_accounting_prefix
        return f"{prefix}{code or ''}" if prefix else ""
