from __future__ import annotations

import logging
import re
from typing import Protocol

from dolimport.config.loader import ConfigError
from dolimport.db.backend import StorageBackend
from dolimport.models.descriptor import FieldSpec, ValidationSpec
from dolimport.models.import_result import IssueKind
from dolimport.services.context import RunContext

"""Validation rules applied after conversion.

- regex: case-insensitive search of the pattern in the value
- field@table: the value must exist in column ``field`` of ``table``; the
  distinct values are loaded once per run into the context's fk_cache
"""

logger = logging.getLogger(__name__)


class Validator(Protocol):
    def check(self, value: str, field: FieldSpec, context: RunContext) -> tuple[IssueKind, str] | None: ...


class RegexValidator:
    def __init__(self, pattern: str) -> None:
        self.pattern = pattern
        try:
            self._compiled = re.compile(pattern, re.IGNORECASE)
        except re.error as e:
            raise ConfigError(f"invalid validation regex {pattern!r}: {e}") from e

    def check(self, value: str, field: FieldSpec, context: RunContext) -> tuple[IssueKind, str] | None:
        if self._compiled.search(value):
            return None
        return (
            IssueKind.REGEX,
            f"Column {field.position}: value '{value}' does not match {self.pattern}",
        )


class ExistsValidator:
    def __init__(self, column: str, table: str, backend: StorageBackend) -> None:
        self.column = column
        self.table = table
        self.backend = backend

    def _values(self, context: RunContext) -> frozenset[str]:
        key = (self.column, self.table)
        if key not in context.fk_cache:
            context.fk_cache[key] = frozenset(self.backend.column_values(self.column, self.table))
            logger.debug("loaded %d values of %s@%s", len(context.fk_cache[key]), self.column, self.table)
        return context.fk_cache[key]

    def check(self, value: str, field: FieldSpec, context: RunContext) -> tuple[IssueKind, str] | None:
        if value in self._values(context):
            return None
        return (
            IssueKind.FOREIGN_KEY,
            f"Column {field.position}: value '{value}' not found in field '{self.column}' of table {self.table}",
        )


def build_validator(spec: ValidationSpec, backend: StorageBackend) -> Validator:
    if spec.is_existence_check:
        return ExistsValidator(spec.exists_field or "", spec.exists_table or "", backend)
    return RegexValidator(spec.regex or "")
