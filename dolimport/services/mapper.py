from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from dolimport.db.backend import StorageBackend
from dolimport.models.cell import Presence, Row
from dolimport.models.descriptor import ImportDescriptor
from dolimport.models.import_result import Issue, IssueKind
from dolimport.services.context import RunContext
from dolimport.services.conversion import Converter, build_converter
from dolimport.services.loaders import EntityLoader
from dolimport.services.validation import Validator, build_validator
from dolimport.thirdparty.codes import CodeGenerator

"""Field mapper: one Row + one destination table -> column/value pairs.

Per mapped field of the table, in ascending source column order:
1. resolve the raw value (only PRESENT cells carry one)
2. mandatory check (NOT_NULL); a failed field skips conversion/validation
3. conversion rule
4. validation rule (REGEX / FOREIGN_KEY), skipped for empty values
5. emit the value to bind: converted text, NULL for absent, '' for blank
"""

__all__ = [
    "TableAssignment",
    "FieldMapper",
    "emit_value",
]

logger = logging.getLogger(__name__)


def emit_value(value: str, presence: Presence) -> str | None:
    """Value bound for one column.

    A non-empty value is stored as is, so a deliberate "0" is never NULL.
    An empty value is NULL when the cell was absent, '' when it was blank.
    """
    if value != "":
        return value
    if presence is Presence.ABSENT:
        return None
    return ""


@dataclass
class TableAssignment:
    alias: str
    table: str
    columns: list[str] = field(default_factory=list)
    values: list[Any] = field(default_factory=list)
    issues: list[Issue] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return bool(self.issues)

    def add(self, column: str, value: Any) -> None:
        self.columns.append(column)
        self.values.append(value)


class FieldMapper:
    """Maps rows onto the tables of one descriptor.

    Converters and validators are resolved here, once, from the descriptor.
    """

    def __init__(
        self,
        descriptor: ImportDescriptor,
        backend: StorageBackend,
        loaders: dict[str, EntityLoader] | None = None,
        codes: CodeGenerator | None = None,
    ) -> None:
        self.descriptor = descriptor
        self._converters: dict[str, Converter] = {}
        self._validators: dict[str, Validator] = {}
        for f in descriptor.fields:
            if f.conversion is not None:
                self._converters[f.target] = build_converter(f.conversion, loaders or {}, codes)
            if f.validation is not None:
                self._validators[f.target] = build_validator(f.validation, backend)

    def map_table(self, row: Row, alias: str, context: RunContext) -> TableAssignment:
        table = self.descriptor.tables[alias]
        result = TableAssignment(alias=alias, table=table)

        for f in self.descriptor.fields_for(alias):
            cell = row.cell(f.position)
            presence = cell.presence
            value = cell.value if cell.is_present else ""

            if f.required and value == "":
                result.issues.append(
                    Issue(
                        kind=IssueKind.NOT_NULL,
                        message=f"Column {f.position}: mandatory value missing for {f.label}",
                        table=table,
                        column=f.column,
                    )
                )
            else:
                converter = self._converters.get(f.target)
                conversion_failed = False
                if converter is not None:
                    converted = converter.convert(value, f, context)
                    value = converted.value
                    if converted.force_absent:
                        presence = Presence.ABSENT
                    if converted.error:
                        conversion_failed = True
                        result.issues.append(
                            Issue(IssueKind.FOREIGN_KEY, converted.error, table=table, column=f.column)
                        )

                validator = self._validators.get(f.target)
                if validator is not None and value != "" and not conversion_failed:
                    problem = validator.check(value, f, context)
                    if problem is not None:
                        kind, message = problem
                        result.issues.append(Issue(kind, message, table=table, column=f.column))

            result.add(f.column, emit_value(value, presence))

        if result.failed:
            logger.debug(
                "line=%d table=%s issues=%s",
                row.line_number,
                table,
                [i.kind.value for i in result.issues],
            )
        return result
