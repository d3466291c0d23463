from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

"""Import descriptor domain models.

An ImportDescriptor is the static profile of one import: which tables are
written (in dependency order), which source column feeds which
``alias.column`` target, and the conversion/validation/hidden-field rules.
It is immutable for the whole run.
"""

__all__ = [
    "ConversionSpec",
    "ValidationSpec",
    "FieldSpec",
    "HiddenField",
    "LoaderSpec",
    "ImportDescriptor",
    "split_target",
]

HIDDEN_USER_ID = "user->id"
HIDDEN_LAST_ROW_ID_PREFIX = "lastrowid-"


def split_target(target: str) -> tuple[str, str]:
    """Split ``alias.column`` into (alias, column)."""
    if "." not in target:
        raise ValueError(f"target must be 'alias.column': {target!r}")
    alias, column = target.split(".", 1)
    return alias, column


@dataclass(frozen=True)
class ConversionSpec:
    """Conversion rule attached to a field.

    loader names an entry of ImportDescriptor.loaders (lookup rules only).
    dictionary / element are display names used in FOREIGN_KEY messages.
    """
    rule: str
    loader: str | None = None
    dictionary: str | None = None
    element: str | None = None


@dataclass(frozen=True)
class ValidationSpec:
    """Either a regex or a ``field@table`` existence check."""
    regex: str | None = None
    exists_field: str | None = None
    exists_table: str | None = None

    @staticmethod
    def parse(raw: str) -> ValidationSpec:
        # "rowid@llx_c_typent" -> existence check, anything else -> regex
        m = re.match(r"^(.*)@(.*)$", raw)
        if m:
            return ValidationSpec(exists_field=m.group(1), exists_table=m.group(2))
        return ValidationSpec(regex=raw)

    @property
    def is_existence_check(self) -> bool:
        return self.exists_table is not None


@dataclass(frozen=True)
class FieldSpec:
    position: int  # 1-based source column
    alias: str
    column: str
    label: str
    required: bool = False
    conversion: ConversionSpec | None = None
    validation: ValidationSpec | None = None
    example: str | None = None

    @property
    def target(self) -> str:
        return f"{self.alias}.{self.column}"


@dataclass(frozen=True)
class HiddenField:
    """Derived column added to every insert of its alias.

    source is ``user->id`` or ``lastrowid-<table>``.
    """
    alias: str
    column: str
    source: str

    @property
    def last_row_table(self) -> str | None:
        if self.source.startswith(HIDDEN_LAST_ROW_ID_PREFIX):
            return self.source[len(HIDDEN_LAST_ROW_ID_PREFIX):]
        return None

    @property
    def is_user_id(self) -> bool:
        return self.source == HIDDEN_USER_ID


@dataclass(frozen=True)
class LoaderSpec:
    """Dictionary/entity table used by lookup conversion rules."""
    name: str
    table: str
    id_column: str = "rowid"
    code_column: str = "code"
    label_column: str | None = None


@dataclass(frozen=True)
class ImportDescriptor:
    code: str
    label: str
    tables: Mapping[str, str]  # alias -> table name, insertion order
    fields: tuple[FieldSpec, ...]  # sorted by position
    hidden_fields: tuple[HiddenField, ...] = ()
    creators: Mapping[str, str] = field(default_factory=dict)  # alias -> creator column
    loaders: Mapping[str, LoaderSpec] = field(default_factory=dict)
    primary_keys: Mapping[str, str] = field(default_factory=dict)  # table -> pk column
    max_fields: int | None = None

    def __post_init__(self) -> None:
        # read-only views; the descriptor is shared by every row of the run
        for name in ("tables", "creators", "loaders", "primary_keys"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    def fields_for(self, alias: str) -> list[FieldSpec]:
        """Mapped fields of one alias, ascending source column, within max_fields."""
        return [
            f for f in self.fields
            if f.alias == alias and (self.max_fields is None or f.position <= self.max_fields)
        ]

    def hidden_for(self, alias: str) -> list[HiddenField]:
        return [h for h in self.hidden_fields if h.alias == alias]

    def primary_key(self, table: str) -> str:
        return self.primary_keys.get(table, "rowid")
