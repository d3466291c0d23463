from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from dolimport.config.loader import ConfigError
from dolimport.models.descriptor import ConversionSpec, FieldSpec
from dolimport.services.context import RunContext
from dolimport.services.loaders import EntityLoader
from dolimport.thirdparty.codes import CodeGenerator

"""Conversion rules applied to a field value before validation.

Each rule name of a descriptor maps to one Converter implementation. The
mapping is resolved once, when the field mapper is built, never per row.

Rules:
- fetchidfromcodeid / fetchidfromref / fetchidfromcodeorlabel: turn a code
  or reference into an id through an entity loader
- zeroifnull: empty value becomes "0"
- get{customer,supplier}code{,accountancycode}ifauto: "auto" is replaced by
  a generated code; an empty result is stored as NULL
- anything else: value passes through unchanged
"""

__all__ = [
    "Converted",
    "Converter",
    "build_converter",
]

logger = logging.getLogger(__name__)

_NUMERIC_RE = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")
_ID_PREFIX_RE = re.compile(r"^id:", re.IGNORECASE)
_ID_OR_REF_PREFIX_RE = re.compile(r"^(id|ref):", re.IGNORECASE)


@dataclass(frozen=True)
class Converted:
    value: str
    force_absent: bool = False  # store NULL even if the cell was blank
    error: str | None = None  # FOREIGN_KEY message when a lookup failed


class Converter(Protocol):
    def convert(self, value: str, field: FieldSpec, context: RunContext) -> Converted: ...


class Passthrough:
    def __init__(self, rule: str | None = None) -> None:
        self.rule = rule

    def convert(self, value: str, field: FieldSpec, context: RunContext) -> Converted:
        return Converted(value)


class ZeroIfNull:
    def convert(self, value: str, field: FieldSpec, context: RunContext) -> Converted:
        return Converted(value if value else "0")


def is_numeric(value: str) -> bool:
    return bool(_NUMERIC_RE.match(value))


class LookupConverter:
    """Resolve a code/ref into an id.

    ``id:`` forces the value to be an id, ``ref:`` forces a natural key.
    Without a prefix, numeric values are ids and everything else is a key.
    """

    def __init__(self, spec: ConversionSpec, loader: EntityLoader) -> None:
        self.spec = spec
        self.loader = loader
        self.or_label = spec.rule == "fetchidfromcodeorlabel"

    def _not_found(self, value: str, field: FieldSpec) -> str:
        if self.spec.dictionary:
            return (
                f"Column {field.position}: value '{value}' not found in field 'code'"
                f" of dictionary {self.spec.dictionary}"
            )
        if self.spec.element:
            return f"Column {field.position}: reference '{value}' not found in {self.spec.element}"
        return f"Column {field.position}: value '{value}' not found"

    def convert(self, value: str, field: FieldSpec, context: RunContext) -> Converted:
        is_ref = value != "" and not is_numeric(value) and not _ID_PREFIX_RE.match(value)
        value = _ID_OR_REF_PREFIX_RE.sub("", value)
        if not is_ref:
            return Converted(value)

        key = (self.spec.loader or "", self.spec.rule, value)
        if key in context.conversion_cache:
            found = context.conversion_cache[key]
        else:
            found = self.loader.fetch(code=value)
            if found is None and self.or_label:
                found = self.loader.fetch(label=value)
            context.conversion_cache[key] = found
            logger.debug("lookup loader=%s value=%r -> %r", self.spec.loader, value, found)

        if found is None:  # id 0 is a valid result
            return Converted(value, error=self._not_found(value, field))
        return Converted(str(found))


class AutoCodeConverter:
    def __init__(self, produce: Callable[[], str]) -> None:
        self.produce = produce

    def convert(self, value: str, field: FieldSpec, context: RunContext) -> Converted:
        if value.lower() == "auto":
            value = self.produce() or ""
        return Converted(value, force_absent=not value)


def build_converter(
    spec: ConversionSpec,
    loaders: dict[str, EntityLoader],
    codes: CodeGenerator | None,
) -> Converter:
    rule = spec.rule
    if rule in ("fetchidfromcodeid", "fetchidfromref", "fetchidfromcodeorlabel"):
        if spec.loader not in loaders:
            raise ConfigError(f"rule {rule}: unknown loader {spec.loader!r}")
        return LookupConverter(spec, loaders[spec.loader])
    if rule == "zeroifnull":
        return ZeroIfNull()

    auto_rules: dict[str, Callable[[CodeGenerator], Callable[[], str]]] = {
        "getcustomercodeifauto": lambda c: c.customer_code,
        "getsuppliercodeifauto": lambda c: c.supplier_code,
        "getcustomeraccountancycodeifauto": lambda c: c.customer_accounting_code,
        "getsupplieraccountancycodeifauto": lambda c: c.supplier_accounting_code,
    }
    if rule in auto_rules:
        if codes is None:
            raise ConfigError(f"rule {rule} needs a code generator")
        return AutoCodeConverter(auto_rules[rule](codes))

    logger.warning("unknown conversion rule %r, values pass through unchanged", rule)
    return Passthrough(rule)
