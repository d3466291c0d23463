from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from dolimport.models.config_models import CodeConfig, CsvOptions, DatabaseConfig, ImportConfig
from dolimport.models.descriptor import (
    ConversionSpec,
    FieldSpec,
    HiddenField,
    ImportDescriptor,
    LoaderSpec,
    ValidationSpec,
    split_target,
)

"""Config and descriptor loaders.

Responsibilities:
- Load YAML run config (config/import.yml) and import descriptors
- Validate them against the JSON schemas shipped in dolimport/config/schemas
- Apply defaults and build the frozen domain dataclasses
"""

logger = logging.getLogger(__name__)

SCHEMA_DIR = Path(__file__).parent / "schemas"
CONFIG_SCHEMA_PATH = SCHEMA_DIR / "import_config.json"
DESCRIPTOR_SCHEMA_PATH = SCHEMA_DIR / "descriptor.json"

# Conversion rules that resolve a natural key through an entity loader
LOOKUP_RULES = frozenset({"fetchidfromcodeid", "fetchidfromref", "fetchidfromcodeorlabel"})


class ConfigError(Exception):
    pass


def _validate_schema(data: dict[str, Any], schema_path: Path, what: str) -> None:
    """Validate YAML data against a JSON schema.

    Raises:
        ConfigError: If the schema file is missing or invalid, or if the data
            fails validation (missing required keys, wrong types, extra keys).
    """
    if not schema_path.exists():
        raise ConfigError(f"{what} schema not found: {schema_path}")

    try:
        schema = json.loads(schema_path.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"{what} validation failed: {e.message}") from e


def _read_yaml(path: Path, what: str) -> dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"{what} file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{what} must be a mapping: {path}")
    return data


def _parse_mapping(raw: dict[Any, str]) -> dict[int, str]:
    """Normalize ``{column: target}`` keys to 1-based ints."""
    mapping: dict[int, str] = {}
    for key, target in raw.items():
        try:
            position = int(key)
        except (TypeError, ValueError):
            raise ConfigError(f"mapping key must be a column number: {key!r}") from None
        if position < 1:
            raise ConfigError(f"mapping column numbers start at 1: {key!r}")
        mapping[position] = target
    return mapping


def load_config(path: Path) -> ImportConfig:
    data = _read_yaml(path, "config")
    _validate_schema(data, CONFIG_SCHEMA_PATH, "config")

    csv_raw = data.get("csv") or {}
    db_raw = data.get("database") or {}
    codes_raw = data.get("codes") or {}
    mapping_raw = data.get("mapping")

    return ImportConfig(
        source_file=data["source_file"],
        descriptor_path=data["descriptor"],
        csv=CsvOptions(
            separator=csv_raw.get("separator", ","),
            enclosure=csv_raw.get("enclosure", '"'),
            escape=csv_raw.get("escape", '"'),
            force_charset=csv_raw.get("force_charset"),
            empty_as_null=csv_raw.get("empty_as_null", False),
        ),
        skip_lines=data.get("skip_lines", 0),
        max_errors=data.get("max_errors"),
        user_id=data.get("user_id", 1),
        entity=data.get("entity", 1),
        import_key=data.get("import_key"),
        mapping=_parse_mapping(mapping_raw) if mapping_raw else None,
        codes=CodeConfig(**codes_raw),
        database=DatabaseConfig(
            host=db_raw.get("host"),
            port=db_raw.get("port"),
            user=db_raw.get("user"),
            password=db_raw.get("password"),
            database=db_raw.get("database"),
            dsn=db_raw.get("dsn"),
        ),
    )


def _parse_validation(raw: Any) -> ValidationSpec:
    if isinstance(raw, str):
        return ValidationSpec.parse(raw)
    if "regex" in raw:
        return ValidationSpec(regex=raw["regex"])
    field, table = raw["exists"].split("@", 1)
    return ValidationSpec(exists_field=field, exists_table=table)


def _parse_conversion(target: str, raw: dict[str, Any], loaders: dict[str, LoaderSpec]) -> ConversionSpec:
    spec = ConversionSpec(
        rule=raw["rule"],
        loader=raw.get("loader"),
        dictionary=raw.get("dict"),
        element=raw.get("element"),
    )
    if spec.rule in LOOKUP_RULES:
        if not spec.loader:
            raise ConfigError(f"field {target}: rule {spec.rule} needs a loader")
        if spec.loader not in loaders:
            raise ConfigError(f"field {target}: unknown loader {spec.loader!r}")
    return spec


def load_descriptor(path: Path, mapping: dict[int, str] | None = None) -> ImportDescriptor:
    """Load an import descriptor.

    Parameters
    ----------
    path: descriptor YAML file
    mapping: source column -> ``alias.column``; overrides the descriptor's own
        ``mapping`` section when given
    """
    data = _read_yaml(path, "descriptor")
    _validate_schema(data, DESCRIPTOR_SCHEMA_PATH, "descriptor")

    tables: dict[str, str] = dict(data["tables"])

    loaders: dict[str, LoaderSpec] = {}
    for name, raw in (data.get("loaders") or {}).items():
        loaders[name] = LoaderSpec(
            name=name,
            table=raw["table"],
            id_column=raw.get("id", "rowid"),
            code_column=raw.get("code", "code"),
            label_column=raw.get("label"),
        )

    field_defs: dict[str, dict[str, Any]] = data["fields"]
    for target in field_defs:
        alias, _ = split_target(target)
        if alias not in tables:
            raise ConfigError(f"field {target}: alias {alias!r} is not a declared table")

    if mapping is None:
        mapping = _parse_mapping(data.get("mapping") or {})
    if not mapping:
        raise ConfigError(f"descriptor {data['code']}: no column mapping")

    seen: set[str] = set()
    fields: list[FieldSpec] = []
    for position in sorted(mapping):
        target = mapping[position]
        if target not in field_defs:
            raise ConfigError(f"column {position}: {target} is not a field of {data['code']}")
        if target in seen:
            raise ConfigError(f"{target} is mapped more than once")
        seen.add(target)

        raw = field_defs[target] or {}
        alias, column = split_target(target)
        example = raw.get("example")
        fields.append(
            FieldSpec(
                position=position,
                alias=alias,
                column=column,
                label=raw.get("label", column),
                required=raw.get("required", False),
                conversion=_parse_conversion(target, raw["conversion"], loaders) if raw.get("conversion") else None,
                validation=_parse_validation(raw["validation"]) if raw.get("validation") else None,
                example=str(example) if example is not None else None,
            )
        )

    hidden: list[HiddenField] = []
    for target, source in (data.get("hidden") or {}).items():
        alias, column = split_target(target)
        if alias not in tables:
            raise ConfigError(f"hidden field {target}: alias {alias!r} is not a declared table")
        hidden.append(HiddenField(alias=alias, column=column, source=source))

    creators = dict(data.get("creators") or {})
    for alias in creators:
        if alias not in tables:
            raise ConfigError(f"creator for unknown alias {alias!r}")

    descriptor = ImportDescriptor(
        code=data["code"],
        label=data.get("label", data["code"]),
        tables=tables,
        fields=tuple(fields),
        hidden_fields=tuple(hidden),
        creators=creators,
        loaders=loaders,
        primary_keys=dict(data.get("primary_keys") or {}),
        max_fields=data.get("max_fields"),
    )
    logger.debug(
        "descriptor=%s tables=%s mapped_fields=%d hidden=%d",
        descriptor.code,
        list(tables.values()),
        len(fields),
        len(hidden),
    )
    return descriptor
