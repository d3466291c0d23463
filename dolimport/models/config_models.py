from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the CSV import tool.

These are produced by dolimport.config.loader from config/import.yml after
JSON schema validation.
"""


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class CsvOptions:
    """Delimited text options.

    escape equal to enclosure means doubled quotes ("") are the escape.
    force_charset None means per-field UTF-8 / ISO-8859-1 auto detection.
    """
    separator: str = ","
    enclosure: str = '"'
    escape: str = '"'
    force_charset: str | None = None
    empty_as_null: bool = False


@dataclass(frozen=True)
class CodeConfig:
    """Prefixes used by the thirdparty code generator.

    Empty accounting prefixes mean "no accounting code" (stored as NULL).
    """
    customer_prefix: str = "CU"
    supplier_prefix: str = "SU"
    customer_accounting_prefix: str = ""
    supplier_accounting_prefix: str = ""


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object of one import run."""
    source_file: str  # delimited text file to import
    descriptor_path: str  # import profile (YAML)
    csv: CsvOptions = field(default_factory=CsvOptions)
    skip_lines: int = 0  # leading lines to skip (header handling is caller-controlled)
    max_errors: int | None = None  # stop after this many failed rows
    user_id: int = 1  # operating user stamped into user->id hidden fields
    entity: int = 1  # active partition id for tables with an entity column
    import_key: str | None = None  # batch identifier; generated when missing
    mapping: dict[int, str] | None = None  # overrides the descriptor mapping
    codes: CodeConfig = field(default_factory=CodeConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
