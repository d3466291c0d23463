from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from dolimport.config.loader import ConfigError, load_config, load_descriptor
from dolimport.db.backend import PostgresBackend
from dolimport.delimited.reader import preview
from dolimport.logging.error_log import ErrorLogBuffer
from dolimport.logging.init import log_summary, set_debug, setup_logging
from dolimport.models.config_models import DatabaseConfig, ImportConfig
from dolimport.models.processing_result import StatementStatsAccumulator
from dolimport.services.context import RunContext
from dolimport.services.example import write_example
from dolimport.services.insertion import delete_batch
from dolimport.services.orchestrator import ProcessingError, run_import
from dolimport.services.summary import render_summary_line
from dolimport.thirdparty.codes import SequentialCodeGenerator

"""CLI entrypoint.

Flow:
- Load .env, then the run config and the import descriptor
- --write-example / --inspect-data: no database needed, exit after output
- Connect, then either delete a previous batch (--rollback-import) or run
  the import and print the SUMMARY line

Exit codes: 0 every row imported, 2 some rows failed (or max_errors hit),
1 fatal (config, source file, database connection).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

DEFAULT_CONFIG_PATH = Path("config/import.yml")


def _resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Connection string; environment (.env included) wins over the config.

    DATABASE_URL / PGDSN are used as a whole, otherwise the libpq variables
    PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE are combined with the
    database section of the config.
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _db_connection(cfg: ImportConfig, simulate: bool = False) -> Iterator[Any]:
    """Yield a psycopg2 connection.

    Normal runs use autocommit: every INSERT is final on its own. A simulated
    run keeps one transaction open and rolls it back at the end.
    """
    conn = psycopg2.connect(_resolve_dsn(cfg.database))
    try:
        conn.autocommit = not simulate
        yield conn
        if simulate and not conn.closed:
            conn.rollback()
    finally:
        if not conn.closed:
            conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env; its values take precedence over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="dolimport", description="Delimited text -> PostgreSQL import engine")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Run config (YAML)")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--simulate", action="store_true", help="Run the import and roll everything back")
    p.add_argument("--inspect-data", action="store_true", help="Print the first rows of the source file then exit")
    p.add_argument("--write-example", type=Path, metavar="PATH", help="Write an example input file then exit")
    p.add_argument("--rollback-import", metavar="KEY", help="Delete the rows of a previous import batch then exit")
    return p.parse_args(argv)


def _inspect_data(cfg: ImportConfig) -> int:
    source = Path(cfg.source_file)
    if not source.exists():
        print(f"inspect: file not found: {source}")
        return EXIT_FATAL
    df = preview(source, cfg.csv)
    print(f"FILE: {source.name} columns={df.shape[1]}")
    for position, row in enumerate(df.itertuples(index=False), start=1):
        print(f"  line {position}: {list(row)}")
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None only: an empty list must not pull pytest's own argv in
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    try:
        cfg = load_config(args.config)
        descriptor = load_descriptor(Path(cfg.descriptor_path), mapping=cfg.mapping)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.write_example:
        path = write_example(descriptor, args.write_example, cfg.csv.separator)
        logger.info(f"example file written to {path}")
        return EXIT_SUCCESS_ALL

    if args.inspect_data:
        return _inspect_data(cfg)

    source = Path(cfg.source_file)
    if not args.rollback_import and not source.exists():
        logger.error(f"source file not found: {source}")
        return EXIT_FATAL

    stats = StatementStatsAccumulator()
    try:
        with _db_connection(cfg, simulate=args.simulate) as conn:
            backend = PostgresBackend(conn, metrics_callback=lambda m: stats.add_statement_time(m.elapsed_seconds))

            if args.rollback_import:
                deleted = delete_batch(descriptor, backend, args.rollback_import)
                for table, count in deleted.items():
                    logger.info(f"rollback import_key={args.rollback_import} table={table} deleted={count}")
                return EXIT_SUCCESS_ALL

            context = RunContext.create(cfg.user_id, cfg.entity, cfg.import_key)
            logger.info(f"Importing {source} with descriptor {descriptor.code} (simulate={args.simulate})")
            try:
                summary = run_import(
                    source,
                    descriptor,
                    backend,
                    context,
                    options=cfg.csv,
                    skip_lines=cfg.skip_lines,
                    max_errors=cfg.max_errors,
                    codes=SequentialCodeGenerator(backend, cfg.codes),
                    error_log=ErrorLogBuffer(),
                    statement_stats=stats,
                    keep_row_results=False,
                )
            except ProcessingError as e:
                logger.error(f"processing: {e}")
                return EXIT_FATAL
    except psycopg2.Error as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL

    for table, count in summary.inserted_per_table.items():
        logger.info(f"table={table} inserted={count}")
    if args.simulate:
        logger.info("simulation: all changes rolled back")

    # log_summary adds the label itself
    log_summary(render_summary_line(summary)[len("SUMMARY "):])

    if summary.failed_rows > 0 or summary.aborted:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
