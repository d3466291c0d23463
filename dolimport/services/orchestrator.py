from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

import psycopg2

from ..db.backend import BackendUnavailableError, StorageBackend
from ..delimited.reader import CsvReader, SourceOpenError, count_lines
from ..logging.error_log import FILE_LEVEL, ErrorLogBuffer, ErrorRecord
from ..models.config_models import CsvOptions
from ..models.descriptor import ImportDescriptor
from ..models.import_result import IssueKind, RowResult
from ..models.processing_result import ImportSummary, StatementStatsAccumulator
from ..thirdparty.codes import CodeGenerator, SequentialCodeGenerator
from .context import RunContext
from .insertion import InsertionDriver
from .loaders import EntityLoader, build_loaders
from .mapper import FieldMapper
from .progress import ProgressTracker

"""Import orchestration: Reader -> InsertionDriver, one row at a time.

run_import() opens the source, skips the caller-requested leading lines,
feeds every row to the insertion driver, logs and buffers the errors, and
returns an ImportSummary. Source failures abort the run; row failures never
do (unless max_errors is reached).
"""

logger = logging.getLogger(__name__)


class ProcessingError(Exception):
    """Fatal error that stops the whole run."""


def run_import(
    source: Path,
    descriptor: ImportDescriptor,
    backend: StorageBackend,
    context: RunContext,
    *,
    options: CsvOptions | None = None,
    skip_lines: int = 0,
    max_errors: int | None = None,
    codes: CodeGenerator | None = None,
    loaders: dict[str, EntityLoader] | None = None,
    error_log: ErrorLogBuffer | None = None,
    statement_stats: StatementStatsAccumulator | None = None,
    keep_row_results: bool = True,
) -> ImportSummary:
    """Import one delimited file.

    Args:
        source: file to import
        descriptor: import profile
        backend: storage backend
        context: per-run caches, import key, user and entity
        options: csv options
        skip_lines: leading lines to skip (header rows)
        max_errors: stop requesting rows after this many failed rows
        codes: code generator for the *ifauto rules (default: sequential)
        loaders: entity loaders (default: built from descriptor.loaders)
        error_log: buffer receiving one ErrorRecord per error
        statement_stats: accumulator fed by the backend's metrics callback
        keep_row_results: keep every RowResult in the summary

    Raises:
        ProcessingError: source cannot be opened/read, the backend is gone,
            or a lookup/existence query failed; buffered errors are flushed first
    """
    start_time = datetime.now(UTC)
    error_log = error_log if error_log is not None else ErrorLogBuffer()
    source = Path(source)

    if loaders is None:
        loaders = build_loaders(descriptor.loaders, backend)
    if codes is None:
        codes = SequentialCodeGenerator(backend)
    mapper = FieldMapper(descriptor, backend, loaders=loaders, codes=codes)
    driver = InsertionDriver(descriptor, backend, context, mapper)

    total_rows = 0
    line_number = -1
    success_rows = 0
    failed_rows = 0
    empty_rows = 0
    aborted = False
    inserted_per_table: dict[str, int] = {table: 0 for table in descriptor.tables.values()}
    row_results: list[RowResult] = []

    reader = CsvReader(options)
    try:
        reader.open(source)
        expected = max(count_lines(source) - skip_lines, 0)
        reader.read_header()
        skipped = reader.skip(skip_lines)
        logger.info(
            "import file=%s descriptor=%s import_key=%s skipped_lines=%d",
            source.name, descriptor.code, context.import_key, skipped,
        )

        with ProgressTracker(expected) as progress:
            for row in reader:
                total_rows += 1
                line_number = row.line_number
                result = driver.insert_record(row)

                for table in result.inserted:
                    inserted_per_table[table] = inserted_per_table.get(table, 0) + 1
                for warning in result.warnings:
                    logger.warning("line=%d %s", row.line_number, warning.message)
                for error in result.errors:
                    logger.error(
                        "line=%d table=%s %s %s",
                        row.line_number, error.table or FILE_LEVEL, error.kind.value, error.message,
                    )
                error_log.append_row(source.name, result, context.import_key)

                if result.failed:
                    failed_rows += 1
                elif result.is_empty_line:
                    empty_rows += 1
                else:
                    success_rows += 1
                if keep_row_results:
                    row_results.append(result)

                progress.advance(success=not result.failed)
                progress.set_postfix(ok=success_rows, failed=failed_rows)

                if max_errors is not None and failed_rows >= max_errors:
                    logger.warning("max_errors=%d reached, stopping at line %d", max_errors, row.line_number)
                    aborted = True
                    break
    except SourceOpenError as e:
        error_log.append(
            ErrorRecord.create(
                file=source.name,
                row=-1,
                table=FILE_LEVEL,
                error_type=IssueKind.IO.value,
                message=str(e),
                import_key=context.import_key,
            )
        )
        _flush(error_log)
        raise ProcessingError(str(e)) from e
    except BackendUnavailableError as e:
        _flush(error_log)
        raise ProcessingError(f"database connection lost: {e}") from e
    except psycopg2.Error as e:
        # a lookup or existence query failed (missing dictionary table, bad type)
        message = (getattr(e, "pgerror", None) or str(e)).strip()
        error_log.append(
            ErrorRecord.create(
                file=source.name,
                row=line_number,
                table=FILE_LEVEL,
                error_type=IssueKind.STORAGE.value,
                message=message,
                import_key=context.import_key,
            )
        )
        _flush(error_log)
        raise ProcessingError(f"database query failed at line {line_number}: {message}") from e
    finally:
        reader.close()

    log_path = _flush(error_log)
    if log_path is not None and failed_rows:
        logger.info("error log written to %s", log_path)

    end_time = datetime.now(UTC)
    elapsed_seconds = (end_time - start_time).total_seconds()
    throughput_rps = total_rows / elapsed_seconds if elapsed_seconds > 0 else 0.0
    total_statements, avg_statement, p95_statement = (
        statement_stats.get_stats() if statement_stats is not None else (0, 0.0, 0.0)
    )

    return ImportSummary(
        source_file=source.name,
        import_key=context.import_key,
        total_rows=total_rows,
        success_rows=success_rows,
        failed_rows=failed_rows,
        empty_rows=empty_rows,
        inserted_per_table=inserted_per_table,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=elapsed_seconds,
        throughput_rows_per_sec=throughput_rps,
        aborted=aborted,
        total_statements=total_statements,
        avg_statement_seconds=avg_statement,
        p95_statement_seconds=p95_statement,
        row_results=row_results,
    )


def _flush(error_log: ErrorLogBuffer) -> Path | None:
    try:
        return error_log.flush()
    except OSError as e:
        # the run result stays valid without its error log file
        logger.warning("failed to write error log: %s", e)
        return None
