from __future__ import annotations

import logging
from typing import Any

from psycopg2 import sql

from dolimport.db.backend import InsertError, StorageBackend, identifier
from dolimport.models.cell import Row
from dolimport.models.descriptor import ImportDescriptor
from dolimport.models.import_result import IssueKind, RowResult
from dolimport.services.context import RunContext
from dolimport.services.mapper import FieldMapper, TableAssignment

"""Insertion driver: one INSERT per destination table per row.

Tables are processed in descriptor order, which puts parent tables before
their children. The id generated for each table is kept in the run context
so that later tables of the same row can reference it through a
``lastrowid-<table>`` hidden field.

No transaction spans a row: when a later table fails, earlier inserts of
the same row stay. delete_batch() removes everything of one import key.
"""

__all__ = [
    "IMPORT_KEY_COLUMN",
    "ENTITY_COLUMN",
    "InsertionDriver",
    "delete_batch",
]

logger = logging.getLogger(__name__)

IMPORT_KEY_COLUMN = "import_key"
ENTITY_COLUMN = "entity"


class InsertionDriver:
    def __init__(
        self,
        descriptor: ImportDescriptor,
        backend: StorageBackend,
        context: RunContext,
        mapper: FieldMapper,
    ) -> None:
        self.descriptor = descriptor
        self.backend = backend
        self.context = context
        self.mapper = mapper

    def _has_entity(self, table: str) -> bool:
        cache = self.context.entity_tables
        if table not in cache:
            logger.debug("check if table %s has an entity field", table)
            cache[table] = self.backend.has_column(table, ENTITY_COLUMN)
        return cache[table]

    def _add_hidden_fields(self, assignment: TableAssignment) -> None:
        for hidden in self.descriptor.hidden_for(assignment.alias):
            if hidden.is_user_id:
                assignment.add(hidden.column, self.context.user_id)
                continue
            source_table = hidden.last_row_table
            if source_table is not None:
                # 0 when the source table produced no row yet in this run
                assignment.add(hidden.column, self.context.last_insert_ids.get(source_table, 0))

    def _insert(self, assignment: TableAssignment) -> Any:
        columns = list(assignment.columns)
        values = list(assignment.values)
        columns.append(IMPORT_KEY_COLUMN)
        values.append(self.context.import_key)
        if self._has_entity(assignment.table):
            columns.append(ENTITY_COLUMN)
            values.append(self.context.entity)
        creator = self.descriptor.creators.get(assignment.alias)
        if creator:
            columns.append(creator)
            values.append(self.context.user_id)
        return self.backend.insert(
            assignment.table,
            columns,
            values,
            returning=self.descriptor.primary_key(assignment.table),
        )

    def insert_record(self, row: Row) -> RowResult:
        """Insert one row into every destination table.

        Validation problems are reported in the result, never raised.
        BackendUnavailableError propagates.
        """
        result = RowResult(line_number=row.line_number)

        if row.is_empty:
            result.add_warning(IssueKind.EMPTY_LINE, f"Line {row.line_number}: empty line")
            return result

        for alias, table in self.descriptor.tables.items():
            # computed before mapping so the introspection happens once per table
            self._has_entity(table)
            assignment = self.mapper.map_table(row, alias, self.context)
            result.errors.extend(assignment.issues)

            if not assignment.columns:
                continue
            self._add_hidden_fields(assignment)
            if assignment.failed:
                continue

            try:
                new_id = self._insert(assignment)
            except InsertError as e:
                result.add_error(IssueKind.STORAGE, str(e), table=table)
                logger.debug("line=%d table=%s insert failed: %s", row.line_number, table, e)
                break
            self.context.last_insert_ids[table] = new_id
            result.inserted[table] = new_id

        return result


def delete_batch(descriptor: ImportDescriptor, backend: StorageBackend, import_key: str) -> dict[str, int]:
    """Delete every row stamped with ``import_key`` from the descriptor tables.

    Tables are processed in reverse order so children go before parents.
    Returns table -> deleted row count.
    """
    deleted: dict[str, int] = {}
    for table in reversed(list(descriptor.tables.values())):
        stmt = sql.SQL("DELETE FROM {} WHERE {} = %s").format(
            identifier(table), sql.Identifier(IMPORT_KEY_COLUMN)
        )
        deleted[table] = backend.execute(stmt, (import_key,))
        logger.info("rollback import_key=%s table=%s deleted=%d", import_key, table, deleted[table])
    return deleted
