from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from psycopg2 import sql

from dolimport.db.backend import StorageBackend, identifier

"""SQL access to the thirdparty table (llx_societe).

Public field names are mapped onto the table's column names; every query is
restricted to one entity.
"""

__all__ = [
    "SOCIETE_TABLE",
    "FIELD_COLUMNS",
    "ThirdpartyRepository",
]

SOCIETE_TABLE = "llx_societe"

# public field -> column
FIELD_COLUMNS: dict[str, str] = {
    "name": "nom",
    "name_alias": "name_alias",
    "client": "client",
    "fournisseur": "fournisseur",
    "code_client": "code_client",
    "code_fournisseur": "code_fournisseur",
    "code_compta": "code_compta",
    "code_compta_fournisseur": "code_compta_fournisseur",
    "email": "email",
    "phone": "phone",
    "fax": "fax",
    "url": "url",
    "address": "address",
    "zip": "zip",
    "town": "town",
    "country_id": "fk_pays",
    "tva_intra": "tva_intra",
    "note_public": "note_public",
    "note_private": "note_private",
    "status": "status",
}

# list mode -> allowed values of the client column
MODE_CLIENT_VALUES: dict[int, tuple[int, ...]] = {
    1: (1, 3),  # customers
    2: (2, 3),  # prospects
    3: (0,),  # neither customer nor prospect
}


class ThirdpartyRepository:
    def __init__(self, backend: StorageBackend, entity: int = 1, table: str = SOCIETE_TABLE) -> None:
        self.backend = backend
        self.entity = entity
        self.table = table

    def _select_columns(self) -> sql.Composable:
        cols = [sql.Identifier("rowid")] + [sql.Identifier(c) for c in FIELD_COLUMNS.values()]
        cols.append(sql.Identifier("entity"))
        return sql.SQL(", ").join(cols)

    def _to_record(self, row: tuple[Any, ...]) -> dict[str, Any]:
        record: dict[str, Any] = {"id": row[0]}
        for i, name in enumerate(FIELD_COLUMNS, start=1):
            record[name] = row[i]
        record["entity"] = row[-1]
        return record

    def fetch(self, thirdparty_id: int) -> dict[str, Any] | None:
        stmt = sql.SQL("SELECT {} FROM {} WHERE rowid = %s AND entity = %s").format(
            self._select_columns(), identifier(self.table)
        )
        rows = self.backend.query(stmt, (thirdparty_id, self.entity))
        return self._to_record(rows[0]) if rows else None

    def list_ids(
        self,
        mode: int,
        sort_column: str,
        descending: bool,
        limit: int,
        offset: int,
    ) -> list[int]:
        conditions = [sql.SQL("entity = %s")]
        params: list[Any] = [self.entity]
        client_values = MODE_CLIENT_VALUES.get(mode)
        if client_values:
            conditions.append(
                sql.SQL("client IN ({})").format(sql.SQL(", ").join(sql.Placeholder() * len(client_values)))
            )
            params.extend(client_values)

        stmt = sql.SQL("SELECT rowid FROM {} WHERE {} ORDER BY {} {}").format(
            identifier(self.table),
            sql.SQL(" AND ").join(conditions),
            sql.Identifier(sort_column),
            sql.SQL("DESC" if descending else "ASC"),
        )
        if limit:
            stmt = stmt + sql.SQL(" LIMIT %s OFFSET %s")
            params.extend([limit, offset])
        return [r[0] for r in self.backend.query(stmt, params)]

    def insert(self, values: dict[str, Any], user_id: int) -> Any:
        columns = list(values) + ["entity", "fk_user_creat", "datec"]
        params = list(values.values()) + [self.entity, user_id, datetime.now(UTC)]
        return self.backend.insert(self.table, columns, params, returning="rowid")

    def update(self, thirdparty_id: int, values: dict[str, Any]) -> int:
        if not values:
            return 0
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(c)) for c in values
        )
        stmt = sql.SQL("UPDATE {} SET {} WHERE rowid = %s AND entity = %s").format(
            identifier(self.table), assignments
        )
        return self.backend.execute(stmt, list(values.values()) + [thirdparty_id, self.entity])

    def delete(self, thirdparty_id: int) -> int:
        stmt = sql.SQL("DELETE FROM {} WHERE rowid = %s AND entity = %s").format(identifier(self.table))
        return self.backend.execute(stmt, (thirdparty_id, self.entity))
