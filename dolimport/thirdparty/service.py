from __future__ import annotations

import logging
from typing import Any

import psycopg2

from dolimport.db.backend import BackendUnavailableError, InsertError, StorageBackend
from dolimport.thirdparty.codes import CodeGenerator
from dolimport.thirdparty.repository import FIELD_COLUMNS, ThirdpartyRepository

"""Thirdparty CRUD service.

Errors are reported as ThirdpartyError with an HTTP-like status:
400 bad input, 404 not found, 500 storage rejected the change,
503 the list query failed.
"""

__all__ = [
    "ThirdpartyError",
    "ThirdpartyService",
    "MODE_ALL",
    "MODE_CUSTOMERS",
    "MODE_PROSPECTS",
    "MODE_OTHERS",
]

logger = logging.getLogger(__name__)

MODE_ALL = 0
MODE_CUSTOMERS = 1
MODE_PROSPECTS = 2
MODE_OTHERS = 3

# "s." is the alias of llx_societe in sort expressions
SORT_FIELDS: dict[str, str] = {
    "s.rowid": "rowid",
    "s.nom": "nom",
    "s.name_alias": "name_alias",
    "s.datec": "datec",
    "s.tms": "tms",
    "s.code_client": "code_client",
    "s.code_fournisseur": "code_fournisseur",
    "s.town": "town",
    "s.zip": "zip",
    "s.email": "email",
    "s.client": "client",
    "s.status": "status",
}

AUTO_CODE = "auto"


class ThirdpartyError(Exception):
    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message

    def __str__(self) -> str:
        return f"{self.status} {self.message}"


class ThirdpartyService:
    def __init__(
        self,
        backend: StorageBackend,
        entity: int = 1,
        mail_required: bool = False,
        codes: CodeGenerator | None = None,
    ) -> None:
        self.repository = ThirdpartyRepository(backend, entity)
        self.mail_required = mail_required
        self.codes = codes

    @property
    def mandatory_fields(self) -> list[str]:
        fields = ["name"]
        if self.mail_required:
            fields.append("email")
        return fields

    def get(self, thirdparty_id: int) -> dict[str, Any]:
        record = self.repository.fetch(thirdparty_id)
        if record is None:
            raise ThirdpartyError(404, "Thirdparty not found")
        return record

    def list(
        self,
        mode: int = MODE_ALL,
        sortfield: str = "s.rowid",
        sortorder: str = "ASC",
        limit: int = 0,
        page: int = 0,
    ) -> list[dict[str, Any]]:
        """List thirdparties of the active entity.

        mode: 0 all, 1 customers, 2 prospects, 3 neither customer nor prospect
        """
        if mode not in (MODE_ALL, MODE_CUSTOMERS, MODE_PROSPECTS, MODE_OTHERS):
            raise ThirdpartyError(400, f"Invalid mode {mode}")
        sort_column = SORT_FIELDS.get(sortfield)
        if sort_column is None:
            raise ThirdpartyError(400, f"Invalid sort field {sortfield}")
        order = sortorder.upper()
        if order not in ("ASC", "DESC"):
            raise ThirdpartyError(400, f"Invalid sort order {sortorder}")
        if limit < 0:
            raise ThirdpartyError(400, f"Invalid limit {limit}")
        offset = limit * max(page, 0)

        try:
            ids = self.repository.list_ids(mode, sort_column, order == "DESC", limit, offset)
            records = [self.repository.fetch(i) for i in ids]
        except (psycopg2.Error, BackendUnavailableError) as e:
            logger.error("thirdparty list failed: %s", e)
            raise ThirdpartyError(503, f"Error when retrieving thirdparty list: {e}") from e

        records = [r for r in records if r is not None]
        if not records:
            raise ThirdpartyError(404, "Thirdparties not found")
        return records

    def list_customers(self, **kwargs: Any) -> list[dict[str, Any]]:
        return self.list(MODE_CUSTOMERS, **kwargs)

    def list_prospects(self, **kwargs: Any) -> list[dict[str, Any]]:
        return self.list(MODE_PROSPECTS, **kwargs)

    def list_others(self, **kwargs: Any) -> list[dict[str, Any]]:
        return self.list(MODE_OTHERS, **kwargs)

    def create(self, data: dict[str, Any], user_id: int) -> Any:
        """Create a thirdparty and return its id."""
        self._check_mandatory(data)
        values = self._to_columns(data)
        values = self._generate_codes(values)
        try:
            new_id = self.repository.insert(values, user_id)
        except InsertError as e:
            raise ThirdpartyError(500, f"Error creating thirdparty: {e}") from e
        logger.info("thirdparty created id=%s name=%s", new_id, data.get("name"))
        return new_id

    def update(self, thirdparty_id: int, data: dict[str, Any]) -> dict[str, Any]:
        self.get(thirdparty_id)
        values = self._generate_codes(self._to_columns(data))
        try:
            self.repository.update(thirdparty_id, values)
        except psycopg2.Error as e:
            raise ThirdpartyError(500, f"Error updating thirdparty: {e}") from e
        return self.get(thirdparty_id)

    def delete(self, thirdparty_id: int) -> int:
        self.get(thirdparty_id)
        try:
            deleted = self.repository.delete(thirdparty_id)
        except psycopg2.Error as e:
            raise ThirdpartyError(500, f"Error deleting thirdparty: {e}") from e
        if deleted < 1:
            raise ThirdpartyError(404, "Thirdparty not found")
        logger.info("thirdparty deleted id=%s", thirdparty_id)
        return 1

    def _check_mandatory(self, data: dict[str, Any]) -> None:
        for field in self.mandatory_fields:
            if data.get(field) in (None, ""):
                raise ThirdpartyError(400, f"{field} field missing")

    def _to_columns(self, data: dict[str, Any]) -> dict[str, Any]:
        unknown = sorted(k for k in data if k not in FIELD_COLUMNS)
        if unknown:
            raise ThirdpartyError(400, f"Unknown field(s): {', '.join(unknown)}")
        return {FIELD_COLUMNS[k]: v for k, v in data.items()}

    def _generate_codes(self, values: dict[str, Any]) -> dict[str, Any]:
        generators = {
            "code_client": "customer_code",
            "code_fournisseur": "supplier_code",
        }
        for column, method in generators.items():
            value = values.get(column)
            if not isinstance(value, str) or value.lower() != AUTO_CODE:
                continue
            if self.codes is None:
                raise ThirdpartyError(400, f"{column}: automatic code requested but no code generator configured")
            values[column] = getattr(self.codes, method)() or None
        return values
