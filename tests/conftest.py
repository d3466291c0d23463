# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from dolimport.logging import init as logging_init
from dolimport.models.descriptor import (
    ConversionSpec,
    FieldSpec,
    HiddenField,
    ImportDescriptor,
    LoaderSpec,
    ValidationSpec,
)
from dolimport.services.context import RunContext
from tests.fakes import FakeBackend, FakeCodes, FakeLoader


@pytest.fixture(autouse=True)
def _reset_app_logger():
    logging_init.reset_logging()
    yield
    logging_init.reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config" / "descriptors").mkdir(parents=True)
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def fake_backend() -> FakeBackend:
    return FakeBackend(entity_tables=("llx_societe",))


@pytest.fixture()
def country_loader() -> FakeLoader:
    return FakeLoader(codes={"FR": 1, "BE": 2}, labels={"France": 1})


@pytest.fixture()
def fake_codes() -> FakeCodes:
    return FakeCodes()


@pytest.fixture()
def context() -> RunContext:
    return RunContext.create(user_id=7, entity=1, import_key="20261019120000")


@pytest.fixture()
def societe_descriptor() -> ImportDescriptor:
    """Two tables: llx_societe then its extra fields (child, fk_object)."""
    return ImportDescriptor(
        code="societe_1",
        label="Third parties",
        tables={"s": "llx_societe", "extra": "llx_societe_extrafields"},
        fields=(
            FieldSpec(position=1, alias="s", column="nom", label="Name", required=True),
            FieldSpec(position=2, alias="s", column="client", label="Customer",
                      validation=ValidationSpec(regex="^[0123]$")),
            FieldSpec(position=3, alias="s", column="fk_pays", label="Country",
                      conversion=ConversionSpec(rule="fetchidfromcodeid", loader="country",
                                                dictionary="DictionaryCountry")),
            FieldSpec(position=4, alias="extra", column="custom_segment", label="Segment"),
        ),
        hidden_fields=(HiddenField(alias="extra", column="fk_object", source="lastrowid-llx_societe"),),
        creators={"s": "fk_user_creat"},
        loaders={"country": LoaderSpec(name="country", table="llx_c_country", label_column="label")},
    )


@pytest.fixture()
def sample_descriptor_yaml() -> str:
    return """code: societe_1
label: Third parties
tables:
  s: llx_societe
  extra: llx_societe_extrafields
creators:
  s: fk_user_creat
hidden:
  extra.fk_object: lastrowid-llx_societe
loaders:
  country:
    table: llx_c_country
    label: label
fields:
  s.nom:
    label: Name
    required: true
    example: MyBigCompany
  s.client:
    label: Customer
    validation: '^[0123]$'
    example: 1
  s.fk_pays:
    label: Country
    conversion:
      rule: fetchidfromcodeid
      loader: country
      dict: DictionaryCountry
    example: FR
  extra.custom_segment:
    label: Segment
mapping:
  1: s.nom
  2: s.client
  3: s.fk_pays
  4: extra.custom_segment
"""


@pytest.fixture()
def write_descriptor(temp_workdir: Path, sample_descriptor_yaml: str) -> Path:
    path = temp_workdir / "config" / "descriptors" / "societe_1.yml"
    path.write_text(sample_descriptor_yaml, encoding="utf-8")
    return path


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source_file: ./data/societe.csv
descriptor: ./config/descriptors/societe_1.yml
csv:
  separator: ";"
skip_lines: 1
user_id: 7
entity: 1
import_key: "20261019120000"
codes:
  customer_prefix: CU
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str, write_descriptor: Path) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg
