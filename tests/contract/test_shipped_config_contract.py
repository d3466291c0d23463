from __future__ import annotations

from pathlib import Path

from dolimport.config.loader import load_config, load_descriptor
from dolimport.services.mapper import FieldMapper
from tests.fakes import FakeBackend, FakeCodes, FakeLoader

"""The example config and descriptor shipped with the project must load."""

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def test_example_config_loads():
    cfg = load_config(PROJECT_ROOT / "config" / "import.example.yml")
    assert cfg.skip_lines == 1
    assert cfg.codes.customer_accounting_prefix == "411"
    assert cfg.descriptor_path.endswith("societe_1.yml")


def test_societe_descriptor_loads_and_builds_mapper():
    d = load_descriptor(PROJECT_ROOT / "config" / "descriptors" / "societe_1.yml")
    assert list(d.tables.values()) == ["llx_societe", "llx_societe_extrafields"]
    assert [f.position for f in d.fields] == list(range(1, len(d.fields) + 1))
    assert d.fields_for("extra")[0].column == "custom_segment"
    email = next(f for f in d.fields if f.column == "email")
    assert email.validation.regex is not None

    # every conversion rule resolves
    FieldMapper(d, FakeBackend(), loaders={"country": FakeLoader(), "typent": FakeLoader()}, codes=FakeCodes())
