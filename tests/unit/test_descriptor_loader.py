from __future__ import annotations

from pathlib import Path

import pytest

from dolimport.config.loader import ConfigError, load_descriptor
from dolimport.models.descriptor import ValidationSpec


def test_load_descriptor(write_descriptor: Path):
    d = load_descriptor(write_descriptor)
    assert d.code == "societe_1"
    assert list(d.tables.items()) == [("s", "llx_societe"), ("extra", "llx_societe_extrafields")]
    assert [f.target for f in d.fields] == ["s.nom", "s.client", "s.fk_pays", "extra.custom_segment"]
    assert [f.position for f in d.fields] == [1, 2, 3, 4]

    nom = d.fields[0]
    assert nom.required is True
    assert nom.label == "Name"
    assert nom.example == "MyBigCompany"

    client = d.fields[1]
    assert client.validation == ValidationSpec(regex="^[0123]$")
    assert client.example == "1"

    pays = d.fields[2]
    assert pays.conversion.rule == "fetchidfromcodeid"
    assert pays.conversion.loader == "country"
    assert pays.conversion.dictionary == "DictionaryCountry"

    assert d.fields[3].label == "Segment"

    assert d.hidden_for("extra")[0].last_row_table == "llx_societe"
    assert d.creators == {"s": "fk_user_creat"}
    assert d.loaders["country"].id_column == "rowid"
    assert d.loaders["country"].code_column == "code"
    assert d.loaders["country"].label_column == "label"
    assert d.primary_key("llx_societe") == "rowid"


def test_mapping_override_changes_positions(write_descriptor: Path):
    d = load_descriptor(write_descriptor, mapping={1: "s.client", 2: "s.nom"})
    assert [(f.position, f.target) for f in d.fields] == [(1, "s.client"), (2, "s.nom")]
    assert d.fields_for("extra") == []


def test_unknown_target_rejected(write_descriptor: Path):
    with pytest.raises(ConfigError, match="is not a field"):
        load_descriptor(write_descriptor, mapping={1: "s.unknown"})


def test_duplicate_target_rejected(write_descriptor: Path):
    with pytest.raises(ConfigError, match="mapped more than once"):
        load_descriptor(write_descriptor, mapping={1: "s.nom", 2: "s.nom"})


def test_unknown_loader_rejected(write_descriptor: Path):
    text = write_descriptor.read_text(encoding="utf-8").replace("loader: country", "loader: region")
    write_descriptor.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError, match="unknown loader"):
        load_descriptor(write_descriptor)


def test_lookup_rule_without_loader_rejected(write_descriptor: Path):
    text = write_descriptor.read_text(encoding="utf-8").replace("      loader: country\n", "")
    write_descriptor.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError, match="needs a loader"):
        load_descriptor(write_descriptor)


def test_undeclared_alias_rejected(write_descriptor: Path):
    text = write_descriptor.read_text(encoding="utf-8").replace("  extra: llx_societe_extrafields\n", "")
    write_descriptor.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError, match="not a declared table"):
        load_descriptor(write_descriptor)


def test_bad_hidden_source_rejected_by_schema(write_descriptor: Path):
    text = write_descriptor.read_text(encoding="utf-8").replace("lastrowid-llx_societe", "something-else")
    write_descriptor.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError, match="descriptor validation failed"):
        load_descriptor(write_descriptor)


def test_no_mapping_rejected(write_descriptor: Path):
    text = write_descriptor.read_text(encoding="utf-8")
    text = text[: text.index("mapping:")]
    write_descriptor.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError, match="no column mapping"):
        load_descriptor(write_descriptor)


def test_structured_exists_validation(write_descriptor: Path):
    text = write_descriptor.read_text(encoding="utf-8").replace(
        "validation: '^[0123]$'", "validation:\n      exists: code@llx_c_client"
    )
    write_descriptor.write_text(text, encoding="utf-8")
    d = load_descriptor(write_descriptor)
    spec = d.fields[1].validation
    assert spec.is_existence_check
    assert (spec.exists_field, spec.exists_table) == ("code", "llx_c_client")


def test_validation_string_with_at_is_existence_check():
    spec = ValidationSpec.parse("rowid@llx_c_typent")
    assert spec.is_existence_check
    assert spec.exists_field == "rowid"
    assert not ValidationSpec.parse("^[0-9]+$").is_existence_check


def test_max_fields_limits_fields(societe_descriptor):
    from dataclasses import replace

    d = replace(societe_descriptor, max_fields=2)
    assert [f.column for f in d.fields_for("s")] == ["nom", "client"]
    assert d.fields_for("extra") == []


def test_descriptor_mappings_are_read_only(write_descriptor: Path):
    d = load_descriptor(write_descriptor)
    with pytest.raises(TypeError):
        d.tables["x"] = "llx_other"
    with pytest.raises(TypeError):
        d.creators["extra"] = "fk_user_creat"
    with pytest.raises(TypeError):
        d.loaders["country"] = None
    assert list(d.tables) == ["s", "extra"]
