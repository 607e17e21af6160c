"""Tests for catalog import."""

import json

import pytest

from aces_inspector.exceptions import CatalogError
from aces_inspector.loaders import build_application_set, load_catalog
from aces_inspector.schemas.catalog import App
from aces_inspector.services.staging import file_fingerprint


def _write_catalog(path, apps: list[dict], header: dict | None = None):
    path.write_text(json.dumps({"header": header or {}, "apps": apps}), encoding="utf-8")
    return path


def _raw_app(app_id: int, **kwargs) -> dict:
    raw = {
        "id": app_id,
        "base_vehicle_id": 5911,
        "part_type_id": 1684,
        "position_id": 22,
        "quantity": 1,
        "part": "BP1234",
    }
    raw.update(kwargs)
    return raw


class TestLoadCatalog:
    def test_load(self, tmp_path):
        path = _write_catalog(
            tmp_path / "acme.json",
            [
                _raw_app(1, vcdb_attributes=[{"name": "SubModel", "value": 20}], notes=["Ceramic"]),
                _raw_app(2, part="BP5678", qdb_qualifiers=[{"qualifier_id": 2000, "params": ["16"]}], mfr_label="Pro"),
            ],
            header={"title": "ACME brakes", "vcdb_version": "2024-01-26"},
        )
        app_set = load_catalog(path)
        assert [a.id for a in app_set.apps] == [1, 2]
        assert app_set.apps[0].vcdb_attributes[0].value == 20
        assert app_set.apps[1].qdb_qualifiers[0].params == ("16",)
        assert app_set.title == "ACME brakes"
        assert app_set.vcdb_version == "2024-01-26"
        assert app_set.pcdb_version == ""
        assert app_set.fingerprint == file_fingerprint(path)
        assert app_set.source_path == path
        assert app_set.inventory.parts_app_counts == {"BP1234": 1, "BP5678": 1}
        assert app_set.inventory.distinct_mfr_labels == {"Pro"}
        assert app_set.inventory.note_counts == {"Ceramic": 1}

    def test_missing_file(self, tmp_path):
        with pytest.raises(CatalogError, match="does not exist"):
            load_catalog(tmp_path / "missing.json")

    def test_not_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("<ACES/>", encoding="utf-8")
        with pytest.raises(CatalogError):
            load_catalog(path)

    def test_invalid_record(self, tmp_path):
        path = _write_catalog(tmp_path / "bad.json", [_raw_app(1, quantity="lots")])
        with pytest.raises(CatalogError, match="invalid application"):
            load_catalog(path)

    def test_no_apps(self, tmp_path):
        path = _write_catalog(tmp_path / "empty.json", [])
        with pytest.raises(CatalogError, match="no applications"):
            load_catalog(path)


class TestBuildApplicationSet:
    def test_in_memory_fingerprint(self):
        apps = [App(**_raw_app(1)), App(**_raw_app(2, part="BP2", part_type_id=1896))]
        app_set = build_application_set(apps, title="in memory")
        assert len(app_set.fingerprint) == 32
        assert app_set.title == "in memory"
        assert app_set.inventory.distinct_part_types == {1684, 1896}
