"""Tests for questionable note detection."""

import json

import pytest

from aces_inspector.exceptions import ReferenceDataError
from aces_inspector.schemas.catalog import App, QdbQualifier, VCdbAttribute
from aces_inspector.utils.notes import NoteTranslator, load_note_transforms


def _make_app(**kwargs) -> App:
    defaults = {
        "id": 1,
        "base_vehicle_id": 5911,
        "part_type_id": 1684,
        "position_id": 22,
        "quantity": 1,
        "part": "BP1234",
    }
    defaults.update(kwargs)
    return App(**defaults)


class TestNoteTranslator:
    @pytest.mark.parametrize(
        "note,reason",
        [
            ("4WD", "note looks like drive type"),
            ("2.4L", "note looks like engine displacement"),
            ("V6", "note looks like engine cylinders"),
            ("Automatic Transmission", "note looks like transmission type"),
            ("Sedan", "note looks like body type"),
            ("4-Door", "note looks like door count"),
            ("w/ ABS", "note looks like ABS"),
            ("Diesel", "note looks like fuel type"),
            ("Rear Drum Brakes", "note looks like brake system"),
        ],
    )
    def test_patterns(self, note, reason):
        assert NoteTranslator().find_questionable(_make_app(notes=(note,))) == [(note, reason)]

    def test_plain_notes_are_fine(self):
        app = _make_app(notes=("Ceramic", "Includes hardware", "Premium pads"))
        assert NoteTranslator().find_questionable(app) == []

    def test_structured_equivalent_present(self):
        app = _make_app(notes=("AWD",), vcdb_attributes=(VCdbAttribute(name="DriveType", value=2),))
        assert NoteTranslator().find_questionable(app) == []

    def test_transform_dictionary(self):
        translator = NoteTranslator(transforms={"Heavy Duty": 2001})
        assert translator.find_questionable(_make_app(notes=("Heavy Duty",))) == [
            ("Heavy Duty", "note translates to Qdb qualifier 2001")
        ]
        with_qualifier = _make_app(notes=("Heavy Duty",), qdb_qualifiers=(QdbQualifier(qualifier_id=2001),))
        assert translator.find_questionable(with_qualifier) == []

    def test_one_finding_per_note(self):
        findings = NoteTranslator().find_questionable(_make_app(notes=("4WD V6 Sedan",)))
        assert len(findings) == 1


class TestLoadNoteTransforms:
    def test_load(self, tmp_path):
        path = tmp_path / "transforms.json"
        path.write_text(json.dumps({" Heavy Duty ": "2001", "Police": 2002}), encoding="utf-8")
        assert load_note_transforms(path) == {"Heavy Duty": 2001, "Police": 2002}

    def test_missing(self, tmp_path):
        with pytest.raises(ReferenceDataError):
            load_note_transforms(tmp_path / "missing.json")

    def test_bad_value(self, tmp_path):
        path = tmp_path / "transforms.json"
        path.write_text(json.dumps({"Heavy Duty": "not a number"}), encoding="utf-8")
        with pytest.raises(ReferenceDataError):
            load_note_transforms(path)
