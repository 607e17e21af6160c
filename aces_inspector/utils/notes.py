"""
Free-text note analysis.

A note is "questionable" when its text says something that the catalog
could have stated as structured data (a VCdb attribute or a Qdb qualifier)
but the application does not carry that structured equivalent. These are
surfaced for human review, never rewritten.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from aces_inspector.exceptions import ReferenceDataError
from aces_inspector.schemas.catalog import App

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotePattern:
    pattern: re.Pattern
    element: str  # structured equivalent, "vcdb:<AttributeName>" or "qdb:<QualifierID>"
    description: str


def _p(regex: str, element: str, description: str) -> NotePattern:
    return NotePattern(re.compile(regex, re.IGNORECASE), element, description)


DEFAULT_NOTE_PATTERNS: tuple[NotePattern, ...] = (
    _p(r"\b(?:2WD|4WD|AWD|FWD|RWD|4X4)\b", "vcdb:DriveType", "drive type"),
    _p(r"\b\d\.\d\s?L\b|\b\d\.\d\s+liter\b", "vcdb:EngineBase", "engine displacement"),
    _p(r"\b(?:V6|V8|V10|V12|L4|I4|L6|I6)\b", "vcdb:EngineBase", "engine cylinders"),
    _p(r"\b(?:automatic|manual)\s+trans(?:mission)?\b", "vcdb:TransmissionType", "transmission type"),
    _p(r"\b(?:sedan|coupe|hatchback|wagon|convertible)\b", "vcdb:BodyType", "body type"),
    _p(r"\b[2-5]\s?-?\s?door\b", "vcdb:BodyNumDoors", "door count"),
    _p(r"\b(?:w/o?|with|without)\s+ABS\b", "vcdb:BrakeABS", "ABS"),
    _p(r"\b(?:diesel|flex fuel|hybrid|electric)\b", "vcdb:FuelType", "fuel type"),
    _p(r"\b(?:front|rear)\s+(?:disc|drum)\s+brakes?\b", "vcdb:BrakeSystem", "brake system"),
)


@dataclass
class NoteTranslator:
    """Detects notes with a structured equivalent the app is missing."""

    patterns: tuple[NotePattern, ...] = DEFAULT_NOTE_PATTERNS
    transforms: dict[str, int] = field(default_factory=dict)  # exact note text -> Qdb qualifier id

    def find_questionable(self, app: App) -> list[tuple[str, str]]:
        """Return (note, reason) pairs in note order, at most one per note."""
        present = {f"vcdb:{a.name}" for a in app.vcdb_attributes}
        present.update(f"qdb:{q.qualifier_id}" for q in app.qdb_qualifiers)

        findings = []
        for note in app.notes:
            qualifier_id = self.transforms.get(note.strip())
            if qualifier_id is not None:
                if f"qdb:{qualifier_id}" not in present:
                    findings.append((note, f"note translates to Qdb qualifier {qualifier_id}"))
                continue
            for pattern in self.patterns:
                if pattern.element not in present and pattern.pattern.search(note):
                    findings.append((note, f"note looks like {pattern.description}"))
                    break
        return findings


def load_note_transforms(path: str | Path) -> dict[str, int]:
    """Load a note -> Qdb qualifier id dictionary from JSON ({"note text": 123})."""
    path = Path(path)
    if not path.exists():
        raise ReferenceDataError(f"Note transform file ({path}) does not exist")
    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
        transforms = {str(note).strip(): int(qualifier_id) for note, qualifier_id in raw.items()}
    except (OSError, json.JSONDecodeError, AttributeError, TypeError, ValueError) as e:
        raise ReferenceDataError(f"Note transform import failed: {e}") from e
    logger.info(f"Loaded {len(transforms)} note-to-Qdb transforms")
    return transforms
