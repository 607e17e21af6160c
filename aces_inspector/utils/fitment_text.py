"""
Human-readable rendering of an application's fitment.

Diagnostics carry these strings so the reporting layer never has to go
back to the reference data.
"""

import logging
import re

from aces_inspector.reference.base import ReferenceDomain, ReferenceLookup
from aces_inspector.schemas.catalog import App, QdbQualifier

logger = logging.getLogger(__name__)

# Qdb text parameter placeholders look like "<p1 type="num"/>" or "<p2>"
_PARAM_PATTERN = re.compile(r"<p(\d+)[^>]*>")


def qualifier_text(qualifier: QdbQualifier, reference: ReferenceLookup) -> str:
    """Qdb qualifier text with its parameter values substituted."""
    text = reference.name_of(ReferenceDomain.QUALIFIER, qualifier.qualifier_id)

    def _param(match: re.Match) -> str:
        index = int(match.group(1)) - 1
        return qualifier.params[index] if 0 <= index < len(qualifier.params) else match.group(0)

    return _PARAM_PATTERN.sub(_param, text)


def vcdb_attributes_text(app: App, reference: ReferenceLookup) -> str:
    return "; ".join(f"{a.name}:{reference.name_of(a.name, a.value)}" for a in app.vcdb_attributes)


def qdb_qualifiers_text(app: App, reference: ReferenceLookup) -> str:
    return "; ".join(qualifier_text(q, reference) for q in app.qdb_qualifiers)


def notes_text(app: App) -> str:
    return "; ".join(app.notes)


def fitment_string(app: App, reference: ReferenceLookup) -> str:
    """Everything that qualifies the app beyond base vehicle, part type and position."""
    parts = [vcdb_attributes_text(app, reference), qdb_qualifiers_text(app, reference), notes_text(app)]
    if app.mfr_label:
        parts.append(f"MfrLabel:{app.mfr_label}")
    if app.asset:
        parts.append(f"Asset:{app.asset}")
    return "; ".join(p for p in parts if p)


def app_context(app: App, reference: ReferenceLookup) -> dict:
    """Keyword arguments for a Diagnostic describing this app."""
    vehicle = reference.base_vehicle(app.base_vehicle_id)
    return {
        "app_id": app.id,
        "base_vehicle_id": app.base_vehicle_id,
        "make": vehicle.make if vehicle else "",
        "model": vehicle.model if vehicle else "",
        "year": vehicle.year if vehicle else "",
        "part_type": reference.name_of(ReferenceDomain.PART_TYPE, app.part_type_id),
        "position": reference.name_of(ReferenceDomain.POSITION, app.position_id),
        "quantity": app.quantity,
        "part": app.part,
        "fitment": fitment_string(app, reference),
        "vcdb_attributes": vcdb_attributes_text(app, reference),
        "qdb_qualifiers": qdb_qualifiers_text(app, reference),
        "notes": notes_text(app),
    }


def safe_app_context(app: App, reference: ReferenceLookup) -> dict:
    """app_context, degrading to the record's own codes when a lookup fails."""
    try:
        return app_context(app, reference)
    except Exception as e:
        logger.debug(f"Context lookup for app {app.id} failed: {e}")
    coded = "; ".join(f"{a.name}:{a.value}" for a in app.vcdb_attributes)
    qualifiers = "; ".join(str(q.qualifier_id) for q in app.qdb_qualifiers)
    return {
        "app_id": app.id,
        "base_vehicle_id": app.base_vehicle_id,
        "part_type": str(app.part_type_id),
        "position": str(app.position_id),
        "quantity": app.quantity,
        "part": app.part,
        "fitment": "; ".join(p for p in (coded, qualifiers, notes_text(app)) if p),
        "vcdb_attributes": coded,
        "qdb_qualifiers": qualifiers,
        "notes": notes_text(app),
    }
