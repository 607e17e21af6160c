"""
Individual record validation.

Each application is checked on its own against PCdb, VCdb and Qdb. Findings
are appended to the owning chunk in application order.
"""

import logging
from collections.abc import Callable

from aces_inspector.reference.base import ReferenceDomain, ReferenceLookup
from aces_inspector.schemas.analysis import AnalysisChunk, Diagnostic, DiagnosticCategory
from aces_inspector.schemas.catalog import App
from aces_inspector.utils.fitment_text import safe_app_context, vcdb_attributes_text
from aces_inspector.utils.notes import NoteTranslator

logger = logging.getLogger(__name__)


def _part_type_position(app: App, reference: ReferenceLookup, translator: NoteTranslator) -> list[tuple[str, str]]:
    if reference.is_valid(ReferenceDomain.PART_TYPE_POSITION, (app.part_type_id, app.position_id)):
        return []
    return [("invalid parttype-position", f"{app.part_type_id}/{app.position_id}")]


def _base_vehicle(app: App, reference: ReferenceLookup, translator: NoteTranslator) -> list[tuple[str, str]]:
    if reference.is_valid(ReferenceDomain.BASE_VEHICLE, app.base_vehicle_id):
        return []
    return [("invalid base vehicle", str(app.base_vehicle_id))]


def _vcdb_codes(app: App, reference: ReferenceLookup, translator: NoteTranslator) -> list[tuple[str, str]]:
    return [
        ("invalid VCdb code", f"{a.name}:{a.value}")
        for a in app.vcdb_attributes
        if not reference.is_valid(a.name, a.value)
    ]


def _configuration(app: App, reference: ReferenceLookup, translator: NoteTranslator) -> list[tuple[str, str]]:
    if reference.is_valid_combination(app.base_vehicle_id, app.vcdb_attributes):
        return []
    return [("invalid configuration", vcdb_attributes_text(app, reference))]


def _qualifiers(app: App, reference: ReferenceLookup, translator: NoteTranslator) -> list[tuple[str, str]]:
    return [
        ("invalid Qdb id", str(q.qualifier_id))
        for q in app.qdb_qualifiers
        if not reference.is_valid(ReferenceDomain.QUALIFIER, q.qualifier_id)
    ]


def _notes(app: App, reference: ReferenceLookup, translator: NoteTranslator) -> list[tuple[str, str]]:
    return [(reason, note) for note, reason in translator.find_questionable(app)]


Check = Callable[[App, ReferenceLookup, NoteTranslator], list[tuple[str, str]]]

# (category, check, categories whose findings make the check meaningless)
CHECKS: tuple[tuple[DiagnosticCategory, Check, tuple[DiagnosticCategory, ...]], ...] = (
    (DiagnosticCategory.PARTTYPE_POSITION, _part_type_position, ()),
    (DiagnosticCategory.INVALID_BASE_VEHICLE, _base_vehicle, ()),
    (DiagnosticCategory.INVALID_VCDB_CODE, _vcdb_codes, (DiagnosticCategory.INVALID_BASE_VEHICLE,)),
    (
        DiagnosticCategory.INVALID_CONFIGURATION,
        _configuration,
        (DiagnosticCategory.INVALID_BASE_VEHICLE, DiagnosticCategory.INVALID_VCDB_CODE),
    ),
    (DiagnosticCategory.QDB_ERROR, _qualifiers, ()),
    (DiagnosticCategory.QUESTIONABLE_NOTE, _notes, ()),
)


def check_app(app: App, reference: ReferenceLookup, translator: NoteTranslator) -> list[Diagnostic]:
    """
    All individual-record findings for one app.

    An invalid base vehicle leaves nothing to check the attributes against,
    so the VCdb code and configuration checks are skipped for it. A check
    that raises becomes a "validation failure" finding in its own category
    and the remaining checks still run.
    """
    context = safe_app_context(app, reference)
    found: list[Diagnostic] = []
    for category, check, skip_after in CHECKS:
        if any(d.category in skip_after for d in found):
            continue
        try:
            results = check(app, reference, translator)
        except Exception as e:
            logger.warning(f"{category.value} check of app {app.id} failed: {e}")
            results = [(f"validation failure (internal error): {e}", "")]
        found.extend(
            Diagnostic(category=category, error_type=error_type, reference=ref, **context)
            for error_type, ref in results
        )
    return found


def find_individual_app_errors(
    chunk: AnalysisChunk, reference: ReferenceLookup, translator: NoteTranslator | None = None
) -> AnalysisChunk:
    """Validate every app in the chunk, recording findings on the chunk itself."""
    translator = translator or NoteTranslator()
    for app in chunk.apps:
        for diagnostic in check_app(app, reference, translator):
            chunk.record(diagnostic)
    logger.debug(f"Individual chunk {chunk.id}: {sum(chunk.counts.values())} findings in {len(chunk.apps)} apps")
    return chunk
