"""
Assessment summary and writer.

Turns AnalysisResults into a JSON assessment: run statistics with a
pass/fail verdict, the parts inventory, and every diagnostic category
(read back from staged fragments when the run staged them).
Fitment logic problem descriptions are re-derived here by rebuilding each
problem group's tree from its stored ordering.
"""

import json
import logging
from pathlib import Path

from aces_inspector.config import Settings
from aces_inspector.reference.base import ReferenceDomain, ReferenceLookup
from aces_inspector.schemas.analysis import AnalysisResults, DiagnosticCategory
from aces_inspector.schemas.catalog import ApplicationSet
from aces_inspector.services.fitment_tree import TreeOptions, describe_problem_group
from aces_inspector.services.staging import collect_diagnostics
from aces_inspector.utils.fitment_text import app_context
from aces_inspector.utils.notes import NoteTranslator

logger = logging.getLogger(__name__)

FAILURE_LABELS = (
    (DiagnosticCategory.PARTTYPE_POSITION, "partType-position pairings"),
    (DiagnosticCategory.INVALID_VCDB_CODE, "invalid VCdb codes"),
    (DiagnosticCategory.INVALID_CONFIGURATION, "invalid VCdb configs"),
    (DiagnosticCategory.INVALID_BASE_VEHICLE, "invalid basevehicles"),
    (DiagnosticCategory.QDB_ERROR, "Qdb errors"),
    (DiagnosticCategory.FITMENT_LOGIC, "fitment logic problems"),
)

PROBLEM_LABELS = (
    (DiagnosticCategory.FITMENT_LOGIC, "logic flaws"),
    (DiagnosticCategory.QTY_OUTLIER, "qty outliers"),
    (DiagnosticCategory.PARTTYPE_DISAGREEMENT, "type disagreements"),
    (DiagnosticCategory.ASSET_PROBLEM, "Asset problems"),
)


def failure_reasons(results: AnalysisResults) -> list[str]:
    """Why an assessment fails; empty when it passes."""
    return [f"{results.count(c)} {label}" for c, label in FAILURE_LABELS if results.count(c) > 0]


def problems_description(results: AnalysisResults) -> str:
    """Summary of the non-fatal problems, e.g. "3 logic flaws, 1 qty outliers"."""
    problems = [f"{results.count(c)} {label}" for c, label in PROBLEM_LABELS if results.count(c) > 0]
    return ", ".join(problems) if problems else "0 problems"


def _analyzed_against(cited: str, actual: str) -> str:
    return f"analyzed against:{actual}" if cited != actual else ""


def build_assessment(
    results: AnalysisResults,
    app_set: ApplicationSet,
    reference: ReferenceLookup,
    settings: Settings,
    translator: NoteTranslator | None = None,
) -> dict:
    """Assemble the assessment document."""
    translator = translator or NoteTranslator()
    versions = results.versions
    inventory = app_set.inventory
    reasons = failure_reasons(results)

    stats = {
        "input_filename": app_set.source_path.name if app_set.source_path else "",
        "title": app_set.title,
        "fingerprint": results.fingerprint,
        "vcdb_version_cited": app_set.vcdb_version,
        "vcdb_analyzed_against": _analyzed_against(app_set.vcdb_version, versions.get("VCdb", "")),
        "pcdb_version_cited": app_set.pcdb_version,
        "pcdb_analyzed_against": _analyzed_against(app_set.pcdb_version, versions.get("PCdb", "")),
        "qdb_version_cited": app_set.qdb_version,
        "qdb_analyzed_against": _analyzed_against(app_set.qdb_version, versions.get("Qdb", "")),
        "application_count": len(app_set.apps),
        "unique_part_count": len(inventory.parts_app_counts),
        "unique_mfr_label_count": len(inventory.distinct_mfr_labels),
        "unique_part_type_count": len(inventory.distinct_part_types),
        "result": "Fail" if reasons else "Pass",
        "failure_reasons": reasons,
        "problems": problems_description(results),
        "run_time_seconds": results.elapsed_seconds,
    }

    parts = [
        {
            "part": part,
            "applications_count": count,
            "part_types": sorted(
                reference.name_of(ReferenceDomain.PART_TYPE, pt) for pt in inventory.parts_part_types.get(part, ())
            ),
            "positions": sorted(
                reference.name_of(ReferenceDomain.POSITION, pos) for pos in inventory.parts_positions.get(part, ())
            ),
        }
        for part, count in sorted(inventory.parts_app_counts.items())
    ]
    part_types = [
        {"id": pt, "name": reference.name_of(ReferenceDomain.PART_TYPE, pt)}
        for pt in sorted(inventory.distinct_part_types)
    ]
    note_tags = []
    for note, count in sorted(inventory.note_counts.items()):
        tag = {"note": note, "count": count}
        qualifier_id = translator.transforms.get(note.strip())
        if qualifier_id is not None:
            tag["qdb_transform"] = reference.name_of(ReferenceDomain.QUALIFIER, qualifier_id)
        note_tags.append(tag)

    diagnostics = {
        category.value: [
            d.model_dump(mode="json", exclude={"category"}) for d in collect_diagnostics(results, category)
        ]
        for category in DiagnosticCategory
        if category != DiagnosticCategory.FITMENT_LOGIC
    }

    options = TreeOptions.from_settings(settings)
    fitment_problems = []
    for number, group in results.problem_groups.items():
        fitment_problems.append(
            {
                "group": number,
                "badness": group.badness,
                "permutation": group.permutation,
                "description": describe_problem_group(group.apps, group.permutation, options, reference),
                "apps": [app_context(app, reference) for app in group.apps],
            }
        )

    return {
        "stats": stats,
        "parts": parts,
        "part_types": part_types,
        "mfr_labels": sorted(inventory.distinct_mfr_labels),
        "note_tags": note_tags,
        "diagnostics": diagnostics,
        "fitment_logic_problems": fitment_problems,
    }


def assessment_path(output_dir: str | Path, app_set: ApplicationSet) -> Path:
    stem = app_set.source_path.stem if app_set.source_path else app_set.fingerprint
    return Path(output_dir) / f"{stem}_assessment.json"


def write_assessment(path: str | Path, assessment: dict) -> Path:
    path = Path(path)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(assessment, f, indent=2)
    logger.info(f"Wrote assessment {path}")
    return path
