"""
Outlier and disagreement detection.

Statistics are computed across the whole catalog, so this is one
sequential pass over every app rather than a chunked one. It shares no
mutable state with the other analysis families and runs beside them.
"""

import logging
from collections import Counter

from aces_inspector.config import Settings
from aces_inspector.reference.base import ReferenceDomain, ReferenceLookup
from aces_inspector.schemas.analysis import AnalysisChunk, Diagnostic, DiagnosticCategory
from aces_inspector.schemas.catalog import App
from aces_inspector.utils.fitment_text import app_context

logger = logging.getLogger(__name__)


def find_qty_outliers(
    apps: list[App], threshold_percent: float, sample_size: int
) -> list[tuple[App, int, float]]:
    """
    Apps whose quantity is rare for their (part, part type, position) group.

    Only groups with at least sample_size apps are evaluated. Within a group
    the modal quantity is the norm; an app is an outlier when its quantity
    differs from the mode and at most threshold_percent of the group shares it.
    Returns (app, modal quantity, share percent) in app order.
    """
    groups: dict[tuple[str, int, int], list[App]] = {}
    for app in apps:
        groups.setdefault((app.part, app.part_type_id, app.position_id), []).append(app)

    flagged: set[int] = set()
    details: dict[int, tuple[int, float]] = {}
    for members in groups.values():
        if len(members) < sample_size:
            continue
        quantities = Counter(app.quantity for app in members)
        # ties resolve to the quantity seen first
        mode = max(quantities, key=lambda q: quantities[q])
        for app in members:
            if app.quantity == mode:
                continue
            share = 100.0 * quantities[app.quantity] / len(members)
            if share <= threshold_percent:
                flagged.add(app.id)
                details[app.id] = (mode, share)

    return [(app, *details[app.id]) for app in apps if app.id in flagged]


def find_parttype_disagreements(apps: list[App]) -> dict[str, list[int]]:
    """Parts classified under more than one part type, with their part types in first-seen order."""
    part_types: dict[str, list[int]] = {}
    for app in apps:
        seen = part_types.setdefault(app.part, [])
        if app.part_type_id not in seen:
            seen.append(app.part_type_id)
    return {part: types for part, types in part_types.items() if len(types) > 1}


def find_asset_problems(apps: list[App]) -> list[tuple[App, str]]:
    """
    Record-level and cross-record asset consistency.

    Record level: an asset without an item order, or an item order without an asset.
    Cross record: the same asset + fitment + item order claimed by different
    parts (contradictory), or claimed twice with identical content (duplicate).
    """
    problems: list[tuple[App, str]] = []
    claims: dict[tuple, App] = {}

    for app in apps:
        if app.asset and app.asset_item_order is None:
            problems.append((app, "asset without item order"))
            continue
        if not app.asset:
            if app.asset_item_order is not None:
                problems.append((app, "item order without asset"))
            continue

        key = (
            app.asset,
            app.asset_item_order,
            app.base_vehicle_id,
            app.part_type_id,
            app.position_id,
            app.vcdb_attributes,
            app.qdb_qualifiers,
        )
        previous = claims.get(key)
        if previous is None:
            claims[key] = app
        elif previous.part != app.part:
            problems.append((app, f"contradictory asset fitment (app {previous.id} claims part {previous.part})"))
        elif previous.quantity == app.quantity and previous.notes == app.notes and previous.mfr_label == app.mfr_label:
            problems.append((app, f"duplicate asset fitment (same as app {previous.id})"))
    return problems


def find_app_outliers(chunk: AnalysisChunk, reference: ReferenceLookup, settings: Settings) -> AnalysisChunk:
    """Run the whole-catalog checks, recording findings on the outlier chunk."""
    apps = chunk.apps

    for app, mode, share in find_qty_outliers(apps, settings.qty_outlier_threshold, settings.qty_outlier_sample_size):
        chunk.record(
            Diagnostic(
                category=DiagnosticCategory.QTY_OUTLIER,
                error_type=f"qty outlier (typical qty {mode}, {share:.2f}% of group)",
                reference=str(mode),
                **app_context(app, reference),
            )
        )

    for part, part_type_ids in find_parttype_disagreements(apps).items():
        names = [reference.name_of(ReferenceDomain.PART_TYPE, pt) for pt in part_type_ids]
        chunk.record(
            Diagnostic(
                category=DiagnosticCategory.PARTTYPE_DISAGREEMENT,
                error_type="parttype disagreement",
                part=part,
                reference=", ".join(names),
            )
        )

    for app, problem in find_asset_problems(apps):
        chunk.record(
            Diagnostic(
                category=DiagnosticCategory.ASSET_PROBLEM,
                error_type=problem,
                reference=app.asset,
                **app_context(app, reference),
            )
        )

    logger.debug(
        f"Outlier pass: {chunk.count(DiagnosticCategory.QTY_OUTLIER)} qty outliers, "
        f"{chunk.count(DiagnosticCategory.PARTTYPE_DISAGREEMENT)} type disagreements, "
        f"{chunk.count(DiagnosticCategory.ASSET_PROBLEM)} asset problems"
    )
    return chunk
