"""
Chunk partitioning.

Splits the application list into flat chunks for per-record validation and
groups applications into fitment-group chunks (batched into chunk groups)
for tree analysis. Runs single-threaded before the parallel phase.
"""

import logging
from collections.abc import Sequence
from typing import TypeVar

from aces_inspector.config import Settings
from aces_inspector.schemas.analysis import (
    INDIVIDUAL_CATEGORIES,
    OUTLIER_CATEGORIES,
    AnalysisChunk,
    ChunkGroup,
    DiagnosticCategory,
)
from aces_inspector.schemas.catalog import App, ApplicationSet
from aces_inspector.services.staging import FragmentStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

FitmentKey = tuple


def section_count(total: int, thread_count: int, min_per_section: int = 5) -> int:
    """Number of sections: don't break up work that is too small to benefit."""
    thread_count = max(1, thread_count)
    if thread_count * min_per_section > total:
        return 1
    return thread_count


def split_sections(items: Sequence[T], sections: int) -> list[list[T]]:
    """
    Contiguous slices of len(items) // sections; the last absorbs the remainder.
    An empty input yields a single empty section.
    """
    sections = max(1, sections)
    size = len(items) // sections
    if size == 0:
        return [list(items)]
    result = [list(items[i * size : (i + 1) * size]) for i in range(sections - 1)]
    result.append(list(items[(sections - 1) * size :]))
    return result


def fitment_key(app: App, use_assets_as_fitment: bool = False) -> FitmentKey:
    """Identity of the fitment group an app belongs to."""
    key = (app.base_vehicle_id, app.part_type_id, app.position_id)
    if use_assets_as_fitment:
        key += (app.asset,)
    return key


def establish_fitment_groups(apps: Sequence[App], use_assets_as_fitment: bool = False) -> list[list[App]]:
    """Group apps by fitment key, in order of first appearance, keeping app order within a group."""
    groups: dict[FitmentKey, list[App]] = {}
    for app in apps:
        groups.setdefault(fitment_key(app, use_assets_as_fitment), []).append(app)
    return list(groups.values())


def partition_individual(
    app_set: ApplicationSet, settings: Settings, store: FragmentStore | None = None
) -> list[AnalysisChunk]:
    """Flat chunks (ids 1..N) for the individual record validator."""
    sections = split_sections(
        app_set.apps, section_count(len(app_set.apps), settings.thread_count, settings.min_apps_per_section)
    )
    chunks = [AnalysisChunk(id=i, apps=apps) for i, apps in enumerate(sections, start=1)]
    if store is not None:
        for chunk in chunks:
            store.allocate(chunk, INDIVIDUAL_CATEGORIES)
    logger.debug(f"Split {len(app_set.apps)} apps into {len(chunks)} individual-analysis chunks")
    return chunks


def outlier_chunk(app_set: ApplicationSet, store: FragmentStore | None = None) -> AnalysisChunk:
    """The single, whole-catalog chunk for the outlier pass."""
    chunk = AnalysisChunk(id=1, apps=list(app_set.apps))
    if store is not None:
        store.allocate(chunk, OUTLIER_CATEGORIES, numbered=False)
    return chunk


def partition_fitment(
    groups: list[list[App]], settings: Settings, store: FragmentStore | None = None
) -> list[ChunkGroup]:
    """One chunk per fitment group, batched into chunk groups (ids 1..M)."""
    chunks = [AnalysisChunk(id=i, apps=apps) for i, apps in enumerate(groups, start=1)]
    if store is not None:
        for chunk in chunks:
            store.allocate(chunk, (DiagnosticCategory.FITMENT_LOGIC,))
    sections = split_sections(
        chunks, section_count(len(chunks), settings.thread_count, settings.min_apps_per_section)
    )
    chunk_groups = [ChunkGroup(id=i, chunks=members) for i, members in enumerate(sections, start=1)]
    logger.debug(f"Split {len(chunks)} fitment groups into {len(chunk_groups)} chunk groups")
    return chunk_groups
