"""
Reduction of per-chunk state into run totals.

Runs only after every worker has finished; nothing here mutates a chunk.
"""

import logging

from aces_inspector.config import Settings
from aces_inspector.schemas.analysis import (
    AnalysisChunk,
    AnalysisResults,
    ChunkGroup,
    DiagnosticCategory,
    ProblemGroup,
)

logger = logging.getLogger(__name__)


def aggregate(
    individual_chunks: list[AnalysisChunk],
    outlier_chunks: list[AnalysisChunk],
    chunk_groups: list[ChunkGroup],
    settings: Settings,
) -> AnalysisResults:
    """
    Sum counts and concatenate diagnostics (or, for flushed chunks, their
    fragment paths) in chunk order, then number the problem fitment groups
    by chunk-group and chunk order (never by completion order, so numbering
    is reproducible).
    """
    results = AnalysisResults(counts={category: 0 for category in DiagnosticCategory})

    fitment_chunks = [chunk for group in chunk_groups for chunk in group.chunks]
    for chunk in [*individual_chunks, *outlier_chunks, *fitment_chunks]:
        for category, count in chunk.counts.items():
            results.counts[category] = results.counts.get(category, 0) + count
        for category, diagnostics in chunk.diagnostics.items():
            results.diagnostics.setdefault(category, []).extend(diagnostics)
        for category in chunk.staged:
            results.fragments.setdefault(category, []).append(chunk.fragments[category])

    problem_group_number = 0
    fitment_logic_problems = 0
    for chunk in fitment_chunks:
        if not chunk.problem_apps:
            continue
        problem_group_number += 1
        fitment_logic_problems += len(chunk.problem_apps)
        apps = chunk.apps if settings.report_all_apps_in_problem_group else chunk.problem_apps
        results.problem_groups[problem_group_number] = ProblemGroup(
            number=problem_group_number,
            apps=list(apps),
            permutation=list(chunk.lowest_badness_permutation),
            badness=chunk.lowest_badness,
        )
    results.counts[DiagnosticCategory.FITMENT_LOGIC] = fitment_logic_problems

    logger.debug(f"Aggregated {len(individual_chunks) + len(outlier_chunks) + len(fitment_chunks)} chunks")
    return results
