"""
Analysis orchestration.

Three independent task families run concurrently on a bounded thread pool:
one task per flat chunk (individual validation), a single whole-catalog
outlier task, and one task per fitment chunk group (tree analysis). The
gather is the completion barrier; the aggregator only runs after it.

The tree search is CPU bound, so threads only interleave it. With
`fitment_processes` the chunk groups go to a process pool instead; each
worker gets a copy of its chunk group and sends it back filled in.
"""

import asyncio
import logging
import multiprocessing
import os
import time
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor

from aces_inspector.config import Settings
from aces_inspector.config import settings as default_settings
from aces_inspector.reference.base import ReferenceLookup
from aces_inspector.schemas.analysis import AnalysisChunk, AnalysisResults, ChunkGroup
from aces_inspector.schemas.catalog import ApplicationSet
from aces_inspector.services.aggregator import aggregate
from aces_inspector.services.fitment_tree import find_fitment_logic_problems
from aces_inspector.services.individual import find_individual_app_errors
from aces_inspector.services.outliers import find_app_outliers
from aces_inspector.services.partitioner import (
    establish_fitment_groups,
    outlier_chunk,
    partition_fitment,
    partition_individual,
)
from aces_inspector.services.staging import FragmentStore
from aces_inspector.utils.notes import NoteTranslator

logger = logging.getLogger(__name__)


def analyze_fitment_group(
    chunk_group: ChunkGroup, reference: ReferenceLookup, settings: Settings, store: FragmentStore | None = None
) -> ChunkGroup:
    """Tree analysis for one chunk group; module level so a worker process can run it."""
    find_fitment_logic_problems(chunk_group, reference, settings)
    if store is not None:
        for chunk in chunk_group.chunks:
            store.flush(chunk)
    return chunk_group


async def run_analysis(
    app_set: ApplicationSet,
    reference: ReferenceLookup,
    settings: Settings | None = None,
    store: FragmentStore | None = None,
    translator: NoteTranslator | None = None,
) -> AnalysisResults:
    """Partition, analyze every chunk concurrently, then aggregate."""
    settings = settings or default_settings
    translator = translator or NoteTranslator()
    if not settings.stage_diagnostics:
        store = None

    started = time.monotonic()
    logger.info(f"Analyzing {len(app_set.apps)} apps with {settings.thread_count} threads")

    individual_chunks = partition_individual(app_set, settings, store)
    outliers = outlier_chunk(app_set, store)
    groups = establish_fitment_groups(app_set.apps, settings.use_assets_as_fitment)
    chunk_groups = partition_fitment(groups, settings, store)
    logger.info(
        f"{len(individual_chunks)} validation chunks, {len(groups)} fitment groups "
        f"in {len(chunk_groups)} chunk groups"
    )

    def validate(chunk: AnalysisChunk) -> AnalysisChunk:
        find_individual_app_errors(chunk, reference, translator)
        if store is not None:
            store.flush(chunk)
        return chunk

    def detect_outliers(chunk: AnalysisChunk) -> AnalysisChunk:
        find_app_outliers(chunk, reference, settings)
        if store is not None:
            store.flush(chunk)
        return chunk

    loop = asyncio.get_running_loop()
    workers = max(1, settings.thread_count)
    process_pool = None
    if settings.fitment_processes and chunk_groups:
        process_count = min(workers, os.cpu_count() or 1)
        logger.info(f"Fitment search on {process_count} worker processes")
        process_pool = ProcessPoolExecutor(max_workers=process_count, mp_context=multiprocessing.get_context("spawn"))
    try:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            fitment_executor = process_pool or executor
            tasks = [loop.run_in_executor(executor, validate, chunk) for chunk in individual_chunks]
            tasks.append(loop.run_in_executor(executor, detect_outliers, outliers))
            tasks.extend(
                loop.run_in_executor(fitment_executor, analyze_fitment_group, group, reference, settings, store)
                for group in chunk_groups
            )
            done = await asyncio.gather(*tasks)
    finally:
        if process_pool is not None:
            process_pool.shutdown()

    # worker processes hand back copies
    chunk_groups = list(done[len(individual_chunks) + 1 :])

    results = aggregate(individual_chunks, [outliers], chunk_groups, settings)
    results.fingerprint = app_set.fingerprint
    results.versions = reference.versions
    results.elapsed_seconds = round(time.monotonic() - started, 1)

    logger.info(
        f"Analysis finished in {results.elapsed_seconds}s: {results.error_count} errors, "
        f"{len(results.problem_groups)} fitment problem groups"
    )
    return results


def analyze(
    app_set: ApplicationSet,
    reference: ReferenceLookup,
    settings: Settings | None = None,
    store: FragmentStore | None = None,
    translator: NoteTranslator | None = None,
) -> AnalysisResults:
    """Blocking wrapper around run_analysis for callers without an event loop."""
    return asyncio.run(run_analysis(app_set, reference, settings, store, translator))
