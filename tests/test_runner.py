"""Tests for the end-to-end analysis run."""

import pytest

from aces_inspector.config import Settings
from aces_inspector.loaders import build_application_set
from aces_inspector.schemas.analysis import DiagnosticCategory
from aces_inspector.schemas.catalog import App, QdbQualifier, VCdbAttribute
from aces_inspector.services.runner import analyze, run_analysis
from aces_inspector.services.staging import FragmentStore, collect_diagnostics


def _catalog() -> list[App]:
    """A catalog with something wrong in every family."""
    apps = []
    next_id = 1

    def add(**kwargs):
        nonlocal next_id
        defaults = {
            "id": next_id,
            "base_vehicle_id": 5911,
            "part_type_id": 1684,
            "position_id": 22,
            "quantity": 1,
            "part": "BP1234",
        }
        defaults.update(kwargs)
        apps.append(App(**defaults))
        next_id += 1

    # 1000 rotors, one with an absurd quantity; no fitment elements, so never a tree problem
    for i in range(1000):
        add(part_type_id=1896, part="RT500", quantity=500 if i == 123 else 1)
    add(base_vehicle_id=999999)
    add(vcdb_attributes=(VCdbAttribute(name="SubModel", value=99),))
    add(position_id=1)
    add(position_id=30, qdb_qualifiers=(QdbQualifier(qualifier_id=4242),))
    add(base_vehicle_id=6001, notes=("4WD",), part="BP77")
    add(base_vehicle_id=6001, part="BP77", part_type_id=1896)
    add(base_vehicle_id=5912, vcdb_attributes=(VCdbAttribute(name="SubModel", value=20),), part="BP1")
    add(base_vehicle_id=5912, part="BP2")
    add(base_vehicle_id=5912, position_id=30, mfr_label="Premium", part="BP3")
    add(base_vehicle_id=5912, position_id=30, mfr_label="Economy", part="BP3")
    add(base_vehicle_id=6001, asset="IMG1", position_id=30)
    return apps


def _counts(results) -> dict:
    return {c: results.count(c) for c in DiagnosticCategory}


class TestRunAnalysis:
    @pytest.mark.asyncio
    async def test_every_family_reports(self, reference, run_settings):
        results = await run_analysis(build_application_set(_catalog()), reference, run_settings)
        assert results.count(DiagnosticCategory.INVALID_BASE_VEHICLE) == 1
        assert results.count(DiagnosticCategory.INVALID_VCDB_CODE) == 1
        assert results.count(DiagnosticCategory.PARTTYPE_POSITION) == 1
        assert results.count(DiagnosticCategory.QDB_ERROR) == 1
        assert results.count(DiagnosticCategory.QUESTIONABLE_NOTE) == 1
        assert results.count(DiagnosticCategory.QTY_OUTLIER) == 1
        assert results.count(DiagnosticCategory.PARTTYPE_DISAGREEMENT) == 1
        assert results.count(DiagnosticCategory.ASSET_PROBLEM) == 1
        assert len(results.problem_groups) == 2
        assert results.count(DiagnosticCategory.FITMENT_LOGIC) == 3
        assert results.versions["VCdb"] == "2024-01-26"

    @pytest.mark.asyncio
    async def test_counts_invariant_under_thread_count(self, reference):
        app_set = build_application_set(_catalog())
        baseline = None
        for thread_count in (1, 3, 20, 64):
            settings = Settings(_env_file=None, stage_diagnostics=False, thread_count=thread_count)
            results = await run_analysis(app_set, reference, settings)
            if baseline is None:
                baseline = results
                continue
            assert _counts(results) == _counts(baseline)
            assert list(results.problem_groups) == list(baseline.problem_groups)

    @pytest.mark.asyncio
    async def test_fragments_staged_per_chunk(self, reference, tmp_path):
        app_set = build_application_set(_catalog())
        store = FragmentStore(tmp_path, app_set.fingerprint)
        store.prepare()
        settings = Settings(_env_file=None, thread_count=4)
        results = await run_analysis(app_set, reference, settings, store)

        staged = []
        for chunk_id in range(1, 5):
            staged.extend(store.read(DiagnosticCategory.QDB_ERROR, chunk_id))
        assert results.diagnostics == {}
        assert len(staged) == results.count(DiagnosticCategory.QDB_ERROR)
        assert [d.app_id for d in staged] == [
            d.app_id for d in collect_diagnostics(results, DiagnosticCategory.QDB_ERROR)
        ]
        assert len(store.read(DiagnosticCategory.QTY_OUTLIER)) == 1
        assert len(collect_diagnostics(results, DiagnosticCategory.FITMENT_LOGIC)) == 3

        assert store.cleanup() > 0
        assert list(store.directory.iterdir()) == []

    @pytest.mark.asyncio
    async def test_fitment_search_in_worker_processes(self, reference, tmp_path):
        app_set = build_application_set(_catalog())
        threaded = await run_analysis(
            app_set, reference, Settings(_env_file=None, stage_diagnostics=False, thread_count=3)
        )

        store = FragmentStore(tmp_path, app_set.fingerprint)
        store.prepare()
        settings = Settings(_env_file=None, thread_count=3, fitment_processes=True)
        results = await run_analysis(app_set, reference, settings, store)
        assert _counts(results) == _counts(threaded)
        assert list(results.problem_groups) == list(threaded.problem_groups)
        assert [a.id for a in results.problem_groups[1].apps] == [a.id for a in threaded.problem_groups[1].apps]
        assert len(collect_diagnostics(results, DiagnosticCategory.FITMENT_LOGIC)) == 3


class TestAnalyze:
    def test_blocking_wrapper(self, reference, run_settings):
        results = analyze(build_application_set(_catalog()), reference, run_settings)
        assert results.count(DiagnosticCategory.INVALID_BASE_VEHICLE) == 1
        assert results.elapsed_seconds >= 0
