"""Tests for aggregation of per-chunk results."""

from aces_inspector.config import Settings
from aces_inspector.schemas.analysis import AnalysisChunk, ChunkGroup, Diagnostic, DiagnosticCategory
from aces_inspector.schemas.catalog import App
from aces_inspector.services.aggregator import aggregate


def _make_app(app_id: int) -> App:
    return App(id=app_id, base_vehicle_id=5911, part_type_id=1684, position_id=22, quantity=1, part=f"BP{app_id}")


def _chunk_with(chunk_id: int, category: DiagnosticCategory, app_ids: list[int]) -> AnalysisChunk:
    chunk = AnalysisChunk(id=chunk_id, apps=[_make_app(i) for i in app_ids])
    for app_id in app_ids:
        chunk.record(Diagnostic(category=category, app_id=app_id))
    return chunk


def _fitment_chunk(chunk_id: int, app_ids: list[int], problem_ids: list[int], badness: int = 0) -> AnalysisChunk:
    chunk = AnalysisChunk(id=chunk_id, apps=[_make_app(i) for i in app_ids])
    chunk.problem_apps = [a for a in chunk.apps if a.id in problem_ids]
    chunk.lowest_badness = badness
    chunk.lowest_badness_permutation = ["vcdb:SubModel"] if badness else []
    return chunk


class TestAggregate:
    def test_counts_summed_and_diagnostics_in_chunk_order(self):
        individual = [
            _chunk_with(1, DiagnosticCategory.QDB_ERROR, [1, 2]),
            _chunk_with(2, DiagnosticCategory.QDB_ERROR, [3]),
        ]
        outliers = [_chunk_with(1, DiagnosticCategory.QTY_OUTLIER, [9])]
        results = aggregate(individual, outliers, [], Settings(_env_file=None))
        assert results.count(DiagnosticCategory.QDB_ERROR) == 3
        assert results.count(DiagnosticCategory.QTY_OUTLIER) == 1
        assert results.count(DiagnosticCategory.PARTTYPE_POSITION) == 0
        assert [d.app_id for d in results.diagnostics[DiagnosticCategory.QDB_ERROR]] == [1, 2, 3]

    def test_problem_groups_numbered_in_partition_order(self):
        chunk_groups = [
            ChunkGroup(id=1, chunks=[_fitment_chunk(1, [1, 2], [2], 3), _fitment_chunk(2, [3], [])]),
            ChunkGroup(id=2, chunks=[_fitment_chunk(3, [4, 5, 6], [4, 6], 6)]),
        ]
        results = aggregate([], [], chunk_groups, Settings(_env_file=None))
        assert list(results.problem_groups) == [1, 2]
        assert [a.id for a in results.problem_groups[1].apps] == [2]
        assert [a.id for a in results.problem_groups[2].apps] == [4, 6]
        assert results.problem_groups[2].badness == 6
        assert results.problem_groups[2].permutation == ["vcdb:SubModel"]
        assert results.count(DiagnosticCategory.FITMENT_LOGIC) == 3

    def test_report_all_apps_in_problem_group(self):
        chunk_groups = [ChunkGroup(id=1, chunks=[_fitment_chunk(1, [1, 2, 3], [2], 3)])]
        results = aggregate(
            [], [], chunk_groups, Settings(_env_file=None, report_all_apps_in_problem_group=True)
        )
        assert [a.id for a in results.problem_groups[1].apps] == [1, 2, 3]
        # the count is still the problem apps, not the reported ones
        assert results.count(DiagnosticCategory.FITMENT_LOGIC) == 1

    def test_error_count_excludes_warnings(self):
        individual = [_chunk_with(1, DiagnosticCategory.INVALID_BASE_VEHICLE, [1])]
        outliers = [_chunk_with(1, DiagnosticCategory.ASSET_PROBLEM, [2, 3])]
        results = aggregate(individual, outliers, [], Settings(_env_file=None))
        assert results.error_count == 1
