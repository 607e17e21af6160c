"""Tests for the command line entry point."""

import json

import pytest

from aces_inspector.cli import main


def _write(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.fixture
def workspace(tmp_path):
    """Reference exports, a catalog, and output/temp directories."""
    vcdb = _write(
        tmp_path / "vcdb.json",
        {
            "version": "2024-01-26",
            "base_vehicles": {"5911": {"make": "Honda", "model": "Civic", "year": "2010"}},
            "attributes": {"SubModel": {"20": "LX", "21": "EX"}},
            "configurations": {},
        },
    )
    pcdb = _write(
        tmp_path / "pcdb.json",
        {
            "version": "2024-01-19",
            "part_types": {"1684": "Disc Brake Pad"},
            "positions": {"22": "Front"},
            "part_type_positions": [[1684, 22]],
        },
    )
    qdb = _write(tmp_path / "qdb.json", {"version": "2024-01-05", "qualifiers": {}})
    catalog = _write(
        tmp_path / "acme.json",
        {
            "header": {"title": "ACME", "vcdb_version": "2024-01-26"},
            "apps": [
                {"id": 1, "base_vehicle_id": 5911, "part_type_id": 1684, "position_id": 22, "quantity": 1,
                 "part": "BP1", "vcdb_attributes": [{"name": "SubModel", "value": 20}]},
                {"id": 2, "base_vehicle_id": 5911, "part_type_id": 1684, "position_id": 22, "quantity": 1,
                 "part": "BP2", "vcdb_attributes": [{"name": "SubModel", "value": 21}]},
                {"id": 3, "base_vehicle_id": 4, "part_type_id": 1684, "position_id": 22, "quantity": 1,
                 "part": "BP3"},
            ],
        },
    )
    output = tmp_path / "out"
    output.mkdir()
    temp = tmp_path / "tmp"
    temp.mkdir()
    return {
        "vcdb": vcdb,
        "pcdb": pcdb,
        "qdb": qdb,
        "catalog": catalog,
        "output": output,
        "temp": temp,
        "log": tmp_path / "run.log",
    }


def _argv(ws, *extra) -> list[str]:
    return [
        "-i", str(ws["catalog"]),
        "-v", str(ws["vcdb"]),
        "-p", str(ws["pcdb"]),
        "-q", str(ws["qdb"]),
        "-o", str(ws["output"]),
        "-t", str(ws["temp"]),
        *extra,
    ]


class TestMain:
    def test_successful_run(self, workspace):
        assert main(_argv(workspace, "-l", str(workspace["log"]))) == 0

        assessment = json.loads((workspace["output"] / "acme_assessment.json").read_text(encoding="utf-8"))
        assert assessment["stats"]["result"] == "Fail"
        assert assessment["stats"]["failure_reasons"] == ["1 invalid basevehicles"]
        assert assessment["stats"]["vcdb_analyzed_against"] == ""
        assert [d["app_id"] for d in assessment["diagnostics"]["invalidBasevehicles"]] == [3]
        assert list((workspace["temp"] / "fragments").iterdir()) == []
        assert workspace["catalog"].exists()
        assert "started" in workspace["log"].read_text(encoding="utf-8")

    def test_delete_input_on_success(self, workspace):
        assert main(_argv(workspace, "--delete")) == 0
        assert not workspace["catalog"].exists()

    def test_single_argument_prints_usage(self, capsys):
        assert main(["--help-me"]) == 1
        assert "usage: aces-inspector" in capsys.readouterr().out

    @pytest.mark.parametrize("key,message", [
        ("catalog", "input catalog file"),
        ("output", "output directory"),
        ("temp", "temp directory"),
        ("qdb", "Qdb file"),
    ])
    def test_preflight_failures(self, workspace, capsys, key, message):
        workspace[key] = workspace["temp"].parent / "does-not-exist"
        assert main(_argv(workspace)) == 1
        assert message in capsys.readouterr().out

    def test_bad_reference_data(self, workspace):
        workspace["vcdb"].write_text("{broken", encoding="utf-8")
        assert main(_argv(workspace)) == 1
        assert workspace["catalog"].exists()

    def test_switches_reach_settings(self, workspace, monkeypatch):
        seen = {}

        async def fake_run(args, run_settings):
            seen["settings"] = run_settings
            return 0

        monkeypatch.setattr("aces_inspector.cli.run", fake_run)
        assert main(_argv(workspace, "--threads", "3", "--disparate", "--report-all", "--use-assets", "--processes")) == 0
        run_settings = seen["settings"]
        assert run_settings.thread_count == 3
        assert run_settings.disparate_mode
        assert run_settings.report_all_apps_in_problem_group
        assert run_settings.use_assets_as_fitment
        assert run_settings.fitment_processes
        assert not run_settings.respect_qdb_type
