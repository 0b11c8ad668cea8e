"""End-to-end tests for CLI workflow.

Tests the full report → check → history → prune → export pipeline on a
real store, the way a CI job drives it.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from benchkeeper.cli.main import app

runner = CliRunner()


def framework_results(pull_times: list[float], full_times: list[float]) -> str:
    """Results as written by the benchmark framework for one image."""
    return json.dumps(
        {
            "commit": "ignored",
            "benchmarkTests": [
                {
                    "testName": "ffmpeg",
                    "numberOfTests": len(pull_times),
                    "fullRunStats": {"BenchmarkTimes": full_times},
                    "pullStats": {"BenchmarkTimes": pull_times},
                }
            ],
        }
    )


@pytest.mark.e2e
class TestCLIWorkflow:
    """E2E tests for the CLI workflow."""

    @pytest.fixture
    def workspace(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("GITHUB_EVENT_PATH", raising=False)
        return tmp_path

    def _report(self, workspace: Path, commit: str, pull: list[float], full: list[float]) -> dict:
        run = workspace / f"{commit}.json"
        run.write_text(framework_results(pull, full))
        result = runner.invoke(
            app,
            [
                "--json",
                "--store",
                str(workspace / "gh-pages" / "data.js"),
                "report",
                "soci-perf",
                "--input",
                str(run),
                "--commit-hash",
                commit,
                "--author-name",
                "Jane Doe",
                "--author-email",
                "jane@example.com",
                "--commit-timestamp",
                "2024-03-01T12:00:00Z",
            ],
        )
        data = json.loads(result.stdout)
        data["exit_code"] = result.exit_code
        return data

    def test_ci_history(self, workspace: Path) -> None:
        """Runs accumulate, a regression is flagged, and history stays intact."""
        store = workspace / "gh-pages" / "data.js"

        # Cold start: the first runs are inconclusive but never fail CI
        first = self._report(workspace, "c0", [9.0, 1.0, 1.1, 1.0], [30.0, 5.0, 5.2, 5.1])
        assert first["verdict"]["status"] == "inconclusive"
        assert first["exit_code"] == 0

        for i in range(1, 4):
            outcome = self._report(workspace, f"c{i}", [9.0, 1.0, 1.1, 1.0], [30.0, 5.0, 5.2, 5.1])
            assert outcome["exit_code"] == 0

        # Steady state: the cold first repetition is excluded, so this passes
        steady = self._report(workspace, "c4", [60.0, 1.05, 1.1, 1.0], [30.0, 5.0, 5.3, 5.1])
        assert steady["verdict"]["status"] == "pass"
        assert steady["exit_code"] == 0

        # Regression on pulls only
        slow = self._report(workspace, "c5", [9.0, 1.6, 1.5, 1.7], [30.0, 5.0, 5.2, 5.1])
        assert slow["exit_code"] == 1
        statuses = {m["name"]: m["status"] for m in slow["verdict"]["metrics"]}
        assert statuses == {"ffmpeg-fullRunDuration": "pass", "ffmpeg-pullDuration": "flagged"}

        # The flagged run is recorded, and re-reporting it changes nothing
        again = self._report(workspace, "c5", [9.0, 1.0, 1.0, 1.0], [30.0, 5.0, 5.0, 5.0])
        assert again["metadata"]["duplicate"] is True
        assert again["metadata"]["history_length"] == 6

        check = runner.invoke(app, ["--json", "--store", str(store), "check", "soci-perf", "c5"])
        assert check.exit_code == 1
        assert json.loads(check.stdout)["verdict"]["commit"] == "c5"

        history = runner.invoke(app, ["--json", "--store", str(store), "history", "soci-perf"])
        hashes = [entry["commit"]["hash"] for entry in json.loads(history.stdout)["entries"]]
        assert hashes == ["c0", "c1", "c2", "c3", "c4", "c5"]

        # The store is a chart data script
        assert store.read_text().startswith("window.BENCHMARK_DATA = ")

        exported = workspace / "export.json"
        export = runner.invoke(app, ["--store", str(store), "export", "--output", str(exported)])
        assert export.exit_code == 0
        assert len(json.loads(exported.read_text())["entries"]["soci-perf"]) == 6

        prune = runner.invoke(app, ["--store", str(store), "prune", "soci-perf", "--max-records", "3", "--yes"])
        assert prune.exit_code == 0
        history = runner.invoke(app, ["--json", "--store", str(store), "history", "soci-perf"])
        hashes = [entry["commit"]["hash"] for entry in json.loads(history.stdout)["entries"]]
        assert hashes == ["c3", "c4", "c5"]

    def test_malformed_history_entry(self, workspace: Path) -> None:
        """A hand-edited broken entry is skipped, not fatal."""
        for i in range(4):
            self._report(workspace, f"c{i}", [9.0, 1.0, 1.1, 1.0], [30.0, 5.0, 5.2, 5.1])

        store = workspace / "gh-pages" / "data.js"
        content = store.read_text()
        document = json.loads(content.split("=", 1)[1])
        document["entries"]["soci-perf"][1]["benches"] = "corrupted"
        store.write_text("window.BENCHMARK_DATA = " + json.dumps(document))

        outcome = self._report(workspace, "c4", [9.0, 1.0, 1.1, 1.0], [30.0, 5.0, 5.2, 5.1])

        assert outcome["exit_code"] == 0
        assert outcome["verdict"]["status"] == "pass"
        assert outcome["verdict"]["excluded"] == 1
        assert outcome["verdict"]["baseline_records"] == 3
