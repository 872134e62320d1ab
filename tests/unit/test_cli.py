"""
Unit tests for the command line entry point.
"""

import pytest

from conformance import cli
from conformance.runner import FAILED, PASSED, RunReport, ScenarioResult


class TestList:

    def test_lists_bundled_scenarios(self, capsys):
        assert cli.main(["list"]) == 0
        out = capsys.readouterr().out.splitlines()
        assert len(out) == 4
        assert out[0] == "listCollectionObjects.yml :: ListCollectionObjects succeeds on first attempt"


class TestValidate:

    def test_bundled_fixtures_are_valid(self, capsys):
        assert cli.main(["validate"]) == 0
        assert capsys.readouterr().out == ""

    def test_invalid_fixture(self, tmp_path, capsys):
        path = tmp_path / "broken.yml"
        path.write_text(
            "database_name: db\n"
            "tests:\n"
            "  - description: no operations\n"
        )
        assert cli.main(["validate", str(path)]) == 1
        assert "tests[0].operations must be a non-empty list" in capsys.readouterr().out

    def test_unparseable_fixture(self, tmp_path, capsys):
        path = tmp_path / "list.yml"
        path.write_text("- just\n- a list\n")
        assert cli.main(["validate", str(path)]) == 1
        assert "must be a mapping" in capsys.readouterr().out

    def test_missing_directory(self, tmp_path):
        assert cli.main(["validate", str(tmp_path / "missing")]) == 2


class TestRun:

    @pytest.fixture
    def fake_runner(self, monkeypatch):
        created = []

        class FakeRunner:
            def __init__(self, config):
                self.config = config
                self.closed = False
                created.append(self)

            def run_paths(self, paths):
                report = RunReport()
                report.add(ScenarioResult("a.yml", "first", PASSED))
                if self.config.fail_fast:
                    report.add(ScenarioResult("a.yml", "second", FAILED, ["boom"]))
                return report

            def close(self):
                self.closed = True

        monkeypatch.setattr(cli, "SpecRunner", FakeRunner)
        return created

    def test_run_passes(self, fake_runner, capsys):
        assert cli.main(["run", "--uri", "mongodb://localhost:27017"]) == 0
        out = capsys.readouterr().out
        assert "PASSED   a.yml :: first" in out
        assert "1 passed, 0 failed, 0 skipped" in out
        assert fake_runner[0].config.mongodb_uri == "mongodb://localhost:27017"
        assert fake_runner[0].closed

    def test_run_fails(self, fake_runner, capsys):
        assert cli.main(["run", "--fail-fast"]) == 1
        out = capsys.readouterr().out
        assert "FAILED   a.yml :: second" in out
        assert "boom" in out


class TestFetch:

    def test_fetch(self, monkeypatch, tmp_path, capsys):
        calls = []

        def _download(paths, dest, ref):
            calls.append((paths, dest, ref))
            return [tmp_path / "listCollectionObjects.yml"]

        monkeypatch.setattr(cli, "download_spec_files", _download)
        code = cli.main([
            "fetch", "source/retryable-reads/tests/listCollectionObjects.yml",
            "--dest", str(tmp_path), "--ref", "v1.0",
        ])
        assert code == 0
        assert calls == [(["source/retryable-reads/tests/listCollectionObjects.yml"], str(tmp_path), "v1.0")]
        assert "listCollectionObjects.yml" in capsys.readouterr().out
