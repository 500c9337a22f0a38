"""Tests for the CLI commands."""

import sys

import pytest
from click.testing import CliRunner

from autotune_runner.cli import TUNING_FAILURE_EXIT_CODE, cli
from autotune_runner.patterns import DEFAULT_TUNING_ERROR_PATTERNS


@pytest.fixture
def runner():
    return CliRunner()


class TestClassifyCommand:

    def test_tuning_caused_log(self, runner, tmp_path):
        log = tmp_path / "job.log"
        log.write_text("INFO start\nError: Java heap space\n")

        result = runner.invoke(cli, ["classify", str(log)])

        assert result.exit_code == TUNING_FAILURE_EXIT_CODE
        assert "Tuning-caused failure" in result.output
        assert "Java heap space" in result.output

    def test_clean_log(self, runner, tmp_path):
        log = tmp_path / "job.log"
        log.write_text("ERROR Input path does not exist\n")

        result = runner.invoke(cli, ["classify", str(log)])

        assert result.exit_code == 0
        assert "No tuning error pattern found" in result.output

    def test_missing_log(self, runner, tmp_path):
        result = runner.invoke(cli, ["classify", str(tmp_path / "missing.log")])

        assert result.exit_code == 0
        assert "unavailable" in result.output

    def test_custom_patterns_file(self, runner, tmp_path):
        log = tmp_path / "job.log"
        log.write_text("ERROR Too many fetch failures\n")
        patterns = tmp_path / "patterns.yaml"
        patterns.write_text("patterns:\n  - Too many fetch failures\n")

        result = runner.invoke(cli, ["classify", str(log), "--patterns-file", str(patterns)])

        assert result.exit_code == TUNING_FAILURE_EXIT_CODE


class TestPatternsCommand:

    def test_lists_defaults(self, runner):
        result = runner.invoke(cli, ["patterns"])

        assert result.exit_code == 0
        assert len(result.output.strip().splitlines()) == len(DEFAULT_TUNING_ERROR_PATTERNS)


class TestCheckConfigCommand:

    def test_valid_job(self, runner, tmp_path, monkeypatch):
        monkeypatch.delenv("TUNING_ENDPOINT", raising=False)
        monkeypatch.delenv("TUNING_JOB_RETRY_COUNT", raising=False)
        job = tmp_path / "job.yaml"
        job.write_text("job_id: j1\ncommand: pig -f a.pig\nprops:\n  tuning.job.retry.count: 3\n")

        result = runner.invoke(cli, ["check-config", str(job)])

        assert result.exit_code == 0
        assert "Max attempts: 3" in result.output

    def test_invalid_retry_count(self, runner, tmp_path):
        job = tmp_path / "job.yaml"
        job.write_text("job_id: j1\ncommand: run\nprops:\n  tuning.job.retry.count: 0\n")

        result = runner.invoke(cli, ["check-config", str(job)])

        assert result.exit_code == 1


class TestRunCommand:

    def test_invalid_definition(self, runner, tmp_path):
        job = tmp_path / "job.yaml"
        job.write_text("props: {}\n")

        result = runner.invoke(cli, ["run", str(job)])

        assert result.exit_code == 1

    def test_failing_job_exits_nonzero(self, runner, tmp_path, monkeypatch):
        monkeypatch.delenv("TUNING_ENDPOINT", raising=False)
        monkeypatch.delenv("JOB_LOG_FILE", raising=False)
        monkeypatch.setenv("TUNING_INJECT_FILE", "")
        job = tmp_path / "job.yaml"
        job.write_text(
            "job_id: j1\n"
            f"command: [\"{sys.executable}\", \"-c\", \"raise SystemExit(4)\"]\n"
            f"props:\n  working.dir: {tmp_path}\n"
        )

        result = runner.invoke(cli, ["run", str(job)])

        assert result.exit_code == 1
