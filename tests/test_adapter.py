"""Tests for the subprocess execution adapter."""

import sys

import pytest

from autotune_runner.adapter import AdapterInfrastructureError, SubprocessExecutionAdapter
from autotune_runner.constants import AUTO_TUNING_RETRY, AUTO_TUNING_RETRY_ENV, JOB_LOG_FILE_ENV


class TestSubprocessExecutionAdapter:

    def test_zero_exit_is_success(self, tmp_path):
        adapter = SubprocessExecutionAdapter([sys.executable, "-c", "pass"], log_file=tmp_path / "job.log")

        result = adapter.run([], {})

        assert result.succeeded is True
        assert result.exit_code == 0
        assert result.log_artifact_ref is None

    def test_nonzero_exit_carries_log_reference(self, tmp_path):
        log = tmp_path / "job.log"
        adapter = SubprocessExecutionAdapter(
            [sys.executable, "-c", "import sys; sys.exit(int(sys.argv[1]))"],
            log_file=log,
        )

        result = adapter.run(["7"], {})

        assert result.succeeded is False
        assert result.exit_code == 7
        assert result.log_artifact_ref == log

    def test_failure_without_log_file(self):
        adapter = SubprocessExecutionAdapter([sys.executable, "-c", "raise SystemExit(2)"])

        result = adapter.run([], {})

        assert result.succeeded is False
        assert result.log_artifact_ref is None

    def test_child_sees_log_path_and_retry_flag(self, tmp_path):
        log = tmp_path / "job.log"
        script = (
            "import os, pathlib; "
            "pathlib.Path(os.environ['JOB_LOG_FILE']).write_text(os.environ['AUTO_TUNING_RETRY'])"
        )
        adapter = SubprocessExecutionAdapter([sys.executable, "-c", script], log_file=log)

        adapter.run([], {AUTO_TUNING_RETRY: "true"})

        assert log.read_text() == "true"

    def test_missing_executable_is_infrastructure_error(self, tmp_path):
        adapter = SubprocessExecutionAdapter([str(tmp_path / "no-such-engine")])

        with pytest.raises(AdapterInfrastructureError):
            adapter.run([], {})

    def test_retry_flag_defaults_to_false(self, tmp_path):
        adapter = SubprocessExecutionAdapter([sys.executable], log_file=tmp_path / "job.log", environ={})

        env = adapter.build_env({})

        assert env[AUTO_TUNING_RETRY_ENV] == "false"
        assert env[JOB_LOG_FILE_ENV] == str(tmp_path / "job.log")

    def test_log_holds_only_the_latest_attempt(self, tmp_path):
        log = tmp_path / "job.log"
        log.write_text("left over from an earlier run\n")
        script = (
            "import os, sys\n"
            "with open(os.environ['JOB_LOG_FILE'], 'a') as f:\n"
            "    f.write('retry=' + os.environ['AUTO_TUNING_RETRY'] + '\\n')\n"
            "sys.exit(1)\n"
        )
        adapter = SubprocessExecutionAdapter([sys.executable, "-c", script], log_file=log)

        adapter.run([], {AUTO_TUNING_RETRY: "false"})
        assert log.read_text() == "retry=false\n"

        adapter.run([], {AUTO_TUNING_RETRY: "true"})
        assert log.read_text() == "retry=true\n"

    def test_uncleared_log_is_infrastructure_error(self, tmp_path):
        log = tmp_path / "job.log"
        log.mkdir()
        adapter = SubprocessExecutionAdapter([sys.executable, "-c", "pass"], log_file=log)

        with pytest.raises(AdapterInfrastructureError):
            adapter.run([], {})
