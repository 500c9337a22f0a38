"""Execution adapter interface and subprocess implementation."""

import os
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Mapping, MutableMapping, Optional, Sequence

from autotune_runner.attempt_state import ExecutionResult
from autotune_runner.constants import AUTO_TUNING_RETRY, AUTO_TUNING_RETRY_ENV, JOB_LOG_FILE_ENV


class ExecutionAdapter(ABC):
    """Runs one job attempt."""

    @abstractmethod
    def run(self, args: Sequence[str], config: Mapping[str, str]) -> ExecutionResult:
        """
        Execute the job once with a fully merged attempt config.

        Returns:
            ExecutionResult; a job that ran and failed is a result, not an error.

        Raises:
            AdapterInfrastructureError: The job could not be started at all.
        """
        pass


class AdapterInfrastructureError(Exception):
    """The adapter failed before the job produced any result."""
    pass


class JobFailedError(Exception):
    """A job attempt ran to completion and reported failure."""

    def __init__(self, message: str, result: ExecutionResult, attempt: int):
        super().__init__(message)
        self.result = result
        self.attempt = attempt


class SubprocessExecutionAdapter(ExecutionAdapter):
    """Runs the job command as a child process.

    The child inherits the current environment (including any injected
    resource and delegated identity) plus JOB_LOG_FILE and AUTO_TUNING_RETRY.
    Output is not captured; the engine writes its own log file, which is
    removed before every attempt.
    """

    def __init__(
        self,
        command: Sequence[str],
        log_file: Optional[Path] = None,
        environ: Optional[MutableMapping[str, str]] = None,
    ):
        self.command = list(command)
        self.log_file = Path(log_file) if log_file else None
        self.environ = os.environ if environ is None else environ

    def build_env(self, config: Mapping[str, str]) -> dict:
        env = dict(self.environ)
        if self.log_file is not None:
            env[JOB_LOG_FILE_ENV] = str(self.log_file)
        env[AUTO_TUNING_RETRY_ENV] = config.get(AUTO_TUNING_RETRY, "false")
        return env

    def run(self, args: Sequence[str], config: Mapping[str, str]) -> ExecutionResult:
        cmd: List[str] = self.command + [str(a) for a in args]
        try:
            # Each attempt is classified on its own log only
            if self.log_file is not None:
                self.log_file.unlink(missing_ok=True)
        except OSError as e:
            raise AdapterInfrastructureError(f"Cannot clear job log {self.log_file}: {e}")

        try:
            completed = subprocess.run(cmd, env=self.build_env(config))
        except OSError as e:
            raise AdapterInfrastructureError(f"Cannot start job command {cmd[0]}: {e}")

        if completed.returncode == 0:
            return ExecutionResult(succeeded=True, exit_code=0)

        return ExecutionResult(
            succeeded=False,
            log_artifact_ref=self.log_file,
            exit_code=completed.returncode,
        )
