"""Attempt state and outcome types for the tuning retry loop."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from autotune_runner.constants import DEFAULT_MAX_ATTEMPTS


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = DEFAULT_MAX_ATTEMPTS

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")


@dataclass
class AttemptState:
    attempt_index: int = 1
    retry_requested: bool = False
    classified_tuning_failure: bool = False

    def should_run(self, policy: RetryPolicy) -> bool:
        """True while another loop iteration is allowed."""
        if self.attempt_index > policy.max_attempts:
            return False
        return self.attempt_index == 1 or self.retry_requested


@dataclass
class ExecutionResult:
    succeeded: bool
    log_artifact_ref: Optional[Path] = None
    exit_code: Optional[int] = None


@dataclass(frozen=True)
class ClassificationResult:
    is_tuning_caused: bool = False
    matched_line: Optional[str] = None
    matched_pattern: Optional[str] = None
    lines_scanned: int = 0
    artifact_available: bool = True


class FailureKind(str, Enum):
    PROVISIONING_OR_INJECTION = "PROVISIONING_OR_INJECTION"
    CLASSIFIABLE_EXECUTION = "CLASSIFIABLE_EXECUTION"
    UNCLASSIFIABLE_EXECUTION = "UNCLASSIFIABLE_EXECUTION"
    ADAPTER_INFRASTRUCTURE = "ADAPTER_INFRASTRUCTURE"


@dataclass(frozen=True)
class Success:
    attempts: int

    @property
    def succeeded(self) -> bool:
        return True


@dataclass(frozen=True)
class FatalFailure:
    cause: BaseException
    kind: FailureKind
    attempts: int
    tuning_caused: bool = False  # True only when tuning retries were exhausted

    @property
    def succeeded(self) -> bool:
        return False


TerminalOutcome = Union[Success, FatalFailure]
