"""Run configuration, resolved once before the attempt loop."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from autotune_runner.attempt_state import RetryPolicy
from autotune_runner.constants import (
    AUTO_TUNING_ENABLED,
    AUTO_TUNING_END_POINT,
    AUTO_TUNING_TIMEOUT,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_TUNING_TIMEOUT_S,
    HADOOP_TOKEN_FILE_LOCATION,
    JOB_LOG_FILE_ENV,
    JOB_LOG_FILE_PROP,
    SHOULD_PROXY,
    TUNING_ERROR_PATTERNS_FILE,
    TUNING_JOB_RETRY_COUNT,
    USER_TO_PROXY,
    WORKING_DIR,
)
from autotune_runner.identity import IdentityConfig


@dataclass
class RunConfig:
    """Configuration for one job run."""

    retry_policy: RetryPolicy
    working_dir: Path
    log_file: Optional[Path] = None
    identity: Optional[IdentityConfig] = None
    tuning_endpoint: Optional[str] = None
    tuning_timeout: float = DEFAULT_TUNING_TIMEOUT_S
    patterns_file: Optional[Path] = None


class ConfigError(Exception):
    """Raised when run configuration is missing or invalid."""
    pass


def _is_true(value: Optional[str]) -> bool:
    return str(value).strip().lower() in ("true", "1", "yes")


def _lookup(
    props: Mapping[str, str],
    environ: Mapping[str, str],
    prop_key: str,
    env_key: str,
) -> Optional[str]:
    """Job property first, environment second."""
    value = props.get(prop_key)
    if value:
        return value
    return environ.get(env_key) or None


def _max_attempts(props: Mapping[str, str], environ: Mapping[str, str]) -> int:
    raw = _lookup(props, environ, TUNING_JOB_RETRY_COUNT, "TUNING_JOB_RETRY_COUNT")
    if raw is None:
        return DEFAULT_MAX_ATTEMPTS
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{TUNING_JOB_RETRY_COUNT} must be an integer, got {raw!r}")
    if value < 1:
        raise ConfigError(f"{TUNING_JOB_RETRY_COUNT} must be at least 1, got {value}")
    return value


def _identity(props: Mapping[str, str], environ: Mapping[str, str]) -> Optional[IdentityConfig]:
    if not _is_true(props.get(SHOULD_PROXY)):
        return None
    user = props.get(USER_TO_PROXY)
    if not user:
        raise ConfigError(f"{SHOULD_PROXY} is set but {USER_TO_PROXY} is missing")
    token_file = environ.get(HADOOP_TOKEN_FILE_LOCATION)
    return IdentityConfig(user=user, token_file=Path(token_file) if token_file else None)


def _tuning_endpoint(props: Mapping[str, str], environ: Mapping[str, str]) -> Optional[str]:
    enabled = props.get(AUTO_TUNING_ENABLED)
    if enabled is not None and not _is_true(enabled):
        return None
    return _lookup(props, environ, AUTO_TUNING_END_POINT, "TUNING_ENDPOINT")


def load_config(
    job_props: Mapping[str, str],
    environ: Optional[Mapping[str, str]] = None,
) -> RunConfig:
    """
    Resolve run configuration from job properties and the environment.

    Args:
        job_props: Job properties from the job definition.
        environ: Environment mapping (default: os.environ after loading .env).

    Raises:
        ConfigError: If a setting is present but invalid.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    timeout_raw = job_props.get(AUTO_TUNING_TIMEOUT)
    try:
        timeout = float(timeout_raw) if timeout_raw else DEFAULT_TUNING_TIMEOUT_S
    except ValueError:
        raise ConfigError(f"{AUTO_TUNING_TIMEOUT} must be a number, got {timeout_raw!r}")

    log_file = environ.get(JOB_LOG_FILE_ENV) or job_props.get(JOB_LOG_FILE_PROP)
    patterns_file = _lookup(job_props, environ, TUNING_ERROR_PATTERNS_FILE, "TUNING_ERROR_PATTERNS_FILE")

    return RunConfig(
        retry_policy=RetryPolicy(max_attempts=_max_attempts(job_props, environ)),
        working_dir=Path(job_props.get(WORKING_DIR) or "."),
        log_file=Path(log_file) if log_file else None,
        identity=_identity(job_props, environ),
        tuning_endpoint=_tuning_endpoint(job_props, environ),
        tuning_timeout=timeout,
        patterns_file=Path(patterns_file) if patterns_file else None,
    )
