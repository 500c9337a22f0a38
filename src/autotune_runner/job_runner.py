"""Thin job runner.

Loads a job definition, resolves configuration, wires the collaborators,
runs the attempt loop and applies the termination contract.
"""

import os
import sys
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Callable, Mapping, MutableMapping, Optional

from autotune_runner.adapter import ExecutionAdapter, SubprocessExecutionAdapter
from autotune_runner.attempt_state import FailureKind, FatalFailure, TerminalOutcome
from autotune_runner.classifier import FailureClassifier
from autotune_runner.config import RunConfig, load_config
from autotune_runner.identity import delegated_identity
from autotune_runner.injector import ConfigurationInjector
from autotune_runner.job_definition import JobDefinition, load_job_definition
from autotune_runner.orchestrator import AttemptOrchestrator
from autotune_runner.patterns import load_registry
from autotune_runner.provisioner import (
    ParameterProvisioner,
    StaticParameterProvisioner,
    TuningServiceProvisioner,
)


def force_terminate(exit_code: int = 1) -> None:
    """Kill the process without unwinding; used when the job produced nothing."""
    print(f"Forcing termination with exit code {exit_code}", file=sys.stderr)
    sys.stdout.flush()
    sys.stderr.flush()
    os._exit(exit_code)


def build_provisioner(job: JobDefinition, run_config: RunConfig) -> ParameterProvisioner:
    """Tuning service client when an endpoint is configured, else job defaults."""
    if run_config.tuning_endpoint:
        return TuningServiceProvisioner(
            endpoint=run_config.tuning_endpoint,
            job_props=job.initial_config(),
            timeout=run_config.tuning_timeout,
        )
    print("Auto tuning endpoint not configured, running with default parameters")
    return StaticParameterProvisioner()


def build_orchestrator(
    job: JobDefinition,
    run_config: RunConfig,
    provisioner: Optional[ParameterProvisioner] = None,
    adapter: Optional[ExecutionAdapter] = None,
    environ: Optional[MutableMapping[str, str]] = None,
) -> AttemptOrchestrator:
    env = os.environ if environ is None else environ
    return AttemptOrchestrator(
        provisioner=provisioner or build_provisioner(job, run_config),
        adapter=adapter or SubprocessExecutionAdapter(job.command, run_config.log_file, env),
        classifier=FailureClassifier(registry=load_registry(run_config.patterns_file)),
        injector=ConfigurationInjector(environ=env),
        identity_scope=partial(delegated_identity, run_config.identity, env),
        working_dir=run_config.working_dir,
        job_args=job.args,
    )


def finish(
    outcome: TerminalOutcome,
    terminate: Callable[[int], None] = force_terminate,
) -> None:
    """
    Apply the termination contract.

    - Success: return normally.
    - Adapter infrastructure failure (no result at all): forced termination.
    - Any other failure: re-raise the original cause.
    """
    if not isinstance(outcome, FatalFailure):
        return
    if outcome.kind == FailureKind.ADAPTER_INFRASTRUCTURE:
        terminate(1)
        return
    raise outcome.cause


def run_job(
    job_file: Path,
    use_graph: bool = False,
    environ: Optional[Mapping[str, str]] = None,
    provisioner: Optional[ParameterProvisioner] = None,
    adapter: Optional[ExecutionAdapter] = None,
) -> TerminalOutcome:
    """
    Main entry point: load the job, run the attempt loop, print a summary.

    Args:
        job_file: Path to job definition (YAML or JSON)
        use_graph: If True, run through the LangGraph attempt graph
        environ: Environment override (default: os.environ)
        provisioner: Provisioner override (default: from configuration)
        adapter: Adapter override (default: subprocess running job.command)

    Returns:
        TerminalOutcome of the run; the caller applies finish().
    """
    job = load_job_definition(job_file)
    run_config = load_config(job.props, environ)
    orchestrator = build_orchestrator(job, run_config, provisioner, adapter, environ)

    start_time = datetime.now()

    if use_graph:
        from autotune_runner.attempt_graph import run_attempt_graph
        outcome = run_attempt_graph(orchestrator, job.initial_config(), run_config.retry_policy)
    else:
        outcome = orchestrator.run(job.initial_config(), run_config.retry_policy)

    duration = (datetime.now() - start_time).total_seconds()

    print("Job run complete.")
    print(f"  Job: {job.job_id}")
    print(f"  Status: {'SUCCESS' if outcome.succeeded else 'FAILED'}")
    print(f"  Attempts: {outcome.attempts}/{run_config.retry_policy.max_attempts}")
    if isinstance(outcome, FatalFailure):
        print(f"  Failure: {outcome.kind.value}")
        print(f"  Cause: {outcome.cause}")
    print(f"  Duration: {duration:.1f}s")

    return outcome
