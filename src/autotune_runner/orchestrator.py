"""Attempt orchestrator - the bounded tuning retry loop.

Each attempt: provision parameters, inject configuration, run the job under
the delegated identity. A failed attempt is retried with fallback parameters
only when its log matches a known tuning failure and attempts remain.
"""

from contextlib import nullcontext
from pathlib import Path
from typing import Callable, ContextManager, Dict, Mapping, Optional, Sequence, Union

from autotune_runner.adapter import ExecutionAdapter, JobFailedError
from autotune_runner.attempt_state import (
    AttemptState,
    ClassificationResult,
    ExecutionResult,
    FailureKind,
    FatalFailure,
    RetryPolicy,
    Success,
    TerminalOutcome,
)
from autotune_runner.classifier import FailureClassifier
from autotune_runner.constants import AUTO_TUNING_RETRY
from autotune_runner.injector import ConfigurationInjector
from autotune_runner.provisioner import ParameterProvisioner


class AttemptOrchestrator:
    """Owns the attempt loop; collaborators are injected."""

    def __init__(
        self,
        provisioner: ParameterProvisioner,
        adapter: ExecutionAdapter,
        classifier: FailureClassifier,
        injector: Optional[ConfigurationInjector] = None,
        identity_scope: Optional[Callable[[], ContextManager]] = None,
        working_dir: Path = Path("."),
        job_args: Sequence[str] = (),
    ):
        self.provisioner = provisioner
        self.adapter = adapter
        self.classifier = classifier
        self.injector = injector
        self.identity_scope = identity_scope or nullcontext
        self.working_dir = Path(working_dir)
        self.job_args = list(job_args)

    # --- Steps (shared with the attempt graph) ---

    def build_attempt_config(
        self,
        initial_config: Mapping[str, str],
        retry_requested: bool,
    ) -> Dict[str, str]:
        """Fresh copy of initial_config, merged with provisioned parameters and tagged."""
        config = dict(initial_config)
        config.update(self.provisioner.get_parameters(retry_requested))
        config[AUTO_TUNING_RETRY] = "true" if retry_requested else "false"
        return config

    def provision(
        self,
        initial_config: Mapping[str, str],
        state: AttemptState,
    ) -> Union[Dict[str, str], FatalFailure]:
        """Build and inject the attempt config. Failures here are never retried."""
        try:
            config = self.build_attempt_config(initial_config, state.retry_requested)
            if self.injector is not None:
                self.injector.prepare(config, self.working_dir)
                self.injector.inject(config)
        except Exception as e:
            print(f"Attempt {state.attempt_index}: provisioning failed: {e}")
            return FatalFailure(
                cause=e,
                kind=FailureKind.PROVISIONING_OR_INJECTION,
                attempts=state.attempt_index,
            )
        return config

    def invoke(
        self,
        config: Mapping[str, str],
        state: AttemptState,
    ) -> Union[ExecutionResult, FatalFailure]:
        """Run the adapter inside the identity scope."""
        try:
            with self.identity_scope():
                return self.adapter.run(self.job_args, config)
        except Exception as e:
            print(f"Attempt {state.attempt_index}: job could not be executed: {e}")
            return FatalFailure(
                cause=e,
                kind=FailureKind.ADAPTER_INFRASTRUCTURE,
                attempts=state.attempt_index,
            )

    def classify_failure(self, result: ExecutionResult) -> Optional[ClassificationResult]:
        """Classify a failed result; None when there is no log to inspect."""
        if result.log_artifact_ref is None:
            return None
        return self.classifier.classify(result.log_artifact_ref)

    def settle_failure(
        self,
        result: ExecutionResult,
        classification: Optional[ClassificationResult],
        state: AttemptState,
        policy: RetryPolicy,
    ) -> Optional[FatalFailure]:
        """
        Decide what follows a failed attempt.

        Advances state and returns None when a retry is due, otherwise
        returns the FatalFailure that ends the run.
        """
        tuning_caused = classification is not None and classification.is_tuning_caused
        state.retry_requested = False
        state.classified_tuning_failure = tuning_caused

        print(
            f"Attempt {state.attempt_index}/{policy.max_attempts} failed "
            f"(exit code {result.exit_code}, tuning-caused: {tuning_caused})"
        )

        if tuning_caused and state.attempt_index < policy.max_attempts:
            print("Failure caused by auto tuning parameters, retrying with fallback parameters")
            state.retry_requested = True
            state.attempt_index += 1
            return None

        if classification is None:
            kind = FailureKind.UNCLASSIFIABLE_EXECUTION
        else:
            kind = FailureKind.CLASSIFIABLE_EXECUTION

        if tuning_caused:
            message = (
                f"Job failed on attempt {state.attempt_index}: tuning retries exhausted "
                f"after {policy.max_attempts} attempt(s)"
            )
        else:
            message = f"Job failed on attempt {state.attempt_index} (exit code {result.exit_code})"

        return FatalFailure(
            cause=JobFailedError(message, result, state.attempt_index),
            kind=kind,
            attempts=state.attempt_index,
            tuning_caused=tuning_caused,
        )

    def release_resources(self) -> None:
        if self.injector is not None:
            self.injector.withdraw()

    # --- Loop ---

    def run(self, initial_config: Mapping[str, str], retry_policy: RetryPolicy) -> TerminalOutcome:
        """
        Run attempts until success, a fatal failure, or exhaustion.

        The adapter is invoked at most retry_policy.max_attempts times.
        Injected resources are withdrawn once the run ends.
        """
        try:
            return self._run_attempts(initial_config, retry_policy)
        finally:
            self.release_resources()

    def _run_attempts(self, initial_config: Mapping[str, str], retry_policy: RetryPolicy) -> TerminalOutcome:
        state = AttemptState()

        while state.should_run(retry_policy):
            config = self.provision(initial_config, state)
            if isinstance(config, FatalFailure):
                return config

            result = self.invoke(config, state)
            if isinstance(result, FatalFailure):
                return result

            if result.succeeded:
                print(f"Attempt {state.attempt_index} succeeded")
                return Success(attempts=state.attempt_index)

            classification = self.classify_failure(result)
            outcome = self.settle_failure(result, classification, state, retry_policy)
            if outcome is not None:
                return outcome

        raise RuntimeError("Attempt loop ended without a terminal outcome")
