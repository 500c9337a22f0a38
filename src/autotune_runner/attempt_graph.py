"""LangGraph wrapper for the attempt loop - trace harness only.

Wraps the orchestrator's step methods in a StateGraph so each phase of an
attempt is visible as a node in LangGraph Studio.

NO new orchestration logic. Same semantics as AttemptOrchestrator.run().
"""

from typing import Any, Dict, Optional
from typing_extensions import TypedDict

from langgraph.graph import StateGraph, END

from autotune_runner.attempt_state import (
    AttemptState,
    FatalFailure,
    RetryPolicy,
    Success,
    TerminalOutcome,
)
from autotune_runner.orchestrator import AttemptOrchestrator


class AttemptGraphState(TypedDict):
    """State for the attempt graph - mirrors AttemptState plus step outputs."""
    initial_config: Dict[str, str]
    max_attempts: int
    attempt_index: int
    retry_requested: bool
    classified_tuning_failure: bool
    attempt_config: Optional[Dict[str, str]]
    result: Any  # ExecutionResult of the latest attempt
    outcome: Any  # TerminalOutcome once reached
    # Orchestrator reference (passed through state)
    orchestrator: Any


def graph_state_to_attempt_state(state: AttemptGraphState) -> AttemptState:
    return AttemptState(
        attempt_index=state["attempt_index"],
        retry_requested=state["retry_requested"],
        classified_tuning_failure=state["classified_tuning_failure"],
    )


def attempt_state_to_dict(attempt: AttemptState) -> dict:
    return {
        "attempt_index": attempt.attempt_index,
        "retry_requested": attempt.retry_requested,
        "classified_tuning_failure": attempt.classified_tuning_failure,
    }


# --- Graph Nodes ---

def node_start(state: AttemptGraphState) -> dict:
    """Initialize the first attempt."""
    return {
        "attempt_index": 1,
        "retry_requested": False,
        "classified_tuning_failure": False,
        "attempt_config": None,
        "result": None,
        "outcome": None,
    }


def node_provision(state: AttemptGraphState) -> dict:
    """Provision parameters and inject configuration."""
    attempt = graph_state_to_attempt_state(state)
    config = state["orchestrator"].provision(state["initial_config"], attempt)
    if isinstance(config, FatalFailure):
        return {"outcome": config, "attempt_config": None}
    return {"attempt_config": config}


def node_execute(state: AttemptGraphState) -> dict:
    """Run the job once."""
    attempt = graph_state_to_attempt_state(state)
    result = state["orchestrator"].invoke(state["attempt_config"], attempt)
    if isinstance(result, FatalFailure):
        return {"outcome": result}
    if result.succeeded:
        return {"result": result, "outcome": Success(attempts=attempt.attempt_index)}
    return {"result": result}


def node_classify(state: AttemptGraphState) -> dict:
    """Classify the failure and decide retry vs fatal."""
    orchestrator = state["orchestrator"]
    attempt = graph_state_to_attempt_state(state)
    policy = RetryPolicy(max_attempts=state["max_attempts"])
    classification = orchestrator.classify_failure(state["result"])
    outcome = orchestrator.settle_failure(state["result"], classification, attempt, policy)
    return {**attempt_state_to_dict(attempt), "outcome": outcome}


# --- Conditional Edges ---

def after_provision(state: AttemptGraphState) -> str:
    return "end" if state["outcome"] is not None else "execute"


def after_execute(state: AttemptGraphState) -> str:
    return "end" if state["outcome"] is not None else "classify"


def after_classify(state: AttemptGraphState) -> str:
    if state["outcome"] is not None:
        return "end"
    attempt = graph_state_to_attempt_state(state)
    if attempt.should_run(RetryPolicy(max_attempts=state["max_attempts"])):
        return "retry"
    return "end"


# --- Graph Builder ---

def build_attempt_graph() -> StateGraph:
    """
    Build the attempt graph.

    Flow:
        start -> provision -> execute -> (success / fatal?) -> end
                                      -> (failed) -> classify -> (retry?) -> provision
                                                              -> end
    """
    graph = StateGraph(AttemptGraphState)

    graph.add_node("start", node_start)
    graph.add_node("provision", node_provision)
    graph.add_node("execute", node_execute)
    graph.add_node("classify", node_classify)

    graph.set_entry_point("start")

    graph.add_edge("start", "provision")
    graph.add_conditional_edges(
        "provision",
        after_provision,
        {"end": END, "execute": "execute"},
    )
    graph.add_conditional_edges(
        "execute",
        after_execute,
        {"end": END, "classify": "classify"},
    )
    graph.add_conditional_edges(
        "classify",
        after_classify,
        {"end": END, "retry": "provision"},
    )

    return graph


def run_attempt_graph(
    orchestrator: AttemptOrchestrator,
    initial_config: Dict[str, str],
    retry_policy: RetryPolicy,
) -> TerminalOutcome:
    """
    Run the attempt graph and return the terminal outcome.

    This is the traced equivalent of AttemptOrchestrator.run().
    """
    compiled = build_attempt_graph().compile()

    initial_state: AttemptGraphState = {
        "initial_config": dict(initial_config),
        "max_attempts": retry_policy.max_attempts,
        "attempt_index": 1,
        "retry_requested": False,
        "classified_tuning_failure": False,
        "attempt_config": None,
        "result": None,
        "outcome": None,
        "orchestrator": orchestrator,
    }

    # Each attempt visits at most three nodes
    recursion_limit = 3 * retry_policy.max_attempts + 5
    try:
        final_state = compiled.invoke(initial_state, {"recursion_limit": recursion_limit})
    finally:
        orchestrator.release_resources()

    outcome = final_state["outcome"]
    if outcome is None:
        raise RuntimeError("Attempt graph ended without a terminal outcome")
    return outcome
