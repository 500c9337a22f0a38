"""Parameter provisioner interface and tuning service implementation."""

import json
from abc import ABC, abstractmethod
from typing import Dict, List, Mapping, Optional, Tuple

import httpx

from autotune_runner.constants import (
    AUTO_TUNING_JOB_TYPE,
    AUTO_TUNING_OPTIMIZATION_METRIC,
    DEFAULT_TUNING_TIMEOUT_S,
    EXEC_ID,
    EXECUTION_LINK,
    FLOW_ID,
    INJECT_PREFIX,
    JOB_ID,
    JOB_LINK,
    PROJECT_NAME,
    SUBMIT_USER,
    TUNING_CLIENT_NAME,
)
from autotune_runner.job_definition import props_with_prefix


class ParameterProvisioner(ABC):
    """Supplies the parameter set for the next attempt."""

    @abstractmethod
    def get_parameters(self, retry_requested: bool) -> Dict[str, str]:
        """
        Return parameters to merge into the attempt config.

        Args:
            retry_requested: False for a fresh request, True when asking for
                             fallback parameters after a tuning failure.

        Raises:
            ProvisioningError: When no usable parameter set can be produced.
        """
        pass


class ProvisioningError(Exception):
    """Error obtaining tuning parameters."""
    pass


class StaticParameterProvisioner(ParameterProvisioner):
    """Fixed parameter sets: one for fresh attempts, one for retries."""

    def __init__(
        self,
        parameters: Optional[Mapping[str, str]] = None,
        fallback_parameters: Optional[Mapping[str, str]] = None,
    ):
        self.parameters = dict(parameters or {})
        self.fallback_parameters = dict(fallback_parameters or {})
        self.calls: List[bool] = []

    def get_parameters(self, retry_requested: bool) -> Dict[str, str]:
        self.calls.append(retry_requested)
        if retry_requested:
            return dict(self.fallback_parameters)
        return dict(self.parameters)


class TuningServiceProvisioner(ParameterProvisioner):
    """Client for the auto-tuning service.

    Posts the job identity and its current (default) parameters; the service
    answers with a JSON object of parameter name to value. On a retry the
    service returns the best parameters it has seen so far instead of a new
    suggestion.

    If the service cannot be reached the job runs with its default
    parameters.
    """

    def __init__(
        self,
        endpoint: str,
        job_props: Mapping[str, str],
        timeout: float = DEFAULT_TUNING_TIMEOUT_S,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.endpoint = endpoint
        self.job_props = dict(job_props)
        self.timeout = timeout
        self._transport = transport

    def build_payload(self, retry_requested: bool) -> dict:
        props = self.job_props
        default_params = props_with_prefix(props, INJECT_PREFIX)
        return {
            "projectName": props.get(PROJECT_NAME, ""),
            "flowDefId": props.get(FLOW_ID, ""),
            "jobDefId": props.get(JOB_ID, ""),
            "flowExecId": props.get(EXEC_ID, ""),
            "jobExecUrl": props.get(JOB_LINK, ""),
            "flowExecUrl": props.get(EXECUTION_LINK, ""),
            "userName": props.get(SUBMIT_USER, ""),
            "jobType": props.get(AUTO_TUNING_JOB_TYPE, "PIG"),
            "optimizationMetric": props.get(AUTO_TUNING_OPTIMIZATION_METRIC, "RESOURCE"),
            "defaultParams": json.dumps(default_params, sort_keys=True),
            "isRetry": retry_requested,
            "client": TUNING_CLIENT_NAME,
        }

    def _make_request(self, payload: dict) -> httpx.Response:
        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            response = client.post(self.endpoint, json=payload)
            response.raise_for_status()
            return response

    def get_parameters(self, retry_requested: bool) -> Dict[str, str]:
        payload = self.build_payload(retry_requested)

        try:
            response = self._make_request(payload)
        except httpx.TimeoutException:
            print(f"Tuning service timed out after {self.timeout}s, running with default parameters")
            return {}
        except httpx.HTTPStatusError as e:
            print(f"Tuning service error {e.response.status_code}, running with default parameters")
            return {}
        except httpx.RequestError as e:
            print(f"Tuning service unreachable ({e}), running with default parameters")
            return {}

        params, error = _parse_parameters(response)
        if error:
            raise ProvisioningError(error)

        print(f"Received {len(params)} tuning parameters (retry={retry_requested})")
        return {f"{INJECT_PREFIX}{name}": value for name, value in params.items()}


def _parse_parameters(response: httpx.Response) -> Tuple[Dict[str, str], Optional[str]]:
    """
    Parse the tuning service response body.

    Returns:
        (params, error) - error is set when the body is not a JSON object
    """
    try:
        data = response.json()
    except ValueError as e:
        return {}, f"Tuning service returned invalid JSON: {e}"

    if not isinstance(data, dict):
        return {}, f"Tuning service returned {type(data).__name__}, expected an object"

    return {str(k): str(v) for k, v in data.items()}, None
