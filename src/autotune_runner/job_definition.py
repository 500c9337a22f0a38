"""Job definition loading.

A job definition names the command to run and the job properties that seed
every attempt's configuration.

YAML/JSON format:
    job_id: daily-aggregation
    command: ["pig", "-f", "aggregate.pig"]
    args: ["-param", "date=2026-10-19"]   # optional
    props:                                 # optional
      tuning.job.retry.count: 2
      hadoop-inject.mapreduce.map.memory.mb: 2048
"""

import json
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping

import jsonschema
import yaml

from autotune_runner.constants import JOB_ID


JOB_DEFINITION_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["job_id", "command"],
    "properties": {
        "job_id": {"type": "string", "minLength": 1},
        "command": {
            "oneOf": [
                {"type": "string", "minLength": 1},
                {"type": "array", "items": {"type": "string"}, "minItems": 1},
            ]
        },
        "args": {"type": "array", "items": {"type": ["string", "number"]}},
        "props": {
            "type": "object",
            "additionalProperties": {"type": ["string", "number", "boolean"]},
        },
    },
}


class JobDefinitionError(ValueError):
    """Raised when a job definition file is unreadable or invalid."""
    pass


@dataclass
class JobDefinition:
    job_id: str
    command: List[str]
    args: List[str] = field(default_factory=list)
    props: Dict[str, str] = field(default_factory=dict)

    def initial_config(self) -> Dict[str, str]:
        """Job properties plus the job id, the base of every attempt config."""
        config = dict(self.props)
        config.setdefault(JOB_ID, self.job_id)
        return config


def _prop_value(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def normalize_props(props: Mapping) -> Dict[str, str]:
    """Stringify property values the way job property files store them."""
    return {str(k): _prop_value(v) for k, v in props.items()}


def props_with_prefix(props: Mapping[str, str], prefix: str) -> Dict[str, str]:
    """Properties starting with prefix, keyed with the prefix removed."""
    return {k[len(prefix):]: v for k, v in props.items() if k.startswith(prefix)}


def validate_job_definition(data: dict, source: str = "job definition") -> List[str]:
    """Return all schema errors (empty when valid)."""
    errors = []
    validator = jsonschema.Draft7Validator(JOB_DEFINITION_SCHEMA)
    for error in validator.iter_errors(data):
        path = ".".join(str(p) for p in error.absolute_path) if error.absolute_path else "(root)"
        errors.append(f"{source}: {error.message} at {path}")
    return errors


def load_job_definition(job_file: Path) -> JobDefinition:
    """
    Load a job definition from YAML or JSON.

    Raises:
        JobDefinitionError: Unsupported suffix, parse error or schema violation.
    """
    job_file = Path(job_file)
    try:
        content = job_file.read_text()
    except OSError as e:
        raise JobDefinitionError(f"Cannot read job definition {job_file}: {e}")

    try:
        if job_file.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content)
        elif job_file.suffix == ".json":
            data = json.loads(content)
        else:
            raise JobDefinitionError(
                f"Unsupported file type: {job_file.suffix}. Use .yaml, .yml, or .json"
            )
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise JobDefinitionError(f"Cannot parse job definition {job_file}: {e}")

    if not isinstance(data, dict):
        raise JobDefinitionError(f"Job definition {job_file} must be a mapping")

    errors = validate_job_definition(data, source=job_file.name)
    if errors:
        raise JobDefinitionError("\n".join(errors))

    command = data["command"]
    if isinstance(command, str):
        command = shlex.split(command)
    if not command:
        raise JobDefinitionError(f"{job_file.name}: command is empty")

    return JobDefinition(
        job_id=data["job_id"],
        command=list(command),
        args=[str(a) for a in data.get("args", [])],
        props=normalize_props(data.get("props") or {}),
    )
