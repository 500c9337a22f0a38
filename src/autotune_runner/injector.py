"""Configuration injection for the job engine.

Tuning parameters travel as `hadoop-inject.`-prefixed properties. Before each
attempt they are written, prefix stripped, to a Hadoop-style XML resource in
the working directory, and the resource path is published to the engine
through the environment.
"""

import os
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, Mapping, MutableMapping, Optional

from autotune_runner.constants import (
    COMMON_JOB_PROPERTIES,
    INJECT_FILE_ENV,
    INJECT_PREFIX,
    INJECT_TUNING_FILE,
    JOB_ID,
)
from autotune_runner.job_definition import props_with_prefix


class InjectionError(Exception):
    """Raised when configuration resources cannot be prepared or injected."""
    pass


def resource_dir(config: Mapping[str, str], working_dir: Path) -> Path:
    job_id = config.get(JOB_ID, "job").replace(os.sep, "_").replace(":", "_")
    return Path(working_dir) / f"_resources_{job_id}"


def injectable_properties(config: Mapping[str, str]) -> Dict[str, str]:
    """Prefixed properties (prefix removed) plus job identity properties."""
    props = props_with_prefix(config, INJECT_PREFIX)
    for key in COMMON_JOB_PROPERTIES:
        if key in config:
            props[key] = config[key]
    return props


def render_configuration(props: Mapping[str, str]) -> bytes:
    root = ET.Element("configuration")
    for name in sorted(props):
        prop = ET.SubElement(root, "property")
        ET.SubElement(prop, "name").text = name
        ET.SubElement(prop, "value").text = props[name]
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def read_configuration(path: Path) -> Dict[str, str]:
    """Parse a configuration XML file back into a dict."""
    root = ET.parse(path).getroot()
    result = {}
    for prop in root.findall("property"):
        result[prop.findtext("name", "")] = prop.findtext("value", "")
    return result


class ConfigurationInjector:
    """Writes and publishes the per-attempt configuration resource."""

    def __init__(self, environ: Optional[MutableMapping[str, str]] = None):
        self.environ = os.environ if environ is None else environ
        self._prepared: Optional[Path] = None
        self._published = False
        self._saved: Optional[str] = None

    @staticmethod
    def resource_path(config: Mapping[str, str], working_dir: Path) -> Path:
        return resource_dir(config, working_dir) / INJECT_TUNING_FILE

    def prepare(self, config: Mapping[str, str], working_dir: Path) -> Path:
        """Write the injectable properties of config to the resource file."""
        path = self.resource_path(config, working_dir)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(render_configuration(injectable_properties(config)))
        except OSError as e:
            raise InjectionError(f"Cannot write configuration resource {path}: {e}")
        self._prepared = path
        return path

    def inject(self, config: Mapping[str, str]) -> Path:
        """Publish the prepared resource for the job engine to load."""
        path = self._prepared
        if path is None or not path.exists():
            raise InjectionError(
                f"Configuration resource for {config.get(JOB_ID, 'job')} was not prepared"
            )
        if not self._published:
            self._saved = self.environ.get(INJECT_FILE_ENV)
            self._published = True
        self.environ[INJECT_FILE_ENV] = str(path)
        return path

    def withdraw(self) -> None:
        """Restore the environment as it was before the first inject."""
        if not self._published:
            return
        if self._saved is None:
            self.environ.pop(INJECT_FILE_ENV, None)
        else:
            self.environ[INJECT_FILE_ENV] = self._saved
        self._published = False
        self._saved = None
