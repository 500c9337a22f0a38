"""Registry of log signatures that indicate a tuning-parameter failure."""

import re
from pathlib import Path
from typing import List, Optional, Sequence

import yaml


# Ordered; earlier patterns are reported first when several match a line.
DEFAULT_TUNING_ERROR_PATTERNS: List[str] = [
    r"java\.lang\.OutOfMemoryError",
    r"Java heap space",
    r"GC overhead limit exceeded",
    r"is running beyond physical memory limits",
    r"is running beyond virtual memory limits",
    r"Container killed on request\. Exit code is 143",
    r"Container \S+ is running .*beyond the '(PHYSICAL|VIRTUAL)' memory limit",
    r"InvalidResourceRequestException",
    r"Invalid resource request, requested memory < 0, or requested memory > max configured",
]


class PatternRegistryError(Exception):
    """Raised when a pattern registry cannot be built."""
    pass


class LogPatternRegistry:
    """Ordered set of compiled regular expressions tested with re.search."""

    def __init__(self, patterns: Sequence[str]):
        self._patterns: List[str] = []
        self._compiled: List[re.Pattern] = []
        for pattern in patterns:
            try:
                self._compiled.append(re.compile(pattern))
            except re.error as e:
                raise PatternRegistryError(f"Invalid pattern {pattern!r}: {e}")
            self._patterns.append(pattern)

    @property
    def patterns(self) -> List[str]:
        return list(self._patterns)

    def __len__(self) -> int:
        return len(self._patterns)

    def first_match(self, line: Optional[str]) -> Optional[str]:
        """Return the first registered pattern found in line, if any."""
        if line is None:
            return None
        for pattern, compiled in zip(self._patterns, self._compiled):
            if compiled.search(line):
                return pattern
        return None

    def matches(self, line: Optional[str]) -> bool:
        return self.first_match(line) is not None

    @classmethod
    def default(cls) -> "LogPatternRegistry":
        return cls(DEFAULT_TUNING_ERROR_PATTERNS)

    @classmethod
    def from_yaml(cls, path: Path) -> "LogPatternRegistry":
        """
        Load a registry from a YAML file.

        Format:
            include_defaults: true   # optional, default true
            patterns:
              - "Too many fetch failures"
              - "Requested memory exceeds"

        Custom patterns are appended after the defaults when they are included.
        """
        try:
            data = yaml.safe_load(Path(path).read_text())
        except (OSError, yaml.YAMLError) as e:
            raise PatternRegistryError(f"Cannot read pattern file {path}: {e}")

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise PatternRegistryError(
                f"Pattern file {path} must contain a mapping, got {type(data).__name__}"
            )

        custom = data.get("patterns") or []
        if not isinstance(custom, list) or not all(isinstance(p, str) for p in custom):
            raise PatternRegistryError(f"Pattern file {path}: 'patterns' must be a list of strings")

        patterns = []
        if data.get("include_defaults", True):
            patterns.extend(DEFAULT_TUNING_ERROR_PATTERNS)
        patterns.extend(custom)
        return cls(patterns)


def load_registry(patterns_file: Optional[Path] = None) -> LogPatternRegistry:
    """Registry from a YAML file when one is configured, else the defaults."""
    if patterns_file is None:
        return LogPatternRegistry.default()
    return LogPatternRegistry.from_yaml(patterns_file)
