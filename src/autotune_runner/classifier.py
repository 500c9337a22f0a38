"""Failure classification by log inspection.

Reads the job log once, front to back, forwarding every line to a
diagnostic sink while testing it against the pattern registry.
"""

import sys
from contextlib import closing
from pathlib import Path
from typing import Callable, Iterator, Optional, TextIO

from autotune_runner.attempt_state import ClassificationResult
from autotune_runner.constants import LOG_DUMP_BANNER
from autotune_runner.patterns import LogPatternRegistry


LineSink = Callable[[str], None]


def stderr_sink(line: str) -> None:
    print(line, file=sys.stderr)


def read_log_lines(path: Path) -> Iterator[str]:
    """
    Open a log file and return a lazy iterator over its lines.

    The file is opened eagerly so a missing or unreadable artifact raises
    OSError here rather than on the first next(). Lines are yielded without
    their trailing newline. The iterator is exhausted after one pass.
    """
    handle = open(path, "r", encoding="utf-8", errors="replace")
    return _iter_lines(handle)


def _iter_lines(handle: TextIO) -> Iterator[str]:
    with handle:
        for line in handle:
            yield line.rstrip("\r\n")


class FailureClassifier:
    """Decides whether a failed attempt was caused by tuning parameters."""

    def __init__(
        self,
        registry: Optional[LogPatternRegistry] = None,
        sink: Optional[LineSink] = None,
    ):
        self.registry = registry or LogPatternRegistry.default()
        self.sink = sink or stderr_sink

    def classify(self, log_artifact_ref: Path) -> ClassificationResult:
        """
        Scan the whole log artifact and report whether any line matches.

        Never stops on the first match: all lines are forwarded to the sink.
        A missing artifact is reported as not tuning-caused.
        """
        self.sink("")
        self.sink(LOG_DUMP_BANNER)
        self.sink("")

        try:
            lines = read_log_lines(log_artifact_ref)
        except OSError:
            self.sink(f"job log file: {log_artifact_ref} not found.")
            return ClassificationResult(is_tuning_caused=False, artifact_available=False)

        matched_line = None
        matched_pattern = None
        scanned = 0
        with closing(lines):
            for line in lines:
                scanned += 1
                self.sink(line)
                pattern = self.registry.first_match(line)
                if pattern is not None and matched_pattern is None:
                    matched_line = line
                    matched_pattern = pattern

        return ClassificationResult(
            is_tuning_caused=matched_pattern is not None,
            matched_line=matched_line,
            matched_pattern=matched_pattern,
            lines_scanned=scanned,
        )
