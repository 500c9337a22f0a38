"""Tests for log-based failure classification."""

import pytest

from autotune_runner.classifier import FailureClassifier, read_log_lines
from autotune_runner.constants import LOG_DUMP_BANNER
from autotune_runner.patterns import LogPatternRegistry


HEAP_LOG = """2026-10-19 10:00:01 INFO  Launching map tasks
2026-10-19 10:01:12 ERROR Error: Java heap space
2026-10-19 10:01:13 INFO  Task attempt_01 failed
2026-10-19 10:01:14 ERROR Container container_01 is running beyond physical memory limits
2026-10-19 10:01:15 INFO  Job failed
"""

CLEAN_LOG = """2026-10-19 10:00:01 INFO  Launching map tasks
2026-10-19 10:01:12 ERROR Input path does not exist: /data/missing
"""


@pytest.fixture
def sink_lines():
    return []


@pytest.fixture
def classifier(sink_lines):
    return FailureClassifier(sink=sink_lines.append)


def dumped(sink_lines):
    """Lines forwarded to the sink after the banner block."""
    banner_at = sink_lines.index(LOG_DUMP_BANNER)
    return sink_lines[banner_at + 2:]


class TestClassify:

    def test_signature_in_log_is_tuning_caused(self, tmp_path, classifier):
        log = tmp_path / "job.log"
        log.write_text(HEAP_LOG)

        result = classifier.classify(log)

        assert result.is_tuning_caused is True
        assert result.artifact_available is True
        assert result.matched_pattern == "Java heap space"
        assert "Java heap space" in result.matched_line

    def test_log_without_signature(self, tmp_path, classifier):
        log = tmp_path / "job.log"
        log.write_text(CLEAN_LOG)

        result = classifier.classify(log)

        assert result.is_tuning_caused is False
        assert result.matched_line is None
        assert result.lines_scanned == 2

    def test_match_on_first_line(self, tmp_path, classifier):
        log = tmp_path / "job.log"
        log.write_text("GC overhead limit exceeded\nINFO done\n")

        assert classifier.classify(log).is_tuning_caused is True

    def test_match_on_last_line_without_newline(self, tmp_path, classifier):
        log = tmp_path / "job.log"
        log.write_text("INFO start\njava.lang.OutOfMemoryError: Java heap space")

        result = classifier.classify(log)

        assert result.is_tuning_caused is True
        assert result.lines_scanned == 2

    def test_empty_log(self, tmp_path, classifier):
        log = tmp_path / "job.log"
        log.write_text("")

        result = classifier.classify(log)

        assert result.is_tuning_caused is False
        assert result.lines_scanned == 0
        assert result.artifact_available is True


class TestForwarding:

    def test_every_line_forwarded_in_order(self, tmp_path, classifier, sink_lines):
        log = tmp_path / "job.log"
        log.write_text(HEAP_LOG)

        classifier.classify(log)

        assert dumped(sink_lines) == HEAP_LOG.splitlines()

    def test_scan_continues_after_match(self, tmp_path, classifier, sink_lines):
        log = tmp_path / "job.log"
        log.write_text(HEAP_LOG)

        result = classifier.classify(log)

        assert result.lines_scanned == 5
        assert dumped(sink_lines)[-1].endswith("Job failed")
        # First match is the one reported
        assert result.matched_pattern == "Java heap space"

    def test_banner_precedes_dump(self, tmp_path, classifier, sink_lines):
        log = tmp_path / "job.log"
        log.write_text(CLEAN_LOG)

        classifier.classify(log)

        assert sink_lines[:3] == ["", LOG_DUMP_BANNER, ""]


class TestMissingArtifact:

    def test_missing_file_does_not_raise(self, tmp_path, classifier, sink_lines):
        missing = tmp_path / "nope.log"

        result = classifier.classify(missing)

        assert result.is_tuning_caused is False
        assert result.artifact_available is False
        assert sink_lines[-1] == f"job log file: {missing} not found."

    def test_directory_is_unavailable(self, tmp_path, classifier):
        result = classifier.classify(tmp_path)

        assert result.artifact_available is False
        assert result.is_tuning_caused is False


class TestStateless:

    def test_classify_twice_gives_same_result(self, tmp_path, classifier):
        log = tmp_path / "job.log"
        log.write_text(HEAP_LOG)

        first = classifier.classify(log)
        second = classifier.classify(log)

        assert first == second

    def test_previous_match_does_not_leak(self, tmp_path, classifier):
        tuning = tmp_path / "tuning.log"
        tuning.write_text(HEAP_LOG)
        clean = tmp_path / "clean.log"
        clean.write_text(CLEAN_LOG)

        assert classifier.classify(tuning).is_tuning_caused is True
        assert classifier.classify(clean).is_tuning_caused is False

    def test_custom_registry(self, tmp_path, sink_lines):
        log = tmp_path / "job.log"
        log.write_text(CLEAN_LOG)
        registry = LogPatternRegistry([r"Input path does not exist"])

        result = FailureClassifier(registry=registry, sink=sink_lines.append).classify(log)

        assert result.is_tuning_caused is True


class TestLogHandle:

    def test_log_closed_when_sink_raises(self, tmp_path, monkeypatch):
        log = tmp_path / "job.log"
        log.write_text("first\nboom\nlast\n")
        closed = []

        def tracked_lines(path):
            try:
                with open(path) as handle:
                    for line in handle:
                        yield line.rstrip("\n")
            finally:
                closed.append(path)

        def sink(line):
            if line == "boom":
                raise RuntimeError("sink failed")

        monkeypatch.setattr("autotune_runner.classifier.read_log_lines", tracked_lines)

        with pytest.raises(RuntimeError):
            FailureClassifier(sink=sink).classify(log)

        assert closed == [log]


class TestReadLogLines:

    def test_lines_are_lazy_and_single_pass(self, tmp_path):
        log = tmp_path / "job.log"
        log.write_text("a\nb\r\nc\n")

        lines = read_log_lines(log)

        assert next(lines) == "a"
        assert list(lines) == ["b", "c"]
        assert list(lines) == []

    def test_missing_file_raises_on_open(self, tmp_path):
        with pytest.raises(OSError):
            read_log_lines(tmp_path / "missing.log")
