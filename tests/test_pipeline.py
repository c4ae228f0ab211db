"""Tests for Azure Pipelines logging commands."""

from __future__ import annotations

import io

from soos_ci.core.pipeline import (
    PipelineReporter,
    TaskResult,
    escape_data,
    escape_property,
    format_command,
)


class TestEscaping:
    def test_escape_data(self):
        assert escape_data("100%\r\ndone") == "100%AZP25%0D%0Adone"

    def test_escape_property(self):
        assert escape_property("a;b]c") == "a%3Bb%5Dc"

    def test_format_command(self):
        assert format_command("task.complete", "ok", result="Succeeded") == (
            "##vso[task.complete result=Succeeded;]ok"
        )

    def test_format_command_without_properties(self):
        assert format_command("task.setprogress", "50") == "##vso[task.setprogress]50"


class TestPipelineReporter:
    def test_set_result_failed(self):
        stream = io.StringIO()
        PipelineReporter(stream).set_result(TaskResult.FAILED, "Scan failed.")
        assert stream.getvalue() == "##vso[task.complete result=Failed;]Scan failed.\n"

    def test_log_issue_escapes_newlines(self):
        stream = io.StringIO()
        PipelineReporter(stream).log_issue("line one\nline two")
        assert stream.getvalue() == "##vso[task.logissue type=error;]line one%0Aline two\n"

    def test_group_closes_on_error(self):
        stream = io.StringIO()
        reporter = PipelineReporter(stream)
        try:
            with reporter.group("Manifest Search"):
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        assert stream.getvalue().splitlines() == ["##[group]Manifest Search", "##[endgroup]"]

    def test_echo_writes_plain_line(self):
        stream = io.StringIO()
        PipelineReporter(stream).echo("View the results at: https://app/r")
        assert stream.getvalue() == "View the results at: https://app/r\n"
