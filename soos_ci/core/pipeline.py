"""Azure Pipelines logging commands for task result, issues and log groups.

The agent parses these lines from the task's stdout; see
https://learn.microsoft.com/azure/devops/pipelines/scripts/logging-commands
"""

from __future__ import annotations

import enum
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TextIO

# Order matters: '%' must be escaped first.
_DATA_ESCAPES = (("%", "%AZP25"), ("\r", "%0D"), ("\n", "%0A"))
_PROPERTY_ESCAPES = _DATA_ESCAPES + ((";", "%3B"), ("]", "%5D"))


class TaskResult(str, enum.Enum):
    SUCCEEDED = "Succeeded"
    SUCCEEDED_WITH_ISSUES = "SucceededWithIssues"
    FAILED = "Failed"


def escape_data(value: str) -> str:
    for raw, escaped in _DATA_ESCAPES:
        value = value.replace(raw, escaped)
    return value


def escape_property(value: str) -> str:
    for raw, escaped in _PROPERTY_ESCAPES:
        value = value.replace(raw, escaped)
    return value


def format_command(command: str, message: str = "", **properties: str) -> str:
    """Render ``##vso[<command> k=v;...]<message>``."""
    props = "".join(f"{key}={escape_property(value)};" for key, value in properties.items())
    if props:
        props = " " + props
    return f"##vso[{command}{props}]{escape_data(message)}"


class PipelineReporter:
    """Writes logging commands for the hosting pipeline agent."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        # Resolved lazily so test runners that swap sys.stdout are honoured.
        return self._stream or sys.stdout

    def _write(self, line: str) -> None:
        self.stream.write(line + "\n")
        self.stream.flush()

    def echo(self, message: str) -> None:
        """Write a plain line for whoever reads the build log."""
        self._write(message)

    def set_result(self, result: TaskResult, message: str = "") -> None:
        self._write(format_command("task.complete", message, result=result.value))

    def log_issue(self, message: str, *, issue_type: str = "error") -> None:
        self._write(format_command("task.logissue", message, type=issue_type))

    @contextmanager
    def group(self, name: str) -> Iterator[None]:
        """Collapse everything logged inside the block under ``name``."""
        self._write(f"##[group]{name}")
        try:
            yield
        finally:
            self._write("##[endgroup]")
