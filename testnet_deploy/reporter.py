"""Reporting of deployment progress to the operator.

The pipelines report stage banners, progress, stage failures and warnings
through a `Reporter` so the output can be captured instead of printed.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
import logging
import sys
from typing import TextIO

__all__ = [
    "EventKind",
    "ReportEvent",
    "Reporter",
    "ConsoleReporter",
    "RecordingReporter",
]

_LOGGER = logging.getLogger(__name__)

WARNING_HEADER = "WARNING!"


class EventKind(StrEnum):
    """Type of event reported by a pipeline."""

    BANNER = "banner"
    INFO = "info"
    STAGE_FAILED = "stage_failed"
    WARNING = "warning"
    DURATION = "duration"


@dataclass(frozen=True)
class ReportEvent:
    """An event reported by a pipeline."""

    kind: EventKind
    message: str


def format_banner(n: int, total: int, title: str) -> str:
    """Frame a stage title with lines of `=`."""
    run_msg = f"Ansible Run {n} of {total}: "
    line = "=" * (len(title) + len(run_msg))
    return f"{line}\n{run_msg}{title}\n{line}"


def format_duration(seconds: float) -> str:
    """Format a stage duration as minutes and seconds."""
    minutes, secs = divmod(int(seconds), 60)
    return f"Time taken: {minutes} minutes and {secs} seconds"


class Reporter(ABC):
    """A sink for the events of a pipeline."""

    @abstractmethod
    def report(self, event: ReportEvent) -> None:
        """Handle a single event."""

    def stage_banner(self, n: int, total: int, title: str) -> None:
        """Announce the start of a numbered stage."""
        self.report(ReportEvent(EventKind.BANNER, format_banner(n, total, title)))

    def info(self, message: str) -> None:
        """Report progress within a stage."""
        self.report(ReportEvent(EventKind.INFO, message))

    def stage_failed(self, stage: str, err: Exception) -> None:
        """Report that a stage failed with an error."""
        self.report(ReportEvent(EventKind.STAGE_FAILED, f"Failed to {stage}: {err}"))

    def warning(self, lines: list[str]) -> None:
        """Report a warning block."""
        self.report(ReportEvent(EventKind.WARNING, "\n".join(lines)))

    def duration(self, seconds: float) -> None:
        """Report how long a stage took."""
        self.report(ReportEvent(EventKind.DURATION, format_duration(seconds)))


class ConsoleReporter(Reporter):
    """A reporter that prints human readable console output."""

    def __init__(self, file: TextIO = sys.stdout) -> None:
        """Initialize ConsoleReporter."""
        self._file = file

    def report(self, event: ReportEvent) -> None:
        if event.kind == EventKind.STAGE_FAILED:
            _LOGGER.error(event.message)
        else:
            _LOGGER.debug("[%s] %s", event.kind, event.message)
        if event.kind == EventKind.WARNING:
            print(file=self._file)
            print(WARNING_HEADER, file=self._file)
        print(event.message, file=self._file)


class RecordingReporter(Reporter):
    """A reporter that keeps the events in memory."""

    def __init__(self) -> None:
        """Initialize RecordingReporter."""
        self.events: list[ReportEvent] = []

    def report(self, event: ReportEvent) -> None:
        self.events.append(event)

    def messages(self, kind: EventKind | None = None) -> list[str]:
        """Return the messages of the events, optionally of a single kind."""
        return [
            event.message for event in self.events if kind is None or event.kind == kind
        ]
