"""Timing of the stages of a pipeline."""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
import logging
from time import perf_counter

from .reporter import Reporter

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "stage_context",
    "stage_path",
]

current_stage: ContextVar[tuple[str, ...]] = ContextVar("current_stage", default=())


def stage_path() -> str:
    """Return the stages currently running, outermost first."""
    return "/".join(current_stage.get())


@contextmanager
def stage_context(name: str, reporter: Reporter) -> Iterator[None]:
    """Time a stage, reporting the duration only when it completes."""
    token = current_stage.set(current_stage.get() + (name,))
    path = stage_path()
    start = perf_counter()
    _LOGGER.debug("Stage %s started", path)
    outcome = "failed"
    try:
        yield
        outcome = "completed"
    finally:
        elapsed = perf_counter() - start
        current_stage.reset(token)
        _LOGGER.debug("Stage %s %s after %0.2fs", path, outcome, elapsed)
    reporter.duration(elapsed)
