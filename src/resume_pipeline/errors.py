"""Exception taxonomy shared by the pipeline components."""

from __future__ import annotations

import asyncio


class PipelineError(Exception):
    """Base class for errors raised by the tailoring pipeline."""


class PipelineCancelledError(PipelineError):
    """Raised when the caller's cancellation event is set."""

    def __init__(self, operation: str):
        super().__init__(f"{operation} cancelled")
        self.operation = operation


class EmptyContentError(PipelineError, ValueError):
    """Raised when a component receives empty text it cannot work on."""


class RequirementExtractionError(PipelineError):
    """Requirement extraction failed; the pipeline cannot continue."""


class GenerationError(PipelineError):
    """Document generation failed after the client's own retries."""


def check_cancelled(cancel_event: asyncio.Event | None, operation: str) -> None:
    """Raise PipelineCancelledError if *cancel_event* has been set."""
    if cancel_event is not None and cancel_event.is_set():
        raise PipelineCancelledError(operation)
