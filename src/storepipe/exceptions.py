"""Exception hierarchy for the storepipe pipeline.

Everything deriving from :class:`PipelineError` is converted into the
``Err`` envelope by the :func:`~storepipe.pipeline.result.stage` decorator.
Configuration problems are fatal and deliberately sit outside that tree.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for failures a stage reports as ``Err``."""


class PreconditionError(PipelineError):
    """A local check failed before any remote call was made."""


class ApiCallError(PipelineError):
    """A call to the remote API failed.

    Args:
        message: Human-readable reason, surfaced verbatim in ``Err``.
        operation: Name of the collaborator operation (e.g. ``"upload"``).
        resource: Identifier of the resource involved, if any.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        resource: str | None = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.resource = resource


class RateLimitError(ApiCallError):
    """Raised when the Gemini API returns a 429 rate-limit response."""


class TransientError(ApiCallError):
    """Raised on transient server errors (5xx) that may succeed on retry."""


class PermanentError(ApiCallError):
    """Raised on permanent client errors (4xx except 429) that should not be retried."""


class IngestionError(PipelineError):
    """An attachment reached a terminal state other than ``completed``."""

    def __init__(self, message: str, status: str) -> None:
        super().__init__(message)
        self.status = status


class PollTimeoutError(PipelineError):
    """The polling budget ran out while ingestion was still in progress."""


class PipelineFailed(Exception):
    """Raised by :func:`~storepipe.pipeline.stages.get_output` for an ``Err`` result."""


class MissingCredentialError(RuntimeError):
    """No API key could be resolved. Fatal at startup."""
