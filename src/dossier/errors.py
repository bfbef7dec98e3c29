"""Error taxonomy for DOSSIER.

Retry semantics live with the exception type:

- TaskBuildError: prompt construction failed. Fatal, never retried.
- TaskExecutionError: a task exhausted its attempts (network, timeout,
  rate limit, or repeated parse/validation failure).
- ResponseParseError / ValidationError: malformed or structurally invalid
  provider output. Retried as a fresh task execution.
- FabricationSuspected: funding data failed the plausibility screen. Never
  raised past the private-financials step; recorded and downgraded to
  sentinel values instead.
- ProviderUnavailable: adapter is unconfigured. Triggers immediate fallback.
- APIProviderError: HTTP-level failure raised by the client layer.

public_error() maps any of these onto the message shown at the HTTP boundary.
"""

import asyncio
from dataclasses import dataclass


class DossierError(Exception):
    """Base class for all DOSSIER errors."""


class APIProviderError(Exception):
    """Base exception for API provider errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class TaskBuildError(DossierError):
    """Raised when a task name is unknown or its prompt builder fails."""

    def __init__(self, task: str, message: str) -> None:
        super().__init__(f"Failed to build task {task}: {message}")
        self.task = task


class TaskExecutionError(DossierError):
    """Raised when a task fails on every attempt.

    Attributes:
        task: Task name
        attempts: Number of attempts made
        last_error: Exception from the final attempt
    """

    def __init__(self, task: str, attempts: int, last_error: BaseException | None) -> None:
        super().__init__(
            f"Failed to execute task {task} after {attempts} attempts: {last_error}"
        )
        self.task = task
        self.attempts = attempts
        self.last_error = last_error


class ResponseParseError(DossierError):
    """Raised when no structured value can be recovered from provider text."""


class ValidationError(DossierError):
    """Raised when parsed data fails the per-task structural checks."""

    def __init__(self, task: str, message: str) -> None:
        super().__init__(f"Invalid {task} response: {message}")
        self.task = task


class FabricationSuspected(DossierError):
    """Funding data flagged as probably fabricated.

    Attributes:
        signals: Human-readable description of each suspicious signal
    """

    def __init__(self, signals: list[str]) -> None:
        super().__init__(f"{len(signals)} suspicious funding signals: {'; '.join(signals)}")
        self.signals = signals


class ProviderUnavailable(DossierError):
    """Raised when an adapter cannot serve requests (e.g. no API key)."""

    def __init__(self, provider: str, message: str = "not configured") -> None:
        super().__init__(f"{provider} {message}")
        self.provider = provider


@dataclass(frozen=True)
class PublicError:
    """User-visible error: HTTP-style status plus a message without internals."""

    status: int
    message: str


_UNAVAILABLE = "Service temporarily unavailable."
_PROCESSING_FAILED = "Processing failed."


def public_error(exc: BaseException) -> PublicError:
    """Map an exception onto the response shown to end users.

    Retryable provider conditions become "temporarily unavailable"; parse
    and validation failures become a generic "processing failed".

    Args:
        exc: Any exception raised by the analysis pipeline

    Returns:
        PublicError with status and message
    """
    if isinstance(exc, TaskExecutionError) and exc.last_error is not None:
        return public_error(exc.last_error)

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return PublicError(408, "Request timeout. Please try again.")

    if isinstance(exc, APIProviderError):
        if exc.status_code == 429:
            return PublicError(429, "Service temporarily unavailable due to high demand.")
        if exc.status_code in (401, 403):
            return PublicError(502, _UNAVAILABLE)
        if exc.status_code is None or exc.status_code >= 500:
            return PublicError(503, _UNAVAILABLE)
        return PublicError(502, _UNAVAILABLE)

    if isinstance(exc, ProviderUnavailable):
        return PublicError(503, _UNAVAILABLE)

    if isinstance(exc, (ResponseParseError, ValidationError)):
        return PublicError(502, _PROCESSING_FAILED)

    return PublicError(500, _PROCESSING_FAILED)
