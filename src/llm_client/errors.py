"""
Exception taxonomy for the invocation layer.

Only ``InvocationExhaustedError`` and ``UnparsableOutputError`` are
expected to reach the generation driver during a session;
``ConfigurationError``, ``NoCredentialsError`` and ``InvalidInputError``
surface before any work starts.  ``AttemptFailure`` is raised by a single
outbound call and is always handled inside the retry loop.
"""

from __future__ import annotations


class LLMClientError(Exception):
    """Base class for every error raised by ``src.llm_client``."""


class ConfigurationError(LLMClientError):
    """No usable credential survived filtering."""


class NoCredentialsError(LLMClientError):
    """A credential was requested from a pool that was never configured."""


class InvalidInputError(LLMClientError, ValueError):
    """The prompt is empty or blank."""


class AttemptFailure(LLMClientError):
    """
    One outbound call failed.

    Attributes:
        category: A :class:`~src.llm_client.retry.FailureCategory` constant.
        message: Human-readable reason, usually the API's error message.
        status_code: HTTP status, or ``None`` for transport / body failures.
    """

    def __init__(self, category: str, message: str, status_code: int | None = None):
        self.category = category
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class InvocationExhaustedError(LLMClientError):
    """Every attempt in the budget failed."""

    def __init__(self, attempts: int, last_error: str | None = None):
        self.attempts = attempts
        self.last_error = last_error
        detail = f" Last error: {last_error}" if last_error else ""
        super().__init__(
            f"Failed to generate content after {attempts} attempts across all "
            f"API keys.{detail}"
        )


class UnparsableOutputError(LLMClientError):
    """
    No parsing strategy recovered structured data from the model output.

    Attributes:
        issue: Diagnostic category of the malformation (e.g. ``'no bracket found'``).
        errors: One ``'<strategy>: <error>'`` entry per strategy tried.
    """

    def __init__(self, issue: str, errors: list[str]):
        self.issue = issue
        self.errors = errors
        first = errors[0] if errors else "none"
        super().__init__(
            f"Failed to parse JSON after {len(errors)} attempts. "
            f"Issue: {issue}. First error: {first}"
        )
