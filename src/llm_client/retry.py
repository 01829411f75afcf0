"""
Failure classification, flat backoff, and the key-rotating retry loop.

Every logical model call gets a budget of ``ATTEMPTS_PER_KEY × pool size``
attempts.  Each attempt draws the next key from the pool, so a retry after
a rate limit runs on a *different* key; the flat 10 s wait throttles the
aggregate request rate rather than backing off a single key.

Remote side effects are not assumed idempotent: a retried attempt may
duplicate work on the provider's side, and callers must tolerate that.
"""

from __future__ import annotations

import time

from .config import (
    ATTEMPTS_PER_KEY,
    DEFAULT_MAX_OUTPUT_TOKENS,
    DEFAULT_TEMPERATURE,
    TRANSIENT_BACKOFF_SECONDS,
)
from .credentials import CredentialPool
from .errors import (
    AttemptFailure,
    InvalidInputError,
    InvocationExhaustedError,
    NoCredentialsError,
)


# ---------------------------------------------------------------------------
# Failure classification
# ---------------------------------------------------------------------------

class FailureCategory:
    """
    Category constants for a single failed attempt.

    Every category is recoverable by switching keys.  Categories in
    ``NO_WAIT`` skip the backoff because repeating the call after a delay
    cannot help (the key itself is bad).
    """

    RATE_LIMIT = "rate_limit_exceeded"
    SERVER_ERROR = "server_error"
    UNREGISTERED_CALLER = "unregistered_caller"
    INVALID_KEY = "invalid_api_key"
    HTTP_ERROR = "http_error"
    TRANSPORT = "transport_error"
    INVALID_RESPONSE = "invalid_response"
    SAFETY_BLOCK = "safety_blocked"

    NO_WAIT: frozenset[str] = frozenset({INVALID_KEY})

    @staticmethod
    def categorize_http(status_code: int, message: str) -> str:
        """
        Classify a non-2xx response from its status code and error message.

        Args:
            status_code: HTTP status of the response.
            message: Error message decoded from the response body.

        Returns:
            A category constant.
        """
        lowered = message.lower()

        if "key not valid" in lowered:
            return FailureCategory.INVALID_KEY

        if status_code == 403 and "unregistered callers" in lowered:
            return FailureCategory.UNREGISTERED_CALLER

        if status_code == 429:
            return FailureCategory.RATE_LIMIT

        if status_code >= 500:
            return FailureCategory.SERVER_ERROR

        return FailureCategory.HTTP_ERROR


def should_wait(category: str, attempt: int, max_attempts: int) -> bool:
    """
    Decide whether to apply the backoff before the next attempt.

    Args:
        category: Category of the attempt that just failed.
        attempt: 1-based number of that attempt.
        max_attempts: Size of the attempt budget.

    Returns:
        ``True`` if another attempt follows and the failure was transient.
    """
    if attempt >= max_attempts:
        return False
    return category not in FailureCategory.NO_WAIT


def wait_before_retry(seconds: int, label: str = "Waiting") -> None:
    """
    Sleep for ``seconds`` with a printed progress indicator.

    Args:
        seconds: Duration to sleep.
        label: Prefix text for the printed message.
    """
    print(f"  {label} {seconds}s...", end="", flush=True)
    time.sleep(seconds)
    print(" Done.")


# ---------------------------------------------------------------------------
# Main retry wrapper
# ---------------------------------------------------------------------------

def call_model_with_rotation(
    pool: CredentialPool,
    prompt: str,
    image: bytes | str | None = None,
    temperature: float = DEFAULT_TEMPERATURE,
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
    backoff_seconds: int = TRANSIENT_BACKOFF_SECONDS,
) -> str:
    """
    Call the model, rotating keys until one attempt succeeds.

    Transient failures (rate limits, 5xx, transport errors, malformed or
    blocked bodies) are reported against the key and followed by a flat
    ``backoff_seconds`` wait.  Invalid-key failures are reported and the
    next key is tried immediately.  The first success resets the key's
    failure streak and returns the text.

    Args:
        pool: Configured credential pool; mutated on every attempt.
        prompt: Non-blank prompt text.
        image: Optional inline image (raw bytes, base64, or data URL).
        temperature: Sampling temperature.
        max_output_tokens: Output token cap.
        backoff_seconds: Wait after a transient failure.

    Returns:
        Text of the first candidate in the successful response.

    Raises:
        InvalidInputError: ``prompt`` is empty or blank.
        NoCredentialsError: ``pool`` has never been configured.
        InvocationExhaustedError: Every attempt in the budget failed.
    """
    # Deferred import to avoid circular dependency at module load time
    from .executor import execute_model_request  # noqa: PLC0415

    if not prompt or not prompt.strip():
        raise InvalidInputError("Prompt cannot be empty")

    if pool.size == 0:
        raise NoCredentialsError(
            "No API keys configured. Configure the credential pool first."
        )

    max_attempts = ATTEMPTS_PER_KEY * pool.size
    print(
        f"Model call: {len(prompt)} prompt chars, "
        f"image={'yes' if image else 'no'}, temperature={temperature}, "
        f"max tokens={max_output_tokens}, {pool.size} key(s)"
    )

    last_error: str | None = None

    for attempt in range(1, max_attempts + 1):
        api_key, index = pool.select_next()

        try:
            text = execute_model_request(
                api_key,
                prompt,
                image=image,
                temperature=temperature,
                max_output_tokens=max_output_tokens,
            )
        except AttemptFailure as failure:
            last_error = f"[{failure.category}] {failure.message}"
            pool.report_failure(index, failure.message)
            print(
                f"  Attempt {attempt}/{max_attempts} with key {index + 1} "
                f"failed [{failure.category}]: {failure.message[:120]}"
            )
            if should_wait(failure.category, attempt, max_attempts):
                wait_before_retry(backoff_seconds, label="Switching key in")
            continue

        pool.report_success(index)
        print(f"  Response received on attempt {attempt} ({len(text)} chars)")
        return text

    raise InvocationExhaustedError(max_attempts, last_error)
