"""
Round-robin API key rotation with failure-based deactivation.

A :class:`CredentialPool` owns its keys and its rotation cursor.  Callers
create one pool per session and pass it to
:func:`src.llm_client.retry.call_model_with_rotation`; nothing here is
module-global, so independent pools can coexist (tests rely on this).

Rotation rules:
- Selection cycles through the pool in configured order, resuming after
  the last *selected* key.
- A key with ``MAX_CONSECUTIVE_ERRORS`` failures in a row is skipped.
- Any success resets that key's failure streak.
- When every key is inactive, the whole pool is reset and selection is
  retried.  This never gives up, even against a pool of revoked keys; the
  attempt budget in the retry layer is what bounds a logical call.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from datetime import datetime

from .config import API_KEY_PREFIX, GEMINI_API_KEYS_ENV, MAX_API_KEYS, MAX_CONSECUTIVE_ERRORS
from .errors import ConfigurationError, NoCredentialsError


@dataclass
class CredentialState:
    """Mutable bookkeeping for one configured key."""

    secret: str
    usage_count: int = 0
    error_count: int = 0
    last_error: str | None = None
    last_used_at: datetime | None = None
    is_active: bool = True


class CredentialPool:
    """
    A pool of interchangeable API keys rotated round-robin.

    Not thread-safe: selection and failure counting assume attempts are
    made one at a time.
    """

    def __init__(
        self,
        credentials: list[str] | None = None,
        max_consecutive_errors: int = MAX_CONSECUTIVE_ERRORS,
    ):
        self.max_consecutive_errors = max_consecutive_errors
        self._states: list[CredentialState] = []
        self._cursor = 0
        if credentials is not None:
            self.configure(credentials)

    # -----------------------------------------------------------------------
    # Configuration
    # -----------------------------------------------------------------------

    def configure(self, credentials: list[str]) -> None:
        """
        Replace the pool with a fresh set of keys.

        Blank entries are dropped and surrounding whitespace is stripped.
        Every key starts active with zero counts; the cursor returns to the
        first key.

        Args:
            credentials: Raw key strings, possibly containing blanks.

        Raises:
            ConfigurationError: If no non-blank key remains.
        """
        valid = [key.strip() for key in credentials if key and key.strip()]
        if not valid:
            raise ConfigurationError("No valid API keys provided")

        self._states = [CredentialState(secret=key) for key in valid]
        self._cursor = 0
        print(f"Credential pool configured with {len(valid)} API key(s)")

    @property
    def size(self) -> int:
        return len(self._states)

    def __len__(self) -> int:
        return len(self._states)

    @property
    def active_count(self) -> int:
        return sum(1 for state in self._states if state.is_active)

    # -----------------------------------------------------------------------
    # Selection
    # -----------------------------------------------------------------------

    def select_next(self) -> tuple[str, int]:
        """
        Return the next active key in round-robin order.

        Scans forward from the cursor through at most one full cycle.  The
        chosen key's ``usage_count`` and ``last_used_at`` are updated and
        the cursor moves just past it.  If every key is inactive the pool
        is reset (all active, error counts zeroed) and selection repeats.

        Returns:
            Tuple of ``(secret, index)`` with a 0-based index.

        Raises:
            NoCredentialsError: If the pool was never configured.
        """
        if not self._states:
            raise NoCredentialsError(
                "No API keys configured. Configure the credential pool first."
            )

        selected = self._scan_for_active()
        if selected is None:
            self.reset()
            selected = self._scan_for_active()

        state = self._states[selected]
        state.usage_count += 1
        state.last_used_at = datetime.now()
        self._cursor = (selected + 1) % len(self._states)
        print(
            f"  Using API key {selected + 1}/{len(self._states)} "
            f"(used {state.usage_count} times)"
        )
        return state.secret, selected

    def _scan_for_active(self) -> int | None:
        n = len(self._states)
        for offset in range(n):
            index = (self._cursor + offset) % n
            if self._states[index].is_active:
                return index
        return None

    def reset(self) -> None:
        """Reactivate every key and clear its failure streak."""
        print(f"  All {len(self._states)} API key(s) inactive; resetting pool")
        for state in self._states:
            state.is_active = True
            state.error_count = 0

    # -----------------------------------------------------------------------
    # Outcome reporting
    # -----------------------------------------------------------------------

    def report_failure(self, index: int, message: str) -> None:
        """
        Record a failed attempt against a key.

        Args:
            index: 0-based index returned by :meth:`select_next`.
            message: Failure description, kept as ``last_error``.

        Raises:
            IndexError: If ``index`` is outside the pool.
        """
        state = self._state_at(index)
        state.error_count += 1
        state.last_error = message

        if state.error_count >= self.max_consecutive_errors and state.is_active:
            state.is_active = False
            print(
                f"  API key {index + 1} deactivated after "
                f"{state.error_count} consecutive errors"
            )

    def report_success(self, index: int) -> None:
        """Clear the failure streak of the key at ``index``."""
        state = self._state_at(index)
        state.error_count = 0
        state.last_error = None

    def _state_at(self, index: int) -> CredentialState:
        if not 0 <= index < len(self._states):
            raise IndexError(
                f"Credential index {index} out of range for pool of {len(self._states)}"
            )
        return self._states[index]

    # -----------------------------------------------------------------------
    # Observability
    # -----------------------------------------------------------------------

    def stats(self) -> list[dict]:
        """
        Snapshot per-key statistics for display.

        Returns:
            One dict per key with ``index`` (1-based), ``usage_count``,
            ``error_count``, ``last_error``, ``is_active`` and
            ``last_used_at`` (ISO string or ``None``).  Secrets are never
            included.
        """
        return [
            {
                "index": i + 1,
                "usage_count": state.usage_count,
                "error_count": state.error_count,
                "last_error": state.last_error,
                "is_active": state.is_active,
                "last_used_at": (
                    state.last_used_at.isoformat() if state.last_used_at else None
                ),
            }
            for i, state in enumerate(self._states)
        ]


def print_pool_stats(pool: CredentialPool) -> None:
    """Print one line per key from :meth:`CredentialPool.stats`."""
    print("API key usage:")
    for row in pool.stats():
        status = "active" if row["is_active"] else "inactive"
        last_used = row["last_used_at"] or "Never"
        line = (
            f"  Key {row['index']:>3}: {row['usage_count']:>4} uses, "
            f"{row['error_count']} errors, {status}, last used {last_used}"
        )
        if row["last_error"]:
            line += f"; last error: {row['last_error'][:80]}"
        print(line)


# ---------------------------------------------------------------------------
# Key sources
# ---------------------------------------------------------------------------

def load_credentials_from_env(env_var: str = GEMINI_API_KEYS_ENV) -> list[str]:
    """
    Read a comma- or whitespace-separated key list from the environment.

    Args:
        env_var: Name of the environment variable.

    Returns:
        List of non-blank keys (possibly empty).
    """
    raw = os.getenv(env_var, "")
    return [key for key in re.split(r"[,\s]+", raw) if key]


def extract_api_keys(text: str, limit: int = MAX_API_KEYS) -> list[str]:
    """
    Pull every Gemini key out of free text, e.g. a pasted spreadsheet column.

    Duplicates are removed while preserving first-seen order, and at most
    ``limit`` keys are kept.

    Args:
        text: Arbitrary pasted text.
        limit: Maximum number of keys to scan.

    Returns:
        Unique keys in order of appearance.
    """
    found = re.findall(rf"{API_KEY_PREFIX}[A-Za-z0-9_-]+", text)[:limit]
    return list(dict.fromkeys(found))
