"""
Invocation-layer configuration: endpoint, credentials, retry policy.

Values are re-exported from the authoritative ``config`` package so that
modules in this package import from one place.
"""

from config.api_config import (
    API_KEY_PREFIX,
    DEFAULT_IMAGE_MIME_TYPE,
    GEMINI_API_KEYS_ENV,
    GENERATE_CONTENT_ENDPOINT,
    MAX_API_KEYS,
    MODEL_ID,
    REQUEST_TIMEOUT_SECONDS,
)
from config.generation_params import (
    ATTEMPTS_PER_KEY,
    DEFAULT_MAX_OUTPUT_TOKENS,
    DEFAULT_TEMPERATURE,
    MAX_CONSECUTIVE_ERRORS,
    TRANSIENT_BACKOFF_SECONDS,
)

__all__ = [
    "API_KEY_PREFIX",
    "ATTEMPTS_PER_KEY",
    "DEFAULT_IMAGE_MIME_TYPE",
    "DEFAULT_MAX_OUTPUT_TOKENS",
    "DEFAULT_TEMPERATURE",
    "GEMINI_API_KEYS_ENV",
    "GENERATE_CONTENT_ENDPOINT",
    "MAX_API_KEYS",
    "MAX_CONSECUTIVE_ERRORS",
    "MODEL_ID",
    "REQUEST_TIMEOUT_SECONDS",
    "TRANSIENT_BACKOFF_SECONDS",
]
