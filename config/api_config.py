"""
Gemini endpoint and authentication configuration.

This is the AUTHORITATIVE source for API configuration.
src/llm_client/config.py imports from here; do not maintain parallel copies.

BEFORE RUNNING A GENERATION SESSION:
1. Export one or more Gemini keys in GEMINI_API_KEYS (comma or whitespace
   separated).  Every key joins the rotation pool.
2. Verify MODEL_ID is still served by the generateContent endpoint.

ENVIRONMENT VARIABLES:
    GEMINI_API_KEYS     pool of Gemini keys rotated round-robin
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Endpoint
# ---------------------------------------------------------------------------
#
# Gemini authenticates via the ``key`` URL query parameter, so the endpoint
# below carries no credential; executor.build_endpoint_url appends it per
# attempt with whichever key the pool selected.

API_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta/models"

MODEL_ID: str = "gemini-2.0-flash-exp"  # verify before a session

GENERATE_CONTENT_ENDPOINT: str = f"{API_BASE_URL}/{MODEL_ID}:generateContent"

# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------

GEMINI_API_KEYS_ENV: str = "GEMINI_API_KEYS"

# Every Gemini key starts with this prefix; used when pulling keys out of
# pasted free text.
API_KEY_PREFIX: str = "AIzaSy"

# Upper bound on the number of keys accepted from one paste.
MAX_API_KEYS: int = 100

# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

REQUEST_TIMEOUT_SECONDS: int = 120

# Mime type used for inline images sent as raw bytes
DEFAULT_IMAGE_MIME_TYPE: str = "image/png"
