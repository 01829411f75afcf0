"""
Request construction and single-attempt execution against Gemini.

One call to :func:`execute_model_request` is one attempt with one key.
Every way the attempt can fail is converted into an
:class:`~src.llm_client.errors.AttemptFailure` carrying a
:class:`~src.llm_client.retry.FailureCategory`; the retry loop decides
what to do with it.
"""

from __future__ import annotations

import base64
import re

import requests

from .config import (
    DEFAULT_IMAGE_MIME_TYPE,
    DEFAULT_MAX_OUTPUT_TOKENS,
    DEFAULT_TEMPERATURE,
    GENERATE_CONTENT_ENDPOINT,
    REQUEST_TIMEOUT_SECONDS,
)
from .errors import AttemptFailure
from .retry import FailureCategory

_DATA_URL_RE = re.compile(r"^data:(image/[A-Za-z0-9.+-]+);base64,")


# ---------------------------------------------------------------------------
# Request construction
# ---------------------------------------------------------------------------

def build_endpoint_url(api_key: str, endpoint: str = GENERATE_CONTENT_ENDPOINT) -> str:
    """
    Return the full endpoint URL with the key as a query parameter.

    Args:
        api_key: Key selected for this attempt.
        endpoint: ``generateContent`` URL without credentials.

    Returns:
        Full URL string ready for ``requests.post()``.
    """
    return f"{endpoint}?key={api_key}"


def encode_image(image: bytes | str) -> dict:
    """
    Convert an image into Gemini's ``inline_data`` part.

    Raw bytes are base64-encoded and sent as PNG.  Strings are treated as
    base64 already; a ``data:image/...;base64,`` prefix is stripped and its
    mime type kept.

    Args:
        image: Raw image bytes, a base64 string, or a data URL.

    Returns:
        Dict with ``mime_type`` and ``data`` keys.
    """
    if isinstance(image, (bytes, bytearray)):
        return {
            "mime_type": DEFAULT_IMAGE_MIME_TYPE,
            "data": base64.b64encode(image).decode("ascii"),
        }

    match = _DATA_URL_RE.match(image)
    if match:
        return {"mime_type": match.group(1), "data": image[match.end():]}
    return {"mime_type": DEFAULT_IMAGE_MIME_TYPE, "data": image}


def build_request_payload(
    prompt: str,
    image: bytes | str | None = None,
    temperature: float = DEFAULT_TEMPERATURE,
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
) -> dict:
    """
    Construct the ``generateContent`` JSON body.

    Args:
        prompt: Fully rendered prompt string.
        image: Optional inline image, see :func:`encode_image`.
        temperature: Sampling temperature.
        max_output_tokens: Output token cap.

    Returns:
        Dict suitable for the ``json=`` argument of ``requests.post()``.
    """
    parts: list[dict] = [{"text": prompt}]
    if image:
        parts.append({"inline_data": encode_image(image)})

    return {
        "contents": [{"parts": parts}],
        "generationConfig": {
            "temperature": temperature,
            "maxOutputTokens": max_output_tokens,
        },
    }


# ---------------------------------------------------------------------------
# Response handling
# ---------------------------------------------------------------------------

def extract_error_message(response) -> str:
    """
    Pull the human-readable message out of an error response.

    Gemini error bodies look like ``{"error": {"code": 429, "message": ...}}``;
    anything else falls back to the raw body text.
    """
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return response.text or f"HTTP {response.status_code}"


def extract_response_text(response_json: dict) -> str:
    """
    Extract ``candidates[0].content.parts[0].text`` from a success body.

    Args:
        response_json: Decoded response body.

    Returns:
        The candidate text.

    Raises:
        AttemptFailure: ``SAFETY_BLOCK`` when the prompt was blocked,
            ``INVALID_RESPONSE`` when the structure or text is missing.
    """
    if not isinstance(response_json, dict):
        raise AttemptFailure(FailureCategory.INVALID_RESPONSE, "Invalid response structure")

    candidates = response_json.get("candidates")
    first = candidates[0] if isinstance(candidates, list) and candidates else None

    if not isinstance(first, dict) or not first.get("content"):
        feedback = response_json.get("promptFeedback") or {}
        block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
        if block_reason:
            raise AttemptFailure(
                FailureCategory.SAFETY_BLOCK,
                f"Content blocked by Gemini: {block_reason}",
            )
        raise AttemptFailure(FailureCategory.INVALID_RESPONSE, "Invalid response structure")

    content = first["content"]
    parts = content.get("parts") if isinstance(content, dict) else None
    first_part = parts[0] if isinstance(parts, list) and parts else None
    text = first_part.get("text") if isinstance(first_part, dict) else None
    if not text:
        raise AttemptFailure(FailureCategory.INVALID_RESPONSE, "No text content in response")

    return text


# ---------------------------------------------------------------------------
# API call execution
# ---------------------------------------------------------------------------

def execute_model_request(
    api_key: str,
    prompt: str,
    image: bytes | str | None = None,
    temperature: float = DEFAULT_TEMPERATURE,
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
) -> str:
    """
    Execute one stateless ``generateContent`` call with one key.

    Args:
        api_key: Key selected for this attempt.
        prompt: Fully rendered prompt string.
        image: Optional inline image.
        temperature: Sampling temperature.
        max_output_tokens: Output token cap.

    Returns:
        Text of the first candidate.

    Raises:
        AttemptFailure: On transport errors, non-2xx status, or an
            unusable response body.
    """
    payload = build_request_payload(prompt, image, temperature, max_output_tokens)

    try:
        response = requests.post(
            build_endpoint_url(api_key),
            headers={"Content-Type": "application/json"},
            json=payload,
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
    except requests.RequestException as exc:
        raise AttemptFailure(FailureCategory.TRANSPORT, str(exc)) from exc

    if not 200 <= response.status_code < 300:
        message = extract_error_message(response)
        raise AttemptFailure(
            FailureCategory.categorize_http(response.status_code, message),
            message,
            status_code=response.status_code,
        )

    try:
        body = response.json()
    except ValueError as exc:
        raise AttemptFailure(
            FailureCategory.INVALID_RESPONSE,
            "Response body is not valid JSON",
            status_code=response.status_code,
        ) from exc

    return extract_response_text(body)
