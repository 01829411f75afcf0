"""
Tolerant recovery of JSON arrays / objects from free-text model output.

No I/O occurs here; all functions are pure transformations of strings so
each strategy can be unit tested on its own.

Model output breaks strict JSON in a small set of recurring ways: markdown
fences, smart quotes, raw newlines or control characters inside string
values, invalid backslash escapes, trailing commas, and prose around the
payload.  :func:`parse_json_robust` tries the strategies in
:data:`STRATEGIES` in order, each more aggressive than the last, and
returns the first result that decodes to the expected shape.
"""

from __future__ import annotations

import json
import re
from typing import Callable

from .errors import UnparsableOutputError

ARRAY = "array"
OBJECT = "object"

_BRACKETS: dict[str, tuple[str, str]] = {
    ARRAY: ("[", "]"),
    OBJECT: ("{", "}"),
}

_SPAN_PATTERNS: dict[str, re.Pattern] = {
    ARRAY: re.compile(r"\[[\s\S]*\]"),
    OBJECT: re.compile(r"\{[\s\S]*\}"),
}

_FENCE_RE = re.compile(r"```(?:json|javascript|js)?", re.IGNORECASE)
_LEADING_JSON_LABEL_RE = re.compile(r"^\s*json\s*", re.IGNORECASE)

# Escapes that must survive control-character removal untouched
_ESCAPE_RE = re.compile(r'\\[nrtfb"\\]')
_QUOTE_OR_BACKSLASH_ESCAPE_RE = re.compile(r'\\["\\]')
_WHITESPACE_ESCAPE_RE = re.compile(r"\\[nrtfb]")
# Scans whole backslash pairs; only the \uXXXX ones get protected
_UNICODE_ESCAPE_RE = re.compile(r"\\(u[0-9a-fA-F]{4}|.)", re.DOTALL)

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")
_CONTROL_AND_C1_RE = re.compile(r"[\x00-\x1f\x7f-\x9f]")
_CONTROL_KEEP_NEWLINE_RE = re.compile(r"[\x00-\x09\x0b-\x1f\x7f-\x9f]")
_RESIDUAL_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_WHITESPACE_RE = re.compile(r"\s+")

# Backslash pairs, consumed left to right so an escaped backslash is never
# mistaken for the start of the following escape.
_BACKSLASH_PAIR_RE = re.compile(r"\\(.)", re.DOTALL)
_NUMERIC_ESCAPE_RE = re.compile(r"\\\\|\\x[0-9a-fA-F]{0,2}|\\[0-7]{1,3}")

_VALID_ESCAPE_CHARS = frozenset('"\\/bfnrtu')
# Left for the hex / octal sweep; \8 and \9 are reduced like any other letter
_NUMERIC_ESCAPE_LEADS = frozenset("x01234567")

_SMART_QUOTES: dict[str, str] = {
    "“": '"',
    "”": '"',
    "„": '"',
    "‟": '"',
    "‘": "'",
    "’": "'",
    "…": "...",
}

# (pattern, replacement) pairs tightening whitespace around JSON structure
_STRUCTURAL_SPACING: list[tuple[re.Pattern, str]] = [
    (re.compile(r'"\s+:'), '":'),
    (re.compile(r':\s+"'), ':"'),
    (re.compile(r',\s+"'), ',"'),
    (re.compile(r'\{\s+"'), '{"'),
    (re.compile(r"\[\s+"), "["),
    (re.compile(r"\s+\]"), "]"),
    (re.compile(r"\s+\}"), "}"),
]


class ParseIssue:
    """Diagnostic categories reported when every strategy fails."""

    NO_BRACKET = "no bracket found"
    MARKDOWN = "markdown code blocks"
    CONTROL_CHARS = "control characters"
    INVALID_ESCAPES = "invalid escape sequences"
    MALFORMED = "malformed JSON structure"


# ---------------------------------------------------------------------------
# Cleaning helpers
# ---------------------------------------------------------------------------

def _brackets(expected_shape: str) -> tuple[str, str]:
    try:
        return _BRACKETS[expected_shape]
    except KeyError:
        raise ValueError(
            f"expected_shape must be '{ARRAY}' or '{OBJECT}', got {expected_shape!r}"
        ) from None


def strip_markdown_fences(text: str) -> str:
    """Remove ```json / ```js / ``` fences and a bare leading ``json`` label."""
    cleaned = _FENCE_RE.sub("", text)
    cleaned = _LEADING_JSON_LABEL_RE.sub("", cleaned)
    return cleaned.strip()


def normalize_quotes(text: str) -> str:
    """Replace typographic quotes and ellipses with their ASCII forms."""
    for fancy, plain in _SMART_QUOTES.items():
        text = text.replace(fancy, plain)
    return text


def _protect(text: str, pattern: re.Pattern, tag: str, saved: list[str]) -> str:
    """Swap every match of ``pattern`` for an indexed placeholder."""

    def stash(match: re.Match) -> str:
        saved.append(match.group(0))
        return f"__{tag}_{len(saved) - 1}__"

    return pattern.sub(stash, text)


def _restore(text: str, tag: str, saved: list[str]) -> str:
    def unstash(match: re.Match) -> str:
        index = int(match.group(1))
        return saved[index] if index < len(saved) else match.group(0)

    return re.sub(rf"__{tag}_(\d+)__", unstash, text)


def _greedy_span(text: str, expected_shape: str) -> str | None:
    """First opening bracket through the last closing one, or ``None``."""
    open_char, close_char = _brackets(expected_shape)
    start = text.find(open_char)
    # Guard keeps the greedy regex from rescanning every later bracket
    if start == -1 or text.rfind(close_char) < start:
        return None
    return _SPAN_PATTERNS[expected_shape].search(text, start).group(0)


def _protect_unicode_escapes(text: str, saved: list[str]) -> str:
    def stash(match: re.Match) -> str:
        if len(match.group(1)) == 1:
            return match.group(0)
        saved.append(match.group(0))
        return f"__UNICODE_{len(saved) - 1}__"

    return _UNICODE_ESCAPE_RE.sub(stash, text)


def _drop_stray_unicode_escapes(text: str) -> str:
    # Valid \uXXXX are already behind placeholders; any \u left is malformed.
    return _BACKSLASH_PAIR_RE.sub(
        lambda m: "u" if m.group(1) == "u" else m.group(0), text
    )


def _drop_invalid_escapes(text: str) -> str:
    def fix(match: re.Match) -> str:
        char = match.group(1)
        if char in _VALID_ESCAPE_CHARS or char in _NUMERIC_ESCAPE_LEADS:
            return match.group(0)
        return char

    return _BACKSLASH_PAIR_RE.sub(fix, text)


def _drop_numeric_escapes(text: str) -> str:
    return _NUMERIC_ESCAPE_RE.sub(
        lambda m: m.group(0) if m.group(0) == "\\\\" else "", text
    )


def sanitize_json_string(text: str) -> str:
    """
    Repair the common near-JSON defects in model output.

    Steps, in order:
    1. Remove markdown fences.
    2. Protect existing escapes (``\\n \\r \\t \\f \\b \\" \\\\``).
    3. Replace literal control characters, newlines and tabs with a space
       (they are illegal unescaped inside JSON strings).
    4. Restore the protected escapes.
    5. Normalize smart quotes and ellipses.
    6. Protect valid ``\\uXXXX`` escapes; reduce stray ``\\u`` to ``u``.
    7. Remove trailing commas before ``]`` / ``}``.
    8. Collapse whitespace runs to one space.
    9. Reduce escapes outside ``" \\ / b f n r t u`` to the bare character.
    10. Remove hex / octal escapes and any remaining control characters.
    11. Restore the protected unicode escapes verbatim.

    Args:
        text: Candidate JSON text.

    Returns:
        Sanitized text; not guaranteed to be valid JSON.
    """
    cleaned = strip_markdown_fences(text)

    escapes: list[str] = []
    cleaned = _protect(cleaned, _ESCAPE_RE, "ESC", escapes)
    cleaned = _CONTROL_CHARS_RE.sub(" ", cleaned)
    cleaned = _restore(cleaned, "ESC", escapes)

    cleaned = normalize_quotes(cleaned)

    unicodes: list[str] = []
    cleaned = _protect_unicode_escapes(cleaned, unicodes)
    cleaned = _drop_stray_unicode_escapes(cleaned)

    cleaned = _TRAILING_COMMA_RE.sub(r"\1", cleaned)
    cleaned = _WHITESPACE_RE.sub(" ", cleaned)

    cleaned = _drop_invalid_escapes(cleaned)
    cleaned = _drop_numeric_escapes(cleaned)
    cleaned = _RESIDUAL_CONTROL_RE.sub("", cleaned)

    return _restore(cleaned, "UNICODE", unicodes)


def _loads(text: str, expected_shape: str):
    data = json.loads(text)
    wanted = list if expected_shape == ARRAY else dict
    if not isinstance(data, wanted):
        raise ValueError(
            f"Decoded {type(data).__name__}, expected {expected_shape}"
        )
    return data


# ---------------------------------------------------------------------------
# Strategies (text, expected_shape) -> list | dict, raising ValueError
# ---------------------------------------------------------------------------

def direct_extraction(text: str, expected_shape: str = ARRAY):
    """Greedy bracket span, sanitized and parsed."""
    span = _greedy_span(text, expected_shape)
    if span is None:
        raise ValueError("No JSON found in response")
    return _loads(sanitize_json_string(span), expected_shape)


def prefix_trimmed(text: str, expected_shape: str = ARRAY):
    """Everything from the first opening bracket onward."""
    open_char, _ = _brackets(expected_shape)
    start = text.find(open_char)
    if start == -1:
        raise ValueError("No opening bracket found")
    return _loads(sanitize_json_string(text[start:]), expected_shape)


def outer_bounds(text: str, expected_shape: str = ARRAY):
    """First opening bracket through last closing bracket."""
    open_char, close_char = _brackets(expected_shape)
    first = text.find(open_char)
    last = text.rfind(close_char)
    if first == -1 or last == -1 or last <= first:
        raise ValueError("Invalid bracket positions")
    return _loads(sanitize_json_string(text[first:last + 1]), expected_shape)


def aggressive_clean(text: str, expected_shape: str = ARRAY):
    """Blanket removal of C0/C1 control characters around protected escapes."""
    _brackets(expected_shape)
    cleaned = strip_markdown_fences(text)

    escapes: list[str] = []
    cleaned = _protect(cleaned, _ESCAPE_RE, "ESC", escapes)
    cleaned = _CONTROL_AND_C1_RE.sub(" ", cleaned)
    cleaned = _restore(cleaned, "ESC", escapes)

    cleaned = normalize_quotes(cleaned)
    cleaned = _WHITESPACE_RE.sub(" ", cleaned)

    span = _greedy_span(cleaned, expected_shape)
    if span is None:
        raise ValueError("No JSON after aggressive cleaning")
    return _loads(span, expected_shape)


def rebuild(text: str, expected_shape: str = ARRAY):
    """Rebuild the outer span with tightened structural whitespace."""
    open_char, close_char = _brackets(expected_shape)
    first = text.find(open_char)
    last = text.rfind(close_char)
    if first == -1 or last == -1 or last <= first:
        raise ValueError("Cannot find JSON boundaries")

    span = text[first:last + 1]
    protected: list[str] = []
    span = _protect(span, _QUOTE_OR_BACKSLASH_ESCAPE_RE, "PROTECTED", protected)
    span = _protect(span, _WHITESPACE_ESCAPE_RE, "PROTECTED", protected)

    span = _CONTROL_KEEP_NEWLINE_RE.sub(" ", span)
    span = _WHITESPACE_RE.sub(" ", span)
    span = _TRAILING_COMMA_RE.sub(r"\1", span)
    for pattern, replacement in _STRUCTURAL_SPACING:
        span = pattern.sub(replacement, span)

    span = _restore(span, "PROTECTED", protected)
    return _loads(span, expected_shape)


def find_balanced_span(text: str, expected_shape: str = ARRAY) -> tuple[int, int]:
    """
    Locate the first bracket of the expected type and its matching close.

    Only brackets of the expected type change the depth.

    Returns:
        ``(start, end)`` indices, both inclusive.

    Raises:
        ValueError: If there is no opening bracket or it is never closed.
    """
    open_char, close_char = _brackets(expected_shape)
    start = text.find(open_char)
    if start == -1:
        raise ValueError("No opening bracket found")

    depth = 0
    for i in range(start, len(text)):
        if text[i] == open_char:
            depth += 1
        elif text[i] == close_char:
            depth -= 1
            if depth == 0:
                return start, i

    raise ValueError("No matching closing bracket found")


def balanced_brackets(text: str, expected_shape: str = ARRAY):
    """Exact span of the first balanced bracket group, sanitized and parsed."""
    start, end = find_balanced_span(text, expected_shape)
    return _loads(sanitize_json_string(text[start:end + 1]), expected_shape)


STRATEGIES: tuple[tuple[str, Callable], ...] = (
    ("direct_extraction", direct_extraction),
    ("prefix_trimmed", prefix_trimmed),
    ("outer_bounds", outer_bounds),
    ("aggressive_clean", aggressive_clean),
    ("rebuild", rebuild),
    ("balanced_brackets", balanced_brackets),
)


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------

def diagnose_parse_failure(text: str, expected_shape: str = ARRAY) -> str:
    """
    Name the most likely reason a response could not be parsed.

    The bracket check runs first: a response with no payload at all is
    usually prose (a refusal or an apology), whatever else it contains.

    Returns:
        One of the :class:`ParseIssue` constants.
    """
    open_char, _ = _brackets(expected_shape)
    if open_char not in text:
        return ParseIssue.NO_BRACKET
    if "```" in text:
        return ParseIssue.MARKDOWN
    if re.search(r"[\x00-\x1f]", text):
        return ParseIssue.CONTROL_CHARS
    preview = text[:100]
    if "\\b" in preview or "\\f" in preview:
        return ParseIssue.INVALID_ESCAPES
    return ParseIssue.MALFORMED


def parse_json_with_method(raw_text: str, expected_shape: str = ARRAY) -> tuple:
    """
    Parse model output and report which strategy succeeded.

    Args:
        raw_text: Text extracted from the model response.
        expected_shape: ``'array'`` or ``'object'``.

    Returns:
        Tuple of ``(data, strategy_name)`` where ``data`` is a list for
        arrays and a dict for objects.

    Raises:
        ValueError: Unknown ``expected_shape``.
        UnparsableOutputError: Every strategy failed.
    """
    _brackets(expected_shape)

    errors: list[str] = []
    for name, strategy in STRATEGIES:
        try:
            return strategy(raw_text, expected_shape), name
        except ValueError as exc:
            errors.append(f"{name}: {exc}")

    raise UnparsableOutputError(diagnose_parse_failure(raw_text, expected_shape), errors)


def parse_json_robust(raw_text: str, expected_shape: str = ARRAY):
    """
    Parse model output into a list (array) or dict (object).

    See :func:`parse_json_with_method` for arguments and errors.
    """
    data, _ = parse_json_with_method(raw_text, expected_shape)
    return data
