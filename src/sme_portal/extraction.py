"""Recovery of structured data from free-form model output.

Generated text is not guaranteed to be fence-free or to contain nothing but
the requested payload, so these helpers scan for the payload instead of
parsing the whole response. All functions are pure.
"""

import json
import re
from typing import Any

from .errors import ParseError

# Opening or closing markdown fence, optionally tagged with a language name.
_FENCE_RE = re.compile(r"```[A-Za-z]*[ \t]*\n?")
_LEADING_HTML_FENCE_RE = re.compile(r"^```(?:html?)?[ \t]*\n?", re.IGNORECASE)
_TRAILING_FENCE_RE = re.compile(r"\n?```\s*$")

# Length of raw output echoed back in error details
_SNIPPET_LENGTH = 200


def strip_code_fences(raw_text: str) -> str:
    """Remove every markdown code-fence marker and trim surrounding whitespace."""
    return _FENCE_RE.sub("", raw_text or "").strip()


def _snippet(text: str) -> str:
    text = text.strip()
    if len(text) > _SNIPPET_LENGTH:
        return text[:_SNIPPET_LENGTH] + "..."
    return text


def _extract_between(raw_text: str, opener: str, closer: str, kind: str) -> Any:
    cleaned = strip_code_fences(raw_text)
    start = cleaned.find(opener)
    end = cleaned.rfind(closer)
    if start == -1 or end == -1 or end < start:
        raise ParseError(
            f"Could not find JSON {kind} in response: {_snippet(cleaned)!r}"
        )

    try:
        return json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON {kind} in response: {e}") from e


def extract_json_array(raw_text: str) -> list:
    """Recover a JSON array from model output.

    Fences are removed, then the text between the first ``[`` and the last
    ``]`` (inclusive) is parsed.

    Args:
        raw_text: Raw model output.

    Returns:
        The parsed list.

    Raises:
        ParseError: If no bracket pair exists or the enclosed text is not a
            valid JSON array.
    """
    value = _extract_between(raw_text, "[", "]", "array")
    if not isinstance(value, list):
        raise ParseError(f"Expected a JSON array, got {type(value).__name__}")
    return value


def extract_json_object(raw_text: str) -> dict:
    """Recover a JSON object from model output, scanning from the first ``{`` to the last ``}``.

    Raises:
        ParseError: If no brace pair exists or the enclosed text is not a
            valid JSON object.
    """
    value = _extract_between(raw_text, "{", "}", "object")
    if not isinstance(value, dict):
        raise ParseError(f"Expected a JSON object, got {type(value).__name__}")
    return value


def extract_html_document(raw_text: str) -> str:
    """Recover a clean HTML document from model output.

    A leading ```` ```html ```` (or bare ```` ``` ````) fence and a trailing
    fence are removed. If what remains does not start with ``<!doctype`` or
    ``<html``, any preamble before the first ``<!DOCTYPE`` is discarded.

    Never raises: any HTML-shaped string is still a usable artifact, so input
    that matches none of the above is returned unchanged.
    """
    if not raw_text:
        return raw_text

    html = _LEADING_HTML_FENCE_RE.sub("", raw_text.strip())
    html = _TRAILING_FENCE_RE.sub("", html).strip()

    lowered = html.lower()
    if not lowered.startswith("<!doctype") and not lowered.startswith("<html"):
        start = lowered.find("<!doctype")
        if start > -1:
            html = html[start:]

    return html or raw_text
