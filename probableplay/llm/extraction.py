"""
Structured payload extraction from free-form model text.

The model is asked for JSON but answers with prose, markdown fences or
both. Extraction is an ordered fallback chain, first success wins:

1. First fenced block (``` or ```json), contents parsed.
2. Substring from the first '{' / '[' to the LAST '}' / ']' of the text.
3. Fence markers and a leading literal "json" token stripped, then parsed.

Only a JSON object or array counts as success; a bare scalar falls through.

Known limitation: step 2 slices to the last closing delimiter in the whole
text. If trailing prose after the payload contains a '}' or ']' (e.g.
"see note [1]"), the slice includes that prose and fails to parse; the text
is then only recovered if step 1 or 3 succeeds.
"""

import json
import logging
import re
from typing import Any, Optional, Union

from probableplay.errors import MalformedResponse
from probableplay.telemetry import record_extraction

logger = logging.getLogger(__name__)

StructuredValue = Union[dict, list]

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_FIRST_OPENING = re.compile(r"[{\[]")
_FENCE_MARKERS = re.compile(r"```json|```")


def _try_parse(text: str) -> Optional[StructuredValue]:
    """Parse JSON, returning None unless the result is an object or array."""
    try:
        value = json.loads(text)
    except (ValueError, RecursionError):
        return None
    if isinstance(value, (dict, list)):
        return value
    return None


def _slice_outer_delimiters(text: str) -> Optional[str]:
    """First opening brace/bracket through the last closing one."""
    opening = _FIRST_OPENING.search(text)
    last_close = max(text.rfind("}"), text.rfind("]"))
    if opening is None or last_close == -1 or last_close <= opening.start():
        return None
    return text[opening.start():last_close + 1]


def _strip_fences(text: str) -> str:
    cleaned = _FENCE_MARKERS.sub("", text).strip()
    if cleaned.lower().startswith("json"):
        cleaned = cleaned[4:].strip()
    return cleaned


def extract_structured(text: Any) -> StructuredValue:
    """
    Extract the structured payload from model text.

    Args:
        text: Raw text returned by the model.

    Returns:
        Parsed dict or list.

    Raises:
        MalformedResponse: no usable structure anywhere in the text.
    """
    if not isinstance(text, str) or not text.strip():
        record_extraction("failed")
        raise MalformedResponse("Empty response from model", raw_text=None)

    fenced = _FENCED_BLOCK.search(text)
    if fenced:
        result = _try_parse(fenced.group(1))
        if result is not None:
            record_extraction("fenced")
            return result

    sliced = _slice_outer_delimiters(text)
    if sliced is not None:
        result = _try_parse(sliced)
        if result is not None:
            record_extraction("slice")
            return result

    result = _try_parse(_strip_fences(text))
    if result is not None:
        record_extraction("stripped")
        return result

    record_extraction("failed")
    logger.warning(
        f"[EXTRACT] No structured payload found (len={len(text)}): {text[:200]!r}"
    )
    raise MalformedResponse("Invalid JSON response from model", raw_text=text)


def try_extract_structured(text: Any) -> Optional[StructuredValue]:
    """Like extract_structured, but returns None instead of raising."""
    try:
        return extract_structured(text)
    except MalformedResponse:
        return None
