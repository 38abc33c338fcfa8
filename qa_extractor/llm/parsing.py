"""Tolerant JSON parsing of model output."""

import json
import re
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


class JSONParseError(ValueError):
    """Model output did not contain parseable JSON."""

    pass


def _extract_json_block(text: str) -> str | None:
    """Return the first balanced JSON object or array in ``text``.

    Brackets inside string literals are ignored.
    """
    depth = 0
    start_idx = None
    opener = None
    closer = None
    in_string = False
    escape_next = False

    for i, char in enumerate(text):
        if escape_next:
            escape_next = False
            continue
        if char == "\\" and in_string:
            escape_next = True
            continue
        if char == '"' and start_idx is not None:
            in_string = not in_string
            continue
        if in_string:
            continue

        if start_idx is None:
            if char in "{[":
                start_idx = i
                opener = char
                closer = "}" if char == "{" else "]"
                depth = 1
            continue

        if char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return text[start_idx:i + 1]

    return None


def _clean_json_string(text: str) -> str:
    """Strip BOM / zero-width characters and trailing commas."""
    text = text.strip("\ufeff\u200b\u200c\u200d")
    return re.sub(r",(\s*[}\]])", r"\1", text)


def parse_json_response(response: str) -> Any:
    """Parse JSON from a model response.

    Tries, in order: the content of a code fence, the whole text, and the
    first balanced object or array found in the text.

    Raises:
        JSONParseError: If no strategy yields valid JSON.
    """
    if not response or not response.strip():
        raise JSONParseError("Empty response from model")

    text = response.strip()
    fence = _CODE_FENCE.search(text)
    if fence:
        text = fence.group(1).strip()

    try:
        return json.loads(_clean_json_string(text))
    except json.JSONDecodeError as e:
        logger.debug("direct_parse_failed", error=str(e))

    extracted = _extract_json_block(text)
    if extracted:
        try:
            return json.loads(_clean_json_string(extracted))
        except json.JSONDecodeError as e:
            logger.debug("extracted_parse_failed", error=str(e))

    raise JSONParseError(f"Could not parse JSON from model output: {response[:200]}")


def as_object_list(parsed: Any) -> list[dict[str, Any]]:
    """Coerce parsed JSON into a list of objects.

    A list keeps its object entries; an object yields its first list-valued
    field, or itself wrapped in a list when it has none.
    """
    if isinstance(parsed, list):
        return [entry for entry in parsed if isinstance(entry, dict)]

    if isinstance(parsed, dict):
        for value in parsed.values():
            if isinstance(value, list):
                return [entry for entry in value if isinstance(entry, dict)]
        return [parsed]

    return []


def parse_object_list(response: str) -> list[dict[str, Any]]:
    """Parse a response into objects, returning [] when it is not JSON."""
    try:
        return as_object_list(parse_json_response(response))
    except JSONParseError as e:
        logger.warning("model_output_unparseable", error=str(e))
        return []
