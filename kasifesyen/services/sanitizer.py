"""Recover JSON objects from free-text model output."""

import json
import logging
import re
from typing import Any

from kasifesyen.errors import ExtractionFailure

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^\s*`{3,}[ \t]*(?:json)?[ \t]*\n?", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\n?[ \t]*`{3,}\s*$")


def sanitize_model_json(raw: str) -> str:
    """Strip code fences and prose around the outermost JSON object.

    Keeps the span from the first "{" to the last "}". Raises ExtractionFailure
    when there is no such span.
    """
    text = _FENCE_OPEN.sub("", raw.strip())
    text = _FENCE_CLOSE.sub("", text)

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        logger.warning(f"No JSON object in model response: {raw[:500]!r}")
        raise ExtractionFailure("Invalid response format from model", raw_text=raw)

    return text[start : end + 1].strip()


def parse_model_json(raw: str) -> dict[str, Any]:
    """Sanitize model output and parse it as a JSON object."""
    # the span starts with "{" and ends with "}", so a successful parse is a dict
    try:
        return json.loads(sanitize_model_json(raw))
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse model response as JSON: {e}")
        logger.warning(f"Raw response: {raw}")
        raise ExtractionFailure(f"Failed to parse response from model: {e}", raw_text=raw) from e
