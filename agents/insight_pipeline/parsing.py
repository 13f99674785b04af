"""Tolerant recovery of a JSON object from generator output."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Optional

from .models import ParsedResponse
from .sections import normalize

logger = logging.getLogger(__name__)

_OPENING_FENCE = re.compile(r"^```(?:json)?\s*\n?")
_CLOSING_FENCE = re.compile(r"\n?```\s*$")


def strip_code_fence(raw: str) -> str:
    cleaned = raw.strip()
    if cleaned.startswith("```"):
        cleaned = _OPENING_FENCE.sub("", cleaned, count=1)
        cleaned = _CLOSING_FENCE.sub("", cleaned, count=1)
    return cleaned


def extract_json_object(text: str) -> Optional[str]:
    """Return the first brace-balanced ``{...}`` span in ``text``.

    Braces inside JSON string literals are ignored, including escaped quotes.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape_next = False
    for index in range(start, len(text)):
        char = text[index]
        if escape_next:
            escape_next = False
            continue
        if in_string:
            if char == "\\":
                escape_next = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def load_json_object(raw: str) -> Optional[Dict[str, Any]]:
    """Parse ``raw`` directly, or the object embedded in it; ``None`` if neither works."""
    cleaned = strip_code_fence(raw)
    try:
        value = json.loads(cleaned)
    except json.JSONDecodeError:
        extracted = extract_json_object(cleaned)
        if extracted is None:
            logger.warning("No JSON object found in generator response; using raw text")
            return None
        try:
            value = json.loads(extracted)
        except json.JSONDecodeError as exc:
            logger.warning("Extracted JSON from generator response is invalid: %s", exc)
            return None
        logger.warning("JSON was embedded in surrounding text; extracted successfully")

    if not isinstance(value, dict):
        logger.warning("Generator response is JSON but not an object; using raw text")
        return None
    return value


def parse_response(raw: str) -> ParsedResponse:
    """Parse generator output into display content and optional structure."""
    return normalize(raw, load_json_object(raw))


__all__ = [
    "extract_json_object",
    "load_json_object",
    "parse_response",
    "strip_code_fence",
]
