# shotlist/tools/json_utils.py
from __future__ import annotations

import json
import re
from typing import Any, Dict

from shotlist.errors import MalformedResponseError


def _extract_json_object(text: str) -> str:
    if not text:
        return ""
    text = text.strip()

    # strip ``` fences
    text = re.sub(r"^```(?:json)?\s*", "", text, flags=re.IGNORECASE)
    text = re.sub(r"\s*```$", "", text)

    # take first {...} block
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end != -1 and end > start:
        return text[start : end + 1]
    return text


def _repair_jsonish(s: str) -> str:
    """
    Repairs common LLM "JSON-ish" mistakes:
    - NULL/True/False literals
    - trailing commas before } or ]
    - missing commas between fields
    - missing commas between adjacent objects in a list
    """
    if not s:
        return s

    s = s.strip()

    s = re.sub(r"\bNULL\b", "null", s)
    s = re.sub(r"\bTrue\b", "true", s)
    s = re.sub(r"\bFalse\b", "false", s)

    s = re.sub(r",\s*([}\]])", r"\1", s)

    # value/brace/bracket/quote directly followed by a quoted key
    s = re.sub(r'(?<=[0-9"\}\]])\s*(?="[^"]+"\s*:)', ",", s)

    s = re.sub(r"\}\s*\{", "},{", s)
    s = re.sub(r"\]\s*\{", "],{", s)

    return s


def safe_json_loads(text: str) -> Dict[str, Any]:
    """
    Best-effort parse of a model reply into a JSON object:
    - plain json.loads first
    - else extract the first {...} block and repair common mistakes
    Raises MalformedResponseError when nothing usable comes out.
    """
    if not text or not text.strip():
        raise MalformedResponseError("AI service returned an empty response.")

    try:
        obj = json.loads(text)
    except ValueError:
        raw = _extract_json_object(text)
        try:
            obj = json.loads(raw)
        except ValueError:
            repaired = _repair_jsonish(raw)
            try:
                obj = json.loads(repaired)
            except ValueError as e:
                raise MalformedResponseError(
                    f"AI response is not valid JSON ({e}). First 300 chars: {text[:300]!r}"
                ) from e

    if not isinstance(obj, dict):
        raise MalformedResponseError(f"AI response is JSON but not an object: {type(obj).__name__}")
    return obj
