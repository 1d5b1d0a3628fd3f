"""Tolerant parsing of JSON embedded in model responses.

Models asked for "ONLY valid JSON" still wrap it in prose or code fences,
or emit near-JSON.  The helpers here strip fences, locate the outermost
array or object and try ``json.loads``; when that fails they apply one
repair pass and try again.  They return ``None`` instead of raising so
that callers can degrade to empty results.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_SMART_QUOTES = str.maketrans({"\u201c": '"', "\u201d": '"', "\u2018": "'", "\u2019": "'"})
_TRAILING_COMMA_RE = re.compile(r",\s*([\]}])")
_SINGLE_QUOTED_RE = re.compile(r"(?<=[\[{,:])(\s*)'([^'\"\\]*)'(?=\s*[,:\]}])")


def strip_code_fences(content: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    content = content.strip()
    if "```json" in content:
        return content.split("```json", 1)[1].split("```", 1)[0].strip()
    if content.startswith("```"):
        lines = content.split("\n")[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        return "\n".join(lines).strip()
    return content


def _outermost(content: str, opener: str, closer: str) -> str | None:
    start = content.find(opener)
    end = content.rfind(closer)
    if start == -1 or end <= start:
        return None
    return content[start : end + 1]


def repair_json(candidate: str) -> str:
    """Apply common fixes: smart quotes, trailing commas, single quotes."""
    repaired = candidate.translate(_SMART_QUOTES)
    repaired = _TRAILING_COMMA_RE.sub(r"\1", repaired)
    return _SINGLE_QUOTED_RE.sub(r'\1"\2"', repaired)


def _parse(content: str, opener: str, closer: str, expected: type) -> Any | None:
    candidate = _outermost(strip_code_fences(content), opener, closer)
    if candidate is None:
        return None
    for attempt in (candidate, repair_json(candidate)):
        try:
            value = json.loads(attempt)
        except json.JSONDecodeError:
            continue
        if isinstance(value, expected):
            return value
    logger.debug("Could not parse %s from model output (%d chars)", expected.__name__, len(content))
    return None


def parse_json_array(content: str) -> list[Any] | None:
    """Return the JSON array embedded in ``content``, or None."""
    return _parse(content, "[", "]", list)


def parse_json_object(content: str) -> dict[str, Any] | None:
    """Return the JSON object embedded in ``content``, or None."""
    return _parse(content, "{", "}", dict)


__all__ = ["parse_json_array", "parse_json_object", "repair_json", "strip_code_fences"]
