"""Tolerant extraction of structured summary fields from model text.

Models routinely wrap JSON in markdown fences, prefix it with prose, use
typographic or single quotes, leave trailing commas, or omit quotes around
keys. The parser tries a strict parse first and only then isolates and repairs
the first balanced object.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Mapping, Optional

from app.schemas.summary import CanonicalSummary
from app.utils.json_text import balanced_object_candidates

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json|JSON)?")
_CURLY_QUOTES = str.maketrans({"“": '"', "”": '"', "„": '"', "‘": "'", "’": "'"})
_GREEDY_BLOCK = re.compile(r"\{[\s\S]*\}")
_BARE_KEY_CHARS = re.compile(r"[A-Za-z0-9_$\-]")
_LITERALS = {"true", "false", "null"}
_BULLET_PREFIX = re.compile(r"^\s*(?:[•·▪]|[-*](?=\s)|\d+[.)](?=\s))\s*")
_BULLET_SPLIT = re.compile(r"\s*[•·▪]\s*")

_FIELD_SYNONYMS: dict[str, tuple[str, ...]] = {
    "summary_text": ("summaryText", "summary_text", "summary", "narrative", "text", "overview"),
    "plus_points": ("plusPoints", "plus_points", "positives", "advantages", "strengths", "pros"),
    "minus_points": (
        "minusPoints",
        "minus_points",
        "negatives",
        "disadvantages",
        "weaknesses",
        "cons",
        "mistakes",
    ),
    "ai_suggestions": (
        "aiSuggestions",
        "ai_suggestions",
        "suggestions",
        "recommendations",
        "improvements",
        "actionItems",
    ),
    "weekly_stats": ("weeklyStats", "weekly_stats", "monthlyStats", "periodStats", "stats"),
}


def strip_code_fences(text: str) -> str:
    return _FENCE.sub("", text).strip()


def normalize_quotes(text: str) -> str:
    return text.translate(_CURLY_QUOTES)


def repair_json(text: str) -> str:
    """Fix trailing commas, single-quoted strings and bare keys in one pass.

    Content of double-quoted strings is copied verbatim.
    """
    out: list[str] = []
    index = 0
    length = len(text)
    while index < length:
        char = text[index]

        if char == '"':
            end = index + 1
            while end < length and text[end] != '"':
                end += 2 if text[end] == "\\" else 1
            out.append(text[index : end + 1])
            index = end + 1
            continue

        if char == "'":
            end = index + 1
            chunk: list[str] = []
            while end < length and text[end] != "'":
                if text[end] == "\\" and end + 1 < length:
                    chunk.append(text[end : end + 2])
                    end += 2
                    continue
                chunk.append('\\"' if text[end] == '"' else text[end])
                end += 1
            out.append('"' + "".join(chunk).replace("\\'", "'") + '"')
            index = end + 1
            continue

        if char == ",":
            lookahead = index + 1
            while lookahead < length and text[lookahead].isspace():
                lookahead += 1
            if lookahead < length and text[lookahead] in "}]":
                index += 1
                continue
            out.append(char)
            index += 1
            continue

        if _BARE_KEY_CHARS.match(char) and not (char.isdigit() or char == "-"):
            end = index
            while end < length and _BARE_KEY_CHARS.match(text[end]):
                end += 1
            word = text[index:end]
            lookahead = end
            while lookahead < length and text[lookahead].isspace():
                lookahead += 1
            if lookahead < length and text[lookahead] == ":" and word not in _LITERALS:
                out.append(f'"{word}"')
            else:
                out.append(word)
            index = end
            continue

        out.append(char)
        index += 1
    return "".join(out)


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return None


def _first_text(payload: Mapping[str, Any], keys: tuple[str, ...]) -> str:
    for key in keys:
        value = payload.get(key)
        if value is None:
            continue
        if isinstance(value, str):
            if value.strip():
                return value.strip()
            continue
        if isinstance(value, list):
            joined = " ".join(str(item).strip() for item in value if str(item).strip())
            if joined:
                return joined
            continue
        if isinstance(value, Mapping):
            nested = _first_text(value, _FIELD_SYNONYMS["summary_text"])
            if nested:
                return nested
            continue
        return str(value)
    return ""


def _item_text(item: Any) -> str:
    if isinstance(item, Mapping):
        parts = [str(value).strip() for value in item.values() if value not in (None, "")]
        return ": ".join(part for part in parts if part)
    if item is None:
        return ""
    return str(item).strip()


def coerce_list(value: Any) -> list[str]:
    """Turn a list, bullet/newline-delimited string or scalar into a list of strings."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = [_item_text(item) for item in value]
        return [item for item in items if item]
    if isinstance(value, str):
        lines = [line for line in value.splitlines() if line.strip()]
        if len(lines) == 1:
            lines = [part for part in _BULLET_SPLIT.split(lines[0]) if part.strip()]
        stripped = (_BULLET_PREFIX.sub("", line).strip() for line in lines)
        return [line for line in stripped if line]
    text = _item_text(value)
    return [text] if text else []


def _first_list(payload: Mapping[str, Any], keys: tuple[str, ...]) -> list[str]:
    for key in keys:
        if key in payload and payload[key] not in (None, "", []):
            return coerce_list(payload[key])
    return []


def normalize_summary(payload: Mapping[str, Any]) -> CanonicalSummary:
    """Map synonym keys onto the canonical shape, filling defaults."""
    stats: Optional[dict[str, Any]] = None
    for key in _FIELD_SYNONYMS["weekly_stats"]:
        value = payload.get(key)
        if isinstance(value, Mapping) and value:
            stats = dict(value)
            break

    return CanonicalSummary(
        summary_text=_first_text(payload, _FIELD_SYNONYMS["summary_text"]),
        plus_points=_first_list(payload, _FIELD_SYNONYMS["plus_points"]),
        minus_points=_first_list(payload, _FIELD_SYNONYMS["minus_points"]),
        ai_suggestions=_first_list(payload, _FIELD_SYNONYMS["ai_suggestions"]),
        weekly_stats=stats,
    )


class ResponseParser:
    """Parse unreliable model text into the canonical summary shape."""

    def parse_json(self, raw: Any) -> Any:
        """Tolerant JSON decode; returns ``None`` when nothing can be recovered."""
        if raw is None:
            return None
        if isinstance(raw, Mapping):
            return dict(raw)
        if not isinstance(raw, str):
            return None

        strict = _loads(raw)
        if strict is not None:
            return strict

        text = normalize_quotes(strip_code_fences(raw))
        candidates = list(balanced_object_candidates(text))
        greedy = _GREEDY_BLOCK.search(text)
        if greedy and greedy.group(0) not in candidates:
            candidates.append(greedy.group(0))

        for candidate in candidates:
            parsed = _loads(candidate)
            if parsed is None:
                parsed = _loads(repair_json(candidate))
            if parsed is not None:
                return parsed
        return None

    def parse(self, raw: Any) -> Optional[CanonicalSummary]:
        """Return the canonical summary or ``None``; never raises."""
        try:
            parsed = self.parse_json(raw)
            if isinstance(parsed, list):
                parsed = next((item for item in parsed if isinstance(item, Mapping)), None)
            if not isinstance(parsed, Mapping):
                logger.info("Model output could not be parsed into an object.")
                return None
            return normalize_summary(parsed)
        except Exception:  # pragma: no cover - parse must never raise
            logger.exception("Unexpected error while parsing model output.")
            return None


__all__ = [
    "ResponseParser",
    "balanced_object_candidates",
    "coerce_list",
    "normalize_summary",
    "repair_json",
]
