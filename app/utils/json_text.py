"""Helpers for locating JSON objects inside free-form model text."""

from __future__ import annotations

from typing import Iterator, Optional


def balanced_object_candidates(text: str) -> Iterator[str]:
    """Yield each top-level balanced ``{...}`` substring, in order.

    The scan tracks nesting depth and string/escape state character by
    character, so braces inside string values do not end the object early.
    An opening brace that never balances ends the scan; nested objects of a
    truncated answer are never offered as candidates.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        quote: Optional[str] = None
        escaped = False
        end = -1
        for index in range(start, len(text)):
            char = text[index]
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif quote:
                if char == quote:
                    quote = None
            elif char in ('"', "'"):
                quote = char
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    end = index
                    break
        if end == -1:
            return
        yield text[start : end + 1]
        start = text.find("{", end + 1)


def first_balanced_object(text: str) -> Optional[str]:
    return next(balanced_object_candidates(text), None)


__all__ = ["balanced_object_candidates", "first_balanced_object"]
