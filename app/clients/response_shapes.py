"""Tagged union over the response bodies a model endpoint may return.

Chat-completion endpoints answer with ``choices[0].message.content`` (or an
``output`` message); legacy generation endpoints answer with an array of
objects, a single object, or a bare string. ``resolve_response_shape`` is the
only place that sniffs these shapes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

# Candidate fields carrying generated text on legacy objects, in priority order.
LEGACY_TEXT_FIELDS: tuple[str, ...] = (
    "generated_text",
    "content",
    "text",
    "output",
    "result",
    "completion",
    "response",
)


@dataclass(frozen=True, slots=True)
class ChatShape:
    text: str


@dataclass(frozen=True, slots=True)
class LegacyArrayShape:
    text: str


@dataclass(frozen=True, slots=True)
class LegacyObjectShape:
    text: str


@dataclass(frozen=True, slots=True)
class PlainString:
    text: str


@dataclass(frozen=True, slots=True)
class UnrecognizedShape:
    detail: str

    @property
    def text(self) -> str:
        return ""


ModelResponse = Union[
    ChatShape, LegacyArrayShape, LegacyObjectShape, PlainString, UnrecognizedShape
]


def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _message_text(value: Any) -> Optional[str]:
    """Text of a chat message (``{"role": ..., "content": ...}``) or choice."""
    if not isinstance(value, Mapping):
        return None
    message = value.get("message")
    if isinstance(message, Mapping):
        text = _as_text(message.get("content"))
        if text:
            return text
    if "role" in value or "message" in value or "finish_reason" in value:
        return _as_text(value.get("content")) or _as_text(value.get("text"))
    return None


def _legacy_text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return _as_text(value)
    if not isinstance(value, Mapping):
        return None
    for field_name in LEGACY_TEXT_FIELDS:
        candidate = value.get(field_name)
        if isinstance(candidate, list):
            candidate = candidate[0] if candidate else None
        text = _legacy_text(candidate) if candidate is not None else None
        if text:
            return text
    return None


def resolve_response_shape(data: Any) -> ModelResponse:
    """Classify a decoded response body and pull out its generated text."""
    if isinstance(data, str):
        text = _as_text(data)
        return PlainString(text) if text else UnrecognizedShape("empty string body")

    if isinstance(data, list):
        if not data:
            return UnrecognizedShape("empty array body")
        text = _legacy_text(data[0])
        if text:
            return LegacyArrayShape(text)
        return UnrecognizedShape("array body without generated text")

    if not isinstance(data, Mapping):
        return UnrecognizedShape(f"unexpected body type {type(data).__name__}")

    choices = data.get("choices")
    if isinstance(choices, list) and choices:
        text = _message_text(choices[0]) or _as_text(
            choices[0].get("text") if isinstance(choices[0], Mapping) else None
        )
        if text:
            return ChatShape(text)

    for wrapper in ("output", "result"):
        wrapped = data.get(wrapper)
        first = wrapped[0] if isinstance(wrapped, list) and wrapped else wrapped
        text = _message_text(first)
        if text:
            return ChatShape(text)

    text = _legacy_text(data)
    if text:
        return LegacyObjectShape(text)

    error = data.get("error")
    if error:
        return UnrecognizedShape(f"error body: {error}")
    return UnrecognizedShape("object body without generated text")


__all__ = [
    "ChatShape",
    "LEGACY_TEXT_FIELDS",
    "LegacyArrayShape",
    "LegacyObjectShape",
    "ModelResponse",
    "PlainString",
    "UnrecognizedShape",
    "resolve_response_shape",
]
