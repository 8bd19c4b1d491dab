"""Client wrapper for the hosted language-model endpoint.

``ModelGateway.call_chat`` never raises: it walks the candidate endpoint bases
(chat call first, legacy generation call second) for a bounded number of
rounds and degrades to a deterministic local response when everything fails.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Sequence, TypedDict

import httpx

from app.clients.response_shapes import resolve_response_shape
from app.core.config import DEFAULT_MODEL_BASE_URL, ModelSettings
from app.utils.http import RetryConfig
from app.utils.json_text import first_balanced_object

logger = logging.getLogger(__name__)

_LIST_MODELS_TIMEOUT_SECONDS = 15.0
_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```$")
_TRAILING_BLOCK = re.compile(r"\{[\s\S]*\}$")


class ChatMessage(TypedDict):
    role: str
    content: str


@dataclass(frozen=True, slots=True)
class ChatOptions:
    temperature: float = 0.3
    max_tokens: int = 800
    timeout_ms: int = 120_000


class ModelGatewayError(RuntimeError):
    """Raised by auxiliary calls (not ``call_chat``) the endpoint cannot serve."""


class ModelResponseError(RuntimeError):
    """A single attempt produced no usable text."""


def clean_model_text(raw: str) -> str:
    """Strip code fences and isolate the JSON object when one is present."""
    text = (raw or "").strip()
    text = _FENCE_OPEN.sub("", text)
    text = _FENCE_CLOSE.sub("", text).strip()

    trailing = _TRAILING_BLOCK.search(text)
    if trailing:
        return trailing.group(0).strip()
    leading = first_balanced_object(text)
    if leading:
        return leading.strip()
    return text


def flatten_messages(messages: Sequence[ChatMessage]) -> str:
    """Collapse a chat transcript into a single legacy prompt."""
    lines = [
        f"{message.get('role', 'user').upper()}: {message.get('content', '')}"
        for message in messages
    ]
    lines.append("ASSISTANT:")
    return "\n\n".join(lines)


_PERIOD_KEYWORDS = re.compile(r"\b(weekly|monthly)\b", re.IGNORECASE)
_TRADE_KEYWORD = re.compile(r"\btrade\b", re.IGNORECASE)


def build_fallback_response(messages: Sequence[ChatMessage]) -> str:
    """Deterministic local answer used when the endpoint is unavailable."""
    user_message = next(
        (message.get("content", "") for message in messages if message.get("role") == "user"),
        "",
    )
    # Only the instruction line counts; the serialized snapshot follows it.
    instruction = next((line for line in user_message.splitlines() if line.strip()), "")

    period = _PERIOD_KEYWORDS.search(instruction)
    if period:
        label = period.group(1).capitalize()
        return json.dumps(
            {
                "summaryText": f"{label} summary (fallback).",
                "plusPoints": ["Trades recorded", "Win/lose patterns visible"],
                "minusPoints": ["AI offline"],
                "aiSuggestions": ["Inspect losing trades"],
            }
        )

    if _TRADE_KEYWORD.search(instruction):
        return json.dumps(
            {
                "summaryText": "Trade analysis (fallback).",
                "plusPoints": ["Trade recorded", "Position size okay"],
                "minusPoints": ["Detailed AI analysis unavailable"],
                "aiSuggestions": ["Review trade logs manually"],
                "score": 6,
            }
        )

    return json.dumps(
        {
            "summaryText": "Summary (fallback).",
            "plusPoints": ["Basic analysis"],
            "minusPoints": ["AI features limited"],
            "aiSuggestions": ["Try again later"],
        }
    )


class ModelGateway:
    """Call the chat endpoint with multi-base retry and a local fallback."""

    def __init__(
        self,
        settings: ModelSettings,
        *,
        http_client: httpx.AsyncClient | None = None,
        retry_config: RetryConfig | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._http_client = http_client
        self._retry = retry_config or RetryConfig(
            rounds=settings.retry_rounds,
            backoff_seconds=settings.retry_backoff_seconds,
        )
        self._sleep = sleep

    async def call_chat(
        self,
        model: str,
        messages: Sequence[ChatMessage],
        options: ChatOptions | None = None,
    ) -> str:
        """Return generated text for ``messages``; falls back instead of raising."""
        options = options or ChatOptions()
        if not self._settings.api_key:
            logger.warning("Model credential not configured; returning local fallback.")
            return build_fallback_response(messages)

        try:
            if self._http_client is not None:
                return await self._call_with_retries(self._http_client, model, messages, options)
            async with httpx.AsyncClient() as client:
                return await self._call_with_retries(client, model, messages, options)
        except Exception:  # pragma: no cover - the retry loop already contains failures
            logger.exception("Unexpected model gateway failure for model '%s'.", model)
            return build_fallback_response(messages)

    async def list_models(self) -> Any:
        """Return the endpoint's model catalogue."""
        if not self._settings.api_key:
            raise ModelGatewayError("BYTEZ_KEY is not configured.")
        url = self._settings.base_url.rstrip("/")
        try:
            if self._http_client is not None:
                response = await self._http_client.get(
                    url, headers=self._headers(), timeout=_LIST_MODELS_TIMEOUT_SECONDS
                )
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.get(
                        url, headers=self._headers(), timeout=_LIST_MODELS_TIMEOUT_SECONDS
                    )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ModelGatewayError(f"Listing models failed: {exc}") from exc
        return response.json()

    def candidate_bases(self) -> list[str]:
        return self._collect_candidates(
            self._settings.base_url,
            (*self._settings.alternate_bases(), DEFAULT_MODEL_BASE_URL),
        )

    async def _call_with_retries(
        self,
        client: httpx.AsyncClient,
        model: str,
        messages: Sequence[ChatMessage],
        options: ChatOptions,
    ) -> str:
        bases = self.candidate_bases()
        last_error: Exception | None = None
        for round_index, delay in self._retry.schedule():
            if delay:
                await self._sleep(delay)
            for base in bases:
                try:
                    return await self._call_base(client, base, model, messages, options)
                except Exception as exc:  # noqa: BLE001 - every failure is retried
                    last_error = exc
                    logger.warning(
                        "Model call via %s failed (round %d/%d): %s",
                        base,
                        round_index + 1,
                        self._retry.rounds,
                        exc,
                    )

        logger.error(
            "All model endpoints failed for model '%s'; returning local fallback. Last error: %s",
            model,
            last_error,
        )
        return build_fallback_response(messages)

    async def _call_base(
        self,
        client: httpx.AsyncClient,
        base: str,
        model: str,
        messages: Sequence[ChatMessage],
        options: ChatOptions,
    ) -> str:
        url = f"{base}/{model}"
        try:
            return await self._chat_request(client, url, model, messages, options)
        except Exception as chat_error:  # noqa: BLE001 - legacy call is the second chance
            logger.debug("Chat call to %s failed (%s); trying legacy prompt.", url, chat_error)
            try:
                return await self._legacy_request(client, url, messages, options)
            except Exception as legacy_error:
                raise ModelResponseError(
                    f"chat: {chat_error}; legacy: {legacy_error}"
                ) from legacy_error

    async def _chat_request(
        self,
        client: httpx.AsyncClient,
        url: str,
        model: str,
        messages: Sequence[ChatMessage],
        options: ChatOptions,
    ) -> str:
        body = {
            "model": model,
            "messages": list(messages),
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
            "stream": False,
        }
        return await self._post_for_text(client, url, body, options, label="chat")

    async def _legacy_request(
        self,
        client: httpx.AsyncClient,
        url: str,
        messages: Sequence[ChatMessage],
        options: ChatOptions,
    ) -> str:
        body = {
            "inputs": flatten_messages(messages),
            "parameters": {
                "max_new_tokens": options.max_tokens,
                "temperature": options.temperature,
                "return_full_text": False,
            },
        }
        return await self._post_for_text(client, url, body, options, label="legacy")

    async def _post_for_text(
        self,
        client: httpx.AsyncClient,
        url: str,
        body: dict[str, Any],
        options: ChatOptions,
        *,
        label: str,
    ) -> str:
        response = await client.post(
            url,
            json=body,
            headers=self._headers(),
            timeout=options.timeout_ms / 1000,
        )
        response.raise_for_status()
        try:
            data: Any = response.json()
        except ValueError:
            data = response.text

        shape = resolve_response_shape(data)
        if not shape.text.strip():
            raise ModelResponseError(
                f"{label} response from {url} had no text ({type(shape).__name__}: "
                f"{getattr(shape, 'detail', '')})"
            )
        cleaned = clean_model_text(shape.text)
        if self._settings.debug_responses:
            logger.debug("Cleaned %s content (%s): %s", label, type(shape).__name__, cleaned)
        return cleaned

    def _headers(self) -> dict[str, str]:
        key = self._settings.api_key or ""
        scheme = self._settings.auth_scheme.strip()
        return {
            "Content-Type": "application/json",
            "Authorization": f"{scheme} {key}" if scheme else key,
        }

    @staticmethod
    def _collect_candidates(configured: str | None, fallbacks: Iterable[str]) -> list[str]:
        """Return distinct bases prioritizing the configured value."""
        seen: set[str] = set()
        candidates: list[str] = []
        for name in (configured, *fallbacks):
            if not name:
                continue
            cleaned = name.strip().rstrip("/")
            if not cleaned or cleaned in seen:
                continue
            seen.add(cleaned)
            candidates.append(cleaned)
        return candidates


__all__ = [
    "ChatMessage",
    "ChatOptions",
    "ModelGateway",
    "ModelGatewayError",
    "ModelResponseError",
    "build_fallback_response",
    "clean_model_text",
    "flatten_messages",
]
