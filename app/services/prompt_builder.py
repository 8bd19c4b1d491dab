"""Prompt templates for trade and period summaries.

Pure functions: (kind, input snapshot) -> ordered chat messages.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from textwrap import dedent
from typing import Any, Mapping

from app.clients.model_gateway import ChatMessage

_CURRENCY_NOTE = (
    "IMPORTANT: Always present monetary values in Indian Rupees (INR) using the "
    "rupee symbol '₹' (for example: ₹1,150). Do NOT use '$' or other currency "
    "symbols. When returning JSON, return valid JSON only (no markdown fences, no "
    "extra text). Use ISO 8601 date strings for dates (e.g. 2025-11-21T18:01:00Z) "
    "when including dates in JSON."
)

_TRADE_INSTRUCTIONS = dedent(
    """\
    You are a professional trading analyst. Analyze the trade and return ONLY valid JSON without any additional text.

    REQUIRED JSON FORMAT:
    {
      "summaryText": "string (2-3 sentences summarizing the trade)",
      "plusPoints": ["string", "string", "string"],
      "minusPoints": ["string", "string", "string"],
      "aiSuggestions": ["string", "string", "string"],
      "score": number,
      "tags": ["string", "string"]
    }

    RULES:
    - "score" must be an integer 1-10 (1 poor, 10 excellent) based on trade quality.
    - Monetary values (if mentioned) must use the rupee symbol '₹' and be formatted as integers or comma-separated (e.g. '₹1,150'). Do NOT use '$'.
    - Give specific, actionable feedback focusing on entry/exit timing, position sizing, risk management, and emotional control.
    - If you include any date fields inside the JSON, use ISO 8601 format (UTC).
    - Return ONLY the JSON object, no additional text."""
)

_PERIOD_INSTRUCTIONS = dedent(
    """\
    You are a trading performance coach. Analyze the {period} trading data and return ONLY valid JSON.

    REQUIRED JSON FORMAT:
    {{
      "summaryText": "string (concise {period} summary)",
      "plusPoints": ["string", "string", "string"],
      "minusPoints": ["string", "string", "string"],
      "aiSuggestions": ["string", "string", "string"],
      "weeklyStats": {{
        "totalTrades": number,
        "winningTrades": number,
        "losingTrades": number,
        "winRatePct": number,
        "totalPnL": number,
        "totalPnLDisplay": "string",
        "avgPnLPerTrade": number,
        "bestTrade": {{ "symbol": "string", "pnl": number, "pnlDisplay": "string", "date": "string" }},
        "worstTrade": {{ "symbol": "string", "pnl": number, "pnlDisplay": "string", "date": "string" }},
        "strategiesUsed": ["string"],
        "dominantIssues": ["string"]
      }},
      "narrative": "string (detailed performance analysis)"
    }}

    RULES:
    - Be objective and data-driven.
    - Numbers in the nested weeklyStats must be numeric types (not strings) except the *Display* fields, which must use '₹'.
    - Numeric fields hold raw values (e.g. 1150); *Display* fields hold formatted strings (e.g. "₹1,150").
    - Identify recurring patterns, root causes and provide concrete next-step actions.
    - Return ONLY the JSON object, no extra commentary."""
)


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _snapshot(data: Mapping[str, Any]) -> str:
    return json.dumps(data, indent=2, default=_json_default, ensure_ascii=False)


def trade_summary_prompt(trade: Mapping[str, Any]) -> list[ChatMessage]:
    """Messages asking for the analysis of a single trade."""
    return [
        {"role": "system", "content": _CURRENCY_NOTE},
        {"role": "system", "content": _TRADE_INSTRUCTIONS},
        {
            "role": "user",
            "content": (
                "Analyze this trade and return JSON analysis (use ₹ for money values):"
                f"\n\n{_snapshot(trade)}"
            ),
        },
    ]


def period_summary_prompt(aggregate: Mapping[str, Any], period: str) -> list[ChatMessage]:
    """Messages asking for a weekly/monthly review of aggregate statistics."""
    label = period.strip().lower() or "weekly"
    return [
        {"role": "system", "content": _CURRENCY_NOTE},
        {"role": "system", "content": _PERIOD_INSTRUCTIONS.format(period=label)},
        {
            "role": "user",
            "content": (
                f"Analyze this {label} trading data and return JSON analysis "
                f"(use ₹ for all money display fields):\n\n{_snapshot(aggregate)}"
            ),
        },
    ]


def build_messages(kind: str, snapshot: Mapping[str, Any]) -> list[ChatMessage]:
    """Dispatch on summary kind; weekly and monthly share one template."""
    if kind == "trade":
        return trade_summary_prompt(snapshot)
    if kind in ("weekly", "monthly"):
        return period_summary_prompt(snapshot, kind)
    raise ValueError(f"Unsupported summary kind: {kind!r}")


__all__ = ["build_messages", "period_summary_prompt", "trade_summary_prompt"]
