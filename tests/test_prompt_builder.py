try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timezone

import pytest

from app.services.prompt_builder import build_messages


def test_trade_prompt_embeds_snapshot_and_currency_rules() -> None:
    trade = {
        "symbol": "RELIANCE",
        "pnl": 1150,
        "entryTime": datetime(2025, 11, 21, 9, 15, tzinfo=timezone.utc),
    }

    messages = build_messages("trade", trade)

    assert [message["role"] for message in messages] == ["system", "system", "user"]
    assert "₹" in messages[0]["content"]
    assert '"summaryText"' in messages[1]["content"]
    assert '"score"' in messages[1]["content"]
    user = messages[2]["content"]
    assert user.startswith("Analyze this trade and return JSON analysis")
    assert '"symbol": "RELIANCE"' in user
    assert "2025-11-21T09:15:00+00:00" in user


@pytest.mark.parametrize("kind", ["weekly", "monthly"])
def test_period_prompts_share_template(kind) -> None:
    messages = build_messages(kind, {"totalTrades": 12, "winRate": 58.3})

    instructions = messages[1]["content"]
    assert f"Analyze the {kind} trading data" in instructions
    assert '"weeklyStats": {' in instructions
    assert "{{" not in instructions
    assert messages[2]["content"].startswith(f"Analyze this {kind} trading data")
    assert '"totalTrades": 12' in messages[2]["content"]


def test_prompts_are_deterministic() -> None:
    snapshot = {"symbol": "TCS", "pnl": -320}

    assert build_messages("trade", snapshot) == build_messages("trade", snapshot)


def test_unknown_kind_is_rejected() -> None:
    with pytest.raises(ValueError):
        build_messages("yearly", {})
