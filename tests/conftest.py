"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from app.clients.sqlite_store import SQLiteSummaryStore
from app.schemas.summary import SummaryRecord


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def record_store(tmp_path) -> SQLiteSummaryStore:
    return SQLiteSummaryStore(str(tmp_path / "summaries.db"))


@pytest.fixture
def make_record(record_store):
    """Create and persist a draft record."""

    def _make(summary_id: str = "sum-1", kind: str = "trade", **overrides) -> SummaryRecord:
        snapshot = overrides.pop(
            "input_snapshot",
            {"symbol": "NIFTY", "pnl": 1150, "entryPrice": 100, "exitPrice": 111.5},
        )
        record = SummaryRecord(
            id=summary_id,
            owner_id=overrides.pop("owner_id", "user-1"),
            kind=kind,
            input_snapshot=snapshot,
            **overrides,
        )
        return record_store.create(record)

    return _make
