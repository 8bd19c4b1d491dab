"""HTTP utilities providing retry/backoff semantics."""

from __future__ import annotations

from typing import Iterator


class RetryConfig:
    """Bounded retry rounds with exponential backoff between them."""

    def __init__(self, *, rounds: int = 3, backoff_seconds: float = 0.5) -> None:
        if rounds < 1:
            raise ValueError("rounds must be at least 1")
        self.rounds = rounds
        self.backoff_seconds = backoff_seconds

    def delay_before(self, round_index: int) -> float:
        """Seconds to wait before round ``round_index`` (zero-based)."""
        if round_index <= 0:
            return 0.0
        return self.backoff_seconds * 2 ** (round_index - 1)

    def schedule(self) -> Iterator[tuple[int, float]]:
        """Yield ``(round_index, delay)`` pairs for every round."""
        for round_index in range(self.rounds):
            yield round_index, self.delay_before(round_index)


__all__ = ["RetryConfig"]
