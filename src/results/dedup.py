"""
Repeat suppression and recent-result history.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional, Tuple

from models.result import DecodedResult


class ResultDeduplicator:
    """
    Cooldown-based suppression of repeated payloads.

    Only the most recently accepted (payload, timestamp) pair is remembered.
    A payload is accepted when it differs from that payload, or when more
    than cooldown_ms has passed since it was accepted. Rejected repeats do not
    extend the cooldown.
    """

    def __init__(self, cooldown_ms: int = 3000):
        self.cooldown_s = cooldown_ms / 1000.0
        self._last: Optional[Tuple[str, float]] = None

    @property
    def last(self) -> Optional[Tuple[str, float]]:
        return self._last

    def accept(self, payload: str, timestamp: float) -> bool:
        """
        Decide whether payload seen at timestamp (seconds) is a new result.
        """
        if self._last is not None:
            last_payload, last_ts = self._last
            if payload == last_payload and timestamp - last_ts <= self.cooldown_s:
                return False
        self._last = (payload, timestamp)
        return True

    def reset(self) -> None:
        self._last = None


class ResultHistory:
    """Fixed-capacity list of accepted results, newest first."""

    def __init__(self, capacity: int = 5):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._items: Deque[DecodedResult] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._items.maxlen or 0

    def add(self, result: DecodedResult) -> None:
        self._items.appendleft(result)

    def items(self) -> List[DecodedResult]:
        return list(self._items)

    @property
    def latest(self) -> Optional[DecodedResult]:
        return self._items[0] if self._items else None

    def __len__(self) -> int:
        return len(self._items)


@dataclass
class ScanState:
    """
    Scan results owned by the pipeline controller.

    Replaces any "last scanned" globals: the engine creates one and threads it
    through result handling.
    """
    deduplicator: ResultDeduplicator = field(default_factory=ResultDeduplicator)
    history: ResultHistory = field(default_factory=ResultHistory)

    @classmethod
    def create(cls, cooldown_ms: int = 3000, history_size: int = 5) -> "ScanState":
        return cls(
            deduplicator=ResultDeduplicator(cooldown_ms),
            history=ResultHistory(history_size),
        )

    def offer(self, result: DecodedResult, captured_at: Optional[float] = None) -> bool:
        """
        Record result if it passes deduplication. Returns True when accepted.

        captured_at is the monotonic capture time of the frame; without it the
        result's wall-clock timestamp is used.
        """
        stamp = captured_at if captured_at is not None else result.timestamp
        if not self.deduplicator.accept(result.payload, stamp):
            return False
        self.history.add(result)
        return True
