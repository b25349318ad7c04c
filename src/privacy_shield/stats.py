"""Session counters: the only owner of :class:`SessionStats`."""

from __future__ import annotations

from typing import Callable

import structlog

from privacy_shield.models import SessionStats

logger = structlog.get_logger(__name__)

StatsObserver = Callable[[SessionStats], None]


class StatsCounter:
    """Monotonic counters for stripped tokens and manual clears.

    Only ``add_stripped`` and ``record_clear`` mutate state; there is no
    decrement.  Observers receive a snapshot after every change.
    """

    def __init__(self) -> None:
        self._stats = SessionStats()
        self._observers: list[StatsObserver] = []

    @property
    def tokens_stripped(self) -> int:
        return self._stats.tokens_stripped

    @property
    def clears_performed(self) -> int:
        return self._stats.clears_performed

    def snapshot(self) -> SessionStats:
        """Copy of the current counters, safe to hand to display code."""
        return self._stats.model_copy()

    def subscribe(self, observer: StatsObserver) -> None:
        self._observers.append(observer)

    def unsubscribe(self, observer: StatsObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def add_stripped(self, count: int) -> None:
        """Add *count* stripped tokens.  Zero is a no-op; negatives are rejected."""
        if count < 0:
            raise ValueError(f"stripped count cannot be negative: {count}")
        if count == 0:
            return
        self._stats.tokens_stripped += count
        self._notify()

    def record_clear(self) -> None:
        self._stats.clears_performed += 1
        self._notify()

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception as exc:  # noqa: BLE001
                logger.warning("stats.observer_failed", error=str(exc))
