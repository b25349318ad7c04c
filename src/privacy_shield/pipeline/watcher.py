"""Navigation watcher: reacts to every address-change signal and rewrites in place."""

from __future__ import annotations

from typing import Any, Callable, Protocol

import structlog

from privacy_shield.models import NavigationSignal
from privacy_shield.pipeline.rules import RuleSet
from privacy_shield.pipeline.scrub import scrub
from privacy_shield.services.navigation import NavigationSource
from privacy_shield.stats import StatsCounter

logger = structlog.get_logger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything with ``call_later``; an :mod:`asyncio` event loop qualifies."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...


class NavigationWatcher:
    """Keeps the live address free of tracking tokens.

    Signals come from the :class:`NavigationSource` (history replace, pop,
    hash change), from ``start()`` (initial load) and from a bounded poll
    timer that catches single-page apps rewriting the address during boot
    without any of those primitives.  Every signal is handled synchronously
    to completion; commits go through the unwrapped replace, so they never
    produce a new signal.

    Args:
        source:           Navigation source for the page.
        ruleset:          Rules to apply.
        stats:            Counter that receives stripped-token counts.
        scheduler:        Timer provider for the poll window.
        poll_interval_ms: Gap between poll ticks.
        poll_duration_ms: Total poll window measured from ``start()``.
    """

    def __init__(
        self,
        source: NavigationSource,
        ruleset: RuleSet,
        stats: StatsCounter,
        scheduler: Scheduler,
        poll_interval_ms: int = 500,
        poll_duration_ms: int = 2000,
    ) -> None:
        self._source = source
        self._ruleset = ruleset
        self._stats = stats
        self._scheduler = scheduler
        self._poll_interval = poll_interval_ms / 1000
        self._poll_duration = poll_duration_ms / 1000
        self._poll_handle: TimerHandle | None = None
        self._poll_stop_handle: TimerHandle | None = None
        self._running = False

    @property
    def polling(self) -> bool:
        return self._poll_handle is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Subscribe, clean the initial address and open the poll window."""
        if self._running:
            return
        self._running = True
        self._source.subscribe(self.handle)
        self.handle(NavigationSignal.INITIAL_LOAD)

        if self._poll_interval > 0 and self._poll_duration > 0:
            self._poll_handle = self._scheduler.call_later(self._poll_interval, self._on_poll)
            self._poll_stop_handle = self._scheduler.call_later(
                self._poll_duration, self._stop_polling
            )
        logger.debug(
            "watcher.started",
            poll_interval_s=self._poll_interval,
            poll_duration_s=self._poll_duration,
        )

    def stop(self) -> None:
        """Detach from the source and cancel any pending timers."""
        if not self._running:
            return
        self._running = False
        self._source.unsubscribe(self.handle)
        if self._poll_stop_handle is not None:
            self._poll_stop_handle.cancel()
        self._stop_polling()
        logger.debug("watcher.stopped")

    def _on_poll(self) -> None:
        self._poll_handle = None
        if not self._running:
            return
        self.handle(NavigationSignal.POLL_TICK)
        self._poll_handle = self._scheduler.call_later(self._poll_interval, self._on_poll)

    def _stop_polling(self) -> None:
        if self._poll_handle is not None:
            self._poll_handle.cancel()
            self._poll_handle = None
        self._poll_stop_handle = None

    # ------------------------------------------------------------------
    # Signal handling
    # ------------------------------------------------------------------

    def handle(self, signal: NavigationSignal) -> bool:
        """Re-read the live address and commit a cleaned version if it differs.

        Returns:
            ``True`` if an address update was committed.  Errors are logged
            and reported as ``False``; the next signal simply tries again.
        """
        try:
            href = self._source.href
            result = scrub(href, self._ruleset)
            if result.url == href:
                return False

            self._stats.add_stripped(result.tokens)
            self._source.commit(result.url)
            logger.info(
                "watcher.committed",
                signal=signal.value,
                removed=result.removed,
                fragment_cleaned=result.fragment_cleaned,
            )
            return True
        except Exception as exc:  # noqa: BLE001
            logger.warning("watcher.signal_failed", signal=signal.value, error=str(exc))
            return False
