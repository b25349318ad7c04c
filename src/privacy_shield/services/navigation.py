"""Navigation source: the one place that wraps the page's history primitive.

Everything else subscribes here instead of listening to the page directly.
"""

from __future__ import annotations

from typing import Any, Callable

import structlog

from privacy_shield.models import NavigationSignal
from privacy_shield.services.page import Page

logger = structlog.get_logger(__name__)

SignalHandler = Callable[[NavigationSignal], None]

_PAGE_EVENTS: dict[str, NavigationSignal] = {
    "popstate": NavigationSignal.HISTORY_POP,
    "hashchange": NavigationSignal.HASH_CHANGE,
}


class NavigationSource:
    """Turns page activity into :class:`NavigationSignal` notifications.

    ``install()`` swaps ``page.history.replace_state`` for a wrapper, so
    existing callers keep calling the same attribute and never learn about
    the wrapper.  The wrapper:

    * always performs the original replace exactly as requested,
    * notifies subscribers afterwards, whether or not it raised,
    * on failure retries the original once and lets a second failure
      propagate to the caller.

    Args:
        page: The page whose address is being watched.
    """

    def __init__(self, page: Page) -> None:
        self._page = page
        self._handlers: list[SignalHandler] = []
        self._original: Callable[..., None] | None = None
        self._event_relays: dict[str, Callable[[], None]] = {}

    @property
    def installed(self) -> bool:
        return self._original is not None

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def install(self) -> None:
        """Wrap the history primitive and relay page events.  Idempotent."""
        if self.installed:
            return
        history = self._page.history
        original = history.replace_state
        self._original = original

        def replace_state(*args: Any, **kwargs: Any) -> None:
            try:
                original(*args, **kwargs)
            except Exception:
                self.emit(NavigationSignal.HISTORY_REPLACE)
                original(*args, **kwargs)
                return
            self.emit(NavigationSignal.HISTORY_REPLACE)

        history.replace_state = replace_state  # type: ignore[method-assign]

        for event_type, signal in _PAGE_EVENTS.items():
            relay = self._make_relay(signal)
            self._event_relays[event_type] = relay
            self._page.add_event_listener(event_type, relay)
        logger.debug("navigation.installed", href=self._page.location.href)

    def uninstall(self) -> None:
        """Restore the original primitive and detach from page events."""
        if not self.installed:
            return
        # The wrapper lives in the instance dict; dropping it re-exposes the method.
        self._page.history.__dict__.pop("replace_state", None)
        self._original = None
        for event_type, relay in self._event_relays.items():
            self._page.remove_event_listener(event_type, relay)
        self._event_relays.clear()
        logger.debug("navigation.uninstalled")

    def _make_relay(self, signal: NavigationSignal) -> Callable[[], None]:
        def relay() -> None:
            self.emit(signal)

        return relay

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe(self, handler: SignalHandler) -> None:
        if handler not in self._handlers:
            self._handlers.append(handler)

    def unsubscribe(self, handler: SignalHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def emit(self, signal: NavigationSignal) -> None:
        """Deliver *signal* to every subscriber; a failing subscriber is logged, not raised."""
        for handler in list(self._handlers):
            try:
                handler(signal)
            except Exception as exc:  # noqa: BLE001
                logger.warning("navigation.handler_failed", signal=signal.value, error=str(exc))

    # ------------------------------------------------------------------
    # Address access
    # ------------------------------------------------------------------

    @property
    def href(self) -> str:
        """The live address, read fresh on every access."""
        return self._page.location.href

    def commit(self, url: str) -> None:
        """Non-navigating replace that does *not* notify subscribers.

        Keeps the current history state object so the page's own routing
        data survives the rewrite.
        """
        replace = self._original or self._page.history.replace_state
        replace(self._page.history.state, "", url)
