"""Shared pytest fixtures and configuration."""

from __future__ import annotations

from typing import Any, Callable, Iterator

import pytest

from privacy_shield.config import Settings
from privacy_shield.pipeline.rules import RuleSet, build_ruleset
from privacy_shield.services.navigation import NavigationSource
from privacy_shield.services.page import Page
from privacy_shield.stats import StatsCounter


# ---------------------------------------------------------------------------
# Pytest configuration
# ---------------------------------------------------------------------------

pytest_plugins = ("pytest_asyncio",)


# ---------------------------------------------------------------------------
# Deterministic scheduler
# ---------------------------------------------------------------------------


class FakeTimer:
    def __init__(self, when: float, seq: int, callback: Callable[..., Any], args: tuple) -> None:
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manual clock with ``call_later``; timers due at the same instant fire in creation order."""

    def __init__(self) -> None:
        self.now = 0.0
        self._seq = 0
        self._timers: list[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> FakeTimer:
        timer = FakeTimer(self.now + delay, self._seq, callback, args)
        self._seq += 1
        self._timers.append(timer)
        return timer

    @property
    def pending(self) -> int:
        return sum(1 for t in self._timers if not t.cancelled)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = sorted(
                (t for t in self._timers if not t.cancelled and t.when <= target),
                key=lambda t: (t.when, t.seq),
            )
            if not due:
                break
            timer = due[0]
            self._timers.remove(timer)
            self.now = timer.when
            timer.callback(*timer.args)
        self.now = target


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def ruleset() -> RuleSet:
    """Built-in rules with one guard: ``fbclid`` survives on example.org hosts."""
    return build_ruleset(whitelist={"fbclid": ["example.org"]})


@pytest.fixture
def stats() -> StatsCounter:
    return StatsCounter()


@pytest.fixture
def make_page() -> Callable[[str], Page]:
    def _make(url: str = "https://example.com/") -> Page:
        return Page(url)

    return _make


@pytest.fixture
def page(make_page: Callable[[str], Page]) -> Page:
    return make_page("https://example.com/")


@pytest.fixture
def source(page: Page) -> Iterator[NavigationSource]:
    nav = NavigationSource(page)
    nav.install()
    yield nav
    nav.uninstall()


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the developer's environment."""
    return Settings(
        whitelist={},
        poll_interval_ms=500,
        poll_duration_ms=2000,
        toast_duration_ms=100,
        menu_refresh_ms=10000,
        rules_path=None,
    )
