"""Tests for the navigation watcher and the navigation source it listens to."""

from __future__ import annotations

from typing import Any

import pytest

from privacy_shield.models import NavigationSignal
from privacy_shield.pipeline.rules import RuleSet
from privacy_shield.pipeline.watcher import NavigationWatcher
from privacy_shield.services.navigation import NavigationSource
from privacy_shield.services.page import History, Page, SecurityError
from privacy_shield.stats import StatsCounter

from conftest import FakeScheduler


def _watch(
    url: str, ruleset: RuleSet, scheduler: FakeScheduler
) -> tuple[Page, NavigationSource, NavigationWatcher, StatsCounter]:
    page = Page(url)
    source = NavigationSource(page)
    source.install()
    stats = StatsCounter()
    watcher = NavigationWatcher(source, ruleset, stats, scheduler, 500, 2000)
    return page, source, watcher, stats


# ---------------------------------------------------------------------------
# Navigation source
# ---------------------------------------------------------------------------


class TestNavigationSource:
    """Tests for the wrapped history primitive and event relays."""

    def test_replace_performed_before_notification(self, page: Page, source: NavigationSource) -> None:
        seen: list[tuple[NavigationSignal, str]] = []
        source.subscribe(lambda s: seen.append((s, page.location.href)))

        page.history.replace_state({"k": 1}, "", "/next?a=1")

        assert seen == [(NavigationSignal.HISTORY_REPLACE, "https://example.com/next?a=1")]
        assert page.history.state == {"k": 1}
        assert page.history.length == 1

    def test_failing_replace_still_notifies_then_raises(
        self, page: Page, source: NavigationSource
    ) -> None:
        seen: list[NavigationSignal] = []
        source.subscribe(seen.append)

        with pytest.raises(SecurityError):
            page.history.replace_state(None, "", "https://other.example/")

        assert seen == [NavigationSignal.HISTORY_REPLACE]
        assert page.location.href == "https://example.com/"

    def test_transient_failure_is_retried(self, page: Page) -> None:
        calls: list[tuple[Any, ...]] = []

        def flaky(*args: Any) -> None:
            calls.append(args)
            if len(calls) == 1:
                raise RuntimeError("busy")
            History.replace_state(page.history, *args)

        page.history.replace_state = flaky  # type: ignore[method-assign]
        source = NavigationSource(page)
        source.install()
        seen: list[NavigationSignal] = []
        source.subscribe(seen.append)

        page.history.replace_state(None, "", "/retried")

        assert len(calls) == 2
        assert page.location.href == "https://example.com/retried"
        assert seen == [NavigationSignal.HISTORY_REPLACE]

    def test_commit_does_not_notify(self, page: Page, source: NavigationSource) -> None:
        seen: list[NavigationSignal] = []
        source.subscribe(seen.append)
        page.history.replace_state({"route": 7}, "", "/a")
        seen.clear()

        source.commit("https://example.com/b")

        assert seen == []
        assert page.location.href == "https://example.com/b"
        assert page.history.state == {"route": 7}

    def test_page_events_relayed(self, page: Page, source: NavigationSource) -> None:
        seen: list[NavigationSignal] = []
        source.subscribe(seen.append)
        page.navigate_fragment("#one")
        page.history.back()
        assert seen == [
            NavigationSignal.HASH_CHANGE,
            NavigationSignal.HISTORY_POP,
            NavigationSignal.HASH_CHANGE,
        ]

    def test_failing_subscriber_does_not_block_others(
        self, page: Page, source: NavigationSource
    ) -> None:
        def broken(_signal: NavigationSignal) -> None:
            raise ValueError("boom")

        seen: list[NavigationSignal] = []
        source.subscribe(broken)
        source.subscribe(seen.append)
        page.history.replace_state(None, "", "/x")
        assert seen == [NavigationSignal.HISTORY_REPLACE]

    def test_uninstall_restores_primitive(self, page: Page) -> None:
        source = NavigationSource(page)
        source.install()
        seen: list[NavigationSignal] = []
        source.subscribe(seen.append)

        source.uninstall()
        page.history.replace_state(None, "", "/quiet")
        page.navigate_fragment("#quiet")

        assert seen == []
        assert "replace_state" not in page.history.__dict__
        assert page.location.href == "https://example.com/quiet#quiet"


# ---------------------------------------------------------------------------
# Watcher
# ---------------------------------------------------------------------------


class TestNavigationWatcher:
    """Tests for signal handling, counting and the poll window."""

    def test_initial_load_cleaned(self, ruleset: RuleSet, scheduler: FakeScheduler) -> None:
        page, _, watcher, stats = _watch(
            "https://example.com/?utm_source=x&id=5&fbclid=abc", ruleset, scheduler
        )
        watcher.start()
        assert page.location.href == "https://example.com/?id=5"
        assert stats.tokens_stripped == 2
        assert page.history.length == 1

    def test_excluded_host_left_alone(self, ruleset: RuleSet, scheduler: FakeScheduler) -> None:
        page, _, watcher, stats = _watch("https://www.icloud.com/?gclid=z", ruleset, scheduler)
        watcher.start()
        assert page.location.href == "https://www.icloud.com/?gclid=z"
        assert stats.tokens_stripped == 0

    def test_page_replace_triggers_cleanup(self, ruleset: RuleSet, scheduler: FakeScheduler) -> None:
        page, _, watcher, stats = _watch("https://example.com/", ruleset, scheduler)
        watcher.start()

        page.history.replace_state({"spa": True}, "", "/next?gclid=1&a=2")

        assert page.location.href == "https://example.com/next?a=2"
        assert page.history.state == {"spa": True}
        assert stats.tokens_stripped == 1

    def test_back_navigation_cleaned(self, ruleset: RuleSet, scheduler: FakeScheduler) -> None:
        page, _, watcher, _ = _watch("https://example.com/", ruleset, scheduler)
        watcher.start()
        page.history.push_state(None, "", "/a?fbclid=1")
        page.history.push_state(None, "", "/b")

        page.history.back()

        assert page.location.href == "https://example.com/a"

    def test_hash_change_cleaned_and_counted_once(
        self, ruleset: RuleSet, scheduler: FakeScheduler
    ) -> None:
        page, _, watcher, stats = _watch("https://example.com/", ruleset, scheduler)
        watcher.start()

        page.navigate_fragment("#section&fbclid=abc&_hsenc=x&y=1")

        assert page.location.href == "https://example.com/#section&y=1"
        assert stats.tokens_stripped == 1

    def test_hash_only_token_drops_delimiter(self, ruleset: RuleSet, scheduler: FakeScheduler) -> None:
        page, _, watcher, _ = _watch("https://example.com/path", ruleset, scheduler)
        watcher.start()
        page.navigate_fragment("#fbclid=abc")
        assert page.location.href == "https://example.com/path"

    def test_query_and_fragment_single_commit(
        self, ruleset: RuleSet, scheduler: FakeScheduler
    ) -> None:
        page, source, watcher, stats = _watch(
            "https://example.com/?utm_source=a&utm_medium=b#fbclid=c", ruleset, scheduler
        )
        commits: list[str] = []
        original_commit = source.commit

        def spy(url: str) -> None:
            commits.append(url)
            original_commit(url)

        source.commit = spy  # type: ignore[method-assign]
        watcher.start()

        assert commits == ["https://example.com/"]
        assert stats.tokens_stripped == 3

    def test_own_commit_never_signals(self, ruleset: RuleSet, scheduler: FakeScheduler) -> None:
        page, source, watcher, _ = _watch("https://example.com/?gclid=1", ruleset, scheduler)
        seen: list[NavigationSignal] = []
        source.subscribe(seen.append)

        watcher.start()

        assert page.location.href == "https://example.com/"
        assert NavigationSignal.HISTORY_REPLACE not in seen

    def test_poll_catches_silent_spa_route(self, ruleset: RuleSet, scheduler: FakeScheduler) -> None:
        page, _, watcher, _ = _watch("https://example.com/", ruleset, scheduler)
        watcher.start()
        page.history.push_state(None, "", "/spa?gclid=9&tab=2")
        assert page.location.href == "https://example.com/spa?gclid=9&tab=2"

        scheduler.advance(0.5)

        assert page.location.href == "https://example.com/spa?tab=2"

    def test_poll_window_is_bounded(self, ruleset: RuleSet, scheduler: FakeScheduler) -> None:
        page, _, watcher, _ = _watch("https://example.com/", ruleset, scheduler)
        signals: list[NavigationSignal] = []
        handle = watcher.handle

        def counting(signal: NavigationSignal) -> bool:
            signals.append(signal)
            return handle(signal)

        watcher.handle = counting  # type: ignore[method-assign]
        watcher.start()
        scheduler.advance(5.0)

        assert signals.count(NavigationSignal.POLL_TICK) == 3
        assert not watcher.polling
        assert scheduler.pending == 0

        page.history.push_state(None, "", "/late?gclid=1")
        scheduler.advance(5.0)
        assert page.location.href == "https://example.com/late?gclid=1"

    def test_errors_are_swallowed(self, ruleset: RuleSet, scheduler: FakeScheduler) -> None:
        page, source, watcher, stats = _watch("https://example.com/", ruleset, scheduler)
        watcher.start()
        original_commit = source.commit

        def broken(url: str) -> None:
            raise RuntimeError("host refused")

        source.commit = broken  # type: ignore[method-assign]
        page.history.push_state(None, "", "/x?gclid=1")
        assert watcher.handle(NavigationSignal.POLL_TICK) is False
        assert page.location.href == "https://example.com/x?gclid=1"

        source.commit = original_commit  # type: ignore[method-assign]
        assert watcher.handle(NavigationSignal.POLL_TICK) is True
        assert page.location.href == "https://example.com/x"
        # Counted before commit: the refused attempt and the retry both count.
        assert stats.tokens_stripped == 2

    def test_clean_address_is_not_rewritten(self, ruleset: RuleSet, scheduler: FakeScheduler) -> None:
        page, _, watcher, stats = _watch("https://example.com/a?b=1#c", ruleset, scheduler)
        watcher.start()
        assert watcher.handle(NavigationSignal.POLL_TICK) is False
        assert stats.tokens_stripped == 0

    def test_stop_detaches_and_cancels(self, ruleset: RuleSet, scheduler: FakeScheduler) -> None:
        page, _, watcher, _ = _watch("https://example.com/", ruleset, scheduler)
        watcher.start()
        watcher.stop()

        page.history.replace_state(None, "", "/after?gclid=1")
        scheduler.advance(1.0)

        assert page.location.href == "https://example.com/after?gclid=1"
        assert scheduler.pending == 0
