"""Composition root: wires the watcher, stats, menu and actions onto one page."""

from __future__ import annotations

from typing import Callable

import structlog

from privacy_shield.config import Settings, settings as default_settings
from privacy_shield.pipeline.rules import RuleSet, load_ruleset
from privacy_shield.pipeline.watcher import NavigationWatcher, Scheduler, TimerHandle
from privacy_shield.services.actions import Confirmer, ShieldActions
from privacy_shield.services.commands import CommandRegistrar, MenuRegistry, ShieldMenu
from privacy_shield.services.navigation import NavigationSource
from privacy_shield.services.notifications import LogNotifier, Notifier
from privacy_shield.services.page import Page
from privacy_shield.services.storage_cleaner import StorageCleaner
from privacy_shield.stats import StatsCounter

logger = structlog.get_logger(__name__)


def _decline(_message: str) -> bool:
    return False


class Shield:
    """Everything the shield runs for a single page, started and stopped together.

    Args:
        page:      Page to protect.
        scheduler: Timer provider, usually the running asyncio loop.
        config:    Settings; the module singleton when omitted.
        ruleset:   Pre-built rules; loaded from *config* when omitted.
        registrar: Host command surface; an in-memory registry when omitted.
        notifier:  Toast surface; a logging notifier when omitted.
        confirm:   Yes/no prompt for destructive actions; declines when omitted.
    """

    def __init__(
        self,
        page: Page,
        scheduler: Scheduler,
        config: Settings | None = None,
        ruleset: RuleSet | None = None,
        registrar: CommandRegistrar | None = None,
        notifier: Notifier | None = None,
        confirm: Confirmer | None = None,
    ) -> None:
        cfg = config or default_settings
        self.page = page
        self.config = cfg
        self.ruleset = ruleset or load_ruleset(cfg.whitelist, cfg.rules_path)
        self.stats = StatsCounter()
        self.source = NavigationSource(page)
        self.watcher = NavigationWatcher(
            self.source,
            self.ruleset,
            self.stats,
            scheduler,
            poll_interval_ms=cfg.poll_interval_ms,
            poll_duration_ms=cfg.poll_duration_ms,
        )
        self.registrar = registrar or MenuRegistry()
        self.notifier = notifier or LogNotifier(cfg.toast_duration_ms)
        self.actions = ShieldActions(
            page,
            StorageCleaner(page),
            self.stats,
            self.notifier,
            confirm or _decline,
            cfg.project_url,
        )
        self.menu = ShieldMenu(self.registrar, self.actions, self.stats)
        self._scheduler = scheduler
        self._menu_timer: TimerHandle | None = None
        self._started = False

    def start(self) -> None:
        """Register the menu, hook navigation and clean the current address."""
        if self._started:
            return
        self._started = True
        self.menu.register()
        self.stats.subscribe(self.menu.on_stats_changed)
        self.source.install()
        self.watcher.start()
        self._schedule(self._refresh_menu, self.config.menu_refresh_ms)
        logger.info("shield.loaded", href=self.page.location.href, rules=len(self.ruleset.rules))

    def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        self.watcher.stop()
        self.source.uninstall()
        if self._menu_timer is not None:
            self._menu_timer.cancel()
            self._menu_timer = None
        self.stats.unsubscribe(self.menu.on_stats_changed)
        self.menu.unregister()
        logger.info("shield.stopped")

    def _schedule(self, callback: Callable[[], None], delay_ms: int) -> None:
        if delay_ms > 0:
            self._menu_timer = self._scheduler.call_later(delay_ms / 1000, callback)

    def _refresh_menu(self) -> None:
        self._menu_timer = None
        if not self._started:
            return
        self.menu.refresh()
        self._schedule(self._refresh_menu, self.config.menu_refresh_ms)
