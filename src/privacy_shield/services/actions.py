"""User-initiated clear actions behind the command menu."""

from __future__ import annotations

from typing import Callable

import structlog

from privacy_shield.services.notifications import Notifier
from privacy_shield.services.page import Page
from privacy_shield.services.storage_cleaner import StorageCleaner
from privacy_shield.stats import StatsCounter

logger = structlog.get_logger(__name__)

Confirmer = Callable[[str], bool]

CONFIRM_CLEAR_ALL = (
    "⚠️  Clear ALL data for this site?\n\n"
    "Includes: localStorage, sessionStorage, cookies,\n"
    "IndexedDB, Cache API, Service Workers, Web SQL.\n\n"
    "You may be logged out.  This cannot be undone."
)
CONFIRM_RELOAD = "Reload the page to complete cleanup?\n(Clears any server-set cookies too.)"
CONFIRM_BASIC = (
    "Clear localStorage and sessionStorage for this site?\n"
    "Saved preferences and temporary data will be lost."
)
CONFIRM_COOKIES = "Clear all cookies for this site?\nYou may be logged out."
CONFIRM_DATABASES = (
    "Clear IndexedDB and Web SQL for this site?\n"
    "Offline data and cached content will be removed."
)
CONFIRM_CACHES = (
    "Clear Cache API stores and unregister Service Workers for this site?\n\n"
    "This removes cached assets and any background tracking scripts.\n"
    "The site will re-download resources on next load."
)


class ShieldActions:
    """Each action confirms, clears, counts, and reports in a single toast.

    A declined confirmation does nothing at all.  Partial failures are
    reported as a warning; the counter still records the attempt.

    Args:
        page:        Page being cleaned.
        cleaner:     Storage cleaner bound to the same page.
        stats:       Session counters.
        notifier:    Toast surface.
        confirm:     Yes/no prompt.
        project_url: Target of the "open project page" command.
    """

    def __init__(
        self,
        page: Page,
        cleaner: StorageCleaner,
        stats: StatsCounter,
        notifier: Notifier,
        confirm: Confirmer,
        project_url: str,
    ) -> None:
        self._page = page
        self._cleaner = cleaner
        self._stats = stats
        self._notifier = notifier
        self._confirm = confirm
        self._project_url = project_url

    async def clear_all(self) -> None:
        if not self._confirm(CONFIRM_CLEAR_ALL):
            return
        try:
            report = await self._cleaner.clear_all()
        except Exception as exc:  # noqa: BLE001
            logger.error("actions.clear_all_failed", error=str(exc))
            self._notifier.show("❌  Error during cleanup.", False)
            return

        self._stats.record_clear()
        if report.ok:
            self._notifier.show("✅  All site data cleared.", True)
        else:
            logger.warning("actions.clear_all_partial", failed=report.failed)
            self._notifier.show("⚠️  Partial clear — see console for details.", False, True)

        if report.ok and self._confirm(CONFIRM_RELOAD):
            self._page.reload()

    def clear_basic(self) -> None:
        if not self._confirm(CONFIRM_BASIC):
            return
        local_ok = self._cleaner.clear_local_storage()
        session_ok = self._cleaner.clear_session_storage()
        ok = local_ok and session_ok
        self._stats.record_clear()
        self._notifier.show(
            "✅  localStorage + sessionStorage cleared." if ok else "❌  Cleanup failed.", ok
        )

    def clear_cookies(self) -> None:
        if not self._confirm(CONFIRM_COOKIES):
            return
        ok = self._cleaner.clear_cookies()
        self._stats.record_clear()
        self._notifier.show("✅  Cookies cleared." if ok else "❌  Cookie cleanup failed.", ok)

    async def clear_databases(self) -> None:
        if not self._confirm(CONFIRM_DATABASES):
            return
        indexed_ok = await self._cleaner.clear_indexed_db()
        sql_ok = self._cleaner.clear_web_sql()
        ok = indexed_ok and sql_ok
        self._stats.record_clear()
        self._notifier.show(
            "✅  IndexedDB + Web SQL cleared." if ok else "⚠️  Partial DB cleanup — see console.",
            ok,
            not ok,
        )

    async def clear_caches_and_workers(self) -> None:
        if not self._confirm(CONFIRM_CACHES):
            return
        caches_ok = await self._cleaner.clear_cache_storage()
        workers_ok = await self._cleaner.unregister_service_workers()
        ok = caches_ok and workers_ok
        self._stats.record_clear()
        self._notifier.show(
            "✅  Cache + Service Workers cleared." if ok else "⚠️  Partial clear — see console.",
            ok,
            not ok,
        )

    def show_stats(self) -> None:
        stats = self._stats.snapshot()
        self._notifier.show(
            "📊  PrivacyShield — Session Stats\n"
            f"Tracking tokens stripped:  {stats.tokens_stripped}\n"
            f"Manual data clears done:   {stats.clears_performed}",
            True,
        )

    def open_project_page(self) -> None:
        self._page.open_tab(self._project_url)
