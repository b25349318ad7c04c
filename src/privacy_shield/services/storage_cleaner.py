"""Site-data eraser used by the manual clear actions.

Every operation returns a success flag instead of raising.  A store the
host does not provide counts as already clean.
"""

from __future__ import annotations

import asyncio

import structlog

from privacy_shield.models import ClearReport
from privacy_shield.services.page import Page
from privacy_shield.utils.url_utils import registrable_domain

logger = structlog.get_logger(__name__)

# Name prefixes of Web SQL databases that sites commonly create.
_WEB_SQL_PREFIXES = ("web_sql", "site_", "app_", "local_", "data_", "db_", "temp_")


def cookie_domains(hostname: str) -> list[str | None]:
    """Domains to expire each cookie on: host-only, host, ``.host`` and the apex.

    >>> cookie_domains("www.example.co.uk")
    [None, 'www.example.co.uk', '.www.example.co.uk', '.example.co.uk']
    """
    domains: list[str | None] = [None]
    if not hostname:
        return domains
    domains.extend([hostname, f".{hostname}"])
    apex = registrable_domain(hostname)
    if apex != hostname:
        domains.append(f".{apex}")
    return domains


class StorageCleaner:
    """Clears one page's local/session storage, cookies, databases, caches and workers.

    Args:
        page: Page whose stores are erased.
    """

    def __init__(self, page: Page) -> None:
        self._page = page

    # ------------------------------------------------------------------
    # Synchronous stores
    # ------------------------------------------------------------------

    def clear_local_storage(self) -> bool:
        try:
            if self._page.local_storage is not None:
                self._page.local_storage.clear()
            logger.info("storage.local_cleared")
            return True
        except Exception as exc:  # noqa: BLE001
            logger.error("storage.local_failed", error=str(exc))
            return False

    def clear_session_storage(self) -> bool:
        try:
            if self._page.session_storage is not None:
                self._page.session_storage.clear()
            logger.info("storage.session_cleared")
            return True
        except Exception as exc:  # noqa: BLE001
            logger.error("storage.session_failed", error=str(exc))
            return False

    def clear_cookies(self) -> bool:
        """Expire every visible cookie on the host and its parent domains."""
        try:
            jar = self._page.cookies
            names = jar.names()
            domains = cookie_domains(self._page.location.hostname)
            for name in names:
                for domain in domains:
                    jar.expire(name, domain=domain, path="/")
            logger.info("storage.cookies_cleared", count=len(names))
            return True
        except Exception as exc:  # noqa: BLE001
            logger.error("storage.cookies_failed", error=str(exc))
            return False

    def clear_web_sql(self) -> bool:
        """Best effort: per-database errors are ignored and never fail the action."""
        databases = self._page.web_sql
        if databases is None:
            return True
        dropped = 0
        for name, db in list(databases.items()):
            if not name.startswith(_WEB_SQL_PREFIXES):
                continue
            try:
                db.drop_table("main")
                dropped += 1
            except Exception as exc:  # noqa: BLE001
                logger.debug("storage.web_sql_skip", database=name, error=str(exc))
        logger.info("storage.web_sql_attempted", databases=dropped)
        return True

    # ------------------------------------------------------------------
    # Asynchronous stores
    # ------------------------------------------------------------------

    async def clear_indexed_db(self) -> bool:
        factory = self._page.indexed_db
        if factory is None:
            return True
        try:
            names = await factory.databases()
            if not names:
                return True
            results = await asyncio.gather(*(factory.delete_database(n) for n in names))
            logger.info("storage.indexeddb_cleared", count=len(names), failed=results.count(False))
            return all(results)
        except Exception as exc:  # noqa: BLE001
            logger.error("storage.indexeddb_failed", error=str(exc))
            return False

    async def clear_cache_storage(self) -> bool:
        caches = self._page.caches
        if caches is None:
            return True
        try:
            keys = await caches.keys()
            if not keys:
                return True
            await asyncio.gather(*(caches.delete(k) for k in keys))
            logger.info("storage.caches_cleared", count=len(keys))
            return True
        except Exception as exc:  # noqa: BLE001
            logger.error("storage.caches_failed", error=str(exc))
            return False

    async def unregister_service_workers(self) -> bool:
        container = self._page.service_workers
        if container is None:
            return True
        try:
            registrations = await container.get_registrations()
            if not registrations:
                return True
            await asyncio.gather(*(r.unregister() for r in registrations))
            logger.info("storage.workers_unregistered", count=len(registrations))
            return True
        except Exception as exc:  # noqa: BLE001
            logger.error("storage.workers_failed", error=str(exc))
            return False

    # ------------------------------------------------------------------
    # Aggregate
    # ------------------------------------------------------------------

    async def clear_all(self) -> ClearReport:
        """Run every operation; one failure never stops the rest."""
        results = {
            "local_storage": self.clear_local_storage(),
            "session_storage": self.clear_session_storage(),
            "cookies": self.clear_cookies(),
        }
        indexed_db, caches, workers = await asyncio.gather(
            self.clear_indexed_db(),
            self.clear_cache_storage(),
            self.unregister_service_workers(),
        )
        results.update(
            indexed_db=indexed_db,
            cache_storage=caches,
            service_workers=workers,
            web_sql=self.clear_web_sql(),
        )
        return ClearReport(results=results)
