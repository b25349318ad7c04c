"""In-process model of a browser page: location, history, events and site data.

The shield only talks to a page through this surface, so any host that
offers the same attributes (a browser bridge, a test double) can stand in.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import urljoin

import structlog

from privacy_shield.utils.url_utils import extract_domain, location_hash, origin

logger = structlog.get_logger(__name__)

Listener = Callable[[], None]


class SecurityError(Exception):
    """Raised when a history update would leave the page's origin."""


# ---------------------------------------------------------------------------
# Location + history
# ---------------------------------------------------------------------------


class Location:
    """Read-only view over the page's current address."""

    def __init__(self, page: "Page") -> None:
        self._page = page

    @property
    def href(self) -> str:
        return self._page.history.current.url

    @property
    def hostname(self) -> str:
        return extract_domain(self.href)

    @property
    def hash(self) -> str:
        return location_hash(self.href)

    def __str__(self) -> str:
        return self.href


@dataclass
class HistoryEntry:
    url: str
    state: Any = None


class History:
    """Session history with ``pushState``/``replaceState`` semantics.

    Neither ``push_state`` nor ``replace_state`` fires an event; ``back``,
    ``forward`` and ``go`` fire ``popstate`` (plus ``hashchange`` when only
    the fragment differs).
    """

    def __init__(self, page: "Page", url: str) -> None:
        self._page = page
        self._entries: list[HistoryEntry] = [HistoryEntry(url)]
        self._index = 0

    @property
    def current(self) -> HistoryEntry:
        return self._entries[self._index]

    @property
    def state(self) -> Any:
        return self.current.state

    @property
    def length(self) -> int:
        return len(self._entries)

    def _resolve(self, url: str | None) -> str:
        if url is None:
            return self.current.url
        target = urljoin(self.current.url, url)
        if origin(target) != origin(self.current.url):
            raise SecurityError(f"cannot move history from {self.current.url!r} to {target!r}")
        return target

    def replace_state(self, state: Any, title: str = "", url: str | None = None) -> None:
        """Swap the current entry in place: no new entry, no reload, no event."""
        target = self._resolve(url)
        self._entries[self._index] = HistoryEntry(target, state)

    def push_state(self, state: Any, title: str = "", url: str | None = None) -> None:
        target = self._resolve(url)
        del self._entries[self._index + 1 :]
        self._entries.append(HistoryEntry(target, state))
        self._index += 1

    def go(self, delta: int) -> None:
        target = self._index + delta
        if delta == 0 or not 0 <= target < len(self._entries):
            return
        previous = self.current.url
        self._index = target
        self._page.dispatch_event("popstate")
        if location_hash(previous) != location_hash(self.current.url):
            self._page.dispatch_event("hashchange")

    def back(self) -> None:
        self.go(-1)

    def forward(self) -> None:
        self.go(1)


# ---------------------------------------------------------------------------
# Site data stores
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Cookie:
    name: str
    value: str
    domain: str | None = None  # None means host-only
    path: str = "/"


class CookieJar:
    """Cookies visible to the page, keyed by ``(name, domain, path)``."""

    def __init__(self) -> None:
        self._cookies: dict[tuple[str, str | None, str], Cookie] = {}

    def set(self, name: str, value: str, domain: str | None = None, path: str = "/") -> None:
        self._cookies[(name, domain, path)] = Cookie(name, value, domain, path)

    def names(self) -> list[str]:
        seen: list[str] = []
        for cookie in self._cookies.values():
            if cookie.name not in seen:
                seen.append(cookie.name)
        return seen

    def expire(self, name: str, domain: str | None = None, path: str = "/") -> bool:
        """Expire one cookie; ``domain`` follows ``document.cookie`` matching rules."""
        key_domain = domain.lstrip(".") if domain else None
        removed = False
        for key in list(self._cookies):
            c_name, c_domain, c_path = key
            if c_name != name or c_path != path:
                continue
            if (c_domain.lstrip(".") if c_domain else None) == key_domain:
                del self._cookies[key]
                removed = True
        return removed

    def __len__(self) -> int:
        return len(self._cookies)


class IndexedDBFactory:
    """Async database registry; a database listed in ``blocked`` refuses deletion."""

    def __init__(self, names: list[str] | None = None) -> None:
        self._names = list(names or [])
        self.blocked: set[str] = set()

    async def databases(self) -> list[str]:
        return list(self._names)

    async def delete_database(self, name: str) -> bool:
        if name in self.blocked:
            logger.warning("page.indexeddb_blocked", database=name)
            return False
        if name in self._names:
            self._names.remove(name)
        return True


class CacheStorage:
    def __init__(self, keys: list[str] | None = None) -> None:
        self._keys = list(keys or [])

    async def keys(self) -> list[str]:
        return list(self._keys)

    async def delete(self, key: str) -> bool:
        if key in self._keys:
            self._keys.remove(key)
            return True
        return False


class ServiceWorkerRegistration:
    def __init__(self, container: "ServiceWorkerContainer", scope: str) -> None:
        self._container = container
        self.scope = scope

    async def unregister(self) -> bool:
        return self._container._drop(self)


class ServiceWorkerContainer:
    def __init__(self, scopes: list[str] | None = None) -> None:
        self._registrations = [ServiceWorkerRegistration(self, s) for s in scopes or []]

    async def get_registrations(self) -> list[ServiceWorkerRegistration]:
        return list(self._registrations)

    def _drop(self, registration: ServiceWorkerRegistration) -> bool:
        if registration in self._registrations:
            self._registrations.remove(registration)
            return True
        return False


class WebSQLDatabase:
    def __init__(self, name: str, tables: set[str] | None = None) -> None:
        self.name = name
        self.tables = set(tables or {"main"})

    def drop_table(self, table: str) -> None:
        self.tables.discard(table)


# ---------------------------------------------------------------------------
# Page
# ---------------------------------------------------------------------------


@dataclass
class PageCapabilities:
    """Which optional host APIs exist; a missing API is modelled as ``None``."""

    local_storage: bool = True
    session_storage: bool = True
    indexed_db: bool = True
    cache_storage: bool = True
    service_workers: bool = True
    web_sql: bool = False


class Page:
    """A single document with its address, history, events and stores."""

    def __init__(self, url: str, capabilities: PageCapabilities | None = None) -> None:
        caps = capabilities or PageCapabilities()
        self.history = History(self, url)
        self.location = Location(self)
        self._listeners: dict[str, list[Listener]] = {}
        self.reload_count = 0
        self.opened_tabs: list[str] = []

        self.local_storage: dict[str, str] | None = {} if caps.local_storage else None
        self.session_storage: dict[str, str] | None = {} if caps.session_storage else None
        self.cookies = CookieJar()
        self.indexed_db: IndexedDBFactory | None = IndexedDBFactory() if caps.indexed_db else None
        self.caches: CacheStorage | None = CacheStorage() if caps.cache_storage else None
        self.service_workers: ServiceWorkerContainer | None = (
            ServiceWorkerContainer() if caps.service_workers else None
        )
        self.web_sql: dict[str, WebSQLDatabase] | None = {} if caps.web_sql else None

    # -- events ------------------------------------------------------------

    def add_event_listener(self, event_type: str, listener: Listener) -> None:
        self._listeners.setdefault(event_type, []).append(listener)

    def remove_event_listener(self, event_type: str, listener: Listener) -> None:
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)

    def dispatch_event(self, event_type: str) -> None:
        """Call every listener; one failing listener never stops the others."""
        for listener in list(self._listeners.get(event_type, [])):
            try:
                listener()
            except Exception as exc:  # noqa: BLE001
                logger.warning("page.listener_failed", event=event_type, error=str(exc))

    # -- navigation ---------------------------------------------------------

    def navigate_fragment(self, fragment: str) -> None:
        """Follow an in-page ``#anchor`` link: new entry plus ``hashchange``."""
        self.history.push_state(None, "", fragment if fragment.startswith("#") else f"#{fragment}")
        self.dispatch_event("hashchange")

    def reload(self) -> None:
        self.reload_count += 1

    def open_tab(self, url: str) -> None:
        self.opened_tabs.append(url)
