"""URL helpers shared by the rewriter, the page model and the storage cleaner."""

from __future__ import annotations

from functools import lru_cache
from typing import Iterable
from urllib.parse import urlsplit

import tldextract

WEB_SCHEMES: frozenset[str] = frozenset({"http", "https"})


def extract_domain(url: str) -> str:
    """Return the bare hostname (no port) for *url*.

    Args:
        url: Any URL string.

    Returns:
        Lowercase hostname, e.g. ``"www.facebook.com"``; empty on failure.
    """
    try:
        return urlsplit(url).hostname or ""
    except Exception:  # noqa: BLE001
        return ""


def host_matches_suffix(hostname: str, suffixes: Iterable[str]) -> bool:
    """Plain ``endswith`` test used by both the exclusion list and guards.

    This is deliberately a string suffix test rather than a label-aware one,
    so ``"icloud.com"`` also covers ``"www.icloud.com"``.
    """
    return any(hostname.endswith(suffix) for suffix in suffixes if suffix)


def split_fragment(href: str) -> tuple[str, str]:
    """Split *href* into ``(everything before '#', '#fragment')``."""
    base, sep, fragment = href.partition("#")
    return base, (sep + fragment) if sep else ""


def location_hash(href: str) -> str:
    """Fragment as a browser's ``location.hash`` reports it (a bare ``#`` is empty)."""
    _, fragment = split_fragment(href)
    return fragment if len(fragment) > 1 else ""


def with_fragment(href: str, fragment: str) -> str:
    """Return *href* with its fragment replaced by *fragment* (``""`` drops it)."""
    base, _ = split_fragment(href)
    return base + fragment


def origin(url: str) -> tuple[str, str, int | None]:
    """``(scheme, host, port)`` triple used for same-origin checks."""
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    port = parts.port
    if port is None:
        port = {"http": 80, "https": 443}.get(scheme)
    return scheme, (parts.hostname or ""), port


@lru_cache(maxsize=1)
def _extractor() -> tldextract.TLDExtract:
    # Bundled public-suffix snapshot only; never touch the network or disk.
    return tldextract.TLDExtract(cache_dir=None, suffix_list_urls=())


def registrable_domain(hostname: str) -> str:
    """Return the apex (eTLD+1) of *hostname*, e.g. ``"example.co.uk"``.

    Falls back to *hostname* itself for IPs, single-label hosts, or lookup errors.
    """
    try:
        ext = _extractor()(hostname)
        if not ext.domain or not ext.suffix:
            return hostname
        return f"{ext.domain}.{ext.suffix}"
    except Exception:  # noqa: BLE001
        return hostname
