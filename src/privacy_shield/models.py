"""Pydantic v2 data models for the tracking-token stripper."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Rule configuration
# ---------------------------------------------------------------------------


class Rule(BaseModel):
    """A single query-parameter removal rule."""

    model_config = ConfigDict(frozen=True)

    param: str
    expected_value: Optional[str] = None
    scope_domain: Optional[str] = None

    @classmethod
    def parse(cls, text: str, scope_domain: str | None = None) -> "Rule":
        """Build a rule from the compact ``"name"`` or ``"name=value"`` form."""
        name, sep, value = text.partition("=")
        return cls(param=name, expected_value=value if sep else None, scope_domain=scope_domain)

    def applies_to(self, hostname: str) -> bool:
        """Return True if this rule is global or scoped to exactly *hostname*."""
        if self.scope_domain is None:
            return True
        return hostname.lower() == self.scope_domain.lower()


# ---------------------------------------------------------------------------
# Immutable address representation
# ---------------------------------------------------------------------------


class QueryParam(BaseModel):
    """One ``name=value`` pair of a query string, keeping its original text."""

    model_config = ConfigDict(frozen=True)

    raw: str
    name: str
    value: str


class Address(BaseModel):
    """A parsed http(s) URL.  Rule steps return new copies, never mutate."""

    model_config = ConfigDict(frozen=True)

    href: str
    prefix: str  # scheme://netloc/path, everything before the ``?``
    hostname: str
    params: tuple[QueryParam, ...] = ()
    fragment: str = ""  # including the leading ``#``; empty when absent
    query_changed: bool = False

    def has(self, name: str) -> bool:
        return any(p.name == name for p in self.params)

    def get(self, name: str) -> str | None:
        """First value for *name*, mirroring ``URLSearchParams.get``."""
        for p in self.params:
            if p.name == name:
                return p.value
        return None

    def names(self) -> list[str]:
        return [p.name for p in self.params]


class CleanResult(BaseModel):
    """Outcome of a detailed rewrite: the new URL and the names it lost."""

    url: str
    removed: list[str] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.removed)


class ScrubResult(BaseModel):
    """Query and fragment cleanup of one address, as the watcher commits it."""

    url: str
    removed: list[str] = Field(default_factory=list)
    fragment_cleaned: bool = False
    tokens: int = 0


# ---------------------------------------------------------------------------
# Runtime state
# ---------------------------------------------------------------------------


class NavigationSignal(str, Enum):
    """Every way the watcher learns that the address may have changed."""

    INITIAL_LOAD = "initial_load"
    HISTORY_REPLACE = "history_replace"
    HISTORY_POP = "history_pop"
    HASH_CHANGE = "hash_change"
    POLL_TICK = "poll_tick"


class SessionStats(BaseModel):
    """Counters shown to the user; reset only when the page reloads."""

    tokens_stripped: int = 0
    clears_performed: int = 0


class ClearReport(BaseModel):
    """Per-operation results of a manual site-data clear."""

    results: dict[str, bool] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return all(self.results.values())

    @property
    def failed(self) -> list[str]:
        return [name for name, ok in self.results.items() if not ok]


# ---------------------------------------------------------------------------
# API request / response models
# ---------------------------------------------------------------------------


class CleanRequest(BaseModel):
    """Body of POST /clean."""

    url: str = Field(..., min_length=1, max_length=8192)


class CleanResponse(BaseModel):
    """Response from POST /clean."""

    url: str
    cleaned: str
    removed: list[str]
    fragment_cleaned: bool


class RulesResponse(BaseModel):
    """Response from GET /rules."""

    rules: list[Rule]
    whitelist: dict[str, list[str]]
    excluded_domains: list[str]
    fragment_patterns: list[str]


class HealthResponse(BaseModel):
    """Response from GET /health."""

    status: str
    rules_loaded: int
    uptime_seconds: float
