"""Query-string rewriting: a left fold of pure rule steps over an immutable Address."""

from __future__ import annotations

from functools import partial, reduce
from typing import Callable
from urllib.parse import unquote_plus, urlsplit

import structlog

from privacy_shield.models import Address, CleanResult, QueryParam, Rule
from privacy_shield.pipeline.rules import RuleSet
from privacy_shield.utils.url_utils import WEB_SCHEMES, host_matches_suffix, split_fragment

logger = structlog.get_logger(__name__)

RuleStep = Callable[[Address], Address]


def _parse_param(raw: str) -> QueryParam:
    name, _, value = raw.partition("=")
    return QueryParam(raw=raw, name=unquote_plus(name), value=unquote_plus(value))


def parse_address(href: str) -> Address | None:
    """Parse *href* into an :class:`Address`, or ``None`` for non-web / malformed input.

    Empty ``&&`` segments are dropped the way ``URLSearchParams`` drops them;
    every other pair keeps its raw text.
    """
    parts = urlsplit(href)
    if parts.scheme.lower() not in WEB_SCHEMES or not parts.hostname:
        return None
    base, fragment = split_fragment(href)
    prefix, _, query = base.partition("?")
    params = tuple(_parse_param(raw) for raw in query.split("&") if raw)
    return Address(
        href=href,
        prefix=prefix,
        hostname=parts.hostname,
        params=params,
        fragment=fragment,
    )


def render_address(address: Address) -> str:
    """Serialise *address*; an untouched query is returned exactly as it was read."""
    if not address.query_changed:
        return address.href
    query = "&".join(p.raw for p in address.params)
    return address.prefix + (f"?{query}" if query else "") + address.fragment


def apply_rule(address: Address, rule: Rule, ruleset: RuleSet) -> Address:
    """One pure step: drop every occurrence of ``rule.param`` if the rule fires.

    Order of checks: domain scope, guard, presence, expected value.
    """
    if not rule.applies_to(address.hostname):
        return address
    if host_matches_suffix(address.hostname, ruleset.guarded_suffixes(rule.param)):
        return address
    if not address.has(rule.param):
        return address
    if rule.expected_value is not None and address.get(rule.param) != rule.expected_value:
        return address
    kept = tuple(p for p in address.params if p.name != rule.param)
    return address.model_copy(update={"params": kept, "query_changed": True})


def build_steps(ruleset: RuleSet) -> list[RuleStep]:
    """Bind each rule into a standalone ``Address -> Address`` step."""
    return [partial(apply_rule, rule=rule, ruleset=ruleset) for rule in ruleset.rules]


def is_excluded(hostname: str, ruleset: RuleSet) -> bool:
    return host_matches_suffix(hostname, ruleset.excluded_domains)


def clean_with_report(href: str, ruleset: RuleSet) -> CleanResult:
    """Strip tracking parameters from *href* and report which names went.

    Args:
        href:    Full page address.
        ruleset: Rules, guards and exclusions to apply.

    Returns:
        :class:`CleanResult`; ``url`` is *href* itself when nothing matched,
        the host is excluded, or the address could not be parsed.
    """
    try:
        address = parse_address(href)
        if address is None or is_excluded(address.hostname, ruleset):
            return CleanResult(url=href)

        cleaned = reduce(lambda acc, step: step(acc), build_steps(ruleset), address)

        survivors = set(cleaned.names())
        removed: list[str] = []
        for name in address.names():
            if name not in survivors and name not in removed:
                removed.append(name)
        return CleanResult(url=render_address(cleaned), removed=removed)
    except Exception as exc:  # noqa: BLE001
        logger.debug("rewriter.parse_failed", error=str(exc))
        return CleanResult(url=href)


def clean(href: str, ruleset: RuleSet) -> str:
    """Return *href* without tracking parameters.  Never raises."""
    return clean_with_report(href, ruleset).url
