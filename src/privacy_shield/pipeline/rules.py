"""Built-in tracker catalogue and the immutable RuleSet the pipeline runs on."""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Mapping

import structlog
import yaml
from pydantic import BaseModel, ConfigDict

from privacy_shield.models import Rule

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Global rules: removed on every host unless guarded.
# ---------------------------------------------------------------------------

GLOBAL_PARAMS: tuple[str, ...] = (
    # Facebook
    "fbclid",
    # TikTok / Twitter / Reddit / Pinterest
    "ttclid",
    "twclid",
    "rdt_cid",
    "epik",
    # LinkedIn
    "li_fat_id",
    "trk",
    "trkCampaign",
    # Google Analytics
    "utm_id",
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "_ga",
    "gclid",
    "gclsrc",
    "_gl",
    # Extended UTM variants
    "utm_campaignid",
    "utm_cid",
    "utm_reader",
    "utm_referrer",
    "utm_name",
    "utm_social",
    "utm_social-type",
    # Adobe Analytics / Omniture
    "s_cid",
    "s_kwcid",
    "s_src",
    "ef_id",
    # Microsoft Ads
    "msclkid",
    "mcid",
    "wt.mc_id",
    # Instagram
    "igshid",
    # HubSpot
    "_hsenc",
    "_hsmi",
    "__hstc",
    "__hssc",
    "__hsfp",
    # Marketo
    "mkt_tok",
    # Mailchimp
    "mc_cid",
    "mc_eid",
    "goal",
    # Yandex
    "yclid",
    "_openstat",
    # SendGrid
    "mc",
    "mcd",
    "cvosrc",
    # Sales Cloud and other CRMs
    "sc_channel",
    "sc_campaign",
    "sc_geo",
    "sc_publisher",
    "sc_outcome",
    "sc_country",
    # Zendesk / Ometria / Klaviyo
    "zanpid",
    "oly_enc_id",
    "oly_anon_id",
    "__s",
    "_ke",
    # Assorted mailers and share widgets
    "redirect_log_mongo_id",
    "redirect_mongo_id",
    "fb_action_ids",
    "fb_action_types",
    "fb_source",
    "fb_ref",
    "action_object_map",
    "action_type_map",
    "action_ref_map",
    "vero_conv",
    "vero_id",
    "wickedid",
    "wt_mc",
    "ml_subscriber",
    "ml_subscriber_hash",
    "trk_contact",
    "trk_msg",
    "trk_module",
    "trk_sid",
    "gdftrk",
    "gdfms",
    "gdffi",
    "__tn__",
    "itm_source",
    "itm_medium",
    "itm_campaign",
    "cr_cc",
    "guce_referrer",
    "guce_referrer_sig",
)

# ---------------------------------------------------------------------------
# Domain-scoped rules: exact hostname -> compact ``name`` / ``name=value`` entries.
# ---------------------------------------------------------------------------

SCOPED_PARAMS: dict[str, tuple[str, ...]] = {
    "www.facebook.com": (
        "privacy_mutation_token",
        "acontext",
        "__xts__[0]",
        "notif_t",
        "notif_id",
        "notif_ids[0]",
        "notif_ids[1]",
        "notif_ids[2]",
        "notif_ids[3]",
        "ref=notif",
        "ref=watch_permalink",
    ),
    "www.dropbox.com": ("_ad", "_camp", "_tk"),
    "youtu.be": ("si",),
    "www.youtube.com": ("si",),
    "devblogs.microsoft.com": (
        "utm_issue",
        "utm_position",
        "utm_topic",
        "utm_section",
        "utm_cta",
        "utm_description",
        "ocid",
    ),
    "learn.microsoft.com": ("ocid", "redirectedfrom"),
    "azure.microsoft.com": ("OCID", "ef_id"),
    "www.msn.com": ("ocid", "cvid"),
    "bing.com": ("ocid",),
    "www.bing.com": ("ocid", "cvid", "setlang"),
    "news.microsoft.com": ("ocid",),
    "support.microsoft.com": ("ocid",),
    "blogs.microsoft.com": ("ocid",),
    "techcommunity.microsoft.com": ("ocid",),
    "www.bilibili.com": ("share_source", "share_medium"),
}

# Hosts whose own query parameters are load-bearing; nothing is rewritten there.
EXCLUDED_DOMAINS: tuple[str, ...] = ("icloud.com", "www.icloud.com")

FRAGMENT_PATTERNS: tuple[str, ...] = (
    r"[#&]fbclid=[^&]*",
    r"[#&]_hsenc=[^&]*",
    r"[#&]mkt_tok=[^&]*",
)


class RuleSet(BaseModel):
    """Ordered removal rules plus guard, exclusion and fragment tables."""

    model_config = ConfigDict(frozen=True)

    rules: tuple[Rule, ...]
    guards: dict[str, tuple[str, ...]] = {}
    excluded_domains: tuple[str, ...] = ()
    fragment_patterns: tuple[re.Pattern[str], ...] = ()

    def guarded_suffixes(self, param: str) -> tuple[str, ...]:
        return self.guards.get(param, ())

    def whitelist(self) -> dict[str, list[str]]:
        return {name: list(suffixes) for name, suffixes in self.guards.items()}


def _dedupe(rules: Iterable[Rule]) -> tuple[Rule, ...]:
    seen: set[Rule] = set()
    ordered: list[Rule] = []
    for rule in rules:
        if rule not in seen:
            seen.add(rule)
            ordered.append(rule)
    return tuple(ordered)


def default_rules() -> list[Rule]:
    """The built-in catalogue: global rules, then domain-scoped ones."""
    rules = [Rule(param=name) for name in GLOBAL_PARAMS]
    for domain, entries in SCOPED_PARAMS.items():
        rules.extend(Rule.parse(entry, domain) for entry in entries)
    return rules


def build_ruleset(
    whitelist: Mapping[str, Iterable[str]] | None = None,
    extra: Mapping[str, Any] | None = None,
) -> RuleSet:
    """Assemble a :class:`RuleSet` from the defaults, the whitelist and an extension mapping.

    Args:
        whitelist: Parameter name -> hostname suffixes to guard (matched case-insensitively).
        extra:     Parsed extension file with optional ``rules``, ``whitelist``,
                   ``exclude`` and ``fragment_patterns`` keys.

    Returns:
        Frozen :class:`RuleSet`.
    """
    extra = extra or {}
    rules = default_rules()
    for entry in extra.get("rules") or []:
        if isinstance(entry, str):
            rules.append(Rule.parse(entry))
        else:
            rules.append(Rule.model_validate(entry))

    guards: dict[str, tuple[str, ...]] = {}
    for source in (whitelist or {}, extra.get("whitelist") or {}):
        for name, suffixes in source.items():
            guards[name] = guards.get(name, ()) + tuple(s.lower() for s in suffixes)

    excluded = EXCLUDED_DOMAINS + tuple(d.lower() for d in extra.get("exclude") or ())
    patterns = FRAGMENT_PATTERNS + tuple(extra.get("fragment_patterns") or ())

    return RuleSet(
        rules=_dedupe(rules),
        guards=guards,
        excluded_domains=excluded,
        fragment_patterns=tuple(re.compile(p) for p in patterns),
    )


def _read_extension(path: Path) -> dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
        if not isinstance(raw, dict):
            raise ValueError("top level must be a mapping")
        return raw
    except Exception as exc:  # noqa: BLE001
        logger.warning("rules.extension_load_failed", path=str(path), error=str(exc))
        return {}


@lru_cache(maxsize=8)
def _cached_ruleset(whitelist_items: tuple[tuple[str, tuple[str, ...]], ...], path: str | None) -> RuleSet:
    extra = _read_extension(Path(path)) if path else {}
    try:
        ruleset = build_ruleset(dict(whitelist_items), extra)
    except Exception as exc:  # noqa: BLE001
        logger.warning("rules.extension_invalid", path=path, error=str(exc))
        ruleset = build_ruleset(dict(whitelist_items))
    logger.info(
        "rules.loaded",
        rules=len(ruleset.rules),
        guarded=sorted(ruleset.guards),
        extension=path,
    )
    return ruleset


def load_ruleset(
    whitelist: Mapping[str, Iterable[str]] | None = None,
    path: str | Path | None = None,
) -> RuleSet:
    """Return the (cached) RuleSet for a whitelist and an optional YAML extension file.

    A missing or malformed extension file is logged and ignored; the built-in
    catalogue is always present.
    """
    items = tuple(sorted((name, tuple(suffixes)) for name, suffixes in (whitelist or {}).items()))
    return _cached_ruleset(items, str(path) if path else None)
