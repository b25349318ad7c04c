"""Combined query + fragment cleanup, shared by the watcher and the HTTP API."""

from __future__ import annotations

from privacy_shield.models import ScrubResult
from privacy_shield.pipeline.fragment import clean_fragment, count_tracker_tokens
from privacy_shield.pipeline.rewriter import clean_with_report
from privacy_shield.pipeline.rules import RuleSet
from privacy_shield.utils.url_utils import location_hash, with_fragment


def scrub(href: str, ruleset: RuleSet) -> ScrubResult:
    """Clean the query and, independently, the fragment of *href*.

    ``tokens`` is the number of distinct parameter names removed, plus one
    if the fragment lost any tracker token (however many it lost).
    """
    report = clean_with_report(href, ruleset)

    fragment = location_hash(href)
    cleaned_fragment = clean_fragment(fragment, ruleset.fragment_patterns)
    fragment_changed = cleaned_fragment != fragment

    url = with_fragment(report.url, cleaned_fragment) if fragment_changed else report.url
    tokens = len(report.removed)
    if fragment_changed and count_tracker_tokens(fragment, ruleset.fragment_patterns):
        tokens += 1
    return ScrubResult(
        url=url,
        removed=report.removed,
        fragment_cleaned=fragment_changed,
        tokens=tokens,
    )
