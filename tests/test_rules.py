"""Tests for the rule catalogue, rule parsing and extension loading."""

from __future__ import annotations

from pathlib import Path

from privacy_shield.models import Rule
from privacy_shield.pipeline.rewriter import clean
from privacy_shield.pipeline.rules import (
    EXCLUDED_DOMAINS,
    build_ruleset,
    default_rules,
    load_ruleset,
)


class TestRuleParsing:
    """Tests for the compact ``name=value`` rule form."""

    def test_plain_name(self) -> None:
        rule = Rule.parse("fbclid")
        assert rule.param == "fbclid"
        assert rule.expected_value is None
        assert rule.scope_domain is None

    def test_name_and_value(self) -> None:
        rule = Rule.parse("ref=watch_permalink", "www.facebook.com")
        assert rule.param == "ref"
        assert rule.expected_value == "watch_permalink"
        assert rule.scope_domain == "www.facebook.com"

    def test_empty_expected_value(self) -> None:
        assert Rule.parse("x=").expected_value == ""

    def test_scope_matching(self) -> None:
        rule = Rule(param="si", scope_domain="youtu.be")
        assert rule.applies_to("YOUTU.BE")
        assert not rule.applies_to("www.youtu.be")
        assert Rule(param="gclid").applies_to("anything.example")


class TestBuildRuleset:
    """Tests for RuleSet assembly."""

    def test_defaults_have_no_duplicates(self) -> None:
        rs = build_ruleset()
        assert len(rs.rules) == len(set(rs.rules))
        assert len(rs.rules) <= len(default_rules())

    def test_insertion_order_kept(self) -> None:
        rs = build_ruleset()
        params = [r.param for r in rs.rules]
        assert params.index("fbclid") < params.index("utm_source") < params.index("guce_referrer_sig")

    def test_default_exclusions(self) -> None:
        assert build_ruleset().excluded_domains[: len(EXCLUDED_DOMAINS)] == EXCLUDED_DOMAINS

    def test_whitelist_sources_merge(self) -> None:
        rs = build_ruleset(
            whitelist={"goal": ["strava.com"]},
            extra={"whitelist": {"goal": ["example.net"], "mc": ["mail.example"]}},
        )
        assert rs.guarded_suffixes("goal") == ("strava.com", "example.net")
        assert rs.whitelist()["mc"] == ["mail.example"]

    def test_guard_suffixes_case_insensitive(self) -> None:
        rs = build_ruleset(whitelist={"fbclid": ["Example.ORG"]})
        assert rs.guarded_suffixes("fbclid") == ("example.org",)
        assert clean("https://shop.example.org/?fbclid=1", rs) == "https://shop.example.org/?fbclid=1"

    def test_exclusions_case_insensitive(self) -> None:
        rs = build_ruleset(extra={"exclude": ["Bank.Example"]})
        url = "https://my.bank.example/?utm_source=x"
        assert clean(url, rs) == url

    def test_extra_rules_in_both_forms(self) -> None:
        rs = build_ruleset(
            extra={
                "rules": [
                    "ref_url",
                    {"param": "ref_src", "scope_domain": "twitter.com"},
                ]
            }
        )
        assert clean("https://a.example/?ref_url=x&k=1", rs) == "https://a.example/?k=1"
        assert clean("https://twitter.com/?ref_src=tw", rs) == "https://twitter.com/"
        assert clean("https://x.com/?ref_src=tw", rs) == "https://x.com/?ref_src=tw"

    def test_extra_exclusions_and_patterns(self) -> None:
        rs = build_ruleset(
            extra={"exclude": ["bank.example"], "fragment_patterns": [r"[#&]utm_[a-z]+=[^&]*"]}
        )
        assert clean("https://my.bank.example/?utm_source=x", rs) == "https://my.bank.example/?utm_source=x"
        assert [p.pattern for p in rs.fragment_patterns][-1] == r"[#&]utm_[a-z]+=[^&]*"


class TestLoadRuleset:
    """Tests for the YAML extension file."""

    def test_missing_path_uses_defaults(self) -> None:
        rs = load_ruleset({}, None)
        assert any(r.param == "fbclid" for r in rs.rules)

    def test_yaml_extension_loaded(self, tmp_path: Path) -> None:
        path = tmp_path / "rules.yaml"
        path.write_text(
            "rules:\n  - param: campaign_ref\nwhitelist:\n  goal:\n    - strava.com\n",
            encoding="utf-8",
        )
        rs = load_ruleset({"fbclid": ["example.org"]}, path)
        assert any(r.param == "campaign_ref" for r in rs.rules)
        assert rs.guarded_suffixes("goal") == ("strava.com",)
        assert rs.guarded_suffixes("fbclid") == ("example.org",)

    def test_malformed_yaml_ignored(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("rules: [unclosed\n", encoding="utf-8")
        rs = load_ruleset({}, path)
        assert len(rs.rules) == len(build_ruleset().rules)

    def test_non_mapping_yaml_ignored(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        assert len(load_ruleset({}, path).rules) == len(build_ruleset().rules)

    def test_shipped_example_file_loads(self) -> None:
        path = Path(__file__).resolve().parents[1] / "config" / "rules.yaml"
        rs = load_ruleset({}, path)
        assert any(r.param == "ref_src" and r.scope_domain == "twitter.com" for r in rs.rules)
        assert rs.guarded_suffixes("goal") == ("strava.com",)

    def test_cached_per_arguments(self) -> None:
        assert load_ruleset({}, None) is load_ruleset({}, None)
