"""End-to-end scenarios for the ``baseline`` handler and its ``foo`` clone."""

from __future__ import annotations

import pytest


class TestBaselineHost:
    FQDN = "foo01m.bar.example.com"

    @pytest.fixture
    def facts(self, scenario_registry):
        return scenario_registry.resolve(self.FQDN).facts()

    def test_resolves_to_baseline(self, scenario_registry):
        assert scenario_registry.resolve(self.FQDN).name == "baseline"

    def test_returns_a_dict(self, facts):
        assert isinstance(facts, dict)

    @pytest.mark.parametrize(
        ("key", "value"),
        [
            ("hname", "foo01m"),
            ("host", "foo01m"),
            ("host_type", "foo"),
            ("host_id", 1),
            ("host_subtype", "master"),
            ("hostname", "foo01m"),
            ("sub", "bar"),
            ("domain", "bar.example.com"),
            ("fqdn", "foo01m.bar.example.com"),
            ("handler_name", "baseline"),
        ],
    )
    def test_has_fact(self, facts, key, value):
        assert key in facts
        assert facts[key] == value

    def test_slave_subtype(self, scenario_registry):
        facts = scenario_registry.facts("db12s.bar.example.com")
        assert facts["host_subtype"] == "slave"
        assert facts["host_id"] == 12

    def test_missing_subtype_is_dropped(self, scenario_registry):
        facts = scenario_registry.facts("db12.bar.example.com")
        assert "host_subtype" not in facts
        assert facts["host_type"] == "db"


class TestClonedSubdomainHandler:
    FQDN = "bar.example.com"

    @pytest.fixture
    def facts(self, scenario_registry):
        return scenario_registry.resolve(self.FQDN).facts()

    def test_baseline_does_not_match_two_labels(self, scenario_registry):
        assert not scenario_registry.get("baseline").matches(self.FQDN)
        assert scenario_registry.get("foo").matches(self.FQDN)

    def test_resolves_to_foo(self, scenario_registry):
        assert scenario_registry.resolve(self.FQDN).name == "foo"

    @pytest.mark.parametrize(
        ("key", "value"),
        [
            ("sub", "bar"),
            ("domain", "bar.example.com"),
            ("fqdn", "bar.example.com"),
            ("handler_name", "foo"),
        ],
    )
    def test_has_fact(self, facts, key, value):
        assert key in facts
        assert facts[key] == value

    @pytest.mark.parametrize(
        "key", ["hname", "host", "host_type", "host_id", "host_subtype", "hostname"]
    )
    def test_does_not_have_fact(self, facts, key):
        assert key not in facts

    def test_clone_left_baseline_intact(self, scenario_registry):
        baseline = scenario_registry.get("baseline")
        assert baseline.priority == 10
        assert baseline.order == ("host", "sub", "tld")
        assert baseline.fact_table["handler_name"] == "baseline"


def test_three_labels_resolve_to_baseline(scenario_registry):
    # foo folds "bar.example.com" into its tld, which fails the literal rule
    assert scenario_registry.get("foo").matches("foo01m.bar.example.com") is False
    assert scenario_registry.resolve("foo01m.bar.example.com").name == "baseline"
