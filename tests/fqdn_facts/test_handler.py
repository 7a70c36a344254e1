"""Tests for handler builder operations, queries, and cloning."""

from __future__ import annotations

import re

import pytest

from FqdnFacts.conversions import ConversionTag
from FqdnFacts.errors import InvalidConfiguration
from FqdnFacts.handler import DEFAULT_ORDER, Handler, HandlerBuilder, HandlerState
from FqdnFacts.patterns import ANY, EnumerationRule, LiteralRule, SubPatternsRule


class TestDefaults:
    def test_new_handler_defaults(self):
        handler = Handler("plain")
        assert handler.order == DEFAULT_ORDER
        assert handler.priority == 1
        assert handler.components == {"host": ANY, "sub": ANY, "tld": ANY}
        assert handler.fqdn == ""
        assert handler.fact_table["handler_name"] == "plain"
        assert callable(handler.fact_table["fqdn"])

    def test_empty_order_in_state_is_rejected(self):
        with pytest.raises(InvalidConfiguration):
            Handler("broken", HandlerState(order=()))


class TestBuilderOperations:
    def test_set_order_replaces_and_rejects_empty(self):
        handler = Handler()
        handler.set_order("sub", "tld")
        assert handler.order == ("sub", "tld")
        with pytest.raises(InvalidConfiguration):
            handler.set_order()

    def test_set_priority_coerces_and_validates(self):
        handler = Handler()
        handler.set_priority("12")
        assert handler.priority == 12
        with pytest.raises(InvalidConfiguration):
            handler.set_priority("high")

    def test_rule_kind_change_clears_component_converter(self):
        handler = Handler()
        handler.set_component("host", re.compile(r"^web"))
        handler.set_conversion("host", str.upper)
        handler.set_component("host", {"role": r"^([a-z]+)"})
        assert "host" not in handler.conversions

    def test_same_rule_kind_keeps_converter(self):
        handler = Handler()
        handler.set_component("sub", ["prod", "stage"])
        handler.set_conversion("sub", str.upper)
        handler.set_component("sub", ["prod", "stage", "dev"])
        assert handler.conversions["sub"] is str.upper
        assert handler.components["sub"] == EnumerationRule(frozenset({"prod", "stage", "dev"}))

    def test_sub_pattern_redefinition_merges(self):
        handler = Handler()
        handler.set_component("host", {"type": r"^([a-z]+)", "id": r"(\d+)"})
        handler.set_component("host", {"subtype": r"([ms]?)"})
        rule = handler.components["host"]
        assert isinstance(rule, SubPatternsRule)
        assert rule.names == ("type", "id", "subtype")

    def test_mapping_conversions_merge_shallowly(self):
        handler = Handler()
        handler.set_conversion("host", {"id": "to-int", "type": str.upper})
        handler.set_conversion("host", {"id": "to-float"})
        assert handler.conversions["host"] == {
            "id": ConversionTag.TO_FLOAT,
            "type": str.upper,
        }

    def test_non_mapping_conversion_replaces(self):
        handler = Handler()
        handler.set_conversion("host", {"id": "to-int"})
        handler.set_conversion("host", str.upper)
        assert handler.conversions["host"] is str.upper

    def test_invalid_conversion_rejected(self):
        with pytest.raises(InvalidConfiguration):
            Handler().set_conversion("host", 3.14)

    def test_add_and_remove_fact(self):
        handler = Handler()
        handler.add_fact("team", "infra")
        assert handler.get_fact("team", "a.b.c") == "infra"
        handler.remove_fact("team")
        handler.remove_fact("never-added")
        assert handler.get_fact("team", "a.b.c") is None

    def test_fact_functions_accept_at_most_the_context(self):
        handler = Handler()
        handler.add_fact("constant", lambda: "x")
        handler.add_fact("upper", lambda facts: facts["host"].upper())
        handler.add_fact("optional", lambda facts, default=None: default)
        with pytest.raises(InvalidConfiguration):
            handler.add_fact("pair", lambda facts, extra: extra)
        assert "pair" not in handler.fact_table

    def test_builder_rejects_two_argument_fact_functions(self):
        with pytest.raises(InvalidConfiguration):
            HandlerBuilder(Handler()).fact("pair", lambda value, facts: value)


class TestBuilder:
    def test_builder_calls_chain_and_alias(self):
        handler = Handler("chain")
        builder = HandlerBuilder(handler)
        result = (
            builder.priority(3)
            .components("name", "zone")
            .validate("zone", "example.com")
            .convert("name", str.upper)
            .add_fact("static", "yes")
            .fact("gone", "soon")
            .remove_fact("gone")
        )
        assert result is builder
        assert handler.priority == 3
        assert handler.order == ("name", "zone")
        assert handler.components["zone"] == LiteralRule("example.com")
        assert handler.facts("api.example.com") == {
            "fqdn": "api.example.com",
            "handler_name": "chain",
            "name": "API",
            "static": "yes",
            "zone": "example.com",
        }


class TestQueries:
    def test_matches_delegates_to_component_rules(self):
        handler = Handler()
        handler.set_component("tld", "example.com")
        assert handler.matches("a.b.example.com")
        assert not handler.matches("a.b.example.org")
        assert not handler.matches("b.example.com")

    def test_facts_binds_fqdn_and_rebinding_replaces_results(self):
        handler = Handler()
        first = handler.facts("a.b.example.com")
        assert handler.fqdn == "a.b.example.com"
        second = handler.facts("x.y.example.org")
        assert handler.fqdn == "x.y.example.org"
        assert first["host"] == "a"
        assert second["host"] == "x"
        assert handler.facts() == second
        assert handler.to_dict() == second

    def test_facts_for_leaves_bound_fqdn_untouched(self):
        handler = Handler().bind("a.b.example.com")
        facts = handler.facts_for("x.y.example.org")
        assert facts["host"] == "x"
        assert handler.fqdn == "a.b.example.com"

    def test_facts_is_idempotent(self):
        handler = Handler()
        handler.add_fact("upper", lambda facts: facts["host"].upper())
        assert handler.facts("a.b.example.com") == handler.facts("a.b.example.com")

    def test_priority_comparison(self):
        low, high = Handler("low"), Handler("high")
        low.set_priority(1)
        high.set_priority(20)
        assert low.compare_priority_to(high) == -1
        assert high.compare_priority_to(low) == 1
        assert low.compare_priority_to(Handler("same")) == 0
        assert sorted([high, low]) == [low, high]


class TestCloning:
    def test_export_state_is_independent(self):
        handler = Handler("source")
        handler.add_fact("tags", ["a"])
        handler.set_conversion("host", {"id": "to-int"})
        state = handler.export_state()
        state.fact_table["tags"].append("b")
        state.conversions["host"]["id"] = "to-float"
        state.components["tld"] = LiteralRule("x")
        assert handler.fact_table["tags"] == ["a"]
        assert handler.conversions["host"]["id"] is ConversionTag.TO_INT
        assert handler.components["tld"] is ANY

    def test_clone_mutations_do_not_reach_source(self):
        source = Handler("source")
        source.set_priority(10)
        source.set_component("host", {"type": r"^([a-z]+)"})
        source.set_conversion("host", {"type": str.upper})
        source.add_fact("tags", ["a"])

        clone = Handler.copy_from(source, "clone")
        clone.set_priority(15)
        clone.set_order("sub", "tld")
        clone.set_component("host", {"id": r"(\d+)"})
        clone.set_conversion("host", {"id": "to-int"})
        clone.fact_table["tags"].append("b")
        clone.remove_fact("tags")

        assert source.priority == 10
        assert source.order == DEFAULT_ORDER
        assert source.components["host"].names == ("type",)
        assert source.conversions["host"] == {"type": str.upper}
        assert source.fact_table["tags"] == ["a"]

    def test_clone_restamps_handler_name(self):
        clone = Handler.copy_from(Handler("source"), "clone")
        assert clone.name == "clone"
        assert clone.facts("a.b.c")["handler_name"] == "clone"
