"""
Fact handlers: a named, prioritised bundle of component rules, conversions and facts.

A handler is configured through builder calls and then queried with
:meth:`Handler.matches` and :meth:`Handler.facts`::

    handler = Handler("baseline")
    HandlerBuilder(handler).priority(10).component("tld", "example.com")
    handler.facts("foo01m.bar.example.com")

Cloning goes through :meth:`Handler.export_state`, which deep-copies every
mutable field so a clone can be customised without touching its source.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from .conversions import Converter, positional_arity, validate_converter
from .errors import InvalidConfiguration
from .facts import FactContext, assemble_facts
from .patterns import ANY, ComponentRule, coerce_rule, match_components

__all__ = [
    "DEFAULT_ORDER",
    "HandlerState",
    "Handler",
    "HandlerBuilder",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_ORDER: Tuple[str, ...] = ("host", "sub", "tld")


def bound_fqdn(context: FactContext) -> str:
    """Built-in dynamic fact returning the FQDN being assembled."""
    return context["fqdn"]


def _default_components() -> Dict[str, ComponentRule]:
    return {name: ANY for name in DEFAULT_ORDER}


def _copy_conversions(conversions: Mapping[str, Any]) -> Dict[str, Any]:
    # callables are shared; nested sub-component mappings are copied
    return {
        key: dict(value) if isinstance(value, Mapping) else value
        for key, value in conversions.items()
    }


@dataclass
class HandlerState:
    """Complete, independent snapshot of a handler's configuration."""

    name: str = "handler"
    priority: int = 1
    order: Tuple[str, ...] = DEFAULT_ORDER
    components: Dict[str, ComponentRule] = field(default_factory=_default_components)
    conversions: Dict[str, Any] = field(default_factory=dict)
    fact_table: Dict[str, Any] = field(default_factory=dict)
    fqdn: str = ""


class Handler:
    """Named FQDN fact handler.

    Attributes:
        name: Registry name, also published as the ``handler_name`` fact.
        priority: Lower values win during resolution.
        order: Component names, one per dot-delimited FQDN segment.
        components: Validation rule per component.
        conversions: Converters keyed by component or ``<component>_<sub>``.
        fact_table: Static values or fact functions keyed by fact name.
        fqdn: FQDN most recently bound by resolution or :meth:`facts`.
    """

    def __init__(self, name: str = "handler", state: Optional[HandlerState] = None) -> None:
        state = state or HandlerState()
        self.name = name
        self.priority = int(state.priority)
        self.order: Tuple[str, ...] = tuple(state.order)
        self.components: Dict[str, ComponentRule] = dict(state.components)
        self.conversions: Dict[str, Any] = _copy_conversions(state.conversions)
        self.fact_table: Dict[str, Any] = copy.deepcopy(state.fact_table)
        self.fqdn = state.fqdn
        if not self.order:
            raise InvalidConfiguration("empty list of components")

        self.add_fact("fqdn", bound_fqdn)
        self.add_fact("handler_name", name)

    @classmethod
    def from_state(cls, state: HandlerState, name: Optional[str] = None) -> "Handler":
        return cls(name or state.name, state)

    @classmethod
    def copy_from(cls, other: "Handler", name: Optional[str] = None) -> "Handler":
        """Create a handler seeded with a deep copy of ``other``'s state."""
        return cls.from_state(other.export_state(), name or other.name)

    # ------------------------------------------------------------------
    # Builder operations
    # ------------------------------------------------------------------

    def set_priority(self, value: Any) -> None:
        try:
            self.priority = int(value)
        except (TypeError, ValueError) as exc:
            raise InvalidConfiguration(f"priority must be an integer, got {value!r}") from exc

    def set_order(self, *names: str) -> None:
        """Replace the component order.

        Raises:
            InvalidConfiguration: If ``names`` is empty.
        """
        if not names:
            raise InvalidConfiguration("empty list of components")
        self.order = tuple(str(name) for name in names)

    def set_component(self, name: str, rule: Any = "any") -> ComponentRule:
        """Install a validation rule for ``name``.

        Switching a component to a different kind of rule drops the converter
        registered under the component's own name.
        """
        existing = self.components.get(name)
        new_rule = coerce_rule(rule, existing)
        if existing is not None and existing.kind != new_rule.kind:
            if self.conversions.pop(name, None) is not None:
                LOGGER.debug(
                    "dropped %s converter after rule change %s -> %s",
                    name,
                    existing.kind,
                    new_rule.kind,
                    extra={"stage": "configure", "handler": self.name, "component": name},
                )
        self.components[name] = new_rule
        return new_rule

    def set_conversion(self, name: str, converter: Converter) -> Converter:
        """Install a converter, shallow-merging sub-component mappings."""
        converter = validate_converter(converter)
        current = self.conversions.get(name)
        if isinstance(converter, Mapping) and isinstance(current, Mapping):
            converter = {**current, **converter}
        self.conversions[name] = converter
        return converter

    def add_fact(self, name: str, value: Any) -> None:
        """Set a static fact or a fact function.

        Raises:
            InvalidConfiguration: If a fact function needs more than the
                fact context as a positional argument.
        """
        if callable(value) and positional_arity(value) > 1:
            raise InvalidConfiguration(
                f"fact {name!r}: function {value!r} must accept at most (context)"
            )
        self.fact_table[str(name)] = value

    def remove_fact(self, name: str) -> None:
        self.fact_table.pop(str(name), None)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def matches(self, fqdn: str) -> bool:
        return match_components(fqdn, self.order, self.components, handler=self.name)

    def facts(
        self,
        fqdn: Optional[str] = None,
        *,
        prefix: Optional[str] = None,
        only: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        """Bind ``fqdn`` (when given) and return its assembled facts.

        Args:
            fqdn: Domain to bind; the previously bound FQDN is used when omitted.
            prefix: Optional string prepended to every fact name.
            only: Optional fact names to keep.

        Returns:
            Facts sorted by name with empty values removed.
        """
        if fqdn is not None:
            self.bind(fqdn)
        return self.facts_for(self.fqdn, prefix=prefix, only=only)

    def facts_for(
        self,
        fqdn: Optional[str] = None,
        *,
        prefix: Optional[str] = None,
        only: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        """Assemble facts for ``fqdn`` (or the bound FQDN) without touching state."""
        return assemble_facts(self, self.fqdn if fqdn is None else fqdn, prefix=prefix, only=only)

    def get_fact(self, name: str, fqdn: Optional[str] = None) -> Any:
        return self.facts_for(fqdn).get(name)

    def to_dict(self) -> Dict[str, Any]:
        return self.facts_for()

    def bind(self, fqdn: str) -> "Handler":
        self.fqdn = fqdn
        return self

    def export_state(self) -> HandlerState:
        """Return a deep copy of every field, suitable for cloning."""
        return HandlerState(
            name=self.name,
            priority=self.priority,
            order=tuple(self.order),
            components=dict(self.components),
            conversions=_copy_conversions(self.conversions),
            fact_table=copy.deepcopy(self.fact_table),
            fqdn=self.fqdn,
        )

    def compare_priority_to(self, other: "Handler") -> int:
        return (self.priority > other.priority) - (self.priority < other.priority)

    def __lt__(self, other: "Handler") -> bool:
        if not isinstance(other, Handler):
            return NotImplemented
        return self.priority < other.priority

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.name!r}, priority={self.priority}, "
            f"order={list(self.order)!r})"
        )


class HandlerBuilder:
    """Chainable builder exposing the configuration calls of a :class:`Handler`."""

    def __init__(self, handler: Handler) -> None:
        self.handler = handler

    def priority(self, value: Any) -> "HandlerBuilder":
        self.handler.set_priority(value)
        return self

    def order(self, *names: str) -> "HandlerBuilder":
        self.handler.set_order(*names)
        return self

    components = order

    def component(self, name: str, rule: Any = "any") -> "HandlerBuilder":
        self.handler.set_component(name, rule)
        return self

    validate = component

    def convert(self, name: str, converter: Converter) -> "HandlerBuilder":
        self.handler.set_conversion(name, converter)
        return self

    def fact(self, name: str, value: Any) -> "HandlerBuilder":
        self.handler.add_fact(name, value)
        return self

    add_fact = fact

    def remove_fact(self, name: str) -> "HandlerBuilder":
        self.handler.remove_fact(name)
        return self
