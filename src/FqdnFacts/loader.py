"""
Declarative handler definitions loaded from YAML or plain mappings.

Example document::

    handlers:
      - name: baseline
        priority: 10
        order: [host, sub, tld]
        components:
          host: {type: '^([^\\d]+)', id: '(\\d+)', subtype: '([ms]?)'}
          tld: example.com
        conversions:
          host: {id: to-int, subtype: {m: master, s: slave}}
        facts:
          hostname: {template: "{host}"}
          domain: {template: "{sub}.{tld}"}
      - name: foo
        copy_from: baseline
        priority: 15
        order: [sub, tld]

Component values follow the builder rules, except that plain strings written
as ``/regex/`` become pattern rules. Conversion values are tag names
(``to-int`` ...) or lookup tables. Fact values are static, or
``{template: ...}`` computed facts formatted against the fact context.
"""

from __future__ import annotations

import logging
import re
import string
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .conversions import value_map
from .errors import InvalidConfiguration
from .facts import FactContext, is_empty
from .handler import Handler, HandlerBuilder
from .registry import HandlerRegistry

__all__ = [
    "HandlerDefinition",
    "HandlerDocument",
    "template_fact",
    "parse_document",
    "load_definitions",
]

LOGGER = logging.getLogger(__name__)

Source = Union[str, Path, Mapping[str, Any], List[Any]]


class HandlerDefinition(BaseModel):
    """One handler entry of a definitions document."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    copy_from: Optional[str] = None
    priority: Optional[int] = None
    order: Optional[List[str]] = None
    components: Dict[str, Any] = Field(default_factory=dict)
    conversions: Dict[str, Any] = Field(default_factory=dict)
    facts: Dict[str, Any] = Field(default_factory=dict)
    remove_facts: List[str] = Field(default_factory=list)

    @field_validator("order")
    @classmethod
    def validate_order(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is not None and not value:
            raise ValueError("order must name at least one component")
        return value

    def configure(self, builder: HandlerBuilder) -> None:
        """Replay this definition as builder calls."""
        if self.priority is not None:
            builder.priority(self.priority)
        if self.order is not None:
            builder.order(*self.order)
        for name, rule in self.components.items():
            builder.component(name, _component_rule(rule))
        for name, converter in self.conversions.items():
            builder.convert(name, _converter(converter))
        for name, value in self.facts.items():
            builder.fact(name, _fact_value(value))
        for name in self.remove_facts:
            builder.remove_fact(name)


class HandlerDocument(BaseModel):
    model_config = ConfigDict(extra="forbid")

    handlers: List[HandlerDefinition] = Field(default_factory=list)


def template_fact(template: str) -> Callable[[FactContext], Optional[str]]:
    """Build a fact function that formats ``template`` against the fact context.

    A template that references an empty fact renders as ``None`` so the
    computed fact is dropped along with its input.

    Examples:
        >>> template_fact("{sub}.{tld}")({"sub": "bar", "tld": "example.com"})
        'bar.example.com'
    """

    fields = sorted(
        {
            field.split(".", 1)[0].split("[", 1)[0]
            for _, field, _, _ in string.Formatter().parse(template)
            if field
        }
    )

    def _render(context: FactContext) -> Optional[str]:
        values = {name: context[name] for name in fields}
        if any(is_empty(value) for value in values.values()):
            return None
        return template.format_map(values)

    _render.template = template  # type: ignore[attr-defined]
    return _render


def _component_rule(rule: Any) -> Any:
    if isinstance(rule, str) and len(rule) > 1 and rule.startswith("/") and rule.endswith("/"):
        try:
            return re.compile(rule[1:-1])
        except re.error as exc:
            raise InvalidConfiguration(f"invalid pattern {rule!r}: {exc}") from exc
    return rule


def _converter(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {
            str(sub): value_map(table) if isinstance(table, Mapping) else table
            for sub, table in value.items()
        }
    return value


def _fact_value(value: Any) -> Any:
    if isinstance(value, Mapping) and set(value) == {"template"}:
        return template_fact(str(value["template"]))
    return value


def _read_source(source: Source) -> Any:
    if isinstance(source, Path):
        try:
            text = source.read_text(encoding="utf-8")
        except OSError as exc:
            raise InvalidConfiguration(f"cannot read handler definitions {source}: {exc}") from exc
        source = text
    if isinstance(source, str):
        try:
            return yaml.safe_load(source) or {}
        except yaml.YAMLError as exc:
            raise InvalidConfiguration(f"invalid handler definitions YAML: {exc}") from exc
    return source


def parse_document(source: Source) -> HandlerDocument:
    """Validate a definitions document.

    Raises:
        InvalidConfiguration: If the YAML or the document shape is invalid.
    """
    payload = _read_source(source)
    if isinstance(payload, list):
        payload = {"handlers": payload}
    try:
        return HandlerDocument.model_validate(payload)
    except ValidationError as exc:
        raise InvalidConfiguration(f"invalid handler definitions: {exc}") from exc


def load_definitions(
    source: Source,
    registry: Optional[HandlerRegistry] = None,
) -> List[Handler]:
    """Register every handler in ``source`` (in document order) and return them.

    Args:
        source: YAML text, a path to a YAML file, a mapping with a
            ``handlers`` list, or the list itself.
        registry: Target registry; a fresh one is created when omitted.

    Returns:
        Registered handlers in document order.
    """
    document = parse_document(source)
    registry = registry if registry is not None else HandlerRegistry()
    handlers = [
        registry.register(definition.name, definition.configure, copy_from=definition.copy_from)
        for definition in document.handlers
    ]
    LOGGER.info(
        "loaded %d handler definition(s)",
        len(handlers),
        extra={"stage": "load"},
    )
    return handlers
