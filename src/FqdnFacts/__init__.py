"""Public API for classifying FQDNs and deriving facts from their structure.

Handlers describe how an FQDN is laid out (ordered components, per-component
validation, conversions and extra facts). A :class:`HandlerRegistry` picks
the best handler for a live FQDN, and the handler assembles the facts::

    registry = HandlerRegistry()
    registry.register("web", lambda b: b.priority(10).component("tld", "example.com"))
    registry.facts("www.prod.example.com")

The package only emits records through loggers under ``FqdnFacts``. Setting
``DEBUG`` or ``FQDN_FACTS_DEBUG`` has no visible effect until the host calls
:func:`configure_logging`, which installs the stderr handler and applies the
level and format from the environment.
"""

from __future__ import annotations

from .conversions import ConversionTag, Symbol, convert, value_map
from .errors import (
    FqdnFactsError,
    HandlerNotFound,
    InvalidConfiguration,
    UnresolvableDependency,
    UnresolvableHandler,
)
from .facts import FactContext, assemble_facts
from .handler import Handler, HandlerBuilder, HandlerState
from .loader import load_definitions, template_fact
from .logging_utils import configure_logging
from .patterns import (
    AnyRule,
    ComponentRule,
    EnumerationRule,
    LiteralRule,
    PatternRule,
    SubPatternsRule,
)
from .registry import HandlerRegistry, default_registry
from .settings import FqdnFactsSettings, get_settings

__version__ = "0.3.0"

__all__ = [
    "__version__",
    "AnyRule",
    "ComponentRule",
    "ConversionTag",
    "EnumerationRule",
    "FactContext",
    "FqdnFactsError",
    "FqdnFactsSettings",
    "Handler",
    "HandlerBuilder",
    "HandlerNotFound",
    "HandlerRegistry",
    "HandlerState",
    "InvalidConfiguration",
    "LiteralRule",
    "PatternRule",
    "SubPatternsRule",
    "Symbol",
    "UnresolvableDependency",
    "UnresolvableHandler",
    "assemble_facts",
    "configure_logging",
    "convert",
    "default_registry",
    "get_settings",
    "load_definitions",
    "template_fact",
    "value_map",
]
