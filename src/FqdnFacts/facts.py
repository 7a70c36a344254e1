# === NAVMAP v1 ===
# {
#   "module": "FqdnFacts.facts",
#   "purpose": "Assemble the final fact mapping for a matched FQDN",
#   "sections": [
#     {"id": "context", "name": "FactContext", "anchor": "CTX", "kind": "class"},
#     {"id": "seed", "name": "Seeding & component expansion", "anchor": "SEED", "kind": "function"},
#     {"id": "resolve", "name": "Fixed-point resolution", "anchor": "RES", "kind": "function"},
#     {"id": "assemble", "name": "assemble_facts", "anchor": "ASM", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""
Fact assembly for a handler bound to an FQDN.

Assembly seeds a working mapping from the handler's fact template and the
FQDN's positional components, expands sub-pattern components into
``<component>_<sub>`` facts, applies conversions, and then evaluates
function-valued facts until none remain. Fact functions receive a
:class:`FactContext` and look dependencies up by key::

    handler.add_fact("domain", lambda facts: f"{facts['sub']}.{facts['tld']}")

A dependency that is itself still pending defers the dependent fact to the
next pass, so declaration order does not matter. A dependency that does not
exist at all (for example a component missing from the handler's order)
resolves the dependent fact to ``None``, which drops it from the result.
"""

from __future__ import annotations

import logging
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    Mapping,
    MutableMapping,
    Optional,
    Sequence,
)

from .conversions import convert, lookup_converter, positional_arity, stringify_symbol
from .errors import UnresolvableDependency
from .patterns import SubPatternsRule, split_fqdn
from .settings import get_settings

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .handler import HandlerState

__all__ = [
    "FactContext",
    "MissingFact",
    "PendingFact",
    "assemble_facts",
    "is_empty",
]

LOGGER = logging.getLogger(__name__)


class MissingFact(KeyError):
    """Raised by :class:`FactContext` for names that are not facts at all."""


class PendingFact(Exception):
    """Raised by :class:`FactContext` for facts that are not resolved yet."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name


class FactContext(Mapping[str, Any]):
    """Read-only view over the working facts plus the binding extras.

    The extras (``fqdn``, ``components``, ``priority``, ``handler_class``)
    shadow working facts of the same name.
    """

    def __init__(self, working: Mapping[str, Any], extras: Mapping[str, Any]) -> None:
        self._working = working
        self._extras = extras

    def __getitem__(self, key: str) -> Any:
        if key in self._extras:
            return self._extras[key]
        try:
            value = self._working[key]
        except KeyError:
            raise MissingFact(key) from None
        if callable(value):
            raise PendingFact(key)
        return value

    def __contains__(self, key: object) -> bool:
        return key in self._extras or key in self._working

    def __iter__(self) -> Iterator[str]:
        yield from self._extras
        for key in self._working:
            if key not in self._extras:
                yield key

    def __len__(self) -> int:
        return len(self._extras) + sum(1 for key in self._working if key not in self._extras)

    def __repr__(self) -> str:
        return f"FactContext({sorted(self)!r})"


def is_empty(value: Any) -> bool:
    """``None`` and blank strings are empty; every other value is kept.

    Examples:
        >>> [is_empty(v) for v in ("", "  ", None, 0, False, [], {})]
        [True, True, True, False, False, False, False]
    """
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _call_fact(func: Callable[..., Any], context: FactContext) -> Any:
    if positional_arity(func) == 0:
        return func()
    return func(context)


def _deferred_conversion(raw: Any, converter: Any) -> Callable[[FactContext], Any]:
    def _resolve(context: FactContext) -> Any:
        return convert(raw, converter, context)

    return _resolve


def _apply_conversion(
    working: MutableMapping[str, Any],
    key: str,
    raw: Any,
    converter: Any,
    context: FactContext,
) -> None:
    try:
        working[key] = convert(raw, converter, context)
    except PendingFact:
        # converter reads a dynamic fact; finish it during resolution
        working[key] = _deferred_conversion(raw, converter)


def _seed(state: "HandlerState", fqdn: str) -> Dict[str, Any]:
    working: Dict[str, Any] = dict(state.fact_table)
    parts = split_fqdn(fqdn, state.order) or []
    working.update(zip(state.order, parts))
    return working


def _expand_components(
    state: "HandlerState",
    working: MutableMapping[str, Any],
    context: FactContext,
) -> None:
    for name in state.order:
        if name not in working:
            continue
        rule = state.components.get(name)
        raw = working[name]
        if isinstance(rule, SubPatternsRule):
            for sub, value in rule.extract(raw).items():
                key = f"{name}_{sub}"
                converter = lookup_converter(state.conversions, name, sub)
                if converter is None or value is None:
                    working[key] = value
                else:
                    _apply_conversion(working, key, value, converter, context)
            continue

        converter = state.conversions.get(name)
        if converter is not None and not isinstance(converter, Mapping):
            _apply_conversion(working, name, raw, converter, context)


def _resolve_dynamic(
    working: MutableMapping[str, Any],
    context: FactContext,
    *,
    max_passes: int,
    fqdn: str,
    handler: str,
) -> int:
    passes = 0
    pending = [key for key, value in working.items() if callable(value)]
    while pending:
        passes += 1
        if passes > max_passes:
            raise UnresolvableDependency(pending, passes=max_passes, fqdn=fqdn)

        progressed = False
        for key in list(working):
            value = working[key]
            if not callable(value):
                continue
            try:
                working[key] = _call_fact(value, context)
            except PendingFact as exc:
                LOGGER.debug(
                    "fact %r waits on %r",
                    key,
                    exc.name,
                    extra={"stage": "resolve", "handler": handler, "fqdn": fqdn, "fact": key},
                )
                continue
            except MissingFact as exc:
                LOGGER.warning(
                    "couldn't find value for key %s while resolving fact %r",
                    exc,
                    key,
                    extra={"stage": "resolve", "handler": handler, "fqdn": fqdn, "fact": key},
                )
                working[key] = None
            progressed = True

        pending = [key for key, value in working.items() if callable(value)]
        if pending and not progressed:
            raise UnresolvableDependency(pending, passes=passes, fqdn=fqdn)
    return passes


def _finalize(
    working: Mapping[str, Any],
    *,
    prefix: Optional[str],
    only: Optional[Iterable[str]],
) -> Dict[str, Any]:
    wanted = {str(name) for name in only} if only else None
    facts: Dict[str, Any] = {}
    for key, value in working.items():
        value = stringify_symbol(value)
        if is_empty(value):
            continue
        if wanted is not None and key not in wanted:
            continue
        facts[f"{prefix}_{key}" if prefix else key] = value
    return dict(sorted(facts.items()))


def assemble_facts(
    state: "HandlerState",
    fqdn: str,
    *,
    prefix: Optional[str] = None,
    only: Optional[Sequence[str]] = None,
    max_passes: Optional[int] = None,
) -> Dict[str, Any]:
    """Build the finalised fact mapping for ``fqdn``.

    Args:
        state: Handler (or exported handler state) providing order, component
            rules, conversions, fact template, priority and name.
        fqdn: Domain name to derive facts from.
        prefix: Optional string prepended to every key as ``<prefix>_<key>``.
        only: Optional fact names to keep (matched before prefixing).
        max_passes: Fixed-point pass limit; defaults to the
            ``max_resolution_passes`` setting.

    Returns:
        Facts sorted by key, with empty values removed.

    Raises:
        UnresolvableDependency: If dynamic facts do not settle.
    """
    if max_passes is None:
        max_passes = get_settings().max_resolution_passes

    working = _seed(state, fqdn)
    parts = split_fqdn(fqdn, state.order) or []
    extras = {
        "fqdn": fqdn,
        "components": dict(zip(state.order, parts)),
        "priority": state.priority,
        "handler_class": state.name,
    }
    context = FactContext(working, extras)

    _expand_components(state, working, context)
    passes = _resolve_dynamic(
        working, context, max_passes=max_passes, fqdn=fqdn, handler=state.name
    )
    facts = _finalize(working, prefix=prefix, only=only)

    LOGGER.debug(
        "assembled %d facts in %d pass(es)",
        len(facts),
        passes,
        extra={"stage": "assemble", "handler": state.name, "fqdn": fqdn},
    )
    return facts
