"""
Component validation rules and the positional FQDN matcher.

Each FQDN component (``host``, ``sub``, ``tld`` by default) is validated by a
:class:`ComponentRule`. Builder input is normalised through
:func:`coerce_rule`:

- ``"any"`` or ``None``     → :class:`AnyRule` (non-empty string)
- a list, tuple or set      → :class:`EnumerationRule`
- a compiled ``re.Pattern`` → :class:`PatternRule`
- a mapping                 → :class:`SubPatternsRule`
- any other scalar          → :class:`LiteralRule`

Sub-pattern rules are matched against the concatenation of their parts, laid
end to end in declaration order, and yield one captured value per part.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

from .errors import InvalidConfiguration

__all__ = [
    "ComponentRule",
    "AnyRule",
    "LiteralRule",
    "EnumerationRule",
    "PatternRule",
    "SubPatternsRule",
    "ANY",
    "ANY_PATTERN",
    "coerce_rule",
    "split_fqdn",
    "match_components",
]

LOGGER = logging.getLogger(__name__)

ANY_PATTERN = r"(.+)"
_SCOPED_FLAGS = (
    (re.ASCII, "a"),
    (re.IGNORECASE, "i"),
    (re.MULTILINE, "m"),
    (re.DOTALL, "s"),
    (re.VERBOSE, "x"),
)
# leading global flag groups such as "(?i)"; their effect is already in Pattern.flags
_LEADING_FLAGS = re.compile(r"^(?:\(\?[aiLmsux]+\))+")


class ComponentRule:
    """Base class for per-component validation rules."""

    kind: ClassVar[str] = "rule"

    def matches(self, value: str) -> bool:  # pragma: no cover - abstract
        raise NotImplementedError


@dataclass(frozen=True)
class AnyRule(ComponentRule):
    kind: ClassVar[str] = "any"

    def matches(self, value: str) -> bool:
        return bool(value)


@dataclass(frozen=True)
class LiteralRule(ComponentRule):
    value: str
    kind: ClassVar[str] = "literal"

    def matches(self, value: str) -> bool:
        return value == self.value


@dataclass(frozen=True)
class EnumerationRule(ComponentRule):
    values: FrozenSet[str]
    kind: ClassVar[str] = "enumeration"

    def matches(self, value: str) -> bool:
        return value in self.values


@dataclass(frozen=True)
class PatternRule(ComponentRule):
    """Unanchored regular-expression rule (``re.search`` semantics)."""

    pattern: "re.Pattern[str]"
    kind: ClassVar[str] = "pattern"

    def matches(self, value: str) -> bool:
        return self.pattern.search(value) is not None


@dataclass(frozen=True)
class SubPatternsRule(ComponentRule):
    """Ordered, named sub-patterns evaluated as one concatenated expression.

    Attributes:
        parts: ``(name, pattern)`` pairs in declaration order.
        combined: Expression built from every part's source, end to end.
        group_index: Capture group holding each part's value in ``combined``.
    """

    parts: Tuple[Tuple[str, "re.Pattern[str]"], ...]
    combined: "re.Pattern[str]" = field(init=False, compare=False, repr=False)
    group_index: Tuple[int, ...] = field(init=False, compare=False, repr=False)
    kind: ClassVar[str] = "subpatterns"

    def __post_init__(self) -> None:
        names = [name for name, _ in self.parts]
        if len(set(names)) != len(names):
            raise InvalidConfiguration(f"duplicate sub-pattern names in {names}")
        if not names:
            raise InvalidConfiguration("sub-pattern rule requires at least one part")

        sources: List[str] = []
        indexes: List[int] = []
        next_group = 1
        for _, pattern in self.parts:
            source = _scoped_source(pattern)
            if pattern.groups == 0:
                source = f"({source})"
                groups = 1
            else:
                groups = pattern.groups
            sources.append(source)
            indexes.append(next_group)
            next_group += groups
        try:
            combined = re.compile("".join(sources))
        except re.error as exc:
            raise InvalidConfiguration(f"sub-patterns do not combine: {exc}") from exc
        object.__setattr__(self, "combined", combined)
        object.__setattr__(self, "group_index", tuple(indexes))

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.parts)

    def matches(self, value: str) -> bool:
        return self.combined.search(value) is not None

    def extract(self, value: str) -> Dict[str, Optional[str]]:
        """Return the captured value of every part, ``None`` when unmatched."""
        match = self.combined.search(value)
        if match is None:
            return {name: None for name in self.names}
        return {name: match.group(index) for name, index in zip(self.names, self.group_index)}

    def merged(self, updates: "SubPatternsRule") -> "SubPatternsRule":
        """Overlay ``updates`` onto this rule, keeping the original part order."""
        combined = dict(self.parts)
        combined.update(updates.parts)
        return SubPatternsRule(tuple(combined.items()))


ANY = AnyRule()


def _scoped_source(pattern: "re.Pattern[str]") -> str:
    """Return ``pattern`` with its flags confined to a scoped group.

    Examples:
        >>> _scoped_source(re.compile("(?i)^([a-z]+)"))
        '(?i:^([a-z]+))'
    """
    source = _LEADING_FLAGS.sub("", pattern.pattern)
    flags = "".join(letter for flag, letter in _SCOPED_FLAGS if pattern.flags & flag)
    if not flags:
        return source
    return f"(?{flags}:{source})"


def _compile(source: Any, *, label: str) -> "re.Pattern[str]":
    if isinstance(source, re.Pattern):
        return source
    if source == "any" or source is None:
        return re.compile(ANY_PATTERN)
    try:
        return re.compile(str(source))
    except re.error as exc:
        raise InvalidConfiguration(f"invalid pattern for {label}: {source!r} ({exc})") from exc


def coerce_rule(value: Any, existing: Optional[ComponentRule] = None) -> ComponentRule:
    """Normalise builder input into a :class:`ComponentRule`.

    Args:
        value: Rule specification supplied to ``component``/``set_component``.
        existing: Rule currently installed for the component, if any. Mapping
            input is merged onto an existing :class:`SubPatternsRule`.

    Returns:
        The rule to install.

    Raises:
        InvalidConfiguration: If a pattern does not compile or sub-pattern
            names collide.
    """
    if value is None or (isinstance(value, str) and value == "any"):
        return ANY
    if isinstance(value, ComponentRule):
        return value
    if isinstance(value, re.Pattern):
        return PatternRule(value)
    if isinstance(value, Mapping):
        rule = SubPatternsRule(
            tuple((str(name), _compile(part, label=str(name))) for name, part in value.items())
        )
        if isinstance(existing, SubPatternsRule):
            return existing.merged(rule)
        return rule
    if isinstance(value, (list, tuple, set, frozenset)):
        return EnumerationRule(frozenset(str(item) for item in value))
    return LiteralRule(str(value))


def split_fqdn(fqdn: str, order: Sequence[str]) -> Optional[List[str]]:
    """Split ``fqdn`` into ``len(order)`` parts; the last part keeps extra dots.

    Returns ``None`` when the FQDN has fewer labels than ``order`` names.

    Examples:
        >>> split_fqdn("a.b.example.com", ("host", "sub", "tld"))
        ['a', 'b', 'example.com']
        >>> split_fqdn("example.com", ("host", "sub", "tld")) is None
        True
    """
    parts = fqdn.split(".", len(order) - 1)
    if len(parts) != len(order):
        return None
    return parts


def match_components(
    fqdn: str,
    order: Sequence[str],
    components: Mapping[str, ComponentRule],
    *,
    handler: str = "",
) -> bool:
    """Return ``True`` when every positional component satisfies its rule."""

    parts = split_fqdn(fqdn, order)
    extra = {"stage": "match", "handler": handler, "fqdn": fqdn}
    if parts is None:
        LOGGER.debug(
            "%s expects %d labels; rejecting %r", handler, len(order), fqdn, extra=extra
        )
        return False

    LOGGER.debug("validating %s: %r", handler, list(zip(order, parts)), extra=extra)
    for name, value in zip(order, parts):
        rule = components.get(name, ANY)
        result = rule.matches(value)
        LOGGER.debug(
            "  component %r (%s) -> %r == %s",
            name,
            rule.kind,
            value,
            result,
            extra={**extra, "component": name},
        )
        if not result:
            LOGGER.debug(" ---> validation failed for %s", handler, extra=extra)
            return False
    LOGGER.debug(" ---> validation successful for %s", handler, extra=extra)
    return True
