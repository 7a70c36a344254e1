"""Value conversion for component and sub-component facts."""

from __future__ import annotations

import inspect
import sys
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Union

from .errors import InvalidConfiguration

__all__ = [
    "ConversionTag",
    "Symbol",
    "Converter",
    "convert",
    "validate_converter",
    "lookup_converter",
    "stringify_symbol",
    "positional_arity",
    "value_map",
]


class ConversionTag(str, Enum):
    """Static primitive coercions."""

    TO_INT = "to-int"
    TO_FLOAT = "to-float"
    TO_STRING = "to-string"
    TO_ARRAY = "to-array"
    TO_SYMBOL = "to-symbol"


class Symbol(str):
    """Marker for atom-like values; stored facts are plain ``str``."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f":{str.__str__(self)}"


Converter = Union[ConversionTag, str, Callable[..., Any], Mapping[str, Any]]


def _to_array(value: Any) -> list:
    if isinstance(value, (list, tuple)):
        return list(value)
    if value is None:
        return []
    return [value]


_STATIC: Dict[ConversionTag, Callable[[Any], Any]] = {
    ConversionTag.TO_INT: int,
    ConversionTag.TO_FLOAT: float,
    ConversionTag.TO_STRING: str,
    ConversionTag.TO_ARRAY: _to_array,
    ConversionTag.TO_SYMBOL: lambda value: Symbol(sys.intern(str(value))),
}


def positional_arity(func: Callable[..., Any]) -> int:
    """Count the required positional parameters of ``func``.

    ``*args`` counts as two; a callable whose positionals are all optional
    counts as one.
    """

    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return 1
    required = total = 0
    for parameter in signature.parameters.values():
        if parameter.kind is inspect.Parameter.VAR_POSITIONAL:
            return 2
        if parameter.kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            total += 1
            if parameter.default is inspect.Parameter.empty:
                required += 1
    if required == 0 and total:
        return 1
    return required


def _as_tag(converter: Any) -> Optional[ConversionTag]:
    if isinstance(converter, ConversionTag):
        return converter
    if isinstance(converter, str):
        try:
            return ConversionTag(converter)
        except ValueError:
            return None
    return None


def validate_converter(converter: Any, *, allow_mapping: bool = True) -> Converter:
    """Check a converter at builder time and normalise tag strings.

    Raises:
        InvalidConfiguration: If ``converter`` is not a tag, a callable, or a
            mapping of sub-component converters.
    """
    tag = _as_tag(converter)
    if tag is not None:
        return tag
    if callable(converter):
        if positional_arity(converter) > 2:
            raise InvalidConfiguration(
                f"converter {converter!r} must accept at most (value, context)"
            )
        return converter
    if allow_mapping and isinstance(converter, Mapping):
        return {
            str(name): validate_converter(value, allow_mapping=False)
            for name, value in converter.items()
        }
    raise InvalidConfiguration(f"unsupported converter: {converter!r}")


def convert(raw: Any, converter: Converter, context: Optional[Mapping[str, Any]] = None) -> Any:
    """Apply ``converter`` to ``raw``.

    Callables are invoked by arity: ``fn()``, ``fn(raw)`` or
    ``fn(raw, context)``. Symbolic results are returned as plain strings.

    Examples:
        >>> convert("01", "to-int")
        1
        >>> convert("m", lambda value: "master" if value == "m" else "slave")
        'master'
    """
    tag = _as_tag(converter)
    if tag is not None:
        return stringify_symbol(_STATIC[tag](raw))
    if not callable(converter):
        raise InvalidConfiguration(f"unsupported converter: {converter!r}")

    arity = positional_arity(converter)
    if arity == 0:
        result = converter()
    elif arity == 1:
        result = converter(raw)
    else:
        result = converter(raw, context if context is not None else {})
    return stringify_symbol(result)


def lookup_converter(
    conversions: Mapping[str, Any], component: str, sub: str
) -> Optional[Converter]:
    """Find the converter for ``<component>_<sub>``.

    The flat key wins over a nested ``conversions[component][sub]`` entry.
    """
    flat = conversions.get(f"{component}_{sub}")
    if flat is not None:
        return flat
    nested = conversions.get(component)
    if isinstance(nested, Mapping):
        return nested.get(sub)
    return None


def stringify_symbol(value: Any) -> Any:
    if isinstance(value, Symbol):
        return str.__str__(value)
    if isinstance(value, Enum):
        return value.value if isinstance(value.value, str) else value.name
    return value


def value_map(table: Mapping[Any, Any], default: Any = None) -> Callable[[Any], Any]:
    """Build a converter that looks ``value`` up in ``table``.

    Examples:
        >>> value_map({"m": "master", "s": "slave"})("s")
        'slave'
    """
    lookup = dict(table)

    def _convert(value: Any) -> Any:
        return lookup.get(value, default)

    _convert.table = lookup  # type: ignore[attr-defined]
    return _convert
