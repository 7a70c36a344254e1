"""Exception hierarchy shared across handler registration, matching, and fact assembly.

Registration mistakes surface immediately as :class:`InvalidConfiguration`
or :class:`HandlerNotFound`, while resolution failures surface as
:class:`UnresolvableHandler` so callers can treat an unmatched FQDN as "not
applicable" rather than a crash. Fact functions that never settle raise
:class:`UnresolvableDependency` instead of spinning forever.
"""

from __future__ import annotations

from typing import Iterable, Optional

__all__ = [
    "FqdnFactsError",
    "InvalidConfiguration",
    "HandlerNotFound",
    "UnresolvableHandler",
    "UnresolvableDependency",
]


class FqdnFactsError(RuntimeError):
    """Base exception for handler registration, resolution, or fact assembly failures."""


class InvalidConfiguration(FqdnFactsError):
    """Raised when builder calls or declarative definitions are malformed."""


class HandlerNotFound(FqdnFactsError, KeyError):
    """Raised when a named handler (for example a ``copy_from`` source) is not registered.

    Also a :class:`KeyError`, so name lookups can be handled like mapping misses.
    """

    def __init__(self, name: str) -> None:
        super().__init__(f"handler not found: {name!r}")
        self.name = name

    def __str__(self) -> str:
        return str(self.args[0])


class UnresolvableHandler(FqdnFactsError):
    """Raised when no registered handler accepts an FQDN."""

    def __init__(self, fqdn: str) -> None:
        super().__init__(f"unable to find a handler for FQDN:{fqdn}")
        self.fqdn = fqdn


class UnresolvableDependency(FqdnFactsError):
    """Raised when dynamic facts fail to reach a fixed point."""

    def __init__(
        self,
        pending: Iterable[str],
        *,
        passes: int,
        fqdn: Optional[str] = None,
    ) -> None:
        self.pending = tuple(sorted(pending))
        self.passes = passes
        self.fqdn = fqdn
        names = ", ".join(self.pending)
        super().__init__(
            f"facts did not resolve after {passes} pass(es) for FQDN:{fqdn}: {names}"
        )
