"""
Handler registry and FQDN resolution.

The registry maps handler names to :class:`~FqdnFacts.handler.Handler`
instances and selects the best handler for an FQDN:

- only handlers whose component rules accept the FQDN are candidates
- the lowest ``priority`` wins
- equal priorities fall back to registration order (first registered wins;
  re-registering a name counts as a new, later registration)

Registration is a single-writer operation guarded by a lock; resolution works
on a snapshot of the mapping so it can run alongside other resolutions.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from .errors import HandlerNotFound, UnresolvableHandler
from .handler import Handler, HandlerBuilder

__all__ = ["HandlerRegistry", "Configure", "default_registry", "reset_default_registry"]

LOGGER = logging.getLogger(__name__)

Configure = Callable[[HandlerBuilder], Any]


class HandlerRegistry:
    """Named collection of fact handlers with priority-based resolution."""

    def __init__(self) -> None:
        self._handlers: Dict[str, Tuple[int, Handler]] = {}
        self._sequence = itertools.count()
        self._lock = threading.RLock()

    def register(
        self,
        name: str,
        configure: Optional[Configure] = None,
        *,
        copy_from: Optional[str] = None,
    ) -> Handler:
        """Create (or clone) a handler, configure it, and store it under ``name``.

        Args:
            name: Registry key; an existing registration is replaced.
            configure: Callable receiving a :class:`HandlerBuilder` for the
                new handler.
            copy_from: Name of a registered handler whose state seeds the new
                one.

        Returns:
            The registered handler.

        Raises:
            HandlerNotFound: If ``copy_from`` names no registered handler.
            InvalidConfiguration: If a builder call is malformed.

        Examples:
            >>> registry = HandlerRegistry()
            >>> handler = registry.register("web", lambda b: b.priority(5).component("host", ["www"]))
            >>> handler.priority
            5
        """
        with self._lock:
            if copy_from is not None:
                handler = Handler.copy_from(self.get(copy_from), name)
            else:
                handler = Handler(name)

            if configure is not None:
                configure(HandlerBuilder(handler))

            if name in self._handlers:
                LOGGER.info(
                    "replacing registered handler %s",
                    name,
                    extra={"stage": "register", "handler": name},
                )
            # drop first so the new registration takes a later slot
            self._handlers.pop(name, None)
            self._handlers[name] = (next(self._sequence), handler)

        LOGGER.debug(
            "registered handler %s (priority=%d, order=%s, copy_from=%s)",
            name,
            handler.priority,
            list(handler.order),
            copy_from,
            extra={"stage": "register", "handler": name},
        )
        return handler

    def get(self, name: str) -> Handler:
        with self._lock:
            try:
                return self._handlers[name][1]
            except KeyError:
                raise HandlerNotFound(name) from None

    def names(self) -> List[str]:
        with self._lock:
            return list(self._handlers)

    def _snapshot(self) -> List[Tuple[int, Handler]]:
        with self._lock:
            return list(self._handlers.values())

    def candidates(self, fqdn: str) -> List[Handler]:
        """Return every handler that accepts ``fqdn``, best first."""
        matching = [
            (handler.priority, seq, handler)
            for seq, handler in self._snapshot()
            if handler.matches(fqdn)
        ]
        matching.sort(key=lambda item: (item[0], item[1]))
        return [handler for _, _, handler in matching]

    def resolve(self, fqdn: str) -> Handler:
        """Return the best handler for ``fqdn`` with ``fqdn`` bound on it.

        Raises:
            UnresolvableHandler: If no registered handler accepts ``fqdn``.
        """
        candidates = self.candidates(fqdn)
        if not candidates:
            LOGGER.debug("no handler accepts %s", fqdn, extra={"stage": "resolve", "fqdn": fqdn})
            raise UnresolvableHandler(fqdn)
        winner = candidates[0]
        LOGGER.debug(
            "resolved %s to %s among %s",
            fqdn,
            winner.name,
            [handler.name for handler in candidates],
            extra={"stage": "resolve", "fqdn": fqdn, "handler": winner.name},
        )
        return winner.bind(fqdn)

    def facts(
        self,
        fqdn: str,
        *,
        prefix: Optional[str] = None,
        only: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        """Resolve ``fqdn`` and assemble its facts without relying on the bound FQDN."""
        return self.resolve(fqdn).facts_for(fqdn, prefix=prefix, only=only)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._handlers

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers)

    def __iter__(self) -> Iterator[Handler]:
        return iter([handler for _, handler in self._snapshot()])


_DEFAULT_LOCK = threading.Lock()
_DEFAULT_REGISTRY: Optional[HandlerRegistry] = None


def default_registry() -> HandlerRegistry:
    """Process-wide registry for bootstrap code that does not pass one around."""

    global _DEFAULT_REGISTRY  # noqa: PLW0603

    with _DEFAULT_LOCK:
        if _DEFAULT_REGISTRY is None:
            _DEFAULT_REGISTRY = HandlerRegistry()
        return _DEFAULT_REGISTRY


def reset_default_registry() -> None:
    global _DEFAULT_REGISTRY  # noqa: PLW0603

    with _DEFAULT_LOCK:
        _DEFAULT_REGISTRY = None
