"""
Explicit document-trigger dispatch.

Handlers are registered against a path pattern such as
`inventoryItems/{itemId}` and an event kind. `dispatch` matches a committed
`DocumentChange`, binds the pattern's wildcards into `change.params`, and
calls each matching handler with `(store, change)`.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from backend.store import DocumentChange, DocumentStore, EventKind, split_path

logger = logging.getLogger(__name__)

TriggerHandler = Callable[[DocumentStore, DocumentChange], None]

_WILDCARD = re.compile(r"^\{(\w+)\}$")


def match_pattern(pattern: str, path: str) -> Optional[Dict[str, str]]:
    """Returns the wildcard bindings if `path` matches `pattern`, else None."""
    pattern_segments = split_path(pattern)
    path_segments = split_path(path)
    if len(pattern_segments) != len(path_segments):
        return None
    params: Dict[str, str] = {}
    for expected, actual in zip(pattern_segments, path_segments):
        wildcard = _WILDCARD.match(expected)
        if wildcard:
            params[wildcard.group(1)] = actual
        elif expected != actual:
            return None
    return params


@dataclass(frozen=True)
class _Route:
    pattern: str
    kind: EventKind
    handler: TriggerHandler


class TriggerDispatcher:
    def __init__(self, store: DocumentStore):
        self.store = store
        self._routes: List[_Route] = []

    def register(self, pattern: str, kind: EventKind, handler: TriggerHandler) -> None:
        split_path(pattern)
        self._routes.append(_Route(pattern=pattern, kind=kind, handler=handler))

    def on(self, pattern: str, kind: EventKind):
        """Decorator form of `register`."""

        def decorator(handler: TriggerHandler) -> TriggerHandler:
            self.register(pattern, kind, handler)
            return handler

        return decorator

    def dispatch(self, change: DocumentChange) -> int:
        """
        Runs every handler matching `change` and returns how many ran
        successfully. A failing handler is logged and does not stop the others;
        nothing is retried.
        """
        succeeded = 0
        for route in self._routes:
            if route.kind is not change.kind:
                continue
            params = match_pattern(route.pattern, change.path)
            if params is None:
                continue
            bound = dataclasses.replace(change, params={**change.params, **params})
            try:
                route.handler(self.store, bound)
            except Exception:
                logger.exception(
                    "Trigger handler %s failed for %s %s",
                    getattr(route.handler, "__name__", route.handler),
                    change.kind.value,
                    change.path,
                )
                continue
            succeeded += 1
        return succeeded
