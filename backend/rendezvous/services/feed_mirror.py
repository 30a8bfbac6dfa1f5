"""
In-memory mirror of a live feed for clients of the real-time channels.

Server events and local optimistic writes are merged by entity id into one
ordered map. Each entity keeps the last server copy plus a stack of
provisional local writes, each tagged with a correlation id. The newest
provisional write is what the mirror shows. A server event carrying a
correlation id settles that one write, and a rollback drops only its own
write; either way the mirror falls back to the newest remaining layer.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Any, Callable, Dict, Generic, Hashable, List, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FeedMirror(Generic[T]):
    def __init__(
        self,
        key: Callable[[T], Hashable] = lambda entity: entity.id,
        sort_key: Optional[Callable[[T], Any]] = None,
    ):
        self._key = key
        self._sort_key = sort_key
        self._entries: "OrderedDict[Hashable, T]" = OrderedDict()
        self._server: Dict[Hashable, T] = {}
        # entity id -> provisional writes, oldest first
        self._layers: Dict[Hashable, List[Tuple[str, T]]] = {}
        self._owners: Dict[str, Hashable] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entity_id: Hashable) -> bool:
        return entity_id in self._entries

    def get(self, entity_id: Hashable) -> Optional[T]:
        return self._entries.get(entity_id)

    def _show(self, entity_id: Hashable) -> None:
        layers = self._layers.get(entity_id)
        if layers:
            self._entries[entity_id] = layers[-1][1]
        elif entity_id in self._server:
            self._entries[entity_id] = self._server[entity_id]
        else:
            self._entries.pop(entity_id, None)

    def _drop_layer(self, correlation_id: str) -> Optional[Hashable]:
        entity_id = self._owners.pop(correlation_id, None)
        if entity_id is None:
            return None
        layers = [layer for layer in self._layers.get(entity_id, []) if layer[0] != correlation_id]
        if layers:
            self._layers[entity_id] = layers
        else:
            self._layers.pop(entity_id, None)
        return entity_id

    def apply_upsert(self, entity: T) -> None:
        self.apply_server_event(entity)

    def apply_delete(self, entity_id: Hashable) -> None:
        """The server removed the entity; pending local writes on it go too."""
        self._server.pop(entity_id, None)
        for correlation_id, _ in self._layers.pop(entity_id, []):
            self._owners.pop(correlation_id, None)
        self._entries.pop(entity_id, None)

    def apply_local(self, entity: T, correlation_id: str) -> None:
        """Show a local write right away on top of whatever is already there."""
        entity_id = self._key(entity)
        if self._owners.get(correlation_id) == entity_id:
            self._layers[entity_id] = [
                (cid, entity if cid == correlation_id else value)
                for cid, value in self._layers[entity_id]
            ]
        else:
            self._drop_layer(correlation_id)
            self._layers.setdefault(entity_id, []).append((correlation_id, entity))
            self._owners[correlation_id] = entity_id
        self._show(entity_id)

    def apply_server_event(self, entity: T, correlation_id: Optional[str] = None) -> None:
        """Record the server copy; it settles the provisional write it acknowledges."""
        entity_id = self._key(entity)
        self._server[entity_id] = entity
        if correlation_id is not None:
            settled = self._drop_layer(correlation_id)
            if settled is not None and settled != entity_id:
                self._show(settled)
        self._show(entity_id)

    def rollback(self, correlation_id: str) -> bool:
        """Undo a local write the server rejected. Returns False if nothing was pending."""
        entity_id = self._drop_layer(correlation_id)
        if entity_id is None:
            return False
        self._show(entity_id)
        logger.debug(f"Rolled back local write {correlation_id} on {entity_id}")
        return True

    def is_provisional(self, entity_id: Hashable) -> bool:
        return bool(self._layers.get(entity_id))

    def items(self) -> List[T]:
        entries = list(self._entries.values())
        if self._sort_key is not None:
            entries.sort(key=self._sort_key)
        return entries
