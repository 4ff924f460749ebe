"""
Host-owned streams.

A stream is an ordered collection keyed by item identity that the host
session updates incrementally (insert, update-in-place, delete). Widgets
only hold a StreamRef; the contents stay with the StreamStore.

Usage:
    store = StreamStore()
    users = store.collection("users")
    users.reset([{"id": 1, "name": "Ada"}])
    users.insert({"id": 2, "name": "Grace"}, at=0)
    users.delete(1)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


def default_identity(item: Any) -> Any:
    """Identity of an item: its ``id`` key or attribute."""
    if isinstance(item, dict):
        return item["id"]
    return item.id


@dataclass(frozen=True, slots=True)
class StreamRef:
    """Binding from a widget to a named stream."""

    name: str


class StreamCollection:
    """
    Ordered collection keyed by item identity.

    Inserting an item whose identity is already present replaces it in
    place, matching how live tables update rows.
    """

    def __init__(
        self,
        name: str,
        identity: Callable[[Any], Any] = default_identity,
    ):
        self.name = name
        self._identity = identity
        self._items: dict[Any, Any] = {}

    def insert(self, item: Any, *, at: int = -1) -> None:
        """
        Insert or replace an item.

        Args:
            item: Item to insert
            at: Position for new items; -1 appends, 0 prepends
        """
        key = self._identity(item)
        if key in self._items:
            self._items[key] = item
            return

        if at == -1 or at >= len(self._items):
            self._items[key] = item
            return

        entries = list(self._items.items())
        entries.insert(at, (key, item))
        self._items = dict(entries)

    def delete(self, item_id: Any) -> bool:
        """Delete by identity. Returns False when the item was absent."""
        if item_id in self._items:
            del self._items[item_id]
            return True
        return False

    def reset(self, items: Iterable[Any] = ()) -> None:
        self._items = {self._identity(item): item for item in items}

    def get(self, item_id: Any) -> Any | None:
        return self._items.get(item_id)

    def items(self) -> list[Any]:
        return list(self._items.values())

    def __iter__(self) -> Iterator[Any]:
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: Any) -> bool:
        return item_id in self._items

    def __repr__(self) -> str:
        return f"<StreamCollection name={self.name!r} items={len(self._items)}>"


class StreamStore:
    """Named stream collections for one session."""

    def __init__(self) -> None:
        self._collections: dict[str, StreamCollection] = {}

    def collection(
        self,
        name: str,
        identity: Callable[[Any], Any] = default_identity,
    ) -> StreamCollection:
        """Get a collection, creating it on first use."""
        if name not in self._collections:
            self._collections[name] = StreamCollection(name, identity)
            logger.debug(f"[streams] Created stream: {name}")
        return self._collections[name]

    def bind(self, name: str) -> StreamRef:
        """Bind a name, making sure the collection exists."""
        self.collection(name)
        return StreamRef(name=name)

    def items(self, ref: StreamRef) -> list[Any]:
        collection = self._collections.get(ref.name)
        return collection.items() if collection else []

    def __contains__(self, name: str) -> bool:
        return name in self._collections

    def __repr__(self) -> str:
        return f"<StreamStore streams={list(self._collections.keys())}>"
