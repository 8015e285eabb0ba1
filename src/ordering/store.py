"""
Value holders for confirmed and draft items.

EntityStore mirrors what the content API last reported (plus optimistic
write-backs of completed moves). DraftOverlay holds items that only exist
locally. Neither derives sequence numbers on its own.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Iterator

from loguru import logger

from src.ordering.models import DRAFT_PREFIX, Item, ItemKind


class EntityStore:
    """Server-confirmed sections and activities, in insertion order."""

    def __init__(self, items: Iterable[Item] = ()) -> None:
        self._items: dict[str, Item] = {}
        for item in items:
            self.upsert(item)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __iter__(self) -> Iterator[Item]:
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)

    def get(self, item_id: str) -> Item | None:
        return self._items.get(item_id)

    def upsert(self, item: Item) -> None:
        if item.is_draft:
            raise ValueError(f"Draft id {item.id} cannot enter the entity store")
        self._items[item.id] = item

    def remove(self, item_id: str) -> Item | None:
        return self._items.pop(item_id, None)

    def replace(self, items: Iterable[Item]) -> None:
        """Swap the whole snapshot for a freshly fetched one."""
        self._items = {}
        for item in items:
            self.upsert(item)
        logger.debug("Entity store replaced: {} items", len(self._items))

    def sections(self) -> list[Item]:
        return [i for i in self._items.values() if i.kind is ItemKind.SECTION]

    def activities(self) -> list[Item]:
        return [i for i in self._items.values() if i.kind is ItemKind.ACTIVITY]


class DraftOverlay:
    """Locally created items that have no server identity yet."""

    def __init__(self) -> None:
        self._items: dict[str, Item] = {}

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __iter__(self) -> Iterator[Item]:
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)

    @staticmethod
    def new_placeholder_id() -> str:
        return f"{DRAFT_PREFIX}{uuid.uuid4().hex}"

    def get(self, item_id: str) -> Item | None:
        return self._items.get(item_id)

    def insert(self, item: Item) -> None:
        if not item.is_draft:
            raise ValueError(f"Draft items need a {DRAFT_PREFIX!r} placeholder id, got {item.id}")
        self._items[item.id] = item

    def update(self, item: Item) -> None:
        """Replace a draft in place, keeping its insertion slot."""
        if item.id not in self._items:
            raise KeyError(item.id)
        self._items[item.id] = item

    def remove(self, item_id: str) -> Item | None:
        return self._items.pop(item_id, None)

    def promote(self, placeholder_id: str, server_item: Item) -> Item:
        """
        Swap a placeholder for its confirmed counterpart.

        The draft leaves the overlay; draft activities that were parented on a
        promoted section are re-parented onto the server id. The confirmed
        item is returned for the caller to put into the entity store.
        """
        draft = self._items.pop(placeholder_id, None)
        if draft is None:
            raise KeyError(placeholder_id)

        if draft.kind is ItemKind.SECTION:
            for child in list(self._items.values()):
                if child.parent_id == placeholder_id:
                    self._items[child.id] = child.with_position(child.sequence, server_item.id)

        logger.debug("Promoted draft {} -> {}", placeholder_id, server_item.id)
        return server_item
