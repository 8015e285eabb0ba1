"""
Merged View Builder.

Combines the entity store and the draft overlay into one ordered list per
container. Results are rebuilt from the snapshots on every call; nothing is
cached, so a refetched entity store is picked up immediately.
"""

from __future__ import annotations

from collections.abc import Iterable

from src.ordering.models import TOP_LEVEL, Item, ItemKind, OutlineView
from src.ordering.store import DraftOverlay, EntityStore


def _in_container(item: Item, container_id: str) -> bool:
    if container_id == TOP_LEVEL:
        return item.kind is ItemKind.SECTION
    return item.kind is ItemKind.ACTIVITY and item.parent_id == container_id


def _merge(confirmed: Iterable[Item], drafts: Iterable[Item]) -> list[Item]:
    # rank 0 = confirmed, 1 = draft; enumerate keeps insertion order on ties
    seen: set[str] = set()
    ranked: list[tuple[int, int, int, Item]] = []
    for rank, items in ((0, confirmed), (1, drafts)):
        for position, item in enumerate(items):
            if item.id in seen:
                continue
            seen.add(item.id)
            ranked.append((item.sequence, rank, position, item))
    ranked.sort(key=lambda entry: entry[:3])
    return [entry[3] for entry in ranked]


def build_view(
    entity_store: EntityStore,
    draft_overlay: DraftOverlay,
    container_id: str,
) -> list[Item]:
    """
    Ordered, deduplicated items of one container.

    Sorted by sequence with confirmed items ahead of drafts on a tie. Items
    come back renumbered 0..n-1 in that order, so callers never see the
    duplicates or gaps a lagging store may hold.
    """
    confirmed = [i for i in entity_store if _in_container(i, container_id)]
    drafts = [i for i in draft_overlay if _in_container(i, container_id)]

    ordered = _merge(confirmed, drafts)
    return [
        item if item.sequence == index else item.with_position(index)
        for index, item in enumerate(ordered)
    ]


def build_outline(entity_store: EntityStore, draft_overlay: DraftOverlay) -> OutlineView:
    """Views of the top-level list and of every section, empty ones included."""
    outline: OutlineView = {TOP_LEVEL: build_view(entity_store, draft_overlay, TOP_LEVEL)}
    for section in outline[TOP_LEVEL]:
        outline[section.id] = build_view(entity_store, draft_overlay, section.id)
    return outline
