"""
Course outline context.

Owns one EntityStore and one DraftOverlay and is the only place that writes
to them. Views are rebuilt from both snapshots on every read.
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from src.ordering.errors import UnknownContainerError
from src.ordering.models import (
    TOP_LEVEL,
    Item,
    ItemKind,
    MoveResult,
    OutlineView,
    SyncOp,
)
from src.ordering.store import DraftOverlay, EntityStore
from src.ordering.view_builder import build_outline, build_view


class CourseOutline:
    """Sections and activities of one course group, confirmed and draft."""

    def __init__(
        self,
        entities: EntityStore | None = None,
        drafts: DraftOverlay | None = None,
    ) -> None:
        self.entities = entities if entities is not None else EntityStore()
        self.drafts = drafts if drafts is not None else DraftOverlay()

    # ========================================
    # Reads
    # ========================================

    def view(self, container_id: str = TOP_LEVEL) -> list[Item]:
        return build_view(self.entities, self.drafts, container_id)

    def views(self) -> OutlineView:
        return build_outline(self.entities, self.drafts)

    def get(self, item_id: str) -> Item | None:
        return self.entities.get(item_id) or self.drafts.get(item_id)

    def has_container(self, container_id: str) -> bool:
        if container_id == TOP_LEVEL:
            return True
        item = self.get(container_id)
        return item is not None and item.kind is ItemKind.SECTION

    def locate(self, item_id: str) -> tuple[str, int]:
        """Container id and merged-view index of an item."""
        item = self.get(item_id)
        if item is None:
            raise KeyError(item_id)
        container_id = item.container_id
        for index, candidate in enumerate(self.view(container_id)):
            if candidate.id == item_id:
                return container_id, index
        raise KeyError(item_id)

    # ========================================
    # Writes
    # ========================================

    def reset_entities(
        self,
        sections: list[dict[str, Any]],
        activities: list[dict[str, Any]],
        containers: set[str] | None = None,
    ) -> None:
        """
        Replace the entity store from API payloads; drafts are kept.

        With ``containers`` only items listed in (or fetched into) those
        containers are replaced, so optimistic state of unrelated subtrees
        survives a reconciliation.
        """
        fetched = [Item.from_section(s) for s in sections]
        fetched.extend(Item.from_activity(a) for a in activities)

        if containers is None:
            items = fetched
        else:
            local_ids = {i.id for i in self.entities if i.container_id in containers}
            incoming = [
                i for i in fetched
                if i.container_id in containers or i.id in local_ids
            ]
            incoming_ids = {i.id for i in incoming}
            kept = [
                i for i in self.entities
                if i.container_id not in containers and i.id not in incoming_ids
            ]
            items = kept + incoming

        section_ids = {i.id for i in items if i.kind is ItemKind.SECTION}
        self.entities.replace(
            i for i in items
            if i.kind is ItemKind.SECTION or i.parent_id in section_ids
        )
        self._drop_orphan_drafts()
        logger.info(
            "Outline reset{}: {} sections, {} activities, {} drafts",
            "" if containers is None else f" ({len(containers)} containers)",
            len(self.entities.sections()),
            len(self.entities.activities()),
            len(self.drafts),
        )

    def add_section_draft(self, name: str, **attributes: Any) -> Item:
        draft = Item(
            id=self.drafts.new_placeholder_id(),
            kind=ItemKind.SECTION,
            sequence=len(self.view(TOP_LEVEL)),
            name=name,
            attributes=attributes,
        )
        self.drafts.insert(draft)
        logger.debug("Added draft section {} at {}", draft.id, draft.sequence)
        return draft

    def add_activity_draft(self, section_id: str, name: str, **attributes: Any) -> Item:
        if section_id == TOP_LEVEL or not self.has_container(section_id):
            raise UnknownContainerError(section_id)
        draft = Item(
            id=self.drafts.new_placeholder_id(),
            kind=ItemKind.ACTIVITY,
            sequence=len(self.view(section_id)),
            parent_id=section_id,
            name=name,
            attributes=attributes,
        )
        self.drafts.insert(draft)
        logger.debug("Added draft activity {} to {} at {}", draft.id, section_id, draft.sequence)
        return draft

    def _write(self, item: Item) -> SyncOp | None:
        """Store a new position; return an op if the stored value drifted."""
        if item.is_draft:
            if item.id in self.drafts:
                self.drafts.update(item)
            return None
        stored = self.entities.get(item.id)
        self.entities.upsert(item)
        if stored is None or (stored.sequence, stored.parent_id) != (item.sequence, item.parent_id):
            return SyncOp.for_item(item)
        return None

    def apply(self, result: MoveResult) -> list[SyncOp]:
        """
        Write a move result back optimistically.

        Returns ops for confirmed items whose stored sequence or parent
        differed from the new value without being in ``result.sync_ops``
        (the view had normalized away store-side drift).
        """
        pending = {op.id for op in result.sync_ops}
        extra: list[SyncOp] = []
        for items in result.updated_containers.values():
            for item in items:
                op = self._write(item)
                if op is not None and op.id not in pending:
                    extra.append(op)
        if extra:
            logger.debug("Correcting drift for {} items", len(extra))
        return extra

    def compaction_ops(self, container_id: str) -> list[SyncOp]:
        """Renumber one container positionally and return the resulting ops."""
        ops: list[SyncOp] = []
        for item in self.view(container_id):
            op = self._write(item)
            if op is not None:
                ops.append(op)
        return ops

    def promote(self, placeholder_id: str, server_payload: dict[str, Any]) -> Item:
        """Replace a saved draft with the confirmed item the API returned."""
        draft = self.drafts.get(placeholder_id)
        if draft is None:
            raise KeyError(placeholder_id)
        payload = {**draft.to_payload(), **server_payload}
        if draft.kind is ItemKind.SECTION:
            confirmed = Item.from_section(payload)
        else:
            confirmed = Item.from_activity(payload)
        self.entities.upsert(self.drafts.promote(placeholder_id, confirmed))
        return confirmed

    def remove(self, item_id: str) -> Item | None:
        """Drop an item (and a section's activities) from both collections."""
        removed = self.entities.remove(item_id) or self.drafts.remove(item_id)
        if removed is not None and removed.kind is ItemKind.SECTION:
            for collection in (self.entities, self.drafts):
                for child in collection:
                    if child.parent_id == item_id:
                        collection.remove(child.id)
        return removed

    def _drop_orphan_drafts(self) -> None:
        for draft in self.drafts:
            if draft.kind is ItemKind.ACTIVITY and not self.has_container(draft.parent_id or ""):
                logger.warning("Dropping draft {}: section {} no longer exists", draft.id, draft.parent_id)
                self.drafts.remove(draft.id)
