"""
Outline editor.

Ties the pure ordering engine to the content API:
- load() pulls a group's sections and their activities
- move() applies a gesture optimistically and commits its sync ops
- save_draft() / delete() drive the creation and deletion flows
"""

from __future__ import annotations

from typing import Callable

from loguru import logger

from src.content_api.client import ContentApiClient
from src.ordering.errors import SyncFailure, UnsavedParentError
from src.ordering.models import (
    TOP_LEVEL,
    Item,
    ItemKind,
    MoveEvent,
    MoveResult,
    OutlineView,
    is_draft_id,
)
from src.ordering.outline import CourseOutline
from src.ordering.reorder import apply_move
from src.ordering.sync import SyncDispatcher, SyncResult


class OutlineEditor:
    """Course outline editing session for one course group."""

    def __init__(
        self,
        client: ContentApiClient,
        group_id: str,
        outline: CourseOutline | None = None,
        dispatcher: SyncDispatcher | None = None,
        on_failure: Callable[[SyncFailure], None] | None = None,
    ) -> None:
        self.client = client
        self.group_id = group_id
        self.outline = outline or CourseOutline()
        self.dispatcher = dispatcher or SyncDispatcher(
            client, self.outline, group_id, on_failure=on_failure,
        )

    @property
    def is_saving(self) -> bool:
        return self.dispatcher.is_saving

    def views(self) -> OutlineView:
        return self.outline.views()

    async def load(self, normalize: bool = False) -> OutlineView:
        """
        Fetch sections and activities and rebuild the outline.

        Args:
            normalize: Push positional sequence numbers for any container
                whose stored numbering has gaps or duplicates

        Returns:
            The merged views after loading
        """
        sections = await self.client.list_sections(self.group_id)
        activities = await self.client.list_activities()
        self.outline.reset_entities(sections, activities)

        if normalize:
            ops = self.outline.compaction_ops(TOP_LEVEL)
            for section in self.outline.view(TOP_LEVEL):
                ops.extend(self.outline.compaction_ops(section.id))
            if ops:
                logger.info("Normalizing {} drifted sequence numbers", len(ops))
                await self.dispatcher.commit(ops)

        return self.outline.views()

    def apply_move(self, move: MoveEvent) -> MoveResult:
        """
        Apply a move to the optimistic outline.

        Raises InvalidMoveError / UnknownContainerError before any state is
        touched. The returned result's sync_ops include drift corrections.
        """
        result = apply_move(self.outline.views(), move)
        if move.is_same_container and move.old_index == move.new_index:
            return result
        result.sync_ops.extend(self.outline.apply(result))
        return result

    async def move(self, move: MoveEvent) -> SyncResult:
        """Apply a move and push its sequence updates."""
        result = self.apply_move(move)
        return await self.dispatcher.commit(result.sync_ops)

    async def save_draft(self, placeholder_id: str) -> Item:
        """
        Create a draft on the server and promote it.

        The draft's current sequence is sent with the create call.
        """
        draft = self.outline.drafts.get(placeholder_id)
        if draft is None:
            raise KeyError(placeholder_id)
        if draft.kind is ItemKind.ACTIVITY and is_draft_id(draft.parent_id or ""):
            raise UnsavedParentError(draft.id, draft.parent_id or "")

        # position as currently shown, not as first inserted
        container_id, index = self.outline.locate(placeholder_id)
        payload = draft.to_payload()
        payload["sequence"] = index

        if draft.kind is ItemKind.SECTION:
            payload["idGroup"] = self.group_id
            created = await self.client.create_section(payload)
        else:
            created = await self.client.create_activity(payload)

        confirmed = self.outline.promote(placeholder_id, created or {})
        logger.info("Saved draft {} as {} in {}", placeholder_id, confirmed.id, container_id)
        return confirmed

    async def delete(self, item_id: str) -> SyncResult | None:
        """
        Delete an item and compact the container it leaves behind.

        Drafts are only removed locally. Returns the compaction commit result,
        or None when nothing had to be renumbered.
        """
        item = self.outline.get(item_id)
        if item is None:
            raise KeyError(item_id)

        if not item.is_draft:
            if item.kind is ItemKind.SECTION:
                await self.client.delete_section(item_id)
            else:
                await self.client.delete_activity(item_id)

        self.outline.remove(item_id)
        logger.info("Deleted {} {}", item.kind.value, item_id)

        ops = self.outline.compaction_ops(item.container_id)
        if not ops:
            return None
        return await self.dispatcher.commit(ops)
