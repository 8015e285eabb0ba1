"""
Sync Dispatcher.

Pushes the sequence updates of a reorder gesture to the content API:
- One batched request per gesture instead of one per item
- Commits for the same top-level subtree are serialized; while one is in
  flight later ones queue and their ops coalesce (latest value per item)
- A failed batch is never rolled back item by item: the affected
  containers are refetched and the outline is rebuilt from that snapshot
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from loguru import logger

from config import get_settings
from src.content_api.client import ContentApiClient, ContentApiError
from src.ordering.errors import SyncFailure
from src.ordering.models import ItemKind, SyncOp, is_draft_id
from src.ordering.outline import CourseOutline

REVERTED_MESSAGE = "The new order could not be saved and was reverted."


@dataclass
class SyncResult:
    """Outcome of one commit."""

    success: bool
    sent: int = 0
    coalesced: bool = False  # ops were flushed by an earlier queued commit
    reconciled: bool = False
    error: SyncFailure | None = None
    synced_at: datetime = field(default_factory=datetime.now)


@dataclass
class SyncStatus:
    """Current sync status."""

    in_flight: int = 0
    last_sync_at: datetime | None = None
    last_sync_success: bool = True
    error_message: str | None = None
    total_commits: int = 0
    total_failures: int = 0

    @property
    def is_saving(self) -> bool:
        return self.in_flight > 0


class SyncDispatcher:
    """
    Batched, per-subtree serialized sequence updates.

    Usage:
        dispatcher = SyncDispatcher(client, outline, group_id="g-1")
        result = await dispatcher.commit(sync_ops)
        if not result.success:
            ...  # outline already reconciled with the server
    """

    def __init__(
        self,
        client: ContentApiClient,
        outline: CourseOutline,
        group_id: str,
        debounce_seconds: float | None = None,
        on_failure: Callable[[SyncFailure], None] | None = None,
        on_status_change: Callable[[SyncStatus], None] | None = None,
    ) -> None:
        self.client = client
        self.outline = outline
        self.group_id = group_id
        if debounce_seconds is None:
            debounce_seconds = get_settings().sync_debounce_seconds
        self.debounce_seconds = debounce_seconds
        self.on_failure = on_failure
        self.on_status_change = on_status_change

        self._status = SyncStatus()
        self._pending: dict[str, dict[str, SyncOp]] = defaultdict(dict)
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        # bumped whenever a subtree is reconciled; queued ops from an older
        # epoch were computed on a discarded view
        self._epochs: dict[str, int] = defaultdict(int)
        self._last_failure: dict[str, SyncFailure] = {}

    @property
    def status(self) -> SyncStatus:
        """Get current sync status."""
        return self._status

    @property
    def is_saving(self) -> bool:
        return self._status.is_saving

    def pending_count(self) -> int:
        return sum(len(ops) for ops in self._pending.values())

    def _enqueue(self, sync_ops: list[SyncOp]) -> dict[str, int]:
        epochs: dict[str, int] = {}
        for op in sync_ops:
            if is_draft_id(op.id):
                continue
            key = op.subtree_key
            # latest op per item wins, wherever it was queued before
            for queued in self._pending.values():
                queued.pop(op.id, None)
            self._pending[key][op.id] = op
            epochs[key] = self._epochs[key]
        return epochs

    def _drain(self, keys: list[str]) -> list[SyncOp]:
        batch: list[SyncOp] = []
        for key in keys:
            batch.extend(self._pending.pop(key, {}).values())
        return batch

    def _set_in_flight(self, delta: int) -> None:
        self._status.in_flight += delta
        if self.on_status_change:
            try:
                self.on_status_change(self._status)
            except Exception as exc:
                logger.warning("Status callback failed: {}", exc)

    async def commit(self, sync_ops: list[SyncOp]) -> SyncResult:
        """
        Push the sync ops of one gesture.

        Never raises for remote failures: the returned result carries the
        SyncFailure and the outline has already been reconciled.
        """
        epochs = self._enqueue(sync_ops)
        if not epochs:
            return SyncResult(success=True)

        keys = sorted(epochs)
        self._set_in_flight(+1)
        try:
            async with AsyncExitStack() as stack:
                for key in keys:
                    await stack.enter_async_context(self._locks[key])

                stale = [k for k in keys if self._epochs[k] != epochs[k]]
                if stale:
                    failure = self._last_failure.get(stale[0]) or SyncFailure(REVERTED_MESSAGE)
                    logger.info("Dropping queued order update for reconciled subtree {}", stale[0])
                    return SyncResult(success=False, reconciled=True, error=failure)

                if self.debounce_seconds > 0:
                    await asyncio.sleep(self.debounce_seconds)

                batch = self._drain(keys)
                if not batch:
                    return SyncResult(success=True, coalesced=True)

                return await self._send(batch, keys)
        finally:
            self._set_in_flight(-1)

    async def _send(self, batch: list[SyncOp], keys: list[str]) -> SyncResult:
        sections = [op.to_payload() for op in batch if op.kind is ItemKind.SECTION]
        contents = [op.to_payload() for op in batch if op.kind is ItemKind.ACTIVITY]

        try:
            if sections:
                await self.client.update_sections_sequence(sections)
            if contents:
                await self.client.update_contents_sequence(contents)
        except ContentApiError as exc:
            failure = SyncFailure(
                f"{REVERTED_MESSAGE} ({exc})",
                item_ids=[op.id for op in batch],
                status_code=exc.status_code,
            )
            reconciled = await self._reconcile(keys, failure)
            return SyncResult(success=False, reconciled=reconciled, error=failure)

        self._status.total_commits += 1
        self._status.last_sync_at = datetime.now()
        self._status.last_sync_success = True
        self._status.error_message = None
        logger.info(
            "Order saved: {} sections, {} activities in subtrees {}",
            len(sections), len(contents), ", ".join(keys),
        )
        return SyncResult(success=True, sent=len(batch))

    async def _reconcile(self, keys: list[str], failure: SyncFailure) -> bool:
        """Refetch the affected subtrees and discard optimistic state there."""
        self._status.total_failures += 1
        self._status.last_sync_at = datetime.now()
        self._status.last_sync_success = False
        self._status.error_message = str(failure)
        logger.warning("Order update failed, reconciling {}: {}", ", ".join(keys), failure)

        reconciled = True
        try:
            sections = await self.client.list_sections(self.group_id)
            activities = await self.client.list_activities()
            self.outline.reset_entities(sections, activities, containers=set(keys))
        except ContentApiError as exc:
            logger.error("Reconciliation refetch failed: {}", exc)
            reconciled = False
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("Reconciliation snapshot could not be parsed: {!r}", exc)
            reconciled = False

        # ops queued up to now, including during the refetch, were computed on
        # the rejected view
        for key in keys:
            self._epochs[key] += 1
            self._last_failure[key] = failure
            dropped = self._pending.pop(key, {})
            if dropped:
                logger.info("Discarded {} queued updates for {}", len(dropped), key)

        if self.on_failure:
            try:
                self.on_failure(failure)
            except Exception as exc:
                logger.warning("Failure callback failed: {}", exc)
        return reconciled
