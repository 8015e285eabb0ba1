"""
Reorder Engine.

Pure functions that turn a move event into renumbered container lists and
the minimal set of sequence updates for confirmed items.

Renumbering is always positional (sequence = index), so any drift in the
incoming numbering is repaired by the first move that touches a container.
"""

from __future__ import annotations

from loguru import logger

from src.ordering.errors import InvalidMoveError, UnknownContainerError
from src.ordering.models import (
    TOP_LEVEL,
    Item,
    ItemKind,
    MoveEvent,
    MoveResult,
    OutlineView,
    SyncOp,
)


def renumber(items: list[Item]) -> list[Item]:
    """Assign sequence = position in a single pass."""
    return [
        item if item.sequence == index else item.with_position(index)
        for index, item in enumerate(items)
    ]


def _validate(view: OutlineView, move: MoveEvent) -> Item:
    source = view.get(move.from_container_id)
    if source is None:
        raise InvalidMoveError(
            f"Item {move.item_id} cannot be in unknown container {move.from_container_id}"
        )
    if not 0 <= move.old_index < len(source):
        raise InvalidMoveError(
            f"Index {move.old_index} out of range for {move.from_container_id} ({len(source)} items)"
        )
    item = source[move.old_index]
    if item.id != move.item_id:
        raise InvalidMoveError(
            f"Expected {move.item_id} at {move.from_container_id}[{move.old_index}], found {item.id}"
        )

    destination = view.get(move.to_container_id)
    if destination is None:
        raise UnknownContainerError(move.to_container_id)

    if (item.kind is ItemKind.SECTION) != (move.to_container_id == TOP_LEVEL):
        raise InvalidMoveError(
            f"{item.kind.value.capitalize()} {item.id} cannot be moved into {move.to_container_id}"
        )

    upper = len(destination) - 1 if move.is_same_container else len(destination)
    if not 0 <= move.new_index <= upper:
        raise InvalidMoveError(
            f"Target index {move.new_index} out of range for {move.to_container_id}"
        )
    return item


def _changed_ops(before: list[Item], after: list[Item]) -> list[SyncOp]:
    previous = {item.id: item for item in before}
    ops: list[SyncOp] = []
    for item in after:
        if item.is_draft:
            continue
        old = previous.get(item.id)
        if old is None or old.sequence != item.sequence or old.parent_id != item.parent_id:
            ops.append(SyncOp.for_item(item))
    return ops


def apply_move(view: OutlineView, move: MoveEvent) -> MoveResult:
    """
    Apply a move event to a merged view.

    Args:
        view: Merged views keyed by container id
        move: The normalized move event

    Returns:
        MoveResult with the renumbered containers and the sync ops for
        confirmed items whose sequence or parent changed

    Raises:
        InvalidMoveError: item not found at the given position, index out of
            range, or a section/activity moved into the wrong kind of list
        UnknownContainerError: destination container is not in the view
    """
    item = _validate(view, move)

    if move.is_same_container:
        if move.old_index == move.new_index:
            return MoveResult(
                updated_containers={move.from_container_id: list(view[move.from_container_id])},
                sync_ops=[],
            )
        before = view[move.from_container_id]
        reordered = list(before)
        reordered.insert(move.new_index, reordered.pop(move.old_index))
        after = renumber(reordered)
        ops = _changed_ops(before, after)
        logger.debug(
            "Moved {} within {}: {} -> {} ({} ops)",
            move.item_id, move.from_container_id, move.old_index, move.new_index, len(ops),
        )
        return MoveResult(updated_containers={move.from_container_id: after}, sync_ops=ops)

    source_before = view[move.from_container_id]
    dest_before = view[move.to_container_id]

    source = list(source_before)
    source.pop(move.old_index)
    parent_id = None if item.kind is ItemKind.SECTION else move.to_container_id
    moved = item.with_position(item.sequence, parent_id)
    destination = list(dest_before)
    destination.insert(move.new_index, moved)

    source_after = renumber(source)
    dest_after = renumber(destination)

    ops = _changed_ops(source_before, source_after) + _changed_ops(
        source_before + dest_before, dest_after
    )
    logger.debug(
        "Moved {} from {}[{}] to {}[{}] ({} ops)",
        move.item_id, move.from_container_id, move.old_index,
        move.to_container_id, move.new_index, len(ops),
    )
    return MoveResult(
        updated_containers={
            move.from_container_id: source_after,
            move.to_container_id: dest_after,
        },
        sync_ops=ops,
    )
