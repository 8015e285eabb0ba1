"""
Section/activity ordering engine.

Components:
- models: Item, MoveEvent, SyncOp, MoveResult
- store: EntityStore (confirmed) and DraftOverlay (local-only)
- view_builder: merged, sequence-sorted view per container
- reorder: pure move application and sync-op derivation
- outline: CourseOutline, the state object owning both collections
- sync: SyncDispatcher, batched and serialized sequence updates
- editor: OutlineEditor, load/move/save/delete against the content API
- navigation: next/previous activity over the outline order
"""

from src.ordering.errors import (
    InvalidMoveError,
    OrderingError,
    SyncFailure,
    UnknownContainerError,
    UnsavedParentError,
)
from src.ordering.models import (
    TOP_LEVEL,
    Item,
    ItemKind,
    MoveEvent,
    MoveResult,
    OutlineView,
    SyncOp,
)
from src.ordering.outline import CourseOutline
from src.ordering.reorder import apply_move
from src.ordering.store import DraftOverlay, EntityStore
from src.ordering.view_builder import build_outline, build_view

__all__ = [
    "TOP_LEVEL",
    "Item",
    "ItemKind",
    "MoveEvent",
    "MoveResult",
    "OutlineView",
    "SyncOp",
    "EntityStore",
    "DraftOverlay",
    "CourseOutline",
    "build_view",
    "build_outline",
    "apply_move",
    # Errors
    "OrderingError",
    "InvalidMoveError",
    "UnknownContainerError",
    "UnsavedParentError",
    "SyncFailure",
]
