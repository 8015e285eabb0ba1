"""Errors raised by the ordering engine."""

from __future__ import annotations


class OrderingError(Exception):
    """Base class for ordering engine errors."""


class InvalidMoveError(OrderingError):
    """Raised when a move references a nonexistent item or position."""


class UnknownContainerError(OrderingError):
    """Raised when a container is not present in the current view."""

    def __init__(self, container_id: str):
        super().__init__(f"Unknown container: {container_id}")
        self.container_id = container_id


class UnsavedParentError(OrderingError):
    """Raised when saving a draft activity whose section is still a draft."""

    def __init__(self, item_id: str, parent_id: str):
        super().__init__(
            f"Activity {item_id} belongs to unsaved section {parent_id}; save the section first"
        )
        self.item_id = item_id
        self.parent_id = parent_id


class SyncFailure(OrderingError):
    """
    A batched sequence update was rejected or could not be delivered.

    Never raised out of the dispatcher; carried on the SyncResult after the
    entity store has been reconciled.
    """

    def __init__(self, message: str, item_ids: list[str] | None = None, status_code: int | None = None):
        super().__init__(message)
        self.item_ids = item_ids or []
        self.status_code = status_code
