"""
Data model for the section/activity ordering engine.

Items are immutable snapshots; every renumbering produces new Item objects
so a view handed to a caller can never be changed underneath it.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

# Container id of the top-level Section list
TOP_LEVEL = "__root__"

# Placeholder id prefix for items that only exist locally
DRAFT_PREFIX = "draft-"


class ItemKind(str, Enum):
    """Kind of orderable item."""

    SECTION = "section"
    ACTIVITY = "activity"


def is_draft_id(item_id: str) -> bool:
    """Check whether an id is a locally generated placeholder."""
    return item_id.startswith(DRAFT_PREFIX)


@dataclass(frozen=True)
class Item:
    """A Section or an Activity in the course outline."""

    id: str
    kind: ItemKind
    sequence: int
    parent_id: str | None = None
    name: str = ""
    attributes: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_draft(self) -> bool:
        return is_draft_id(self.id)

    @property
    def container_id(self) -> str:
        """Container this item is listed in."""
        if self.kind is ItemKind.SECTION:
            return TOP_LEVEL
        return self.parent_id or ""

    def with_position(self, sequence: int, parent_id: str | None = None) -> Item:
        """Copy of this item at a new position (parent kept unless given)."""
        if parent_id is None:
            parent_id = self.parent_id
        return replace(self, sequence=sequence, parent_id=parent_id)

    @classmethod
    def from_section(cls, data: dict[str, Any]) -> Item:
        """Parse a section payload from the content API."""
        extra = {
            k: v for k, v in data.items()
            if k not in ("id", "sequence", "name")
        }
        return cls(
            id=str(data["id"]),
            kind=ItemKind.SECTION,
            sequence=int(data.get("sequence") or 0),
            parent_id=None,
            name=data.get("name", ""),
            attributes=extra,
        )

    @classmethod
    def from_activity(cls, data: dict[str, Any]) -> Item:
        """Parse a content (activity) payload from the content API."""
        extra = {
            k: v for k, v in data.items()
            if k not in ("id", "sequence", "name", "idSection")
        }
        return cls(
            id=str(data["id"]),
            kind=ItemKind.ACTIVITY,
            sequence=int(data.get("sequence") or 0),
            parent_id=str(data["idSection"]),
            name=data.get("name", ""),
            attributes=extra,
        )

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the content API's create payload shape."""
        payload = dict(self.attributes)
        payload["name"] = self.name
        payload["sequence"] = self.sequence
        if self.kind is ItemKind.ACTIVITY:
            payload["idSection"] = self.parent_id
        return payload


@dataclass(frozen=True)
class MoveEvent:
    """Normalized drag-and-drop move reported by a gesture adapter."""

    item_id: str
    from_container_id: str
    to_container_id: str
    old_index: int
    new_index: int

    @property
    def is_same_container(self) -> bool:
        return self.from_container_id == self.to_container_id

    @classmethod
    def from_drag(cls, event: dict[str, Any]) -> MoveEvent:
        """
        Build a move from a SortableJS-style ``onEnd`` payload.

        Accepts ``item``, ``from``, ``to``, ``oldIndex`` and ``newIndex`` keys;
        ``to`` defaults to ``from`` for moves inside one list.
        """
        source = event["from"]
        return cls(
            item_id=str(event["item"]),
            from_container_id=str(source),
            to_container_id=str(event.get("to") or source),
            old_index=int(event["oldIndex"]),
            new_index=int(event["newIndex"]),
        )


@dataclass(frozen=True)
class SyncOp:
    """Sequence/parent update that must be pushed for a confirmed item."""

    id: str
    kind: ItemKind
    sequence: int
    parent_id: str | None = None

    @property
    def subtree_key(self) -> str:
        """Top-level subtree this update belongs to."""
        if self.kind is ItemKind.SECTION:
            return TOP_LEVEL
        return self.parent_id or TOP_LEVEL

    def to_payload(self) -> dict[str, Any]:
        if self.kind is ItemKind.SECTION:
            return {"id": self.id, "sequence": self.sequence}
        return {"id": self.id, "sequence": self.sequence, "idSection": self.parent_id}

    @classmethod
    def for_item(cls, item: Item) -> SyncOp:
        return cls(id=item.id, kind=item.kind, sequence=item.sequence, parent_id=item.parent_id)


# Merged views keyed by container id
OutlineView = dict[str, list[Item]]


@dataclass
class MoveResult:
    """Outcome of applying a move to a merged view."""

    updated_containers: OutlineView = field(default_factory=dict)
    sync_ops: list[SyncOp] = field(default_factory=list)

    def merged_into(self, view: OutlineView) -> OutlineView:
        """Return ``view`` with the updated containers swapped in."""
        merged = dict(view)
        merged.update(self.updated_containers)
        return merged
