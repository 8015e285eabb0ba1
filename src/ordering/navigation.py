"""
Learner-side navigation over the course order.

Activities are walked in outline order (sections by sequence, then
activities by sequence). Moving forward is allowed onto finished
activities and onto the single unlocked one, i.e. the first unfinished
activity of the course; moving back only onto finished activities.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass

from src.ordering.models import TOP_LEVEL, Item, OutlineView


@dataclass(frozen=True)
class NavigationState:
    has_previous: bool = False
    has_next: bool = False


def flatten(views: OutlineView) -> list[Item]:
    """All activities in outline order."""
    ordered: list[Item] = []
    for section in views.get(TOP_LEVEL, []):
        ordered.extend(views.get(section.id, []))
    return ordered


def unlocked_activity(views: OutlineView, finished_ids: Collection[str]) -> Item | None:
    for activity in flatten(views):
        if activity.id not in finished_ids:
            return activity
    return None


def _index_of(ordered: list[Item], activity_id: str) -> int | None:
    for index, activity in enumerate(ordered):
        if activity.id == activity_id:
            return index
    return None


def next_activity(
    views: OutlineView,
    current_id: str,
    finished_ids: Collection[str],
) -> Item | None:
    ordered = flatten(views)
    current = _index_of(ordered, current_id)
    if current is None:
        return None
    unlocked = unlocked_activity(views, finished_ids)
    for candidate in ordered[current + 1:]:
        if candidate.id in finished_ids:
            return candidate
        if unlocked is not None and candidate.id == unlocked.id:
            return candidate
    return None


def previous_activity(
    views: OutlineView,
    current_id: str,
    finished_ids: Collection[str],
) -> Item | None:
    ordered = flatten(views)
    current = _index_of(ordered, current_id)
    if current is None:
        return None
    for candidate in reversed(ordered[:current]):
        if candidate.id in finished_ids:
            return candidate
    return None


def navigation_state(
    views: OutlineView,
    current_id: str | None,
    finished_ids: Collection[str],
) -> NavigationState:
    if current_id is None or not views.get(TOP_LEVEL):
        return NavigationState()
    return NavigationState(
        has_previous=previous_activity(views, current_id, finished_ids) is not None,
        has_next=next_activity(views, current_id, finished_ids) is not None,
    )
