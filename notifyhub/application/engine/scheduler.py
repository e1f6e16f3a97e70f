"""Ordering and overflow control for toast candidates."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from notifyhub.domain.entities import Notification


@dataclass(frozen=True)
class SchedulePlan:
    admitted: list[Notification] = field(default_factory=list)
    waiting: list[Notification] = field(default_factory=list)

    @property
    def overflow_count(self) -> int:
        return len(self.waiting)


def _rank_key(notification: Notification) -> tuple[int, float, str]:
    return (
        -notification.priority.rank,
        -notification.created_at.timestamp(),
        notification.id,
    )


class PriorityScheduler:
    """Select which candidates become visible.

    Candidates are ordered by priority (highest first), then by creation time
    (newest first); the id breaks any remaining tie so that repeated passes
    over the same snapshot always produce the same order. Toasts that are
    already visible keep their place and only the free slots are filled.
    """

    def __init__(self, max_visible: int = 3) -> None:
        if max_visible <= 0:
            raise ValueError("max_visible must be positive")
        self.max_visible = max_visible

    def rank(self, candidates: Iterable[Notification]) -> list[Notification]:
        return sorted(candidates, key=_rank_key)

    def plan(self, candidates: Iterable[Notification], visible_count: int = 0) -> SchedulePlan:
        ranked = self.rank(candidates)
        free_slots = max(0, self.max_visible - visible_count)
        return SchedulePlan(admitted=ranked[:free_slots], waiting=ranked[free_slots:])


__all__ = ["PriorityScheduler", "SchedulePlan"]
