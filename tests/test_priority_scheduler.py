"""Tests for candidate ordering and overflow."""

from datetime import timedelta

import pytest

from notifyhub.application.engine import PriorityScheduler
from notifyhub.domain.entities import Notification

from support import BASE_TIME, make_payload


def _candidate(notification_id, priority, minutes=0):
    return Notification.from_payload(
        make_payload(
            notification_id,
            priority=priority,
            created_at=BASE_TIME + timedelta(minutes=minutes),
        )
    )


@pytest.fixture
def candidates():
    return [
        _candidate("low", "low"),
        _candidate("urgent", "urgent"),
        _candidate("normal-t1", "normal", minutes=1),
        _candidate("high", "high"),
        _candidate("normal-t0", "normal", minutes=0),
        _candidate("normal-t2", "normal", minutes=2),
    ]


def test_admits_by_priority_then_recency(candidates):
    plan = PriorityScheduler(max_visible=3).plan(
        [c for c in candidates if c.id != "normal-t0"]
    )

    assert [n.id for n in plan.admitted] == ["urgent", "high", "normal-t2"]
    assert plan.overflow_count == 2


def test_overflow_counts_every_waiting_candidate():
    candidates = [
        _candidate("low", "low"),
        _candidate("urgent", "urgent"),
        _candidate("normal-t1", "normal", minutes=1),
        _candidate("high", "high"),
        _candidate("normal-early", "normal"),
        _candidate("normal-t2", "normal", minutes=2),
    ]
    plan = PriorityScheduler(max_visible=3).plan(candidates)

    assert [n.id for n in plan.admitted] == ["urgent", "high", "normal-t2"]
    assert [n.id for n in plan.waiting] == ["normal-t1", "normal-early", "low"]
    assert plan.overflow_count == 3


def test_ranking_is_deterministic(candidates):
    scheduler = PriorityScheduler()
    first = [n.id for n in scheduler.rank(candidates)]

    for _ in range(5):
        assert [n.id for n in scheduler.rank(reversed(candidates))] == first


def test_ties_break_on_id():
    a = _candidate("a", "normal")
    b = _candidate("b", "normal")

    assert [n.id for n in PriorityScheduler().rank([b, a])] == ["a", "b"]


def test_visible_toasts_reduce_free_slots(candidates):
    plan = PriorityScheduler(max_visible=3).plan(candidates, visible_count=2)

    assert [n.id for n in plan.admitted] == ["urgent"]
    assert plan.overflow_count == len(candidates) - 1


def test_full_overlay_admits_nothing(candidates):
    plan = PriorityScheduler(max_visible=3).plan(candidates, visible_count=3)

    assert plan.admitted == []
    assert plan.overflow_count == len(candidates)


def test_max_visible_must_be_positive():
    with pytest.raises(ValueError):
        PriorityScheduler(max_visible=0)
