"""In-process notification engine components."""

from .lifecycle import ToastLifecycleController
from .preference_gate import (
    RejectionReason,
    ToastFeedback,
    admit,
    feedback_for,
    quiet_hours_active,
    rejection_reason,
)
from .queries import PresentationQueries, PresentationSnapshot, ToastView
from .scheduler import PriorityScheduler, SchedulePlan
from .store import NotificationStore, RecencyBucket, recency_bucket

__all__ = [
    "NotificationStore",
    "RecencyBucket",
    "recency_bucket",
    "RejectionReason",
    "ToastFeedback",
    "admit",
    "feedback_for",
    "quiet_hours_active",
    "rejection_reason",
    "PriorityScheduler",
    "SchedulePlan",
    "ToastLifecycleController",
    "PresentationQueries",
    "PresentationSnapshot",
    "ToastView",
]
