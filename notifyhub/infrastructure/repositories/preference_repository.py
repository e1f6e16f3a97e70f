"""Persistence helpers for notification preferences."""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from notifyhub.domain.entities import Preferences, apply_preference
from notifyhub.infrastructure.models import NotificationPreferenceModel


class PreferenceRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: str) -> Preferences:
        """Return stored preferences, or defaults when none were saved."""

        model = self.session.get(NotificationPreferenceModel, user_id)
        if model is None:
            return Preferences()
        return Preferences.from_dict(model.settings or {})

    def save(self, user_id: str, preferences: Preferences) -> Preferences:
        model = self.session.get(NotificationPreferenceModel, user_id)
        if model is None:
            model = NotificationPreferenceModel(user_id=user_id)
        model.settings = preferences.to_dict()
        self.session.add(model)
        self.session.commit()
        return preferences

    def update(self, user_id: str, key: str, value: Any) -> Preferences:
        return self.save(user_id, apply_preference(self.get(user_id), key, value))


__all__ = ["PreferenceRepository"]
