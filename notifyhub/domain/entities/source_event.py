"""Raw change event delivered by a live event source."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from notifyhub.domain.exceptions import NormalizationError
from notifyhub.utils import parse_datetime


def _pick(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


@dataclass(frozen=True)
class SourceEvent:
    """Status transition of an entity watched by one event source."""

    source: str
    entity_id: str
    previous_status: str | None
    new_status: str | None
    timestamp: datetime
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def is_insert(self) -> bool:
        return self.previous_status is None

    @property
    def status_changed(self) -> bool:
        return self.previous_status != self.new_status

    @classmethod
    def from_payload(cls, source: str, data: Mapping[str, Any]) -> "SourceEvent":
        """Build an event from a channel message.

        Both ``snake_case`` and ``camelCase`` keys are accepted. Events without
        an entity id or a timestamp are malformed.
        """

        if not isinstance(data, Mapping):
            raise NormalizationError(f"{source} event must be a mapping")

        entity_id = _pick(data, "entity_id", "entityId")
        if entity_id in (None, ""):
            raise NormalizationError(f"{source} event is missing 'entity_id'")

        try:
            timestamp = parse_datetime(_pick(data, "timestamp"))
        except (TypeError, ValueError) as exc:
            raise NormalizationError(f"{source} event has an invalid timestamp: {exc}") from None
        if timestamp is None:
            raise NormalizationError(f"{source} event is missing 'timestamp'")

        payload = _pick(data, "payload") or {}
        if not isinstance(payload, Mapping):
            raise NormalizationError(f"{source} event payload must be a mapping")

        previous_status = _pick(data, "previous_status", "previousStatus")
        new_status = _pick(data, "new_status", "newStatus")
        return cls(
            source=source,
            entity_id=str(entity_id),
            previous_status=str(previous_status) if previous_status is not None else None,
            new_status=str(new_status) if new_status is not None else None,
            timestamp=timestamp,
            payload=dict(payload),
        )


__all__ = ["SourceEvent"]
