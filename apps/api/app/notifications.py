from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from app import events


NOTIFICATION_EVENT_TYPE = "notification.submitted"


@dataclass(frozen=True, slots=True)
class EntityRef:
    type: str
    id: str


class NotificationSink(Protocol):
    def submit(
        self,
        type: str,
        title: str,
        message: str,
        link: str | None,
        entity_ref: EntityRef | None,
    ) -> None: ...


class EventBusNotificationSink:
    """Hands notifications to the in-process event bus; delivery happens in subscribers."""

    def submit(
        self,
        type: str,
        title: str,
        message: str,
        link: str | None,
        entity_ref: EntityRef | None,
    ) -> None:
        envelope: dict[str, Any] = {
            "event_type": NOTIFICATION_EVENT_TYPE,
            "notification_type": type,
            "title": title,
            "message": message,
            "link": link,
            "entity_type": entity_ref.type if entity_ref is not None else None,
            "entity_id": entity_ref.id if entity_ref is not None else None,
        }
        events.publish(envelope)


notification_sink = EventBusNotificationSink()
