"""
agrifund_services.notifications -- Notification sink boundary.

Responsibility:
    Defines the frozen NotificationEvent handed to a NotificationSink after
    a transaction commits, and the two built-in sinks: one that writes each
    event to the structured log, one that keeps events in memory.

Architecture position:
    Services layer.  Delivery channels (push, SMS, e-mail) are external and
    plug in by implementing NotificationSink.

Invariants:
    - Events are emitted only after commit.  A rolled-back operation never
      notifies.
    - A failing sink never turns a committed operation into a failure; the
      engine logs the exception and carries on.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from agrifund_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


class NotificationKind(str, Enum):
    """What happened."""

    PROJECT_VALIDATED = "project_validated"
    PROJECT_REJECTED = "project_rejected"
    PRODUCTION_LAUNCHED = "production_launched"
    PROJECT_COMPLETED = "project_completed"
    MILESTONE_REPORTED = "milestone_reported"
    PAYMENT_REQUESTED = "payment_requested"
    MILESTONE_PAID = "milestone_paid"


@dataclass(frozen=True)
class NotificationEvent:
    """A notification addressed to a set of actors, or to a whole role."""

    kind: NotificationKind
    project_id: UUID
    occurred_at: datetime
    recipient_ids: tuple[UUID, ...] = ()
    recipient_roles: tuple[str, ...] = ()
    message: str = ""
    payload: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class NotificationSink(Protocol):
    """Receives committed notification events."""

    def publish(self, event: NotificationEvent) -> None: ...


class LoggingNotificationSink:
    """Writes every event to the structured log.  The default sink."""

    def publish(self, event: NotificationEvent) -> None:
        logger.info(
            "notification",
            extra={
                "kind": event.kind.value,
                "notified_project_id": str(event.project_id),
                "recipient_ids": [str(r) for r in event.recipient_ids],
                "recipient_roles": list(event.recipient_roles),
                "notification_text": event.message,
            },
        )


class InMemoryNotificationSink:
    """Keeps published events in a list.  Used by tests and local tooling."""

    def __init__(self) -> None:
        self._events: list[NotificationEvent] = []
        self._lock = threading.Lock()

    def publish(self, event: NotificationEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> list[NotificationEvent]:
        with self._lock:
            return list(self._events)

    def of_kind(self, kind: NotificationKind) -> list[NotificationEvent]:
        return [e for e in self.events if e.kind == kind]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


def build_sink(kind: str) -> NotificationSink:
    """Sink for the ``notifications.sink`` setting."""
    if kind == "logging":
        return LoggingNotificationSink()
    if kind == "memory":
        return InMemoryNotificationSink()
    raise ValueError(f"Unknown notification sink: {kind!r}")
