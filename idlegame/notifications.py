"""Notification sink used by the game services.

Services only depend on the :class:`Notifier` protocol.  The default
implementation, :class:`NotificationCenter`, keeps a bounded newest-first list
persisted in the ``notifications`` collection.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping, Optional, Protocol

from .models._coerce import coerce_float

if TYPE_CHECKING:
    from .models import Achievement, ActiveEvent, DailyTask
    from .storage import DataStore

log = logging.getLogger(__name__)

NOTIFICATIONS_COLLECTION = "notifications"
NOTIFICATIONS_KEY = "userNotifications"
DEFAULT_NOTIFICATION_LIMIT = 50


class NotificationType(str, Enum):
    ACHIEVEMENT = "achievement"
    DAILY_TASK = "daily_task"
    EVENT = "event"
    SYSTEM = "system"

    @classmethod
    def from_value(cls, value: "NotificationType | str | None") -> "NotificationType":
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        return cls.SYSTEM

    @property
    def default_icon(self) -> str:
        return _DEFAULT_ICONS[self]


_DEFAULT_ICONS = {
    NotificationType.ACHIEVEMENT: "award",
    NotificationType.DAILY_TASK: "calendar",
    NotificationType.EVENT: "gift",
    NotificationType.SYSTEM: "info",
}


@dataclass(slots=True)
class Notification:
    id: str
    title: str
    message: str
    type: NotificationType
    icon: str
    timestamp: float
    read: bool = False
    data: dict[str, Any] = field(default_factory=dict)

    def to_mapping(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "message": self.message,
            "type": self.type.value,
            "icon": self.icon,
            "timestamp": self.timestamp,
            "read": self.read,
        }
        if self.data:
            payload["data"] = dict(self.data)
        return payload

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Notification":
        kind = NotificationType.from_value(data.get("type"))
        extra = data.get("data")
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title", "")),
            message=str(data.get("message", "")),
            type=kind,
            icon=str(data.get("icon") or kind.default_icon),
            timestamp=coerce_float(data.get("timestamp")),
            read=bool(data.get("read", False)),
            data=dict(extra) if isinstance(extra, Mapping) else {},
        )


class Notifier(Protocol):
    async def create_notification(
        self,
        title: str,
        message: str,
        type: NotificationType | str = NotificationType.SYSTEM,
        icon: str | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> Optional[Notification]:
        ...


def build_notification(
    title: str,
    message: str,
    type: NotificationType | str = NotificationType.SYSTEM,
    icon: str | None = None,
    data: Mapping[str, Any] | None = None,
    *,
    now: float | None = None,
) -> Notification:
    timestamp = time.time() if now is None else now
    kind = NotificationType.from_value(type)
    return Notification(
        id=f"notification_{int(timestamp * 1000)}_{uuid.uuid4().hex[:8]}",
        title=title,
        message=message,
        type=kind,
        icon=icon or kind.default_icon,
        timestamp=timestamp,
        data=dict(data or {}),
    )


class NotificationCenter:
    """Persisted notification inbox."""

    def __init__(
        self,
        store: "DataStore | None" = None,
        *,
        limit: int = DEFAULT_NOTIFICATION_LIMIT,
    ) -> None:
        self._store = store
        self._limit = max(1, int(limit))
        self._notifications: list[Notification] = []

    @property
    def notifications(self) -> list[Notification]:
        return list(self._notifications)

    @property
    def unread_count(self) -> int:
        return sum(1 for entry in self._notifications if not entry.read)

    async def load(self) -> bool:
        if self._store is None:
            return True
        record = await self._store.get(NOTIFICATIONS_COLLECTION, NOTIFICATIONS_KEY)
        if record is None:
            return False
        entries = record.get("notifications") or []
        self._notifications = [
            Notification.from_mapping(entry) for entry in entries if isinstance(entry, Mapping)
        ][: self._limit]
        return True

    async def create_notification(
        self,
        title: str,
        message: str,
        type: NotificationType | str = NotificationType.SYSTEM,
        icon: str | None = None,
        data: Mapping[str, Any] | None = None,
        *,
        now: float | None = None,
    ) -> Notification:
        notification = build_notification(title, message, type, icon, data, now=now)
        self._notifications = [notification, *self._notifications][: self._limit]
        await self._save()
        return notification

    async def mark_as_read(self, notification_id: str) -> bool:
        for entry in self._notifications:
            if entry.id == notification_id:
                if not entry.read:
                    entry.read = True
                    await self._save()
                return True
        return False

    async def mark_all_as_read(self) -> int:
        changed = 0
        for entry in self._notifications:
            if not entry.read:
                entry.read = True
                changed += 1
        if changed:
            await self._save()
        return changed

    async def delete(self, notification_id: str) -> bool:
        remaining = [entry for entry in self._notifications if entry.id != notification_id]
        if len(remaining) == len(self._notifications):
            return False
        self._notifications = remaining
        await self._save()
        return True

    async def clear(self) -> bool:
        self._notifications = []
        return await self._save()

    async def _save(self) -> bool:
        if self._store is None:
            return True
        saved = await self._store.put(
            NOTIFICATIONS_COLLECTION,
            {
                "id": NOTIFICATIONS_KEY,
                "notifications": [entry.to_mapping() for entry in self._notifications],
                "lastUpdated": time.time(),
            },
        )
        if not saved:
            log.warning("Notifications were not persisted")
        return saved


async def notify_achievement(notifier: Notifier | None, achievement: "Achievement") -> None:
    if notifier is None:
        return
    await notifier.create_notification(
        "Achievement unlocked",
        f"{achievement.name}: {achievement.description}",
        NotificationType.ACHIEVEMENT,
        achievement.icon,
        {"achievementId": achievement.id},
    )


async def notify_daily_refresh(notifier: Notifier | None, count: int) -> None:
    if notifier is None:
        return
    await notifier.create_notification(
        "Daily tasks refreshed",
        f"{count} new daily task(s) are available.",
        NotificationType.DAILY_TASK,
    )


async def notify_daily_completed(notifier: Notifier | None, task: "DailyTask") -> None:
    if notifier is None:
        return
    await notifier.create_notification(
        "Daily task completed",
        f"{task.name} is ready to claim.",
        NotificationType.DAILY_TASK,
        None,
        {"taskId": task.id},
    )


async def notify_event(notifier: Notifier | None, event: "ActiveEvent") -> None:
    if notifier is None:
        return
    await notifier.create_notification(
        event.name,
        event.description,
        NotificationType.EVENT,
        event.icon,
        {"eventId": event.event_id, "instanceId": event.instance_id},
    )


__all__ = [
    "Notification",
    "NotificationCenter",
    "NotificationType",
    "Notifier",
    "build_notification",
    "notify_achievement",
    "notify_daily_completed",
    "notify_daily_refresh",
    "notify_event",
]
