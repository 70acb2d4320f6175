"""Discord delivery for game notifications."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Protocol

import discord

from .notifications import (
    Notification,
    NotificationType,
    Notifier,
    build_notification,
)

log = logging.getLogger(__name__)

_TYPE_COLOURS = {
    NotificationType.ACHIEVEMENT: discord.Colour.gold,
    NotificationType.DAILY_TASK: discord.Colour.green,
    NotificationType.EVENT: discord.Colour.orange,
    NotificationType.SYSTEM: discord.Colour.blurple,
}


class Channel(Protocol):
    async def send(self, *args: Any, **kwargs: Any) -> Any:
        ...


def notification_embed(notification: Notification) -> discord.Embed:
    colour = _TYPE_COLOURS.get(notification.type, discord.Colour.blurple)()
    embed = discord.Embed(
        title=notification.title,
        description=notification.message,
        colour=colour,
        timestamp=datetime.fromtimestamp(notification.timestamp, tz=timezone.utc),
    )
    embed.set_footer(text=notification.type.value.replace("_", " ").title())
    for key, value in notification.data.items():
        embed.add_field(name=key, value=f"`{value}`", inline=True)
    return embed


class DiscordNotifier:
    """Posts notifications to a Discord channel.

    When ``inner`` is given the notification is recorded there first (for
    example in a :class:`~idlegame.notifications.NotificationCenter`) and the
    stored copy is what gets posted.
    """

    def __init__(self, channel: Channel, inner: Notifier | None = None) -> None:
        self.channel = channel
        self.inner = inner

    async def create_notification(
        self,
        title: str,
        message: str,
        type: NotificationType | str = NotificationType.SYSTEM,
        icon: str | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> Optional[Notification]:
        notification: Optional[Notification] = None
        if self.inner is not None:
            notification = await self.inner.create_notification(title, message, type, icon, data)
        if notification is None:
            notification = build_notification(title, message, type, icon, data)
        try:
            await self.channel.send(embed=notification_embed(notification))
        except discord.HTTPException:
            log.warning("Failed to deliver notification %s", notification.id, exc_info=True)
        return notification


__all__ = ["DiscordNotifier", "notification_embed"]
