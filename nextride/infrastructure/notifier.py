"""
Notification dispatch.

Stores the notification record (the in-app inbox) and publishes the
payload on the recipient's ``notifications:{user_id}`` channel, where the
push gateway picks it up for device delivery.  Sends are at-most-once:
nothing here retries.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from .events import EventBus, notification_channel
from .repositories import NotificationRepository
from nextride.domain.notifications import NotificationPayload

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(self, session: AsyncSession, bus: EventBus):
        self.repo = NotificationRepository(session)
        self.bus = bus

    async def dispatch(self, payload: NotificationPayload) -> None:
        row = await self.repo.create(payload)
        await self.bus.publish(
            notification_channel(payload.user_id),
            {
                "id": row.id,
                "ride_id": payload.ride_id,
                "type": payload.type.value,
                "user_id": payload.user_id,
                "title": payload.title,
                "body": payload.body,
            },
        )
        logger.info(
            "Notification %s sent to user %s for ride %s",
            payload.type.value,
            payload.user_id,
            payload.ride_id,
        )
