"""
Real-time ride events.

Every committed ride change is published as a full ride snapshot on the
``ride:{id}`` channel; notifications go out on ``notifications:{user_id}``.
Subscribers get a ``Subscription`` handle: iterate it with ``async for``
and ``close()`` it when the screen goes away.

Two backends share the same interface:

* ``RedisEventBus``    -- Redis pub/sub, for multi-process deployments.
* ``InMemoryEventBus`` -- asyncio queues, for a single process and tests.

Ordering: one publisher per ride commit, delivered in publish order per
channel.  No ordering across channels.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, AsyncIterator, Optional

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


def ride_channel(ride_id: str) -> str:
    return f"ride:{ride_id}"


def notification_channel(user_id: str) -> str:
    return f"notifications:{user_id}"


class Subscription(ABC):
    def __init__(self, channel: str):
        self.channel = channel
        self.closed = False

    def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        return self._messages()

    @abstractmethod
    def _messages(self) -> AsyncIterator[dict[str, Any]]: ...

    @abstractmethod
    async def close(self) -> None: ...


class EventBus(ABC):
    @abstractmethod
    async def publish(self, channel: str, message: dict[str, Any]) -> None: ...

    @abstractmethod
    async def subscribe(self, channel: str) -> Subscription: ...


# ── In-process backend ────────────────────────────────────────────────

_CLOSED = object()


class _QueueSubscription(Subscription):
    def __init__(self, bus: "InMemoryEventBus", channel: str):
        super().__init__(channel)
        self.bus = bus
        self.queue: asyncio.Queue = asyncio.Queue()

    async def _messages(self):
        while True:
            message = await self.queue.get()
            if message is _CLOSED:
                return
            yield message

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.bus._subscribers[self.channel].discard(self)
        self.queue.put_nowait(_CLOSED)


class InMemoryEventBus(EventBus):
    def __init__(self):
        self._subscribers: dict[str, set[_QueueSubscription]] = defaultdict(set)

    async def publish(self, channel: str, message: dict[str, Any]) -> None:
        for sub in list(self._subscribers[channel]):
            sub.queue.put_nowait(message)

    async def subscribe(self, channel: str) -> Subscription:
        sub = _QueueSubscription(self, channel)
        self._subscribers[channel].add(sub)
        return sub

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscribers[channel])


# ── Redis backend ─────────────────────────────────────────────────────


class _RedisSubscription(Subscription):
    def __init__(self, pubsub, channel: str):
        super().__init__(channel)
        self.pubsub = pubsub

    async def _messages(self):
        async for raw in self.pubsub.listen():
            if self.closed:
                return
            if raw.get("type") != "message":
                continue
            yield json.loads(raw["data"])

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self.pubsub.unsubscribe(self.channel)
        await self.pubsub.aclose()


class RedisEventBus(EventBus):
    def __init__(self, client: aioredis.Redis):
        self.redis = client

    async def publish(self, channel: str, message: dict[str, Any]) -> None:
        await self.redis.publish(channel, json.dumps(message, default=str))

    async def subscribe(self, channel: str) -> Subscription:
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(channel)
        return _RedisSubscription(pubsub, channel)


# ── One live subscription per (ride, user) ────────────────────────────


class SubscriptionRegistry:
    """
    Keeps at most one open ride subscription per viewer.

    The viewer is the caller's user id.

    Subscribing again for the same (ride, viewer) closes the previous
    handle first, so a re-opened screen never receives doubled events.
    """

    def __init__(self, bus: EventBus):
        self.bus = bus
        self._active: dict[tuple[str, str], Subscription] = {}

    async def subscribe_ride(self, ride_id: str, viewer: str) -> Subscription:
        key = (ride_id, viewer)
        previous = self._active.pop(key, None)
        if previous is not None:
            logger.debug("Replacing subscription for ride %s viewer %s", ride_id, viewer)
            await previous.close()
        sub = await self.bus.subscribe(ride_channel(ride_id))
        self._active[key] = sub
        return sub

    async def release(self, ride_id: str, viewer: str, sub: Subscription) -> None:
        """Close *sub*; forget it only if it is still the active handle."""
        if self._active.get((ride_id, viewer)) is sub:
            del self._active[(ride_id, viewer)]
        await sub.close()

    def active(self, ride_id: str, viewer: str) -> Optional[Subscription]:
        return self._active.get((ride_id, viewer))

    def count(self) -> int:
        return len(self._active)
