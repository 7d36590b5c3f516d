"""Live registration count feed.

Publish/subscribe fan-out of the running registration total.

- ``subscribe(handler)`` registers an async callback and returns an
  unsubscribe function. After it is called the handler is never invoked
  again, even for a dispatch already in flight.
- Local handlers run concurrently; one failing handler does not affect
  the others.
- With Redis, ``publish`` goes through a pub/sub channel and every
  instance's listener dispatches to its own subscribers, so each instance
  sees every increment. Without Redis (or before ``start``), publish
  dispatches in-process only.

Delivery is at-least-once and unordered across subscribers. The value only
grows, so subscribers can ignore anything lower than what they last showed.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from uuid import uuid4

from redis.asyncio import Redis
from redis.exceptions import RedisError

from prereg.config import get_settings
from prereg.middleware.prometheus import update_feed_subscribers
from prereg.utils.json_utils import json_dumps, json_loads

logger = logging.getLogger(__name__)

CountHandler = Callable[[int], Awaitable[None]]


@dataclass
class Subscription:
    subscription_id: str
    handler: CountHandler
    is_active: bool = True


class RegistrationFeed:
    """실시간 사전예약 카운트 브로드캐스터"""

    def __init__(self, redis_client: Redis | None = None, channel: str | None = None):
        self.redis = redis_client
        self.channel = channel or get_settings().registration_channel

        self._subscriptions: dict[str, Subscription] = {}
        self._listener_task: asyncio.Task | None = None
        self._last_value: int | None = None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    @property
    def last_value(self) -> int | None:
        """Last total seen by this instance."""
        return self._last_value

    @property
    def is_bridged(self) -> bool:
        return self._listener_task is not None and not self._listener_task.done()

    async def start(self) -> None:
        """Start the Redis listener. No-op without a Redis client."""
        if self.redis is None or self.is_bridged:
            return
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(self.channel)
        self._listener_task = asyncio.create_task(self._listen(pubsub))
        logger.info("Live feed bridged to Redis channel %s", self.channel)

    async def stop(self) -> None:
        """Stop the listener and drop every subscription."""
        if self._listener_task:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass
            self._listener_task = None

        for subscription in self._subscriptions.values():
            subscription.is_active = False
        self._subscriptions.clear()
        update_feed_subscribers(0)

    def subscribe(self, handler: CountHandler) -> Callable[[], None]:
        """Register ``handler`` for count updates.

        Returns:
            Function that removes the subscription. Calling it more than
            once is harmless.
        """
        subscription = Subscription(subscription_id=str(uuid4()), handler=handler)
        self._subscriptions[subscription.subscription_id] = subscription
        update_feed_subscribers(len(self._subscriptions))

        def unsubscribe() -> None:
            subscription.is_active = False
            if self._subscriptions.pop(subscription.subscription_id, None) is not None:
                update_feed_subscribers(len(self._subscriptions))

        return unsubscribe

    async def publish(self, total_registrations: int) -> None:
        """Announce a new total to every subscriber on every instance."""
        if self.is_bridged:
            try:
                await self.redis.publish(
                    self.channel,
                    json_dumps({"totalRegistrations": total_registrations}),
                )
                return
            except RedisError:
                logger.exception(
                    "Publishing count %d to %s failed; delivering locally",
                    total_registrations, self.channel,
                )

        await self._dispatch(total_registrations)

    async def _listen(self, pubsub) -> None:
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    total = int(json_loads(message["data"])["totalRegistrations"])
                except (ValueError, KeyError, TypeError):
                    logger.warning("Ignoring malformed feed message: %r", message.get("data"))
                    continue
                await self._dispatch(total)
        finally:
            await pubsub.aclose()

    async def _dispatch(self, total_registrations: int) -> None:
        if self._last_value is None or total_registrations > self._last_value:
            self._last_value = total_registrations

        subscriptions = list(self._subscriptions.values())
        if not subscriptions:
            return
        await asyncio.gather(
            *(self._safe_handler_call(s, total_registrations) for s in subscriptions),
            return_exceptions=True,
        )

    async def _safe_handler_call(self, subscription: Subscription, total: int) -> None:
        if not subscription.is_active:
            return
        try:
            await subscription.handler(total)
        except Exception:
            logger.exception(
                "Live feed handler %s failed for total=%d",
                subscription.subscription_id, total,
            )


# Application-wide feed, created in the lifespan
_feed: RegistrationFeed | None = None


def get_registration_feed() -> RegistrationFeed:
    """Return the shared feed, creating an in-process one if none is set."""
    global _feed
    if _feed is None:
        _feed = RegistrationFeed()
    return _feed


def set_registration_feed(feed: RegistrationFeed | None) -> None:
    global _feed
    _feed = feed
