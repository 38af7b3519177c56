"""
Booking-status-change events over Redis pub/sub.

Delivery is fire-and-forget: a transport failure is logged and the event
is dropped, it never fails the booking operation that produced it.
"""

from __future__ import annotations

import logging

import redis.asyncio as aioredis
from pydantic import TypeAdapter
from redis.exceptions import RedisError

from chalo.domain.state_machine import StatusChange
from chalo.services.ports import EventPublisher

logger = logging.getLogger(__name__)

_events = TypeAdapter(StatusChange)


def encode_event(event: StatusChange) -> str:
    return _events.dump_json(event).decode()


class RedisEventPublisher(EventPublisher):
    def __init__(self, client: aioredis.Redis, channel: str):
        self.redis = client
        self.channel = channel

    async def publish(self, event: StatusChange) -> None:
        try:
            await self.redis.publish(self.channel, encode_event(event))
        except RedisError:
            logger.warning(
                "Dropped %s event for booking %s",
                event.status.value,
                event.booking_number,
                exc_info=True,
            )


class BufferedEventPublisher(EventPublisher):
    """Holds events until the transaction that produced them commits.

    ``flush`` hands the held events to ``delegate`` in order; ``discard``
    drops them after a rollback.
    """

    def __init__(self, delegate: EventPublisher):
        self.delegate = delegate
        self.pending: list[StatusChange] = []

    async def publish(self, event: StatusChange) -> None:
        self.pending.append(event)

    async def flush(self) -> int:
        events, self.pending = self.pending, []
        for event in events:
            await self.delegate.publish(event)
        return len(events)

    def discard(self) -> None:
        if self.pending:
            logger.info(
                "Discarded %d events from a rolled-back transaction",
                len(self.pending),
            )
        self.pending = []
