"""
Redis Pub/Sub listener for real-time notifications.
Reads envelopes from the notifications channel and hands them to a
ConnectionManager for delivery to WebSocket clients.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import redis.asyncio as aioredis
from redis.asyncio.client import PubSub
from redis.exceptions import RedisError

from roombook.core.config import settings
from roombook.services.websocket_manager import ConnectionManager

logger = logging.getLogger(__name__)


class RedisPubSubService:
    """Redis Pub/Sub service for real-time notifications."""

    def __init__(
        self,
        manager: ConnectionManager,
        url: str = settings.REDIS_URL,
        channel: str = settings.NOTIFICATIONS_CHANNEL,
    ):
        self.manager = manager
        self.url = url
        self.channel = channel
        self.redis: Optional[aioredis.Redis] = None
        self.pubsub: Optional[PubSub] = None
        self._listener_task: Optional[asyncio.Task] = None

    async def connect(self):
        """Connect to Redis and subscribe to the notifications channel."""
        try:
            self.redis = aioredis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True,
            )
            self.pubsub = self.redis.pubsub()
            await self.pubsub.subscribe(self.channel)
        except (RedisError, OSError) as e:
            logger.error(f"Failed to connect to Redis Pub/Sub: {e}")
            raise

        logger.info(f"Redis Pub/Sub connected and subscribed to '{self.channel}' channel")
        self._listener_task = asyncio.create_task(self._listen())

    async def disconnect(self):
        """Disconnect from Redis Pub/Sub."""
        if self._listener_task:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass

        if self.pubsub:
            await self.pubsub.unsubscribe(self.channel)
            await self.pubsub.aclose()

        if self.redis:
            await self.redis.aclose()

        logger.info("Redis Pub/Sub disconnected")

    async def handle_message(self, message: dict) -> int:
        """Deliver one raw pub/sub message. Returns the number of sockets reached."""
        if message.get("type") != "message":
            return 0
        try:
            envelope = json.loads(message["data"])
            return await self.manager.deliver(envelope)
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Error processing Redis message: {e}", exc_info=True)
            return 0

    async def _listen(self):
        logger.info("Starting Redis Pub/Sub listener...")

        try:
            async for message in self.pubsub.listen():
                await self.handle_message(message)
        except asyncio.CancelledError:
            logger.info("Redis Pub/Sub listener cancelled")
        except RedisError as e:
            logger.error(f"Redis Pub/Sub listener error: {e}", exc_info=True)
