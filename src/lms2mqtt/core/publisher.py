"""MQTT publisher for Track records.

The broker connection is opened on entry. When it drops, the next publish
reconnects, waiting between failed attempts with exponential backoff.

Usage:
    async with MqttPublisher(settings, "home/music/track") as publisher:
        await publisher.publish(track)
"""

import asyncio
import json
import logging
from contextlib import AsyncExitStack
from typing import Self

import aiomqtt

from lms2mqtt.api.squeeze.types import Track
from lms2mqtt.core.config import MAX_RECONNECT_DELAY, MqttSettings

logger = logging.getLogger(__name__)

RECONNECT_DELAY = 1.0
PUBLISH_ATTEMPTS = 2


def track_payload(track: Track) -> str:
    """Serialize a Track to its JSON message payload."""
    return json.dumps(track.to_dict())


class MqttPublisher:
    """Publishes Tracks as JSON messages on one MQTT topic."""

    def __init__(self, settings: MqttSettings, topic: str) -> None:
        self.settings = settings
        self.topic = topic
        self._client: aiomqtt.Client | None = None
        self._stack: AsyncExitStack | None = None
        self._running = False
        self._backoff = RECONNECT_DELAY
        self._retry_at = 0.0

    @property
    def is_connected(self) -> bool:
        """Return True while the broker connection is open."""
        return self._client is not None

    async def __aenter__(self) -> Self:
        """Connect to the broker.

        Raises:
            aiomqtt.MqttError: If the first connection fails.
        """
        await self._connect()
        self._running = True
        return self

    async def __aexit__(self, *_: object) -> None:
        """Disconnect from the broker."""
        if not self._running:
            return
        self._running = False
        logger.info("Stop mqtt connection")
        await self._disconnect()

    async def _connect(self) -> None:
        client = aiomqtt.Client(
            hostname=self.settings.host,
            port=self.settings.port,
            username=self.settings.username or None,
            password=self.settings.password or None,
            identifier=self.settings.client_id,
        )
        stack = AsyncExitStack()
        self._client = await stack.enter_async_context(client)
        self._stack = stack
        logger.info("MQTT connected to %s:%d", self.settings.host, self.settings.port)

    async def _disconnect(self) -> None:
        stack, self._stack = self._stack, None
        self._client = None
        if stack is None:
            return
        try:
            await stack.aclose()
        except aiomqtt.MqttError as e:
            logger.debug("Error while closing mqtt connection: %s", e)

    async def _ensure_connected(self) -> aiomqtt.Client | None:
        """Return the open client, reconnecting once the backoff delay is over."""
        if self._client is not None:
            return self._client

        now = asyncio.get_running_loop().time()
        if now < self._retry_at:
            return None

        try:
            await self._connect()
        except aiomqtt.MqttError as e:
            logger.warning("MQTT reconnect failed (%s), retrying in %.0fs", e, self._backoff)
            self._retry_at = now + self._backoff
            self._backoff = min(self._backoff * 2, MAX_RECONNECT_DELAY)
            return None

        self._backoff = RECONNECT_DELAY
        return self._client

    async def publish(self, track: Track) -> bool:
        """Publish one Track.

        A lost connection is reopened and the message sent again once.

        Returns:
            True if the message was handed to the broker, False otherwise.
        """
        if not self._running:
            logger.warning("MQTT not connected, dropping track: %s", track)
            return False

        payload = track_payload(track)
        for _ in range(PUBLISH_ATTEMPTS):
            client = await self._ensure_connected()
            if client is None:
                logger.warning("MQTT not connected, dropping track: %s", track)
                return False
            try:
                await client.publish(
                    self.topic,
                    payload,
                    qos=self.settings.qos,
                    retain=self.settings.retain,
                )
            except aiomqtt.MqttError as e:
                logger.warning("MQTT connection lost (%s)", e)
                await self._disconnect()
                continue
            logger.debug("MQTT published on %s: %s", self.topic, track)
            return True

        logger.error("Unable to publish track %s", track)
        return False
