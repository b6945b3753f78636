"""Bridge between the media server notifications and the MQTT bus.

The bridge runs the SqueezeClient listener and, in a separate task, drains
its Track stream into the publisher. When the server connection ends, the
listener is restarted after a delay that doubles on consecutive failures.
"""

import asyncio
import logging
from collections.abc import Coroutine
from contextlib import suppress
from typing import Any

from lms2mqtt.api.squeeze import SqueezeClient, SqueezeConnectionError
from lms2mqtt.core.config import MAX_RECONNECT_DELAY, BridgeConfig
from lms2mqtt.core.publisher import MqttPublisher

logger = logging.getLogger(__name__)


class Bridge:
    """Publishes every track change of a media server on an MQTT topic.

    Example:
        bridge = Bridge(config)
        exit_code = await bridge.run()
    """

    def __init__(
        self,
        config: BridgeConfig,
        client: SqueezeClient | None = None,
        publisher: MqttPublisher | None = None,
    ) -> None:
        """Initialize the bridge.

        Args:
            config: Bridge configuration.
            client: Media server client, built from config if None.
            publisher: Track publisher, built from config if None.
        """
        self._config = config
        self._client = client or SqueezeClient(config.server_host, config.server_port)
        self._publisher = publisher or MqttPublisher(config.mqtt, config.topic)
        self._should_run = True
        self._stop_event = asyncio.Event()

    @property
    def client(self) -> SqueezeClient:
        """Return the media server client."""
        return self._client

    def stop(self) -> None:
        """Request the bridge to stop."""
        self._should_run = False
        self._stop_event.set()

    async def run(self) -> int:
        """Run until stopped, or until the server connection ends when
        reconnection is disabled.

        Returns:
            Exit code: 0 after a clean stop or server disconnect, 1 if the
            last listener run failed with a connection error.
        """
        async with self._publisher:
            consumer = asyncio.create_task(self._publish_tracks())
            try:
                return await self._listen_loop()
            finally:
                self._client.close()
                await consumer

    async def _publish_tracks(self) -> None:
        async for track in self._client.tracks():
            await self._publisher.publish(track)

    async def _listen_loop(self) -> int:
        reconnect_delay = self._config.reconnect_delay
        exit_code = 0

        while self._should_run:
            try:
                await self._until_stopped(self._client.listen())
                exit_code = 0
                reconnect_delay = self._config.reconnect_delay
            except SqueezeConnectionError as e:
                exit_code = 1
                if self._should_run:
                    logger.error("Unable to listen to %s: %s", self._client.address, e)

            if not self._should_run:
                return 0
            if not exit_code:
                logger.info("Connection to %s closed", self._client.address)
            if self._config.reconnect_delay <= 0:
                return exit_code

            logger.info("Listening again in %.1fs", reconnect_delay)
            await self._sleep(reconnect_delay)
            if exit_code:
                reconnect_delay = min(reconnect_delay * 2, MAX_RECONNECT_DELAY)

        return 0

    async def _until_stopped(self, coro: Coroutine[Any, Any, None]) -> None:
        """Await coro, cancelling it if stop() is called first."""
        task = asyncio.create_task(coro)
        stopper = asyncio.create_task(self._stop_event.wait())
        try:
            done, _ = await asyncio.wait({task, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopper.cancel()
            if not task.done():
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task

        if task in done:
            task.result()

    async def _sleep(self, delay: float) -> None:
        """Sleep for delay seconds, waking up early on stop()."""
        with suppress(TimeoutError):
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
