"""Async Squeezebox CLI client.

This module provides an asyncio-based client for the Logitech Media Server
command line interface. It follows a long-lived "listen" connection for
track change notifications and, for each one, reads the metadata of the
player's current track over a separate short-lived connection.

Example:
    client = SqueezeClient("192.168.1.100")
    listener = asyncio.create_task(client.listen())
    async for track in client.tracks():
        print(f"Playing: {track.title} by {track.artist}")
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from lms2mqtt.api.squeeze.metadata import select_metadata
from lms2mqtt.api.squeeze.protocol import (
    FIELD_CURRENT_TITLE,
    LISTEN_COMMAND,
    SqueezeConnectionClosed,
    SqueezeConnectionError,
    SqueezeError,
    decode_string,
    parse_notification,
)
from lms2mqtt.api.squeeze.session import COMMAND_TIMEOUT, DEFAULT_PORT, SqueezeSession
from lms2mqtt.api.squeeze.types import PlayerId, Track

logger = logging.getLogger(__name__)

# Strategy accessors, in query order, named after the Track fields they fill
_TRACK_FIELDS = ("artist", "album", "title", "genre", "year", "duration", "elapsed_time")


class SqueezeClient:
    """Async client turning server notifications into Track records.

    Tracks are pushed on an unbounded queue read with tracks(). Once the
    client is closed, new Tracks are dropped with a warning instead of
    being queued.

    Attributes:
        host: Server hostname or IP.
        port: CLI port (default 9090).
        timeout: Bound on one field query, in seconds.
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        timeout: float = COMMAND_TIMEOUT,
    ) -> None:
        """Initialize the client.

        Args:
            host: Server hostname or IP.
            port: CLI port.
            timeout: Bound on one field query, in seconds.
        """
        self.host = host
        self.port = port
        self.timeout = timeout

        self._tracks: asyncio.Queue[Track | None] = asyncio.Queue()
        self._closed = False

    @property
    def address(self) -> str:
        """Return the "host:port" address of the server."""
        return f"{self.host}:{self.port}"

    @property
    def is_closed(self) -> bool:
        """Return True once close() has been called."""
        return self._closed

    def _session(self) -> SqueezeSession:
        return SqueezeSession(self.host, self.port, self.timeout)

    # -------------------------------------------------------------------------
    # Track assembly
    # -------------------------------------------------------------------------

    async def current_track(self, player_id: PlayerId) -> Track:
        """Read the metadata of the track playing on a player.

        Opens a dedicated connection for the duration of the call. Failures
        never propagate: a field that cannot be read keeps its zero value,
        and a failed connection yields an empty Track.

        Args:
            player_id: Player to query.

        Returns:
            The assembled Track.
        """
        try:
            async with self._session() as session:
                return await self._assemble(session, player_id)
        except SqueezeConnectionError as e:
            logger.error("Unable to extract current track metadata for player %s: %s", player_id, e)
            return Track()

    async def _current_title(self, session: SqueezeSession, player_id: PlayerId) -> str:
        try:
            line = await session.query(FIELD_CURRENT_TITLE, player_id)
            return decode_string(line, FIELD_CURRENT_TITLE)
        except SqueezeError as e:
            logger.warning("Unable to read current_title field: %s", e)
            return ""

    async def _assemble(self, session: SqueezeSession, player_id: PlayerId) -> Track:
        metadata = select_metadata(await self._current_title(session, player_id))

        values: dict[str, Any] = {}
        for name in _TRACK_FIELDS:
            accessor = getattr(metadata, name)
            try:
                values[name] = await accessor(session, player_id)
            except SqueezeError as e:
                logger.warning("Unable to read %s field: %s", name, e)

        track = Track(**values)
        logger.debug("Track for player %s: %s", player_id, track)
        return track

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    async def listen(self) -> None:
        """Follow track change notifications until the server disconnects.

        Each notification is handled before the next line is read, so
        Tracks are queued in notification order.

        Raises:
            SqueezeConnectionError: If the connection cannot be opened, the
                "listen" command fails, or the socket errors.
        """
        async with SqueezeSession(self.host, self.port) as session:
            await session.send(LISTEN_COMMAND)
            logger.info("Listening for events from %s", session.address)

            while True:
                try:
                    line = await session.read_line()
                except SqueezeConnectionClosed as e:
                    logger.debug("Connection to server closed: %s", e)
                    break
                except ValueError as e:
                    logger.error("Unable to read event: %s", e)
                    continue

                await self._handle_event(line)

    async def _handle_event(self, line: str) -> None:
        player_id = parse_notification(line)
        if player_id is None:
            return

        logger.info("New event: %s", line)
        track = await self.current_track(player_id)
        self._push(track)

    # -------------------------------------------------------------------------
    # Output stream
    # -------------------------------------------------------------------------

    def _push(self, track: Track) -> None:
        if self._closed:
            logger.warning("Track stream closed, dropping track: %s", track)
            return
        self._tracks.put_nowait(track)

    async def tracks(self) -> AsyncIterator[Track]:
        """Iterate over assembled Tracks until the client is closed.

        Tracks queued before close() are still delivered.
        """
        while True:
            track = await self._tracks.get()
            if track is None:
                # Leave the end marker for other consumers
                self._tracks.put_nowait(None)
                return
            yield track

    def close(self) -> None:
        """Close the Track stream. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._tracks.put_nowait(None)
