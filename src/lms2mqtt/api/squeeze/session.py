"""One connection to the Squeezebox CLI.

A session owns a single TCP stream and performs query/response round
trips on it. Sessions are never shared between track assemblies; each
assembly opens its own.

Example:
    async with SqueezeSession("192.168.1.100") as session:
        line = await session.query("artist", player_id)
"""

import asyncio
import logging
from typing import Self

from lms2mqtt.api.squeeze.protocol import (
    SqueezeConnectionClosed,
    SqueezeConnectionError,
    format_query,
    strip_line,
)

logger = logging.getLogger(__name__)

DEFAULT_PORT = 9090
CONNECT_TIMEOUT = 5.0
COMMAND_TIMEOUT = 10.0


class SqueezeSession:
    """Async line-oriented connection to a Logitech Media Server.

    Attributes:
        host: Server hostname or IP.
        port: CLI port (default 9090).
        timeout: Bound on one query round trip, in seconds.
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        timeout: float = COMMAND_TIMEOUT,
    ) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout

        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._lock = asyncio.Lock()

    @property
    def address(self) -> str:
        """Return the "host:port" address of the server."""
        return f"{self.host}:{self.port}"

    @property
    def is_connected(self) -> bool:
        """Return True if connected to the server."""
        return self._writer is not None and not self._writer.is_closing()

    async def connect(self) -> None:
        """Open the connection.

        Raises:
            SqueezeConnectionError: If connection fails.
        """
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=CONNECT_TIMEOUT,
            )
        except TimeoutError as e:
            raise SqueezeConnectionError(f"Connection to {self.address} timed out") from e
        except OSError as e:
            raise SqueezeConnectionError(f"Unable to connect to {self.address}: {e}") from e
        logger.debug("Connected to %s", self.address)

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if not self._writer:
            return
        try:
            self._writer.close()
            await self._writer.wait_closed()
        except (OSError, TimeoutError, asyncio.CancelledError) as e:
            logger.debug("Expected error while closing connection to %s: %s", self.address, e)
        except Exception as e:  # noqa: BLE001
            logger.warning("Unable to close connection to %s: %s", self.address, e)
        finally:
            self._writer = None
            self._reader = None

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, *_: object) -> None:
        """Async context manager exit."""
        await self.close()

    async def send(self, text: str) -> None:
        """Write raw text to the server.

        Raises:
            SqueezeConnectionError: If not connected or the write fails.
        """
        if not self._writer:
            raise SqueezeConnectionError("Not connected")
        try:
            self._writer.write(text.encode("utf-8"))
            await self._writer.drain()
        except OSError as e:
            raise SqueezeConnectionError(f"Unable to write to {self.address}: {e}") from e

    async def read_line(self) -> str:
        """Read one line, without its terminator.

        Raises:
            SqueezeConnectionClosed: If the server closed the connection.
            SqueezeConnectionError: If not connected or the read fails.
            ValueError: If the line exceeds the stream buffer limit.
        """
        if not self._reader:
            raise SqueezeConnectionError("Not connected")
        try:
            raw = await self._reader.readline()
        except OSError as e:
            raise SqueezeConnectionError(f"Unable to read from {self.address}: {e}") from e
        if not raw:
            raise SqueezeConnectionClosed(f"Connection closed by {self.address}")
        return strip_line(raw.decode("utf-8", errors="replace"))

    async def query(self, field: str, player_id: str) -> str:
        """Query one field of the current track and return the raw response.

        Args:
            field: Field name (artist, album, ...).
            player_id: Player to query.

        Returns:
            The response line without its terminator.

        Raises:
            SqueezeConnectionError: If the round trip fails or times out.
                After a timeout or an oversized response the session is
                closed, since a late reply would answer the next query.
        """
        async with self._lock:
            command = format_query(player_id, field)
            logger.debug("Squeeze query: %s", command.rstrip())
            await self.send(command)
            try:
                line = await asyncio.wait_for(self.read_line(), timeout=self.timeout)
            except TimeoutError as e:
                await self.close()
                raise SqueezeConnectionError(f"No {field} response from {self.address}") from e
            except ValueError as e:
                await self.close()
                raise SqueezeConnectionError(f"Oversized {field} response: {e}") from e
            logger.debug("Squeeze response: %s", line)
            return line
