"""Test fixtures for lms2mqtt tests."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import suppress

import pytest


class FakeSqueezeServer:
    """In-process Squeezebox CLI server.

    Answers "<playerid> <field> ?" queries from raw_track, whose values are
    sent verbatim (already percent-encoded). Fields listed in absent are
    answered without a value token. Fields listed in delays are answered
    after that many seconds. Connections that sent "listen 1" receive the
    lines passed to notify().
    """

    def __init__(self) -> None:
        self.raw_track: dict[str, str] = {}
        self.absent: set[str] = set()
        self.delays: dict[str, float] = {}
        self.requests: list[str] = []
        self.listening = asyncio.Event()
        self._server: asyncio.Server | None = None
        self._port = 0
        self._listeners: list[asyncio.StreamWriter] = []

    @property
    def host(self) -> str:
        """Return the server host."""
        return "127.0.0.1"

    @property
    def port(self) -> int:
        """Return the port assigned by the OS."""
        return self._port

    def queries(self, field: str) -> list[str]:
        """Return the received queries for one field."""
        return [r for r in self.requests if r.split(" ")[1:2] == [field]]

    async def start(self) -> None:
        """Start serving on a random port."""
        self._server = await asyncio.start_server(self._handle, self.host, 0)
        self._port = self._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        """Close every connection and stop serving."""
        await self.disconnect_listeners()
        if self._server:
            self._server.close()
            with suppress(TimeoutError):
                await asyncio.wait_for(self._server.wait_closed(), timeout=1.0)

    async def notify(self, line: str) -> None:
        """Push one line to every listening connection."""
        for writer in self._listeners:
            writer.write(f"{line}\r\n".encode())
            await writer.drain()

    async def disconnect_listeners(self) -> None:
        """Close the listening connections (clients see end of stream)."""
        listeners, self._listeners = self._listeners, []
        self.listening.clear()
        for writer in listeners:
            writer.close()
            with suppress(OSError):
                await writer.wait_closed()

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            while True:
                raw = await reader.readline()
                if not raw:
                    break
                line = raw.decode().rstrip("\r\n")
                self.requests.append(line)

                if line == "listen 1":
                    self._listeners.append(writer)
                    self.listening.set()
                    continue

                args = line.split(" ")
                player = args[0]
                action = args[1] if len(args) > 1 else ""
                if action in self.delays:
                    await asyncio.sleep(self.delays[action])
                if action in self.absent:
                    response = f"{player} {action}"
                else:
                    response = f"{player} {action} {self.raw_track.get(action, '')}"
                writer.write(f"{response}\r\n".encode())
                await writer.drain()
        except OSError:
            pass
        finally:
            writer.close()


@pytest.fixture
async def squeeze_server() -> AsyncGenerator[FakeSqueezeServer, None]:
    """Fixture providing a running fake Squeezebox CLI server."""
    server = FakeSqueezeServer()
    await server.start()
    yield server
    await server.stop()
