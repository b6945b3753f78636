"""Tests for SqueezeClient."""

import asyncio
import logging

import pytest

from lms2mqtt.api.squeeze import PlayerId, SqueezeClient, SqueezeConnectionError, Track

PLAYER = PlayerId("player-id")


@pytest.fixture
def client(squeeze_server) -> SqueezeClient:
    """Fixture providing a client for the fake server."""
    return SqueezeClient(squeeze_server.host, squeeze_server.port, timeout=2.0)


async def start_listener(client: SqueezeClient, squeeze_server) -> asyncio.Task[None]:
    """Start client.listen() and wait until the server registered it."""
    listener = asyncio.create_task(client.listen())
    await asyncio.wait_for(squeeze_server.listening.wait(), timeout=2.0)
    return listener


async def collect(client: SqueezeClient) -> list[Track]:
    """Close the client and return every queued Track."""
    client.close()
    return [track async for track in client.tracks()]


class TestSqueezeClientBasics:
    """Tests for client initialization and stream closing."""

    def test_initialization(self) -> None:
        """Test default values."""
        client = SqueezeClient("192.168.1.100")
        assert client.host == "192.168.1.100"
        assert client.port == 9090
        assert client.address == "192.168.1.100:9090"
        assert not client.is_closed

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self) -> None:
        """Test that close() can be called twice."""
        client = SqueezeClient("192.168.1.100")
        client.close()
        client.close()
        assert client.is_closed
        assert await collect(client) == []

    @pytest.mark.asyncio
    async def test_queued_tracks_survive_close(self) -> None:
        """Test that Tracks pushed before close() are delivered."""
        client = SqueezeClient("192.168.1.100")
        client._push(Track(title="Higher Ground"))
        assert await collect(client) == [Track(title="Higher Ground")]

    @pytest.mark.asyncio
    async def test_push_after_close_is_dropped(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that a closed stream drops Tracks with a warning."""
        client = SqueezeClient("192.168.1.100")
        client.close()
        with caplog.at_level(logging.WARNING):
            client._push(Track(title="Higher Ground"))
        assert "dropping track" in caplog.text
        assert await collect(client) == []

    @pytest.mark.asyncio
    async def test_every_consumer_stops(self) -> None:
        """Test that all consumers end after close()."""
        client = SqueezeClient("192.168.1.100")

        async def consume() -> list[Track]:
            return [track async for track in client.tracks()]

        consumers = [asyncio.create_task(consume()) for _ in range(2)]
        await asyncio.sleep(0)
        client.close()
        results = await asyncio.wait_for(asyncio.gather(*consumers), timeout=2.0)
        assert results == [[], []]


class TestCurrentTrack:
    """Tests for track assembly."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("raw_track", "expected"),
        [
            (
                {
                    "current_title": "fipelectro-midfi.mp3",
                    "artist": "Tenderlonious",
                    "album": "On%20flute%20%2F%202019",
                    "title": "In%20A%20Sentimental%20Mood",
                    "genre": "",
                    "year": "%3f",
                    "time": "272",
                    "duration": "866",
                },
                Track(
                    artist="Tenderlonious",
                    album="On flute",
                    title="In A Sentimental Mood",
                    genre="",
                    year=2019,
                    elapsed_time=272,
                    duration=866,
                ),
            ),
            (
                {
                    "current_title": "FIP",
                    "artist": "Little%20Richard",
                    "album": "Little%20Richard%20%2F%201956",
                    "title": "I%20brought%20it%20all%20on%20myself",
                    "genre": "",
                    "year": "%3F",
                    "time": "171",
                    "duration": "33.761625246048",
                },
                Track(
                    artist="Little Richard",
                    album="Little Richard",
                    title="I brought it all on myself",
                    genre="",
                    year=1956,
                    elapsed_time=171,
                    duration=33.761625246048,
                ),
            ),
        ],
    )
    async def test_net_radio(self, squeeze_server, client, raw_track, expected) -> None:
        """Test Radio France tracks."""
        squeeze_server.raw_track = raw_track
        assert await client.current_track(PLAYER) == expected

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("current_title", "raw_album", "expected_album", "expected_year"),
        [
            ("other", "Innervisions%20%2F%201973", "Innervisions / 1973", 0),
            ("FIP", "Innervisions%20%2F%201973", "Innervisions", 1973),
            ("FIP", "BOF%20%2F%20The%20irishman%20%2F%201959", "BOF / The irishman", 1959),
        ],
    )
    async def test_album_and_year(
        self,
        squeeze_server,
        client,
        current_title: str,
        raw_album: str,
        expected_album: str,
        expected_year: int,
    ) -> None:
        """Test album/year extraction per strategy."""
        squeeze_server.raw_track = {"current_title": current_title, "album": raw_album}
        track = await client.current_track(PLAYER)
        assert track.album == expected_album
        assert track.year == expected_year

    @pytest.mark.asyncio
    async def test_query_sequence(self, squeeze_server, client) -> None:
        """Test that current_title is queried first on one connection."""
        squeeze_server.raw_track = {"current_title": "other"}
        await client.current_track(PLAYER)
        fields = [request.split(" ")[1] for request in squeeze_server.requests]
        assert fields[0] == "current_title"
        assert sorted(fields[1:]) == sorted(
            ["artist", "album", "title", "genre", "year", "duration", "time"]
        )

    @pytest.mark.asyncio
    async def test_field_failure_keeps_other_fields(
        self, squeeze_server, client, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test that one undecodable field is left empty."""
        squeeze_server.raw_track = {
            "current_title": "other",
            "artist": "100%",
            "title": "Higher%20Ground",
            "year": "1973",
        }
        with caplog.at_level(logging.WARNING):
            track = await client.current_track(PLAYER)
        assert track == Track(title="Higher Ground", year=1973)
        assert "artist" in caplog.text

    @pytest.mark.asyncio
    async def test_slow_field_does_not_shift_later_fields(self, squeeze_server) -> None:
        """Test that a timed out field never receives another field's value."""
        squeeze_server.raw_track = {
            "current_title": "other",
            "artist": "Stevie%20Wonder",
            "album": "Innervisions",
            "title": "Higher%20Ground",
            "genre": "Soul",
            "year": "1973",
            "duration": "222",
            "time": "12",
        }
        squeeze_server.delays = {"genre": 0.3}
        client = SqueezeClient(squeeze_server.host, squeeze_server.port, timeout=0.1)

        track = await client.current_track(PLAYER)

        assert track == Track(artist="Stevie Wonder", album="Innervisions", title="Higher Ground")
        assert squeeze_server.queries("year") == []

    @pytest.mark.asyncio
    async def test_current_title_failure(self, squeeze_server, client) -> None:
        """Test that an unreadable current_title selects the generic strategy."""
        squeeze_server.raw_track = {"current_title": "%zz", "album": "Innervisions%20%2F%201973"}
        track = await client.current_track(PLAYER)
        assert track.album == "Innervisions / 1973"

    @pytest.mark.asyncio
    async def test_absent_fields(self, squeeze_server, client) -> None:
        """Test that fields without value are zero."""
        squeeze_server.absent = {
            "current_title",
            "artist",
            "album",
            "title",
            "genre",
            "year",
            "duration",
            "time",
        }
        assert await client.current_track(PLAYER) == Track()

    @pytest.mark.asyncio
    async def test_connection_failure(self, squeeze_server, caplog: pytest.LogCaptureFixture) -> None:
        """Test that an unreachable server yields an empty Track."""
        await squeeze_server.stop()
        client = SqueezeClient(squeeze_server.host, squeeze_server.port)
        with caplog.at_level(logging.ERROR):
            track = await client.current_track(PLAYER)
        assert track == Track()
        assert PLAYER in caplog.text


class TestListen:
    """Tests for the notification listener."""

    @pytest.mark.asyncio
    async def test_sends_listen_command(self, squeeze_server, client) -> None:
        """Test that notifications are enabled once."""
        listener = await start_listener(client, squeeze_server)
        await squeeze_server.disconnect_listeners()
        await asyncio.wait_for(listener, timeout=2.0)
        assert squeeze_server.requests == ["listen 1"]

    @pytest.mark.asyncio
    async def test_new_song_emits_track(self, squeeze_server, client) -> None:
        """Test that a new song notification produces a Track."""
        squeeze_server.raw_track = {
            "current_title": "FIP",
            "artist": "Little%20Richard",
            "album": "Little%20Richard%20%2F%201956",
        }
        listener = await start_listener(client, squeeze_server)
        await squeeze_server.notify("player-id playlist newsong Little%20Richard 3")

        track = await asyncio.wait_for(anext(client.tracks()), timeout=2.0)
        assert track.artist == "Little Richard"
        assert track.album == "Little Richard"
        assert track.year == 1956
        assert squeeze_server.queries("current_title") == ["player-id current_title ?"]

        await squeeze_server.disconnect_listeners()
        await asyncio.wait_for(listener, timeout=2.0)

    @pytest.mark.asyncio
    async def test_other_lines_ignored(self, squeeze_server, client) -> None:
        """Test that only change notifications produce Tracks, in order."""
        listener = await start_listener(client, squeeze_server)

        squeeze_server.raw_track = {"title": "First"}
        await squeeze_server.notify("player-id mixer volume 50")
        await squeeze_server.notify("player-id playlist pause 1")
        await squeeze_server.notify("p1 playlist newsong First 1")
        await squeeze_server.notify("p2 playlist newmetadata")
        await squeeze_server.disconnect_listeners()

        await asyncio.wait_for(listener, timeout=2.0)
        tracks = await collect(client)
        assert [track.title for track in tracks] == ["First", "First"]
        assert [r.split(" ")[0] for r in squeeze_server.queries("title")] == ["p1", "p2"]

    @pytest.mark.asyncio
    async def test_end_of_stream_returns(self, squeeze_server, client) -> None:
        """Test that the listener returns normally when the server disconnects."""
        listener = await start_listener(client, squeeze_server)
        await squeeze_server.disconnect_listeners()
        assert await asyncio.wait_for(listener, timeout=2.0) is None

    @pytest.mark.asyncio
    async def test_read_error_keeps_listening(
        self, squeeze_server, client, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test that an unreadable line is logged and the next one handled."""
        squeeze_server.raw_track = {"title": "After"}
        listener = await start_listener(client, squeeze_server)

        with caplog.at_level(logging.ERROR):
            await squeeze_server.notify("x" * 70_000)
            await squeeze_server.notify("player-id playlist newsong After 2")
            track = await asyncio.wait_for(anext(client.tracks()), timeout=2.0)

        assert track.title == "After"
        assert "Unable to read event" in caplog.text
        assert not listener.done()

        await squeeze_server.disconnect_listeners()
        await asyncio.wait_for(listener, timeout=2.0)

    @pytest.mark.asyncio
    async def test_connection_failure_raises(self, squeeze_server) -> None:
        """Test that an unreachable server is reported to the caller."""
        await squeeze_server.stop()
        client = SqueezeClient(squeeze_server.host, squeeze_server.port)
        with pytest.raises(SqueezeConnectionError):
            await client.listen()

    @pytest.mark.asyncio
    async def test_tracks_dropped_after_close(self, squeeze_server, client) -> None:
        """Test that a closed client keeps listening but drops Tracks."""
        listener = await start_listener(client, squeeze_server)
        client.close()
        await squeeze_server.notify("player-id playlist newsong Title 1")
        await squeeze_server.disconnect_listeners()
        await asyncio.wait_for(listener, timeout=2.0)
        assert squeeze_server.queries("current_title") == ["player-id current_title ?"]
        assert [track async for track in client.tracks()] == []
