"""Squeezebox CLI data types.

This module defines frozen dataclasses for the values exchanged with a
Logitech Media Server, following the same patterns as the rest of the API
layer.
"""

from dataclasses import dataclass
from typing import Any, NewType

PlayerId = NewType("PlayerId", str)


@dataclass(frozen=True)
class RawField:
    """One tokenized field response line.

    Attributes:
        player_id: Player id echoed by the server.
        command: Field name echoed by the server.
        payload: Percent-encoded value, or None when the server sent none.
    """

    player_id: str
    command: str
    payload: str | None = None

    @property
    def is_absent(self) -> bool:
        """Return True if the response carried no value."""
        return self.payload is None


@dataclass(frozen=True)
class Track:
    """Normalized metadata of the track playing on one player.

    Every field always exists; an unknown value is left empty or zero.

    Attributes:
        artist: Artist name.
        album: Album name.
        title: Track title.
        genre: Genre tag.
        year: Release year, 0 if unknown.
        elapsed_time: Playback position in seconds.
        duration: Track duration in seconds.
    """

    artist: str = ""
    album: str = ""
    title: str = ""
    genre: str = ""
    year: int = 0
    elapsed_time: float = 0.0
    duration: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON-serializable dict published on the bus."""
        return {
            "Artist": self.artist,
            "Album": self.album,
            "Title": self.title,
            "Genre": self.genre,
            "Year": self.year,
            "CurrentTime": self.elapsed_time,
            "Duration": self.duration,
        }
