"""Metadata extraction strategies.

A strategy turns field queries into track values. Two strategies share the
same capability set:

- GenericMetadata: one field is one query, decoded as is.
- RadioFranceMetadata: Radio France streams (FIP and its webradios) put the
  release year at the end of the album field, e.g. "Innervisions / 1973".
  Album and year are both derived from that field, falling back to the
  year field when no year is embedded.

The strategy is chosen per track from the "current_title" value with
select_metadata().
"""

import logging
from typing import Protocol

from lms2mqtt.api.squeeze.protocol import (
    FIELD_ALBUM,
    FIELD_ARTIST,
    FIELD_DURATION,
    FIELD_GENRE,
    FIELD_TIME,
    FIELD_TITLE,
    FIELD_YEAR,
    decode_float,
    decode_int,
    decode_string,
    split_album_year,
)
from lms2mqtt.api.squeeze.session import SqueezeSession
from lms2mqtt.api.squeeze.types import PlayerId

logger = logging.getLogger(__name__)

# Case-insensitive "current_title" prefix of Radio France streams
RADIO_FRANCE_MARKER = "fip"


class MetadataStrategy(Protocol):
    """Capability set shared by all metadata strategies."""

    async def artist(self, session: SqueezeSession, player_id: PlayerId) -> str: ...

    async def album(self, session: SqueezeSession, player_id: PlayerId) -> str: ...

    async def title(self, session: SqueezeSession, player_id: PlayerId) -> str: ...

    async def genre(self, session: SqueezeSession, player_id: PlayerId) -> str: ...

    async def year(self, session: SqueezeSession, player_id: PlayerId) -> int: ...

    async def duration(self, session: SqueezeSession, player_id: PlayerId) -> float: ...

    async def elapsed_time(self, session: SqueezeSession, player_id: PlayerId) -> float: ...


class GenericMetadata:
    """Reads every value from its own dedicated field."""

    async def _string(self, session: SqueezeSession, player_id: PlayerId, field: str) -> str:
        return decode_string(await session.query(field, player_id), field)

    async def artist(self, session: SqueezeSession, player_id: PlayerId) -> str:
        return await self._string(session, player_id, FIELD_ARTIST)

    async def album(self, session: SqueezeSession, player_id: PlayerId) -> str:
        return await self._string(session, player_id, FIELD_ALBUM)

    async def title(self, session: SqueezeSession, player_id: PlayerId) -> str:
        return await self._string(session, player_id, FIELD_TITLE)

    async def genre(self, session: SqueezeSession, player_id: PlayerId) -> str:
        return await self._string(session, player_id, FIELD_GENRE)

    async def year(self, session: SqueezeSession, player_id: PlayerId) -> int:
        return decode_int(await session.query(FIELD_YEAR, player_id), FIELD_YEAR)

    async def duration(self, session: SqueezeSession, player_id: PlayerId) -> float:
        return decode_float(await session.query(FIELD_DURATION, player_id), FIELD_DURATION)

    async def elapsed_time(self, session: SqueezeSession, player_id: PlayerId) -> float:
        return decode_float(await session.query(FIELD_TIME, player_id), FIELD_TIME)


class RadioFranceMetadata(GenericMetadata):
    """Recovers the year embedded in Radio France album values.

    The album response is fetched once per instance and shared by album()
    and year(), so create one instance per track.
    """

    def __init__(self) -> None:
        self._album_value: str | None = None

    async def _album_year(self, session: SqueezeSession, player_id: PlayerId) -> tuple[str, int | None]:
        if self._album_value is None:
            self._album_value = await self._string(session, player_id, FIELD_ALBUM)
        logger.debug("Search year in album metadata '%s'", self._album_value)
        return split_album_year(self._album_value)

    async def album(self, session: SqueezeSession, player_id: PlayerId) -> str:
        album, _ = await self._album_year(session, player_id)
        return album

    async def year(self, session: SqueezeSession, player_id: PlayerId) -> int:
        _, year = await self._album_year(session, player_id)
        if year is not None:
            return year
        logger.debug("No year found in album, reading the year field")
        return await super().year(session, player_id)


def is_radio_france(current_title: str) -> bool:
    """Return True if the current title belongs to a Radio France stream."""
    return current_title.lower().startswith(RADIO_FRANCE_MARKER)


def select_metadata(current_title: str) -> MetadataStrategy:
    """Pick the metadata strategy for a track.

    Args:
        current_title: Decoded "current_title" value, "" if unknown.

    Returns:
        A fresh strategy instance.
    """
    if is_radio_france(current_title):
        logger.debug("Radio France stream detected: %s", current_title)
        return RadioFranceMetadata()
    return GenericMetadata()
