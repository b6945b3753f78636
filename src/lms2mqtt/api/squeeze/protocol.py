"""Squeezebox CLI protocol parsing utilities.

The Logitech Media Server command line interface is a line-based text protocol:
- Queries are sent as "<playerid> <field> ?" lines
- Responses echo the query with the "?" replaced by the value:
  "<playerid> <field> <value>"
- Values are percent-encoded, so a response never contains more than
  three space-separated tokens
- After "listen 1", the server also pushes unsolicited notification lines
  such as "<playerid> playlist newsong <title> <index>"

Reference: https://lyrion.org/reference/cli/
"""

import logging
import re
from urllib.parse import unquote_plus

from lms2mqtt.api.squeeze.types import PlayerId, RawField

logger = logging.getLogger(__name__)


class SqueezeError(Exception):
    """Base class for Squeezebox CLI errors."""


class SqueezeConnectionError(SqueezeError):
    """Cannot establish or keep the connection to the server."""


class SqueezeConnectionClosed(SqueezeConnectionError):
    """The server closed the connection (end of stream)."""


class ProtocolDecodeError(SqueezeError):
    """A response value is not valid percent-encoded text."""

    def __init__(self, raw_value: str, reason: str = "invalid escape sequence") -> None:
        self.raw_value = raw_value
        super().__init__(f'unable to unescape "{raw_value}": {reason}')


class ProtocolValueError(SqueezeError):
    """A decoded value is not a number."""

    def __init__(self, value: str, expected: str) -> None:
        self.value = value
        super().__init__(f'unable to parse {expected} value "{value}"')


# Field names understood by the "<playerid> <field> ?" query
FIELD_ARTIST = "artist"
FIELD_ALBUM = "album"
FIELD_TITLE = "title"
FIELD_GENRE = "genre"
FIELD_YEAR = "year"
FIELD_DURATION = "duration"
FIELD_TIME = "time"
FIELD_CURRENT_TITLE = "current_title"

LISTEN_COMMAND = "listen 1\n"

# Notification tokens announcing a track or metadata change
NOTIFICATION_MARKERS = frozenset({"newmetadata", "newsong"})

ALBUM_YEAR_SEPARATOR = "/"

# A "%" not followed by two hex digits
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")

# Plain ASCII decimal, no digit group underscores
_INTEGER = re.compile(r"[+-]?[0-9]+")


def strip_line(raw: str) -> str:
    """Remove the trailing line terminator (LF or CRLF)."""
    return raw.rstrip("\r\n")


def format_query(player_id: str, field: str) -> str:
    """Format a field query line.

    Args:
        player_id: Player to query, used verbatim.
        field: Field name (artist, album, ...).

    Returns:
        Query line including the CRLF terminator.
    """
    return f"{player_id} {field} ?\r\n"


def split_response(line: str) -> RawField:
    """Tokenize a response line.

    Args:
        line: Response line, with or without its terminator.

    Returns:
        RawField whose payload is None if the line has fewer than 3 tokens.
    """
    tokens = strip_line(line).split(" ")
    player_id = tokens[0]
    command = tokens[1] if len(tokens) > 1 else ""
    payload = tokens[2] if len(tokens) > 2 else None
    return RawField(player_id=player_id, command=command, payload=payload)


def unescape(raw_value: str) -> str:
    """Percent-decode a protocol token.

    Raises:
        ProtocolDecodeError: If the token holds a malformed escape or
            does not decode to UTF-8 text.
    """
    if _BAD_ESCAPE.search(raw_value):
        raise ProtocolDecodeError(raw_value)
    try:
        return unquote_plus(raw_value, errors="strict")
    except UnicodeDecodeError as e:
        raise ProtocolDecodeError(raw_value, str(e)) from e


def parse_int(value: str) -> int:
    """Parse a decoded value as an integer.

    Raises:
        ProtocolValueError: If the value is not an integer.
    """
    text = value.strip()
    if not _INTEGER.fullmatch(text):
        raise ProtocolValueError(value, "integer")
    return int(text)


def parse_float(value: str) -> float:
    """Parse a decoded value as a float.

    Raises:
        ProtocolValueError: If the value is not a number.
    """
    text = value.strip()
    if "_" in text or not text.isascii():
        raise ProtocolValueError(value, "float")
    try:
        return float(text)
    except ValueError:
        raise ProtocolValueError(value, "float") from None


def decode_string(line: str, field: str) -> str:
    """Decode a string field from a response line.

    Args:
        line: Response line.
        field: Name of the queried field, for diagnostics.

    Returns:
        The decoded value, or "" if the response carried none.

    Raises:
        ProtocolDecodeError: If the value cannot be percent-decoded.
    """
    raw = split_response(line)
    if raw.payload is None:
        logger.debug("No %s metadata for current track", field)
        return ""
    return unescape(raw.payload)


def decode_int(line: str, field: str) -> int:
    """Decode an integer field, 0 if absent or not numeric.

    Raises:
        ProtocolDecodeError: If the value cannot be percent-decoded.
    """
    value = decode_string(line, field)
    if not value:
        return 0
    try:
        return parse_int(value)
    except ProtocolValueError as e:
        logger.debug("Unknown %s: %s", field, e)
        return 0


def decode_float(line: str, field: str) -> float:
    """Decode a float field, 0.0 if absent or not numeric.

    Raises:
        ProtocolDecodeError: If the value cannot be percent-decoded.
    """
    value = decode_string(line, field)
    if not value:
        return 0.0
    try:
        return parse_float(value)
    except ProtocolValueError as e:
        logger.debug("Unknown %s: %s", field, e)
        return 0.0


def split_album_year(album: str) -> tuple[str, int | None]:
    """Split an "<album> / <year>" value on its last separator.

    Args:
        album: Decoded album value.

    Returns:
        Tuple of (album name, year). The year is None if there is no
        separator or the text after the last one is not an integer.
    """
    if ALBUM_YEAR_SEPARATOR not in album:
        return album.strip(), None

    name, _, tail = album.rpartition(ALBUM_YEAR_SEPARATOR)
    try:
        year: int | None = parse_int(tail)
    except ProtocolValueError:
        logger.debug("No year at the end of album value '%s'", album)
        year = None
    return name.strip(), year


def parse_notification(line: str) -> PlayerId | None:
    """Extract the player id from a track-change notification.

    Args:
        line: Line read from a listening connection.

    Returns:
        The player id if the line announces new metadata or a new song,
        None for any other line.
    """
    tokens = strip_line(line).split()
    if len(tokens) < 2 or NOTIFICATION_MARKERS.isdisjoint(tokens[1:]):
        logger.debug("Ignoring event: %s", line)
        return None
    return PlayerId(tokens[0])
