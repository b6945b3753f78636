"""Squeezebox CLI client module.

This module provides an async client for the Logitech Media Server command
line interface: it listens for track change notifications and reads the
metadata of the new track.

Example:
    from lms2mqtt.api.squeeze import SqueezeClient

    client = SqueezeClient("192.168.1.100")
    track = await client.current_track(player_id)
"""

from lms2mqtt.api.squeeze.client import SqueezeClient
from lms2mqtt.api.squeeze.metadata import GenericMetadata, RadioFranceMetadata, select_metadata
from lms2mqtt.api.squeeze.protocol import (
    ProtocolDecodeError,
    ProtocolValueError,
    SqueezeConnectionClosed,
    SqueezeConnectionError,
    SqueezeError,
)
from lms2mqtt.api.squeeze.session import SqueezeSession
from lms2mqtt.api.squeeze.types import PlayerId, RawField, Track

__all__ = [
    "SqueezeClient",
    "SqueezeSession",
    "GenericMetadata",
    "RadioFranceMetadata",
    "select_metadata",
    "SqueezeError",
    "SqueezeConnectionError",
    "SqueezeConnectionClosed",
    "ProtocolDecodeError",
    "ProtocolValueError",
    "PlayerId",
    "RawField",
    "Track",
]
