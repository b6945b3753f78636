"""Core application layer.

This module contains the application logic that connects the media server
client to the MQTT bus.

Classes:
    Bridge: Runs the listener and publishes the resulting Tracks.
    BridgeConfig: Bridge configuration.
    MqttPublisher: Publishes Tracks as JSON messages.
"""

from lms2mqtt.core.bridge import Bridge
from lms2mqtt.core.config import BridgeConfig, MqttSettings
from lms2mqtt.core.publisher import MqttPublisher

__all__ = ["Bridge", "BridgeConfig", "MqttSettings", "MqttPublisher"]
