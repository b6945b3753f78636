"""Bridge between a Logitech Media Server and an MQTT bus."""

__version__ = "0.1.0"
