"""Bridge configuration.

Settings come from command line flags. MQTT settings default to environment
variables so that credentials can stay out of the process arguments:

- MQTT_BROKER: broker URL, e.g. "tcp://mqtt.example.com:1883"
- MQTT_USERNAME / MQTT_PASSWORD: credentials
- MQTT_CLIENT_ID: client identifier (default "lms2mqtt")
- MQTT_QOS: delivery quality, 0, 1 or 2
- MQTT_RETAIN: "true" to publish retained messages
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from urllib.parse import urlparse

from lms2mqtt.api.squeeze.session import DEFAULT_PORT

logger = logging.getLogger(__name__)

DEFAULT_ADDRESS = f"127.0.0.1:{DEFAULT_PORT}"
DEFAULT_BROKER = "tcp://127.0.0.1:1883"
DEFAULT_MQTT_PORT = 1883
DEFAULT_CLIENT_ID = "lms2mqtt"
DEFAULT_RECONNECT_DELAY = 2.0
MAX_RECONNECT_DELAY = 30.0

_BROKER_SCHEMES = frozenset({"tcp", "mqtt"})
_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True)
class MqttSettings:
    """MQTT connection and delivery settings.

    Attributes:
        host: Broker hostname or IP.
        port: Broker port.
        username: Optional username.
        password: Optional password.
        client_id: MQTT client identifier.
        qos: Delivery quality (0, 1 or 2).
        retain: Publish retained messages.
    """

    host: str = "127.0.0.1"
    port: int = DEFAULT_MQTT_PORT
    username: str = ""
    password: str = ""
    client_id: str = DEFAULT_CLIENT_ID
    qos: int = 0
    retain: bool = False

    def __post_init__(self) -> None:
        if self.qos not in (0, 1, 2):
            raise ValueError(f"Invalid MQTT QoS {self.qos}, expected 0, 1 or 2")


@dataclass(frozen=True)
class BridgeConfig:
    """Complete bridge configuration.

    Attributes:
        server_host: Media server hostname or IP.
        server_port: Media server CLI port.
        topic: MQTT topic the tracks are published to.
        mqtt: MQTT settings.
        debug: Enable debug logs.
        reconnect_delay: Initial delay before listening again after the
            server connection ends, in seconds; 0 disables reconnection.
    """

    server_host: str
    server_port: int
    topic: str
    mqtt: MqttSettings = field(default_factory=MqttSettings)
    debug: bool = False
    reconnect_delay: float = DEFAULT_RECONNECT_DELAY

    @property
    def log_level(self) -> int:
        """Return the logging level selected by the debug flag."""
        return logging.DEBUG if self.debug else logging.INFO


def parse_address(address: str, default_port: int = DEFAULT_PORT) -> tuple[str, int]:
    """Parse a "host:port" server address.

    Args:
        address: Address to parse; the port is optional.
        default_port: Port used when the address has none.

    Returns:
        Tuple of (host, port).

    Raises:
        ValueError: If the host is empty or the port is not a valid number.
    """
    host, sep, port_str = address.strip().rpartition(":")
    if not sep:
        host, port_str = port_str, ""
    if not host:
        raise ValueError(f"Missing host in address '{address}'")
    if not port_str:
        return host, default_port

    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f"Invalid port in address '{address}'") from None
    if not 0 < port < 65536:
        raise ValueError(f"Port out of range in address '{address}'")
    return host, port


def parse_broker(url: str) -> tuple[str, int]:
    """Parse an MQTT broker URL such as "tcp://mqtt.example.com:1883".

    Returns:
        Tuple of (host, port).

    Raises:
        ValueError: If the scheme is not supported or the host is missing.
    """
    if "://" not in url:
        url = f"tcp://{url}"
    parsed = urlparse(url)
    if parsed.scheme not in _BROKER_SCHEMES:
        raise ValueError(f"Unsupported broker scheme '{parsed.scheme}' in '{url}'")
    if not parsed.hostname:
        raise ValueError(f"Missing host in broker '{url}'")
    try:
        port = parsed.port or DEFAULT_MQTT_PORT
    except ValueError:
        raise ValueError(f"Invalid port in broker '{url}'") from None
    return parsed.hostname, port


def parse_bool(value: str) -> bool:
    """Parse a boolean environment value."""
    return value.strip().lower() in _TRUE_VALUES


def mqtt_defaults(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return MQTT option defaults read from the environment.

    Args:
        environ: Environment to read, os.environ if None.

    Returns:
        Dict of option name to raw default value.
    """
    env = os.environ if environ is None else environ
    return {
        "broker": env.get("MQTT_BROKER", DEFAULT_BROKER),
        "username": env.get("MQTT_USERNAME", ""),
        "password": env.get("MQTT_PASSWORD", ""),
        "client_id": env.get("MQTT_CLIENT_ID", DEFAULT_CLIENT_ID),
        "qos": env.get("MQTT_QOS", "0"),
        "retain": env.get("MQTT_RETAIN", "false"),
    }
