"""Main entry point for the lms2mqtt bridge."""

import argparse
import asyncio
import logging
import signal
import sys
from contextlib import suppress

from lms2mqtt.core.bridge import Bridge
from lms2mqtt.core.config import (
    DEFAULT_ADDRESS,
    DEFAULT_RECONNECT_DELAY,
    BridgeConfig,
    MqttSettings,
    mqtt_defaults,
    parse_address,
    parse_bool,
    parse_broker,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser, with MQTT defaults from the environment."""
    env = mqtt_defaults()
    parser = argparse.ArgumentParser(
        prog="lms2mqtt",
        description="Publish the tracks played by a Logitech Media Server on MQTT",
    )
    parser.add_argument("--mqtt-broker", default=env["broker"], help="Broker URL, e.g. tcp://host:1883")
    parser.add_argument("--mqtt-username", default=env["username"], help="Broker username")
    parser.add_argument("--mqtt-password", default=env["password"], help="Broker password")
    parser.add_argument("--mqtt-client-id", default=env["client_id"], help="MQTT client id")
    parser.add_argument(
        "--mqtt-qos",
        type=int,
        choices=(0, 1, 2),
        default=int(env["qos"]) if env["qos"].isdigit() else 0,
        help="Delivery quality of service",
    )
    parser.add_argument(
        "--mqtt-retain",
        action="store_true",
        default=parse_bool(env["retain"]),
        help="Publish retained messages",
    )
    parser.add_argument("--mqtt-topic", required=True, help="Topic the tracks are published to")
    parser.add_argument("--address", default=DEFAULT_ADDRESS, help="The squeezebox server address")
    parser.add_argument(
        "--reconnect-delay",
        type=float,
        default=DEFAULT_RECONNECT_DELAY,
        help="Seconds to wait before listening again after a disconnect (0 to exit instead)",
    )
    parser.add_argument("--debug", action="store_true", help="Display debug logs")
    return parser


def parse_config(argv: list[str]) -> BridgeConfig:
    """Parse command line arguments into a BridgeConfig.

    Exits through argparse with status 2 on invalid arguments.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.reconnect_delay < 0:
        parser.error("--reconnect-delay must not be negative")

    try:
        server_host, server_port = parse_address(args.address)
        mqtt_host, mqtt_port = parse_broker(args.mqtt_broker)
        mqtt = MqttSettings(
            host=mqtt_host,
            port=mqtt_port,
            username=args.mqtt_username,
            password=args.mqtt_password,
            client_id=args.mqtt_client_id,
            qos=args.mqtt_qos,
            retain=args.mqtt_retain,
        )
    except ValueError as e:
        parser.error(str(e))

    return BridgeConfig(
        server_host=server_host,
        server_port=server_port,
        topic=args.mqtt_topic,
        mqtt=mqtt,
        debug=args.debug,
        reconnect_delay=args.reconnect_delay,
    )


def configure_logging(level: int) -> None:
    """Configure process logging at the given level."""
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stdout, force=True)


async def run(config: BridgeConfig) -> int:
    """Run the bridge until it stops or a termination signal arrives."""
    bridge = Bridge(config)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on Windows event loops
        with suppress(NotImplementedError):
            loop.add_signal_handler(sig, bridge.stop)

    logger.info(
        "Bridging %s:%d to topic %s on %s:%d",
        config.server_host,
        config.server_port,
        config.topic,
        config.mqtt.host,
        config.mqtt.port,
    )
    return await bridge.run()


def main(argv: list[str] | None = None) -> int:
    """Run the lms2mqtt application.

    Returns:
        Exit code (0 for success).
    """
    if argv is None:
        argv = sys.argv[1:]
    if not argv:
        build_parser().print_help()
        return 1

    config = parse_config(argv)
    configure_logging(config.log_level)

    try:
        return asyncio.run(run(config))
    except KeyboardInterrupt:
        return 0
    except Exception:
        logger.exception("Unexpected error")
        return 1


if __name__ == "__main__":
    sys.exit(main())
