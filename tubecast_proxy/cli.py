"""
TubeCast Proxy CLI entry point.

Provides command-line interface for running TubeCast Proxy.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from tubecast_proxy import __version__
from tubecast_proxy.config import Config, ConfigError, load_config
from tubecast_proxy.app import TubeCastProxy
from tubecast_proxy.backends import DeviceNotFoundError

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_NETWORK_ERROR = 3


def setup_logging(level: str = "info") -> None:
    """Configure logging to stdout."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
        force=True,
    )


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="tubecast-proxy",
        description="Cast-session receiver that plays downloaded audio on a Sonos speaker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  tubecast-proxy --config config.yaml
  tubecast-proxy --sonos-ip 192.168.1.50 --metube-url http://192.168.1.10:8081

Environment Variables:
  SONOS_DEVICE_IP, SONOS_DEVICE_PORT, DEVICE_NAME, LOG_LEVEL
  METUBE_API_BASE_URL, METUBE_AUDIO_URL
  PLAYLIST_DOWNLOAD_INTERVAL, PLAYLIST_MAX_AHEAD_DOWNLOAD
  TUBECAST_DOWNLOAD_QUALITY, TUBECAST_DOWNLOAD_FORMAT
  TUBECAST_POLL_INTERVAL, TUBECAST_POLL_ATTEMPTS
  TUBECAST_HTTP_PORT, TUBECAST_ADVERTISE
""",
    )

    # General
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    # Configuration
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("./config.yaml"),
        metavar="PATH",
        help="Path to config file (default: ./config.yaml)",
    )

    # Device
    device_group = parser.add_argument_group("Device")
    device_group.add_argument(
        "--name",
        metavar="TEXT",
        help="Receiver name shown to senders",
    )

    # Sonos
    sonos_group = parser.add_argument_group("Sonos")
    sonos_group.add_argument(
        "--sonos-ip",
        metavar="TEXT",
        help="Sonos speaker IP address",
    )
    sonos_group.add_argument(
        "--sonos-port",
        type=int,
        metavar="INT",
        help="Sonos speaker port (default: 1400)",
    )

    # MeTube
    metube_group = parser.add_argument_group("MeTube")
    metube_group.add_argument(
        "--metube-url",
        metavar="URL",
        help="MeTube API base URL (default: http://localhost:8081)",
    )
    metube_group.add_argument(
        "--audio-url",
        metavar="URL",
        help="Base URL of downloaded files (default: <metube-url>/audio_download)",
    )

    # Server
    server_group = parser.add_argument_group("Server")
    server_group.add_argument(
        "--http-port",
        type=int,
        metavar="INT",
        help="Session server port (default: 8099)",
    )
    server_group.add_argument(
        "--bind",
        metavar="TEXT",
        help="Bind address (default: 0.0.0.0)",
    )
    server_group.add_argument(
        "--no-advertise",
        action="store_true",
        help="Do not announce the receiver via mDNS",
    )

    # Logging
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        metavar="LEVEL",
        help="Log level: debug, info, warning, error",
    )

    return parser.parse_args(argv)


def _set_nested(d: dict, path: tuple, value: Any) -> None:
    """Set a nested dictionary value."""
    for key in path[:-1]:
        d = d.setdefault(key, {})
    d[path[-1]] = value


def args_to_dict(args: argparse.Namespace) -> dict:
    """Convert argparse namespace to nested config dict."""
    result: dict = {}

    # Map CLI args to config paths
    mappings = {
        "name": ("device", "name"),
        "sonos_ip": ("sonos", "ip"),
        "sonos_port": ("sonos", "port"),
        "metube_url": ("metube", "api_url"),
        "audio_url": ("metube", "audio_url"),
        "http_port": ("server", "http_port"),
        "bind": ("server", "bind_address"),
        "log_level": ("logging", "level"),
    }

    for arg_name, path in mappings.items():
        value = getattr(args, arg_name, None)
        if value is None:
            continue
        _set_nested(result, path, value)

    # Only override the advertise setting when explicitly disabled
    if getattr(args, "no_advertise", False):
        _set_nested(result, ("server", "advertise"), False)

    return result


def log_config(config: Config) -> None:
    """Log configuration summary."""
    logger.info(f"Receiver: {config.device.name}")
    logger.info(f"Sonos target: {config.sonos.ip}:{config.sonos.port}")
    logger.info(f"MeTube API: {config.metube.api_url}")
    logger.info(f"Audio files: {config.metube.effective_audio_url}")
    logger.info(f"Session server: {config.server.bind_address}:{config.server.http_port}")
    logger.info(
        f"Prefetch: every {config.playlist.prefetch_interval}s, "
        f"{config.playlist.max_ahead} tracks ahead"
    )
    if not config.server.advertise:
        logger.info("mDNS announcement: disabled")


def run_serve(args: argparse.Namespace) -> int:
    """
    Run the receiver.

    Args:
        args: Parsed arguments

    Returns:
        Exit code
    """
    # Setup basic logging first (will be reconfigured after config load)
    setup_logging("info")

    logger.info(f"TubeCast Proxy v{__version__}")

    try:
        cli_config = args_to_dict(args)
        config = load_config(args.config, cli_config)

        # Reconfigure logging with loaded level
        setup_logging(config.logging.level)

        log_config(config)

    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR

    try:
        app = TubeCastProxy(config)
        asyncio.run(app.run())
        return EXIT_SUCCESS

    except DeviceNotFoundError as e:
        logger.error(f"Device error: {e}")
        return EXIT_NETWORK_ERROR

    except (ConnectionError, OSError) as e:
        logger.error(f"Network error: {e}")
        return EXIT_NETWORK_ERROR

    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_SUCCESS

    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return EXIT_NETWORK_ERROR


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code: 0=success, 1=config error, 3=device/network error
    """
    return run_serve(parse_args(argv))


if __name__ == "__main__":
    sys.exit(main())
