"""
TubeCast Proxy Configuration System.

Priority order (highest to lowest):
1. Command-line arguments
2. Environment variables
3. Configuration file (YAML)
4. Default values
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)


# Valid log levels
VALID_LOG_LEVELS = {"debug", "info", "warning", "error"}

# Path appended to the API URL when no explicit audio URL is configured
DEFAULT_AUDIO_PATH = "/audio_download"

# Environment variable mappings
ENV_MAPPINGS = {
    # Device
    "DEVICE_NAME": ("device", "name"),
    # Sonos
    "SONOS_DEVICE_IP": ("sonos", "ip"),
    "SONOS_DEVICE_PORT": ("sonos", "port"),
    # MeTube
    "METUBE_API_BASE_URL": ("metube", "api_url"),
    "METUBE_AUDIO_URL": ("metube", "audio_url"),
    "TUBECAST_DOWNLOAD_QUALITY": ("metube", "quality"),
    "TUBECAST_DOWNLOAD_FORMAT": ("metube", "format"),
    "TUBECAST_POLL_INTERVAL": ("metube", "poll_interval"),
    "TUBECAST_POLL_ATTEMPTS": ("metube", "poll_attempts"),
    # Playlist
    "PLAYLIST_DOWNLOAD_INTERVAL": ("playlist", "prefetch_interval"),
    "PLAYLIST_MAX_AHEAD_DOWNLOAD": ("playlist", "max_ahead"),
    # Server
    "TUBECAST_HTTP_PORT": ("server", "http_port"),
    "TUBECAST_ADVERTISE": ("server", "advertise"),
    # Logging
    "LOG_LEVEL": ("logging", "level"),
}

INT_ENV_VARS = {
    "SONOS_DEVICE_PORT",
    "TUBECAST_POLL_ATTEMPTS",
    "PLAYLIST_MAX_AHEAD_DOWNLOAD",
    "TUBECAST_HTTP_PORT",
}
FLOAT_ENV_VARS = {
    "TUBECAST_POLL_INTERVAL",
    "PLAYLIST_DOWNLOAD_INTERVAL",
}
BOOL_ENV_VARS = {"TUBECAST_ADVERTISE"}


class ConfigError(Exception):
    """Configuration error."""

    pass


@dataclass
class DeviceConfig:
    """Receiver identification shown to senders."""

    name: str = "TubeCast Receiver"


@dataclass
class SonosConfig:
    """Sonos renderer configuration."""

    ip: str = ""
    port: int = 1400


@dataclass
class MeTubeConfig:
    """Download backend configuration."""

    api_url: str = "http://localhost:8081"
    audio_url: str = ""  # Derived from api_url if empty
    quality: str = "best"
    format: str = "mp3"
    poll_interval: float = 0.25  # seconds between history polls
    poll_attempts: int = 240  # 240 * 0.25s = 60s wait bound

    @property
    def effective_audio_url(self) -> str:
        """Base URL that downloaded files are served from."""
        if self.audio_url:
            return self.audio_url.rstrip("/")
        return self.api_url.rstrip("/") + DEFAULT_AUDIO_PATH


@dataclass
class PlaylistConfig:
    """Look-ahead download configuration."""

    prefetch_interval: float = 20.0  # seconds
    max_ahead: int = 10  # items


@dataclass
class ServerConfig:
    """Session server configuration."""

    http_port: int = 8099
    bind_address: str = "0.0.0.0"
    advertise: bool = True  # mDNS announcement of the session server


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class Config:
    """Complete TubeCast Proxy configuration."""

    device: DeviceConfig = field(default_factory=DeviceConfig)
    sonos: SonosConfig = field(default_factory=SonosConfig)
    metube: MeTubeConfig = field(default_factory=MeTubeConfig)
    playlist: PlaylistConfig = field(default_factory=PlaylistConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def validate_port(port: int) -> bool:
    """Validate port number."""
    return 1 <= port <= 65535


def validate_http_url(url: str) -> bool:
    """Check that a URL uses http or https."""
    return url.startswith("http://") or url.startswith("https://")


def validate_config(config: Config) -> None:
    """
    Validate configuration.

    Raises:
        ConfigError: If configuration is invalid
    """
    errors = []

    # Sonos
    if not config.sonos.ip:
        errors.append("Sonos device IP address is required")
    if not validate_port(config.sonos.port):
        errors.append(f"Invalid Sonos port: {config.sonos.port}")

    # MeTube
    if not validate_http_url(config.metube.api_url):
        errors.append(f"Invalid MeTube API URL: {config.metube.api_url}")
    if config.metube.audio_url and not validate_http_url(config.metube.audio_url):
        errors.append(f"Invalid MeTube audio URL: {config.metube.audio_url}")
    if config.metube.poll_interval <= 0:
        errors.append(f"Invalid poll interval: {config.metube.poll_interval}")
    if config.metube.poll_attempts < 0:
        errors.append(f"Invalid poll attempts: {config.metube.poll_attempts}")

    # Playlist
    if config.playlist.prefetch_interval <= 0:
        errors.append(f"Invalid prefetch interval: {config.playlist.prefetch_interval}")
    if config.playlist.max_ahead < 1:
        errors.append(f"Invalid max ahead count: {config.playlist.max_ahead}")

    # Server
    if not validate_port(config.server.http_port):
        errors.append(f"Invalid HTTP port: {config.server.http_port}")

    # Logging
    if config.logging.level.lower() not in VALID_LOG_LEVELS:
        errors.append(
            f"Invalid log level: {config.logging.level}. "
            f"Valid values: {sorted(VALID_LOG_LEVELS)}"
        )

    if errors:
        raise ConfigError("Configuration validation failed:\n  - " + "\n  - ".join(errors))


def load_yaml_config(path: Path) -> dict:
    """
    Load configuration from YAML file.

    Args:
        path: Path to YAML file

    Returns:
        Configuration dictionary

    Raises:
        ConfigError: If file cannot be read or parsed
    """
    if not path.exists():
        logger.debug(f"Config file not found: {path}")
        return {}

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
            return data if data else {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML config: {e}")
    except IOError as e:
        raise ConfigError(f"Error reading config file: {e}")


def _set_nested(d: dict, path: tuple, value: Any) -> None:
    """Set a nested dictionary value using a path tuple."""
    for key in path[:-1]:
        d = d.setdefault(key, {})
    d[path[-1]] = value


def load_env_config() -> dict:
    """
    Load configuration from environment variables.

    Returns:
        Configuration dictionary with values from environment
    """
    result: dict = {}

    for env_var, path in ENV_MAPPINGS.items():
        value: Any = os.environ.get(env_var)
        if value is None or value == "":
            continue

        if env_var in INT_ENV_VARS:
            try:
                value = int(value)
            except ValueError:
                logger.warning(f"Invalid integer for {env_var}: {value}")
                continue
        elif env_var in FLOAT_ENV_VARS:
            try:
                value = float(value)
            except ValueError:
                logger.warning(f"Invalid number for {env_var}: {value}")
                continue
        elif env_var in BOOL_ENV_VARS:
            value = value.lower() in ("true", "1", "yes", "on")

        _set_nested(result, path, value)

    return result


def _deep_merge(base: dict, override: dict) -> None:
    """Recursively merge override into base."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def merge_configs(*configs: dict) -> dict:
    """
    Deep merge multiple configuration dictionaries.
    Later configs override earlier ones.
    """
    result: dict = {}
    for config in configs:
        _deep_merge(result, config)
    return result


def dict_to_config(d: dict) -> Config:
    """Convert a dictionary to Config dataclass."""
    config = Config()

    # Device
    if "device" in d:
        config.device.name = d["device"].get("name", config.device.name)

    # Sonos
    if "sonos" in d:
        s = d["sonos"]
        config.sonos.ip = s.get("ip", config.sonos.ip)
        config.sonos.port = s.get("port", config.sonos.port)

    # MeTube
    if "metube" in d:
        m = d["metube"]
        config.metube.api_url = m.get("api_url", config.metube.api_url)
        config.metube.audio_url = m.get("audio_url", config.metube.audio_url)
        config.metube.quality = m.get("quality", config.metube.quality)
        config.metube.format = m.get("format", config.metube.format)
        config.metube.poll_interval = m.get("poll_interval", config.metube.poll_interval)
        config.metube.poll_attempts = m.get("poll_attempts", config.metube.poll_attempts)

    # Playlist
    if "playlist" in d:
        p = d["playlist"]
        config.playlist.prefetch_interval = p.get(
            "prefetch_interval", config.playlist.prefetch_interval
        )
        config.playlist.max_ahead = p.get("max_ahead", config.playlist.max_ahead)

    # Server
    if "server" in d:
        s = d["server"]
        config.server.http_port = s.get("http_port", config.server.http_port)
        config.server.bind_address = s.get("bind_address", config.server.bind_address)
        config.server.advertise = s.get("advertise", config.server.advertise)

    # Logging
    if "logging" in d:
        config.logging.level = d["logging"].get("level", config.logging.level)

    return config


def load_config(
    config_path: Optional[Path] = None,
    cli_args: Optional[dict] = None,
) -> Config:
    """
    Load configuration from all sources.

    Priority (highest to lowest):
    1. CLI arguments
    2. Environment variables
    3. Config file
    4. Defaults

    Args:
        config_path: Path to YAML config file
        cli_args: Dictionary of CLI arguments

    Returns:
        Merged Config object

    Raises:
        ConfigError: If configuration is invalid
    """
    configs = []

    if config_path:
        file_config = load_yaml_config(config_path)
        if file_config:
            configs.append(file_config)
            logger.debug(f"Loaded config from {config_path}")

    env_config = load_env_config()
    if env_config:
        configs.append(env_config)
        logger.debug("Loaded config from environment variables")

    if cli_args:
        configs.append(cli_args)
        logger.debug("Loaded config from CLI arguments")

    merged = merge_configs(*configs) if configs else {}

    config = dict_to_config(merged)
    validate_config(config)

    return config
