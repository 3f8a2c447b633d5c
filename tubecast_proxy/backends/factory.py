"""
Renderer factory.

Creates and connects the configured renderer device.
"""

import logging
from typing import Optional

from tubecast_proxy.config import Config

from .base import RendererDevice
from .sonos import SonosDevice

logger = logging.getLogger(__name__)


class DeviceNotFoundError(Exception):
    """Raised when the configured renderer cannot be reached."""

    pass


class DeviceFactory:
    """
    Factory for creating renderer instances.

    Usage:
        device = await DeviceFactory.create_from_config(config)
    """

    @classmethod
    async def create_from_config(cls, config: Config) -> RendererDevice:
        """Create a connected device based on configuration."""
        return await cls.create_sonos(
            ip=config.sonos.ip,
            port=config.sonos.port or 1400,
        )

    @classmethod
    async def create_sonos(
        cls,
        ip: str,
        port: int = 1400,
        name: Optional[str] = None,
    ) -> RendererDevice:
        """
        Create a Sonos device.

        Args:
            ip: Sonos device IP address
            port: Sonos device port (default 1400)
            name: Display name (auto-detected if not provided)

        Returns:
            Connected SonosDevice instance

        Raises:
            DeviceNotFoundError: If connection fails
        """
        device = SonosDevice(ip=ip, port=port, name=name)
        if await device.connect():
            return device
        raise DeviceNotFoundError(f"Failed to connect to Sonos device at {ip}:{port}")
