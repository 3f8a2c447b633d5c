"""
Renderer backends module.

Provides the abstract device contract and the Sonos implementation.
"""

from .base import DeviceCommandError, DeviceError, RendererDevice
from .factory import DeviceFactory, DeviceNotFoundError
from .types import (
    DeviceInfo,
    DeviceQueueEntry,
    DeviceQueueSnapshot,
    DeviceTrackInfo,
)
from .sonos import SonosClient, SonosClientError, SonosDevice, SonosDeviceInfo

__all__ = [
    # Types
    "DeviceInfo",
    "DeviceQueueEntry",
    "DeviceQueueSnapshot",
    "DeviceTrackInfo",
    # Base class
    "RendererDevice",
    "DeviceError",
    "DeviceCommandError",
    # Factory
    "DeviceFactory",
    "DeviceNotFoundError",
    # Sonos
    "SonosClient",
    "SonosClientError",
    "SonosDevice",
    "SonosDeviceInfo",
]
