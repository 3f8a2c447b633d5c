"""
Sonos renderer package.
"""

from .client import SonosClient, SonosClientError, SonosDeviceInfo
from .device import SonosDevice

__all__ = [
    "SonosClient",
    "SonosClientError",
    "SonosDeviceInfo",
    "SonosDevice",
]
