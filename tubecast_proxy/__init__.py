"""
TubeCast Proxy - cast-session receiver for Sonos speakers.

Plays sender playlists on a Sonos queue, with audio files produced by a
MeTube download backend.
"""

__version__ = "0.1.0"

from .app import TubeCastProxy
from .config import Config, load_config, ConfigError

__all__ = [
    "__version__",
    "TubeCastProxy",
    "Config",
    "load_config",
    "ConfigError",
]
