"""
TubeCast Proxy Application.

Main orchestrator that wires together all components and manages lifecycle.
"""

import asyncio
import logging
import signal
from typing import Optional

from tubecast_proxy.backends import DeviceFactory, RendererDevice
from tubecast_proxy.config import Config
from tubecast_proxy.connect import SessionServer
from tubecast_proxy.downloads import MeTubeClient
from tubecast_proxy.playback import (
    DeviceQueueReconciler,
    MusicResolver,
    PlaybackController,
    PlaylistPrefetcher,
    PlaylistQueue,
)

logger = logging.getLogger(__name__)


class TubeCastProxy:
    """
    Main TubeCast Proxy application.

    Orchestrates all components:
    - Renderer (SonosDevice)
    - Download backend (MeTubeClient, MusicResolver)
    - Playback (PlaylistQueue, DeviceQueueReconciler, PlaylistPrefetcher,
      PlaybackController)
    - Session adapter (SessionServer)

    Usage:
        config = load_config(...)
        app = TubeCastProxy(config)
        await app.run()
    """

    def __init__(self, config: Config):
        """
        Initialize TubeCast Proxy.

        Args:
            config: Validated configuration
        """
        self._config = config
        self._is_running = False
        self._shutdown_event = asyncio.Event()

        # Components (initialized in start())
        self._device: Optional[RendererDevice] = None
        self._metube: Optional[MeTubeClient] = None
        self._queue: Optional[PlaylistQueue] = None
        self._controller: Optional[PlaybackController] = None
        self._session_server: Optional[SessionServer] = None

    async def start(self) -> None:
        """
        Start TubeCast Proxy and all components.

        Startup order:
        1. Renderer connection
        2. Download backend client
        3. Resolver, reconciler, playlist and prefetcher
        4. Playback controller
        5. Session server (HTTP + mDNS)

        Raises:
            DeviceNotFoundError: If the renderer cannot be reached
        """
        logger.info("Starting TubeCast Proxy...")

        # 1. Renderer
        logger.debug("Connecting to renderer...")
        self._device = await DeviceFactory.create_from_config(self._config)
        logger.info(f"Connected to renderer: {self._device.get_info()}")

        # 2. Download backend
        metube_config = self._config.metube
        self._metube = MeTubeClient(metube_config.api_url)
        await self._metube.open()
        logger.info(
            f"Download backend: {metube_config.api_url} "
            f"(files from {metube_config.effective_audio_url})"
        )

        # 3. Playback core
        resolver = MusicResolver(
            client=self._metube,
            audio_url=metube_config.effective_audio_url,
            quality=metube_config.quality,
            format=metube_config.format,
            poll_interval=metube_config.poll_interval,
            poll_attempts=metube_config.poll_attempts,
        )
        reconciler = DeviceQueueReconciler(self._device, resolver)
        self._queue = PlaylistQueue()
        prefetcher = PlaylistPrefetcher(
            resolver=resolver,
            reconciler=reconciler,
            queue=self._queue,
            interval=self._config.playlist.prefetch_interval,
            max_ahead=self._config.playlist.max_ahead,
        )

        # 4. Controller
        self._controller = PlaybackController(
            device=self._device,
            resolver=resolver,
            reconciler=reconciler,
            prefetcher=prefetcher,
            queue=self._queue,
        )

        # 5. Session server
        logger.debug("Starting session server...")
        self._session_server = SessionServer(self._config, self._controller)
        await self._session_server.start()

        self._is_running = True
        logger.info(
            f"TubeCast Proxy ready - receiver '{self._config.device.name}' "
            f"listening on {self._config.server.bind_address}:{self._config.server.http_port}"
        )

    async def stop(self) -> None:
        """
        Stop TubeCast Proxy and all components.

        Shutdown order (reverse of startup):
        1. Stop session server
        2. Shut down controller (timers, prefetch loop)
        3. Close playlist listeners
        4. Close download backend client
        5. Disconnect renderer
        """
        if not self._is_running:
            return

        logger.info("Stopping TubeCast Proxy...")
        self._is_running = False

        # 1. Session server
        if self._session_server:
            try:
                await self._session_server.stop()
            except Exception as e:
                logger.warning(f"Error stopping session server: {e}")

        # 2. Controller
        if self._controller:
            try:
                await self._controller.shutdown()
            except Exception as e:
                logger.warning(f"Error shutting down controller: {e}")

        # 3. Playlist
        if self._queue:
            try:
                await self._queue.close()
            except Exception as e:
                logger.warning(f"Error closing playlist: {e}")

        # 4. Download backend
        if self._metube:
            try:
                await self._metube.close()
            except Exception as e:
                logger.warning(f"Error closing download backend client: {e}")

        # 5. Renderer
        if self._device:
            try:
                await self._device.disconnect()
            except Exception as e:
                logger.warning(f"Error disconnecting renderer: {e}")

        logger.info("TubeCast Proxy stopped")

    async def run(self) -> None:
        """
        Run TubeCast Proxy until interrupted.

        Sets up signal handlers for graceful shutdown on SIGINT/SIGTERM.
        """
        loop = asyncio.get_running_loop()

        def handle_signal() -> None:
            logger.info("Shutdown signal received")
            self._shutdown_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, handle_signal)

        try:
            await self.start()

            # Wait for shutdown signal
            await self._shutdown_event.wait()

        finally:
            await self.stop()

    def request_shutdown(self) -> None:
        """Ask a running instance to shut down."""
        self._shutdown_event.set()

    @property
    def is_running(self) -> bool:
        """Check if the application is running."""
        return self._is_running
