"""
Session server.

HTTP JSON front for senders: playlist updates, transport commands,
volume and status. Optionally announced on the local network via mDNS.
"""

import asyncio
import json
import logging
import socket
from typing import Any, Optional

from aiohttp import web
from zeroconf import ServiceInfo, Zeroconf

from tubecast_proxy.config import Config
from tubecast_proxy.playback import PlaybackController, Volume

from .types import Sender

logger = logging.getLogger(__name__)

# mDNS constants
MDNS_SERVICE_TYPE = "_tubecast._tcp.local."


def _sanitize_service_name(name: str) -> str:
    """Make a display name safe for use as an mDNS instance name."""
    sanitized = "".join(c if c.isalnum() or c in "-_" else "-" for c in name)
    while "--" in sanitized:
        sanitized = sanitized.replace("--", "-")
    return sanitized.strip("-")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class SessionServer:
    """
    Exposes the player to senders over HTTP.

    Tracks connected senders: the device queue is cleared when the first
    sender arrives and when the last one leaves.
    """

    def __init__(self, config: Config, controller: PlaybackController):
        """
        Initialize session server.

        Args:
            config: Application configuration
            controller: Player driven by the senders
        """
        self.config = config
        self.controller = controller
        self.senders: dict[str, Sender] = {}

        # HTTP server components
        self.app = self._create_app()
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

        # mDNS components
        self._zeroconf: Optional[Zeroconf] = None
        self._service_info: Optional[ServiceInfo] = None

    async def start(self) -> None:
        """Start HTTP server and register mDNS service."""
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        self._site = web.TCPSite(
            self._runner,
            self.config.server.bind_address,
            self.config.server.http_port,
        )
        await self._site.start()

        if self.config.server.advertise:
            await self._register_mdns()

        logger.info(f"Session server started on port {self.config.server.http_port}")

    async def stop(self) -> None:
        """Unregister mDNS service and stop HTTP server."""
        await self._unregister_mdns()
        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()
        logger.info("Session server stopped")

    # -------------------------------------------------------------------------
    # HTTP Server
    # -------------------------------------------------------------------------

    def _create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/", self._handle_root)
        app.router.add_get("/status", self._handle_status)
        app.router.add_post("/senders", self._handle_sender_connect)
        app.router.add_delete("/senders/{name}", self._handle_sender_disconnect)
        app.router.add_put("/queue", self._handle_queue)
        app.router.add_post("/transport/play", self._handle_play)
        app.router.add_post("/transport/pause", self._handle_pause)
        app.router.add_post("/transport/resume", self._handle_resume)
        app.router.add_post("/transport/stop", self._handle_stop)
        app.router.add_post("/transport/next", self._handle_next)
        app.router.add_post("/transport/previous", self._handle_previous)
        app.router.add_post("/transport/seek", self._handle_seek)
        app.router.add_get("/volume", self._handle_get_volume)
        app.router.add_put("/volume", self._handle_set_volume)
        return app

    async def _read_json(self, request: web.Request) -> Optional[dict[str, Any]]:
        """Decode a JSON object body. An empty body is an empty object."""
        if not request.can_read_body:
            return {}
        try:
            data = await request.json()
        except json.JSONDecodeError:
            return None
        return data if isinstance(data, dict) else None

    @staticmethod
    def _bad_request(message: str) -> web.Response:
        logger.warning(f"Bad session request: {message}")
        return web.json_response({"ok": False, "error": message}, status=400)

    @staticmethod
    def _result(ok: bool) -> web.Response:
        return web.json_response({"ok": ok})

    async def _handle_root(self, request: web.Request) -> web.Response:
        """Health check endpoint."""
        return web.Response(
            text=f"TubeCast Proxy - {self.config.device.name}",
            content_type="text/plain",
        )

    async def _handle_status(self, request: web.Request) -> web.Response:
        """
        GET /status

        Player state, playlist, live position and connected senders.
        """
        volume = await self.controller.get_volume()
        response = {
            "name": self.config.device.name,
            "state": self.controller.state.value,
            "current_id": self.controller.queue.current_id,
            "track_ids": self.controller.queue.track_ids,
            "position": await self.controller.get_position(),
            "duration": await self.controller.get_duration(),
            "volume": {"level": volume.level, "muted": volume.muted},
            "senders": [sender.to_dict() for sender in self.senders.values()],
        }
        return web.json_response(response)

    # -------------------------------------------------------------------------
    # Senders
    # -------------------------------------------------------------------------

    async def _handle_sender_connect(self, request: web.Request) -> web.Response:
        """
        POST /senders

        Registers a sender. The device queue is cleared when it is the
        only sender.
        """
        data = await self._read_json(request)
        if data is None:
            return self._bad_request("Invalid JSON")

        name = data.get("name")
        if not isinstance(name, str) or not name:
            return self._bad_request("Sender name is required")

        self.senders[name] = Sender(name=name, client=str(data.get("client") or ""))
        logger.info(f"Sender connected: {name} ({len(self.senders)} connected)")

        if len(self.senders) == 1:
            await self.controller.clear_device_queue()

        return web.json_response({"ok": True, "senders": len(self.senders)})

    async def _handle_sender_disconnect(self, request: web.Request) -> web.Response:
        """
        DELETE /senders/{name}

        Stops prefetching; clears the device queue when nobody is left.
        """
        name = request.match_info["name"]
        if self.senders.pop(name, None) is None:
            return web.json_response({"ok": False, "error": "Unknown sender"}, status=404)

        logger.info(f"Sender disconnected: {name} ({len(self.senders)} connected)")
        await self.controller.stop_prefetch()

        if not self.senders:
            await self.controller.clear_device_queue()

        return web.json_response({"ok": True, "senders": len(self.senders)})

    # -------------------------------------------------------------------------
    # Playlist / Transport
    # -------------------------------------------------------------------------

    async def _handle_queue(self, request: web.Request) -> web.Response:
        """
        PUT /queue

        Replaces the playlist and notifies its subscribers.
        """
        data = await self._read_json(request)
        if data is None:
            return self._bad_request("Invalid JSON")

        track_ids = data.get("track_ids")
        if not isinstance(track_ids, list) or not all(isinstance(t, str) for t in track_ids):
            return self._bad_request("track_ids must be a list of strings")

        current_id = data.get("current_id")
        if current_id is not None and not isinstance(current_id, str):
            return self._bad_request("current_id must be a string")

        self.controller.queue.set_playlist(track_ids, current_id)
        return self._result(True)

    async def _handle_play(self, request: web.Request) -> web.Response:
        """
        POST /transport/play

        Plays ``track_id`` (default: the current playlist track) from
        ``position`` seconds.
        """
        data = await self._read_json(request)
        if data is None:
            return self._bad_request("Invalid JSON")

        track_id = data.get("track_id") or self.controller.queue.current_id
        if not isinstance(track_id, str):
            return self._bad_request("No track to play")

        position = data.get("position", 0)
        if not _is_number(position) or position < 0:
            return self._bad_request("position must be a non-negative number")

        return self._result(await self.controller.play(track_id, float(position)))

    async def _handle_pause(self, request: web.Request) -> web.Response:
        return self._result(await self.controller.pause())

    async def _handle_resume(self, request: web.Request) -> web.Response:
        return self._result(await self.controller.resume())

    async def _handle_stop(self, request: web.Request) -> web.Response:
        return self._result(await self.controller.stop())

    async def _handle_next(self, request: web.Request) -> web.Response:
        return self._result(await self.controller.next())

    async def _handle_previous(self, request: web.Request) -> web.Response:
        return self._result(await self.controller.previous())

    async def _handle_seek(self, request: web.Request) -> web.Response:
        data = await self._read_json(request)
        if data is None:
            return self._bad_request("Invalid JSON")

        position = data.get("position")
        if not _is_number(position) or position < 0:
            return self._bad_request("position must be a non-negative number")

        return self._result(await self.controller.seek(float(position)))

    # -------------------------------------------------------------------------
    # Volume
    # -------------------------------------------------------------------------

    async def _handle_get_volume(self, request: web.Request) -> web.Response:
        volume = await self.controller.get_volume()
        return web.json_response({"level": volume.level, "muted": volume.muted})

    async def _handle_set_volume(self, request: web.Request) -> web.Response:
        data = await self._read_json(request)
        if data is None:
            return self._bad_request("Invalid JSON")

        level = data.get("level")
        if not isinstance(level, int) or isinstance(level, bool) or not 0 <= level <= 100:
            return self._bad_request("level must be an integer between 0 and 100")

        volume = Volume(level=level, muted=bool(data.get("muted", False)))
        return self._result(await self.controller.set_volume(volume))

    # -------------------------------------------------------------------------
    # mDNS Registration
    # -------------------------------------------------------------------------

    async def _register_mdns(self) -> None:
        """Register mDNS service."""
        local_ip = self._get_local_ip()
        if not local_ip:
            logger.warning("Could not determine local IP, mDNS may not work")
            return

        sanitized_name = _sanitize_service_name(self.config.device.name)
        service_name = f"{sanitized_name}.{MDNS_SERVICE_TYPE}"

        self._service_info = ServiceInfo(
            MDNS_SERVICE_TYPE,
            service_name,
            addresses=[socket.inet_aton(local_ip)],
            port=self.config.server.http_port,
            properties={"Name": self.config.device.name, "path": "/"},
        )

        self._zeroconf = Zeroconf()
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._zeroconf.register_service, self._service_info)
        logger.info(
            f"Registered mDNS service: {self.config.device.name} "
            f"(as {sanitized_name}) at {local_ip}:{self.config.server.http_port}"
        )

    async def _unregister_mdns(self) -> None:
        """Unregister mDNS service."""
        if self._zeroconf and self._service_info:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._zeroconf.unregister_service, self._service_info)
            await loop.run_in_executor(None, self._zeroconf.close)
            self._zeroconf = None
            self._service_info = None
            logger.debug("Unregistered mDNS service")

    def _get_local_ip(self) -> Optional[str]:
        """Outbound IP address, found by routing a UDP socket."""
        try:
            s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            s.settimeout(0)
            try:
                s.connect((self.config.sonos.ip or "8.8.8.8", 80))
                ip = s.getsockname()[0]
            finally:
                s.close()
            return str(ip)
        except OSError as e:
            logger.error(f"Failed to determine local IP: {e}")
            return None
