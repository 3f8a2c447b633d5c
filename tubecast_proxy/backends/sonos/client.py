"""
Sonos UPnP SOAP client.

Low-level client for sending UPnP commands to a Sonos zone player,
including the Sonos queue extensions of AVTransport.
"""

import asyncio
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Dict, Optional
from xml.sax.saxutils import escape

import aiohttp
from aiohttp import ClientTimeout

from tubecast_proxy.backends.types import DeviceQueueEntry, DeviceTrackInfo

logger = logging.getLogger(__name__)

# SOAP constants
SOAP_ENVELOPE_NS = "http://schemas.xmlsoap.org/soap/envelope/"
UPNP_AV_TRANSPORT = "urn:schemas-upnp-org:service:AVTransport:1"
UPNP_RENDERING_CONTROL = "urn:schemas-upnp-org:service:RenderingControl:1"
UPNP_CONTENT_DIRECTORY = "urn:schemas-upnp-org:service:ContentDirectory:1"

# Quote characters escaped in SOAP argument values
XML_QUOTES = {'"': "&quot;", "'": "&apos;"}

# Sonos queue object id
QUEUE_OBJECT_ID = "Q:0"

# Sonos refuses Browse requests for more than 100 items at once
BROWSE_PAGE_SIZE = 100

# Retry configuration
MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 2.0
REQUEST_TIMEOUT_SECONDS = 10.0

DESCRIPTION_PATH = "/xml/device_description.xml"


@dataclass
class SonosDeviceInfo:
    """Sonos device information from UPnP description."""

    friendly_name: str = ""
    manufacturer: str = ""
    model_name: str = ""
    udn: str = ""  # uuid:RINCON_xxxxxxxxxxxx01400
    av_transport_url: str = ""
    rendering_control_url: str = ""
    content_directory_url: str = ""

    @property
    def rincon_id(self) -> str:
        """Zone player id used in Sonos-specific URIs."""
        return self.udn[len("uuid:") :] if self.udn.startswith("uuid:") else self.udn


@dataclass
class QueuePage:
    """One page of a queue Browse response."""

    entries: list[DeviceQueueEntry]
    number_returned: int
    total: int


class SonosClientError(Exception):
    """Sonos client error."""

    pass


class SonosClient:
    """
    Low-level Sonos UPnP SOAP client.

    Handles:
    - Device description fetching and parsing
    - SOAP action encoding and sending
    - Response and DIDL-Lite parsing
    - Retry logic for transient failures of read-only actions
    """

    def __init__(self, ip: str, port: int = 1400):
        """
        Initialize Sonos client.

        Args:
            ip: Device IP address
            port: Device port (default 1400)
        """
        self.ip = ip
        self.port = port
        self.device_info: Optional[SonosDeviceInfo] = None
        self._session: Optional[aiohttp.ClientSession] = None

    async def connect(self) -> SonosDeviceInfo:
        """
        Connect to device and fetch description.

        Returns:
            Device information

        Raises:
            SonosClientError: If connection fails
        """
        self._session = aiohttp.ClientSession(timeout=ClientTimeout(total=REQUEST_TIMEOUT_SECONDS))

        self.device_info = await self._fetch_device_description()
        if not self.device_info.av_transport_url:
            raise SonosClientError(f"Device at {self.ip}:{self.port} does not support AVTransport")
        if not self.device_info.content_directory_url:
            raise SonosClientError(f"Device at {self.ip}:{self.port} does not expose its queue")

        logger.info(f"Connected to Sonos device: {self.device_info.friendly_name}")
        return self.device_info

    async def disconnect(self) -> None:
        """Disconnect and clean up."""
        if self._session:
            await self._session.close()
            self._session = None

    @property
    def queue_uri(self) -> str:
        """Transport URI that makes the device play from its own queue."""
        rincon = self.device_info.rincon_id if self.device_info else ""
        return f"x-rincon-queue:{rincon}#0"

    # =========================================================================
    # AVTransport Actions
    # =========================================================================

    async def _transport(
        self, action: str, args: Dict[str, str], max_retries: Optional[int] = None
    ) -> Optional[str]:
        """Invoke an AVTransport action on instance 0."""
        if not self.device_info:
            return None
        return await self._soap_action(
            self.device_info.av_transport_url,
            UPNP_AV_TRANSPORT,
            action,
            {"InstanceID": "0", **args},
            max_retries=max_retries,
        )

    async def set_av_transport_uri(self, url: str, metadata: str = "") -> bool:
        """Set the URI the transport plays from."""
        response = await self._transport(
            "SetAVTransportURI",
            {"CurrentURI": url, "CurrentURIMetaData": metadata},
            max_retries=1,
        )
        return response is not None

    async def play(self, speed: str = "1") -> bool:
        return await self._transport("Play", {"Speed": speed}) is not None

    async def pause(self) -> bool:
        return await self._transport("Pause", {}) is not None

    async def stop(self) -> bool:
        return await self._transport("Stop", {}) is not None

    async def seek(self, seconds: float) -> bool:
        """Seek to a position within the current track."""
        target = self._seconds_to_time_string(seconds)
        return await self._transport("Seek", {"Unit": "REL_TIME", "Target": target}) is not None

    async def seek_track(self, track_number: int) -> bool:
        """Jump to a 1-based queue position."""
        args = {"Unit": "TRACK_NR", "Target": str(track_number)}
        return await self._transport("Seek", args) is not None

    async def get_position_info(self) -> Optional[DeviceTrackInfo]:
        """
        Get current track number, position and duration.

        Returns:
            Track info in seconds, or None on failure
        """
        response = await self._transport("GetPositionInfo", {})
        if not response:
            return None

        track = self._parse_xml_value(response, "Track") or "0"
        return DeviceTrackInfo(
            position=self._time_string_to_seconds(self._parse_xml_value(response, "RelTime")),
            duration=self._time_string_to_seconds(
                self._parse_xml_value(response, "TrackDuration")
            ),
            queue_position=int(track) if track.isdigit() else 0,
            uri=self._parse_xml_value(response, "TrackURI") or "",
        )

    async def add_uri_to_queue(
        self,
        uri: str,
        position: int = 0,
        metadata: str = "",
        as_next: bool = False,
    ) -> Optional[int]:
        """
        Enqueue a URI.

        Args:
            uri: Track URI
            position: Desired 1-based position, 0 appends at the end
            metadata: DIDL-Lite description of the track
            as_next: Enqueue right after the current track

        Returns:
            Position the track was enqueued at, or None on failure
        """
        # Not idempotent, so never retried
        response = await self._transport(
            "AddURIToQueue",
            {
                "EnqueuedURI": uri,
                "EnqueuedURIMetaData": metadata,
                "DesiredFirstTrackNumberEnqueued": str(position),
                "EnqueueAsNext": "1" if as_next else "0",
            },
            max_retries=1,
        )
        if response is None:
            return None

        first = self._parse_xml_value(response, "FirstTrackNumberEnqueued") or ""
        return int(first) if first.isdigit() else position

    async def reorder_tracks_in_queue(
        self, starting_index: int, number_of_tracks: int, insert_before: int
    ) -> bool:
        """Move a block of queue entries in front of ``insert_before``."""
        response = await self._transport(
            "ReorderTracksInQueue",
            {
                "StartingIndex": str(starting_index),
                "NumberOfTracks": str(number_of_tracks),
                "InsertBefore": str(insert_before),
                "UpdateID": "0",
            },
            max_retries=1,
        )
        return response is not None

    async def remove_track_range_from_queue(self, starting_index: int, number_of_tracks: int) -> bool:
        """Remove a block of queue entries."""
        response = await self._transport(
            "RemoveTrackRangeFromQueue",
            {
                "UpdateID": "0",
                "StartingIndex": str(starting_index),
                "NumberOfTracks": str(number_of_tracks),
            },
            max_retries=1,
        )
        return response is not None

    # =========================================================================
    # ContentDirectory Actions
    # =========================================================================

    async def browse_queue(self, start: int = 0, count: int = BROWSE_PAGE_SIZE) -> Optional[QueuePage]:
        """
        Fetch one page of the device queue.

        Args:
            start: 0-based index of the first entry
            count: Maximum number of entries

        Returns:
            Parsed page, or None on failure
        """
        if not self.device_info:
            return None

        response = await self._soap_action(
            self.device_info.content_directory_url,
            UPNP_CONTENT_DIRECTORY,
            "Browse",
            {
                "ObjectID": QUEUE_OBJECT_ID,
                "BrowseFlag": "BrowseDirectChildren",
                "Filter": "dc:title,res",
                "StartingIndex": str(start),
                "RequestedCount": str(count),
                "SortCriteria": "",
            },
        )
        if response is None:
            return None

        didl = self._parse_xml_value(response, "Result") or ""
        returned = self._parse_xml_value(response, "NumberReturned") or "0"
        total = self._parse_xml_value(response, "TotalMatches") or "0"
        return QueuePage(
            entries=self._parse_queue_didl(didl),
            number_returned=int(returned) if returned.isdigit() else 0,
            total=int(total) if total.isdigit() else 0,
        )

    # =========================================================================
    # RenderingControl Actions
    # =========================================================================

    async def _rendering(
        self, action: str, args: Dict[str, str], max_retries: Optional[int] = None
    ) -> Optional[str]:
        """Invoke a RenderingControl action on the master channel."""
        if not self.device_info or not self.device_info.rendering_control_url:
            logger.warning(f"Cannot {action}: no RenderingControl URL")
            return None
        return await self._soap_action(
            self.device_info.rendering_control_url,
            UPNP_RENDERING_CONTROL,
            action,
            {"InstanceID": "0", "Channel": "Master", **args},
            max_retries=max_retries,
        )

    async def get_volume(self) -> Optional[int]:
        """Current volume 0-100, or None on failure."""
        response = await self._rendering("GetVolume", {})
        level = self._parse_xml_value(response, "CurrentVolume") if response else None
        return int(level) if level and level.isdigit() else None

    async def set_volume(self, volume: int) -> bool:
        """Set volume 0-100."""
        # Senders re-send volume changes
        response = await self._rendering(
            "SetVolume", {"DesiredVolume": str(volume)}, max_retries=1
        )
        return response is not None

    # =========================================================================
    # Internal Methods
    # =========================================================================

    async def _fetch_device_description(self) -> SonosDeviceInfo:
        """Fetch and parse device description XML."""
        if not self._session:
            raise SonosClientError("Session not initialized")

        base_url = f"http://{self.ip}:{self.port}"
        url = base_url + DESCRIPTION_PATH
        try:
            async with self._session.get(url) as response:
                if response.status != 200:
                    raise SonosClientError(
                        f"Device description at {url} returned HTTP {response.status}"
                    )
                xml_text = await response.text()
        except aiohttp.ClientError as e:
            raise SonosClientError(f"Could not fetch device description from {url}: {e}")
        except asyncio.TimeoutError:
            raise SonosClientError(f"Timed out fetching device description from {url}")

        return self._parse_device_description(xml_text, base_url)

    def _parse_device_description(self, xml_text: str, base_url: str) -> SonosDeviceInfo:
        """Parse device description XML."""
        info = SonosDeviceInfo()

        try:
            root = ET.fromstring(xml_text)

            # The root device comes first; embedded MediaRenderer/MediaServer
            # devices carry suffixed UDNs and names
            for elem in root.iter():
                tag = elem.tag.split("}")[-1]

                if tag == "friendlyName" and not info.friendly_name:
                    info.friendly_name = elem.text or ""
                elif tag == "manufacturer" and not info.manufacturer:
                    info.manufacturer = elem.text or ""
                elif tag == "modelName" and not info.model_name:
                    info.model_name = elem.text or ""
                elif tag == "UDN" and not info.udn:
                    info.udn = elem.text or ""

            for service in root.iter():
                if not service.tag.endswith("service"):
                    continue

                service_type = ""
                control_url = ""

                for child in service:
                    tag = child.tag.split("}")[-1]
                    if tag == "serviceType":
                        service_type = child.text or ""
                    elif tag == "controlURL":
                        control_url = child.text or ""

                if not control_url:
                    continue
                if control_url.startswith("/"):
                    control_url = base_url + control_url

                if "AVTransport" in service_type:
                    info.av_transport_url = control_url
                elif "RenderingControl" in service_type:
                    # GroupRenderingControl uses a different API
                    if "GroupRenderingControl" not in service_type or not info.rendering_control_url:
                        info.rendering_control_url = control_url
                elif "ContentDirectory" in service_type:
                    info.content_directory_url = control_url

        except ET.ParseError as e:
            logger.error(f"Failed to parse device description: {e}")

        logger.debug(
            f"Parsed device info: friendly_name={info.friendly_name}, "
            f"model={info.model_name}, udn={info.udn}"
        )
        logger.debug(
            f"Service URLs: AVTransport={info.av_transport_url}, "
            f"RenderingControl={info.rendering_control_url}, "
            f"ContentDirectory={info.content_directory_url}"
        )
        return info

    def _parse_queue_didl(self, didl: str) -> list[DeviceQueueEntry]:
        """Parse the DIDL-Lite document of a queue Browse response."""
        if not didl:
            return []

        entries = []
        try:
            root = ET.fromstring(didl)
        except ET.ParseError as e:
            logger.error(f"Failed to parse queue DIDL: {e}")
            return []

        for item in root:
            if item.tag.split("}")[-1] != "item":
                continue
            uri = ""
            title = ""
            for child in item:
                tag = child.tag.split("}")[-1]
                if tag == "res":
                    uri = (child.text or "").strip()
                elif tag == "title":
                    title = child.text or ""
            entries.append(
                DeviceQueueEntry(
                    composite_id=item.get("id", ""),
                    parent_id=item.get("parentID", QUEUE_OBJECT_ID),
                    uri=uri,
                    title=title,
                )
            )
        return entries

    async def _soap_action(
        self,
        url: str,
        service: str,
        action: str,
        args: Dict[str, str],
        max_retries: Optional[int] = None,
    ) -> Optional[str]:
        """
        Send SOAP action with retry logic.

        Args:
            url: Service control URL
            service: UPnP service type
            action: SOAP action name
            args: Action arguments
            max_retries: Override default retry count (default: MAX_RETRIES)

        Returns:
            Response body or None on failure
        """
        if not url or not self._session:
            logger.warning(f"No URL for service {service}")
            return None

        retries = max_retries if max_retries is not None else MAX_RETRIES
        envelope = self._build_soap_envelope(service, action, args)
        headers = {
            "Content-Type": 'text/xml; charset="utf-8"',
            "SOAPAction": f'"{service}#{action}"',
        }

        last_error = None
        for attempt in range(retries):
            try:
                async with self._session.post(url, data=envelope, headers=headers) as response:
                    if response.status == 200:
                        return await response.text()
                    else:
                        text = await response.text()
                        logger.warning(f"SOAP {action} failed ({response.status}): {text[:500]}")
                        error_code = self._parse_xml_value(text, "errorCode")
                        error_desc = self._parse_xml_value(text, "errorDescription")
                        if error_code or error_desc:
                            logger.warning(
                                f"UPnP error: code={error_code}, description={error_desc}"
                            )
                        last_error = f"HTTP {response.status}"

            except Exception as e:
                logger.warning(f"SOAP {action} error (attempt {attempt + 1}): {e}")
                last_error = str(e)

            if attempt < retries - 1:
                await asyncio.sleep(RETRY_DELAY_SECONDS)

        if retries > 1:
            logger.error(f"SOAP {action} failed after {retries} attempts: {last_error}")
        else:
            logger.warning(f"SOAP {action} failed: {last_error}")
        return None

    def _build_soap_envelope(
        self,
        service: str,
        action: str,
        args: Dict[str, str],
    ) -> str:
        """Build single-line SOAP envelope XML."""
        args_xml = "".join(f"<{k}>{escape(v, XML_QUOTES)}</{k}>" for k, v in args.items())

        return (
            '<?xml version="1.0"?>'
            f'<s:Envelope xmlns:s="{SOAP_ENVELOPE_NS}" '
            's:encodingStyle="http://schemas.xmlsoap.org/soap/encoding/">'
            "<s:Body>"
            f'<u:{action} xmlns:u="{service}">'
            f"{args_xml}"
            f"</u:{action}>"
            "</s:Body>"
            "</s:Envelope>"
        )

    def _parse_xml_value(self, xml_text: str, tag_name: str) -> Optional[str]:
        """Extract the text of the first element whose local name is ``tag_name``."""
        try:
            root = ET.fromstring(xml_text)
            for elem in root.iter():
                if elem.tag.split("}")[-1] == tag_name:
                    return elem.text
        except ET.ParseError:
            pass
        return None

    def _seconds_to_time_string(self, seconds: float) -> str:
        """Convert seconds to HH:MM:SS format."""
        total = max(0, int(seconds))
        hours = total // 3600
        minutes = (total % 3600) // 60
        secs = total % 60
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"

    def _time_string_to_seconds(self, time_str: Optional[str]) -> float:
        """Convert H:MM:SS to seconds (0 for NOT_IMPLEMENTED and friends)."""
        if not time_str:
            return 0.0
        try:
            parts = time_str.split(":")
            if len(parts) == 3:
                hours, minutes, seconds = parts
                return int(hours) * 3600 + int(minutes) * 60 + float(seconds)
        except (ValueError, IndexError):
            pass
        return 0.0
