"""
MeTube API Client.

Talks to the download/transcode backend over its REST-like JSON API.
"""

import asyncio
import logging
from typing import Any, Optional

import aiohttp

from .types import History, RecordLocation

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 10.0


class MeTubeAPIError(Exception):
    """MeTube API error."""

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.status = status


class MeTubeClient:
    """MeTube REST API client."""

    def __init__(self, base_url: str, timeout: float = REQUEST_TIMEOUT_SECONDS):
        """
        Initialize API client.

        Args:
            base_url: Backend base URL, e.g. http://localhost:8081
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "MeTubeClient":
        """Async context manager entry."""
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any],
    ) -> None:
        """Async context manager exit."""
        await self.close()

    async def open(self) -> None:
        """Create the shared HTTP session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)

    async def close(self) -> None:
        """Close the shared HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def get_history(self) -> History:
        """
        Fetch the full record listing.

        Raises:
            MeTubeAPIError: On transport failure or non-200 status
        """
        data = await self._request("GET", "/history")
        if not isinstance(data, dict):
            raise MeTubeAPIError("Unexpected history payload")
        try:
            return History.from_dict(data)
        except (ValueError, TypeError, AttributeError) as e:
            raise MeTubeAPIError(f"Malformed history payload: {e}")

    async def add(
        self,
        track_id: str,
        quality: str = "best",
        format: str = "mp3",
        auto_start: bool = True,
    ) -> None:
        """
        Request a new download.

        Raises:
            MeTubeAPIError: On transport failure or non-200 status
        """
        await self._request(
            "POST",
            "/add",
            {
                "url": track_id,
                "quality": quality,
                "format": format,
                "playlist_strict_mode": False,
                "auto_start": auto_start,
            },
        )

    async def delete(self, track_ids: list[str], location: RecordLocation) -> None:
        """
        Delete records from one backend list.

        Raises:
            MeTubeAPIError: On transport failure or non-200 status
        """
        await self._request("POST", "/delete", {"ids": track_ids, "where": location.value})

    async def _request(
        self,
        method: str,
        path: str,
        payload: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Send a JSON request and return the decoded body."""
        url = f"{self.base_url}{path}"

        session = self._session
        close_session = False
        if session is None:
            session = aiohttp.ClientSession(timeout=self._timeout)
            close_session = True

        try:
            async with session.request(method, url, json=payload) as resp:
                if resp.status != 200:
                    text = await resp.text()
                    raise MeTubeAPIError(
                        f"{method} {path} failed ({resp.status}): {text[:200]}",
                        status=resp.status,
                    )
                try:
                    return await resp.json(content_type=None)
                except ValueError as e:
                    raise MeTubeAPIError(f"{method} {path} returned invalid JSON: {e}")
        except aiohttp.ClientError as e:
            raise MeTubeAPIError(f"{method} {path} failed: {e}")
        except asyncio.TimeoutError as e:
            raise MeTubeAPIError(f"{method} {path} timed out: {e}")
        finally:
            if close_session:
                await session.close()
