"""
Device queue reconciliation.

Brings the renderer's queue in line with the logical playlist: the
N-th finished track counted from the current pointer must sit at
device position N.
"""

import logging
from typing import Optional

from tubecast_proxy.backends import DeviceError, RendererDevice
from tubecast_proxy.downloads import MusicRecord, RecordLocation
from .resolver import MusicResolver

logger = logging.getLogger(__name__)


class DeviceQueueReconciler:
    """
    Aligns the device queue with the logical playlist.

    Each pass works on one fresh device snapshot and one backend
    listing. Operations issued during a pass are mirrored on a local
    copy of the device order, so positions stay valid for the rest of
    the pass and a second pass over unchanged inputs issues nothing.
    """

    def __init__(self, device: RendererDevice, resolver: MusicResolver):
        self._device = device
        self._resolver = resolver

    async def align(self, track_ids: list[str], current_id: Optional[str] = None) -> int:
        """
        Run one alignment pass.

        Args:
            track_ids: Logical playlist order
            current_id: Current pointer; the walk starts from the
                beginning of the playlist when None or unknown

        Returns:
            Number of device operations issued
        """
        try:
            return await self._align(track_ids, current_id)
        except DeviceError as e:
            logger.error(f"Device queue alignment failed: {e}")
        except Exception as e:
            logger.error(f"Unexpected error aligning device queue: {e}", exc_info=True)
        return 0

    async def _align(self, track_ids: list[str], current_id: Optional[str]) -> int:
        snapshot = await self._device.get_queue()
        history = await self._resolver.fetch_history()
        if history is None:
            return 0

        start = track_ids.index(current_id) if current_id in track_ids else 0

        prefix: list[MusicRecord] = []
        for track_id in track_ids[start:]:
            record = history.find(track_id, RecordLocation.DONE)
            if record is None or not record.is_finished:
                break
            prefix.append(record)

        order = [entry.uri for entry in snapshot.entries]
        issued = 0

        for index, record in enumerate(prefix):
            target = index + 1
            uri = self._resolver.playable_uri(record)

            found = _index_from(order, uri, index)
            if found is None:
                logger.info(f'Adding "{record.title or record.id}" to device queue at {target}')
                await self._device.insert_queue_entry(uri, target)
                order.insert(index, uri)
                issued += 1
            elif found != index:
                logger.info(
                    f'Moving "{record.title or record.id}" in device queue '
                    f"from {found + 1} to {target}"
                )
                await self._device.move_queue_entries(found + 1, 1, target)
                order.insert(index, order.pop(found))
                issued += 1

        logger.debug(f"Device queue aligned ({len(prefix)} tracks, {issued} operations)")
        return issued

    async def find_device_index(self, uri: str) -> Optional[int]:
        """1-based position of ``uri`` in a fresh device snapshot."""
        try:
            snapshot = await self._device.get_queue()
        except DeviceError as e:
            logger.error(f"Error checking device queue: {e}")
            return None
        except Exception as e:
            logger.error(f"Unexpected error checking device queue: {e}", exc_info=True)
            return None

        entry = snapshot.find(uri)
        return entry.position if entry else None


def _index_from(order: list[str], uri: str, start: int) -> Optional[int]:
    """Index of ``uri`` at or after ``start``; earlier slots are already placed."""
    try:
        return order.index(uri, start)
    except ValueError:
        return None
