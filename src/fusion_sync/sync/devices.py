"""Device inventory synchronisation for one station."""

from __future__ import annotations

import logging

from fusion_sync.db.repository import Repository
from fusion_sync.sync.models import Device, DeviceSyncResult
from fusion_sync.vendor.base import DEVICE_LIST
from fusion_sync.vendor.client import FusionSolarClient

logger = logging.getLogger(__name__)


class DeviceSynchronizer:
    """Replaces a station's stored devices with the vendor's current list.

    Any failure, from the vendor call or from the replace itself, leaves the
    stored rows alone and returns them with ``from_cache=True``.
    """

    def __init__(self, client: FusionSolarClient, repo: Repository) -> None:
        self._client = client
        self._repo = repo

    async def sync(self, user_id: str, station_code: str, token: str) -> DeviceSyncResult:
        try:
            result = await self._client.request(
                DEVICE_LIST, token, {"stationCodes": station_code}
            )
            if result.ok and isinstance(result.data, list):
                devices = self._parse(result.data, station_code)
                await self._repo.replace_devices(user_id, station_code, devices)
                logger.info("%d devices synced for station %s", len(devices), station_code)
                return DeviceSyncResult(devices=devices, from_cache=False)
            logger.warning(
                "No devices for station %s (%s), checking cache",
                station_code, result.describe(),
            )
        except Exception:
            logger.warning(
                "Error syncing devices for station %s, using cache",
                station_code, exc_info=True,
            )

        return await self._cached(user_id, station_code)

    async def _cached(self, user_id: str, station_code: str) -> DeviceSyncResult:
        rows = await self._repo.get_devices(user_id, station_code)
        return DeviceSyncResult(
            devices=[Device.from_row(r) for r in rows],
            from_cache=True,
        )

    @staticmethod
    def _parse(items: list, station_code: str) -> list[Device]:
        devices: list[Device] = []
        seen: set[str] = set()
        for item in items:
            if not isinstance(item, dict) or (not item.get("id") and not item.get("devDn")):
                logger.warning("Skipping device without id on station %s: %r", station_code, item)
                continue
            device = Device.from_vendor(item)
            if device.dev_id in seen:
                continue
            seen.add(device.dev_id)
            devices.append(device)
        return devices
