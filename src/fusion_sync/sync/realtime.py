"""Real-time device KPI synchronisation (one inverter and one meter per station)."""

from __future__ import annotations

import logging

from fusion_sync.db.repository import Repository
from fusion_sync.sync.models import (
    Device,
    DeviceType,
    InverterSnapshot,
    MeterSnapshot,
    RealTimeSyncResult,
)
from fusion_sync.vendor.base import DEVICE_REAL_KPI, VendorStatus
from fusion_sync.vendor.client import FusionSolarClient

logger = logging.getLogger(__name__)


class RealTimeSynchronizer:
    """Polls instantaneous KPIs for a station's cached inverter and meter.

    Devices come from the devices table written by ``DeviceSynchronizer``;
    the device list endpoint is never called here. The two device types take
    turns at being polled first, tracked per user in ``sync_preferences``, so
    that when the vendor starts throttling mid-run neither type is starved.
    """

    def __init__(self, client: FusionSolarClient, repo: Repository) -> None:
        self._client = client
        self._repo = repo

    async def next_priority(self, user_id: str) -> DeviceType:
        """Device type to poll first this run: whichever did not go first last run."""
        last = await self._repo.get_sync_preference(user_id)
        if last is None:
            return DeviceType.INVERTER
        return DeviceType(last).other

    async def record_priority(self, user_id: str, priority: DeviceType) -> None:
        await self._repo.set_sync_preference(user_id, priority.value)

    async def sync(
        self,
        user_id: str,
        station_code: str,
        token: str,
        priority: DeviceType | None = None,
    ) -> RealTimeSyncResult:
        """Fetch and store snapshots for the station's devices.

        When ``priority`` is not given, it is read from and written back to the
        user's preference record for this call alone.
        """
        rows = await self._repo.get_devices(user_id, station_code)
        devices = [Device.from_row(r) for r in rows]
        by_type: dict[DeviceType, Device | None] = {
            device_type: next((d for d in devices if d.polls_as(device_type)), None)
            for device_type in DeviceType
        }
        if not any(by_type.values()):
            logger.warning("No cached inverter or meter found for station %s", station_code)
            return RealTimeSyncResult()

        record = priority is None
        if priority is None:
            priority = await self.next_priority(user_id)

        written: list[DeviceType] = []
        for device_type in (priority, priority.other):
            device = by_type[device_type]
            if device is None:
                continue
            status = await self._sync_device(user_id, station_code, token, device)
            if status is VendorStatus.OK:
                written.append(device_type)
            elif status is VendorStatus.RATE_LIMITED:
                logger.warning(
                    "Rate limited on station %s, skipping remaining devices", station_code,
                )
                break

        if record:
            await self.record_priority(user_id, priority)

        logger.info(
            "Real-time data synced for station %s (%s first): %s",
            station_code, priority.value,
            ", ".join(t.value for t in written) or "nothing written",
        )
        return RealTimeSyncResult(written=written, priority=priority)

    async def _sync_device(
        self, user_id: str, station_code: str, token: str, device: Device,
    ) -> VendorStatus:
        try:
            result = await self._client.request(
                DEVICE_REAL_KPI,
                token,
                {"devTypeId": device.kpi_type_id, "devIds": device.dev_id},
            )
            item = result.first_item()
            if item is None:
                logger.warning(
                    "No real-time data for %s %s on station %s (%s)",
                    device.device_type.value, device.dev_id, station_code, result.describe(),
                )
                return VendorStatus.FAILED if result.ok else result.status

            data_map = item.get("dataItemMap") or {}
            if device.device_type is DeviceType.INVERTER:
                await self._repo.upsert_inverter_data(
                    user_id, InverterSnapshot.from_kpi(station_code, device.dev_id, data_map),
                )
            else:
                await self._repo.upsert_meter_data(
                    user_id, MeterSnapshot.from_kpi(station_code, device.dev_id, data_map),
                )
            return VendorStatus.OK

        except Exception:
            logger.warning(
                "Real-time sync failed for %s %s on station %s",
                device.device_type.value, device.dev_id, station_code, exc_info=True,
            )
            return VendorStatus.FAILED
