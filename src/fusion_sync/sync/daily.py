"""Daily station KPI synchronisation."""

from __future__ import annotations

import logging
from datetime import date

from fusion_sync.db.repository import Repository
from fusion_sync.sync.models import DailySnapshot
from fusion_sync.vendor.base import STATION_REAL_KPI
from fusion_sync.vendor.client import FusionSolarClient

logger = logging.getLogger(__name__)


class DailyDataSynchronizer:
    """Upserts today's cumulative energy/income snapshot for a station."""

    def __init__(self, client: FusionSolarClient, repo: Repository) -> None:
        self._client = client
        self._repo = repo

    async def sync(
        self, user_id: str, station_code: str, token: str, today: date | None = None,
    ) -> bool:
        """Return True when a snapshot was written, False when skipped.

        An unusable vendor answer is a skip, not an error. Storage errors
        propagate.
        """
        result = await self._client.request(
            STATION_REAL_KPI, token, {"stationCodes": station_code}
        )
        item = result.first_item()
        if item is None:
            logger.warning("No daily data for station %s (%s)", station_code, result.describe())
            return False

        data_map = item.get("dataItemMap") or {}
        snapshot = DailySnapshot.from_kpi(station_code, data_map, today)
        await self._repo.upsert_daily_data(user_id, snapshot)
        logger.info(
            "Daily data synced for station %s: day_power=%.2f kWh",
            station_code, snapshot.day_power,
        )
        return True
