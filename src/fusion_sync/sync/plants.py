"""Plant (station) list synchronisation."""

from __future__ import annotations

import logging

from fusion_sync.db.repository import Repository
from fusion_sync.sync.errors import AuthExpiredError, FetchFailedError
from fusion_sync.sync.models import Plant, PlantSyncResult
from fusion_sync.vendor.base import STATION_LIST, VendorStatus
from fusion_sync.vendor.client import FusionSolarClient

logger = logging.getLogger(__name__)


class PlantSynchronizer:
    """Fetches a user's stations and merges them into the plants table.

    - OK: upsert every station keyed by (user, station code).
    - AUTH_EXPIRED: raise ``AuthExpiredError`` for the orchestrator to re-login.
    - RATE_LIMITED: return the stored plants untouched, ``from_cache=True``.
    - anything else: raise ``FetchFailedError``.
    """

    def __init__(self, client: FusionSolarClient, repo: Repository) -> None:
        self._client = client
        self._repo = repo

    async def sync(self, user_id: str, token: str) -> PlantSyncResult:
        result = await self._client.request(STATION_LIST, token, {})

        if result.status is VendorStatus.AUTH_EXPIRED:
            raise AuthExpiredError(f"Session token expired for user {user_id}")

        if result.status is VendorStatus.RATE_LIMITED:
            logger.warning("Rate limited for user %s, using cached plants", user_id)
            rows = await self._repo.get_plants(user_id)
            return PlantSyncResult(
                plants=[Plant.from_row(r) for r in rows],
                from_cache=True,
            )

        if not result.ok or not isinstance(result.data, list):
            raise FetchFailedError(
                f"Failed to get plants from FusionSolar ({result.describe()})"
            )

        plants: list[Plant] = []
        for item in result.data:
            if not isinstance(item, dict) or not item.get("stationCode"):
                logger.warning("Skipping station without stationCode: %r", item)
                continue
            plant = Plant.from_vendor(item)
            await self._repo.upsert_plant(user_id, plant)
            plants.append(plant)

        logger.info("%d plants synced for user %s", len(plants), user_id)
        return PlantSyncResult(plants=plants, from_cache=False)
