"""Per-user sync orchestration.

Pipeline for one user:
  token (cached or login) → plants (one re-login + retry on expiry) →
  for each plant: devices → daily data → real-time data
"""

from __future__ import annotations

import logging
import time

from fusion_sync.db.repository import Repository
from fusion_sync.logging.context import bind_context, unbind_context
from fusion_sync.sync.daily import DailyDataSynchronizer
from fusion_sync.sync.devices import DeviceSynchronizer
from fusion_sync.sync.errors import (
    AuthExpiredError,
    LoginFailedError,
    NoPlantsError,
    SyncError,
)
from fusion_sync.sync.models import (
    PlantSyncResult,
    SyncStatus,
    UserAccount,
    UserSyncResult,
)
from fusion_sync.sync.plants import PlantSynchronizer
from fusion_sync.sync.realtime import RealTimeSynchronizer
from fusion_sync.vendor.client import FusionSolarClient

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """Runs the full sync pipeline for one user and never raises to its caller.

    Device sync failures fall back to cache and are never fatal. Daily and
    real-time failures, login failures and an empty plant list end the run
    with an ``error`` result.
    """

    def __init__(
        self,
        client: FusionSolarClient,
        repo: Repository,
        plants: PlantSynchronizer | None = None,
        devices: DeviceSynchronizer | None = None,
        daily: DailyDataSynchronizer | None = None,
        realtime: RealTimeSynchronizer | None = None,
    ) -> None:
        self._client = client
        self._repo = repo
        self.plants = plants or PlantSynchronizer(client, repo)
        self.devices = devices or DeviceSynchronizer(client, repo)
        self.daily = daily or DailyDataSynchronizer(client, repo)
        self.realtime = realtime or RealTimeSynchronizer(client, repo)

    async def sync_user(self, user: UserAccount) -> UserSyncResult:
        start = time.monotonic()
        bind_context(user_id=user.id)
        try:
            result = await self._run(user)
            result.duration_seconds = round(time.monotonic() - start, 3)
            logger.info(
                "User %s synced: %d plants (plants_from_cache=%s, devices_from_cache=%s, "
                "daily_data_skipped=%s)",
                user.id, result.plants_processed, result.plants_from_cache,
                result.devices_from_cache, result.daily_data_skipped,
            )
            return result
        except SyncError as e:
            logger.error("Sync failed for user %s: %s", user.id, e)
            return UserSyncResult.failed(user.id, str(e), round(time.monotonic() - start, 3))
        except Exception as e:
            logger.exception("Unexpected error syncing user %s", user.id)
            return UserSyncResult.failed(
                user.id, str(e) or type(e).__name__, round(time.monotonic() - start, 3),
            )
        finally:
            unbind_context("user_id")

    async def _run(self, user: UserAccount) -> UserSyncResult:
        token = user.xsrf_token or await self._login(user)
        if not token:
            raise LoginFailedError(f"Failed to login for user {user.id}")

        plant_result, token = await self._sync_plants(user, token)
        if not plant_result.plants:
            raise NoPlantsError(f"No plants found for user {user.id}")

        priority = await self.realtime.next_priority(user.id)
        devices_from_cache = False
        daily_data_skipped = False

        for plant in plant_result.plants:
            # Devices first: real-time sync reads them from the devices table.
            device_result = await self.devices.sync(user.id, plant.station_code, token)
            devices_from_cache = devices_from_cache or device_result.from_cache

            if not await self.daily.sync(user.id, plant.station_code, token):
                daily_data_skipped = True

            await self.realtime.sync(user.id, plant.station_code, token, priority)

        await self.realtime.record_priority(user.id, priority)

        return UserSyncResult(
            user_id=user.id,
            status=SyncStatus.SUCCESS,
            plants_processed=len(plant_result.plants),
            plants_from_cache=plant_result.from_cache,
            devices_from_cache=devices_from_cache,
            daily_data_skipped=daily_data_skipped,
        )

    async def _sync_plants(self, user: UserAccount, token: str) -> tuple[PlantSyncResult, str]:
        """Fetch plants, re-logging in exactly once if the token has expired."""
        try:
            return await self.plants.sync(user.id, token), token
        except AuthExpiredError:
            logger.info("Token expired for user %s, re-logging in", user.id)

        token = await self._login(user)
        if not token:
            raise LoginFailedError(f"Failed to re-login for user {user.id}")
        try:
            return await self.plants.sync(user.id, token), token
        except AuthExpiredError as e:
            raise AuthExpiredError(
                f"Session still expired after relogin for user {user.id}"
            ) from e

    async def _login(self, user: UserAccount) -> str | None:
        """Log in and cache the new token on the user row."""
        token = await self._client.login(user.api_username, user.api_password)
        if token:
            await self._repo.update_user_token(user.id, token)
            user.xsrf_token = token
            logger.info("Logged in to FusionSolar for user %s", user.id)
        return token
