"""Batch runner: syncs every user with vendor credentials."""

from __future__ import annotations

import asyncio
import logging
import time

from fusion_sync.db.repository import Repository
from fusion_sync.sync.models import (
    BatchRunResult,
    SyncSummary,
    UserAccount,
    UserSyncResult,
)
from fusion_sync.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


class BatchRunner:
    """Invokes the orchestrator once per eligible user.

    One user's failure never stops the batch. Users run one at a time unless
    ``max_concurrent_users`` > 1; a single user is never synced twice at once,
    and overlapping ``run()`` calls are serialised.
    """

    def __init__(
        self,
        repo: Repository,
        orchestrator: SyncOrchestrator,
        max_concurrent_users: int = 1,
    ) -> None:
        self._repo = repo
        self._orchestrator = orchestrator
        self._max_concurrent = max(1, max_concurrent_users)
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def run(self) -> BatchRunResult:
        """Run one batch. Raises only if the user list cannot be loaded."""
        async with self._lock:
            start = time.monotonic()
            users = await self._load_users()
            logger.info("Starting sync for %d users", len(users))

            if self._max_concurrent == 1:
                results = [await self._sync_one(user) for user in users]
            else:
                semaphore = asyncio.Semaphore(self._max_concurrent)

                async def _bounded(user: UserAccount) -> UserSyncResult:
                    async with semaphore:
                        return await self._sync_one(user)

                results = list(await asyncio.gather(*(_bounded(u) for u in users)))

            summary = SyncSummary.from_results(
                results, round(time.monotonic() - start, 3),
            )
            logger.info(
                "Sync completed: total=%d successful=%d errors=%d plants_from_cache=%d "
                "devices_from_cache=%d daily_data_skipped=%d (%.1fs)",
                summary.total, summary.successful, summary.errors,
                summary.plants_from_cache, summary.devices_from_cache,
                summary.daily_data_skipped, summary.duration_seconds,
            )
            return BatchRunResult(summary=summary, results=results)

    async def _load_users(self) -> list[UserAccount]:
        users: dict[str, UserAccount] = {}
        for row in await self._repo.get_sync_users():
            user = UserAccount.from_row(row)
            users.setdefault(user.id, user)
        return list(users.values())

    async def _sync_one(self, user: UserAccount) -> UserSyncResult:
        try:
            return await self._orchestrator.sync_user(user)
        except Exception as e:
            logger.exception("Unhandled error syncing user %s", user.id)
            return UserSyncResult.failed(user.id, str(e) or type(e).__name__)
