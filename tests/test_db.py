"""Tests for database engine and repository."""

from __future__ import annotations

from pathlib import Path

import aiosqlite
import pytest

from fusion_sync.db.engine import init_db
from fusion_sync.db.migrations import run_migrations
from fusion_sync.db.models import SCHEMA_VERSION
from fusion_sync.db.repository import Repository
from fusion_sync.sync.models import (
    DailySnapshot,
    Device,
    DeviceType,
    InverterSnapshot,
    MeterSnapshot,
    Plant,
)


def _inverter(dev_id: str) -> Device:
    return Device(dev_id=dev_id, device_type=DeviceType.INVERTER, dev_type_id=38)


def _meter(dev_id: str) -> Device:
    return Device(dev_id=dev_id, device_type=DeviceType.METER, dev_type_id=47)


@pytest.mark.asyncio
class TestEngine:
    async def test_schema_version_recorded(self, db: aiosqlite.Connection) -> None:
        async with db.execute("SELECT version FROM schema_version WHERE id = 1") as cursor:
            row = await cursor.fetchone()
        assert row[0] == SCHEMA_VERSION

    async def test_reopen_is_idempotent(self, tmp_path: Path) -> None:
        path = tmp_path / "again.db"
        first = await init_db(path)
        await first.close()
        second = await init_db(path)
        async with second.execute("SELECT COUNT(*) FROM schema_version") as cursor:
            row = await cursor.fetchone()
        await second.close()
        assert row[0] == 1

    async def test_unrecorded_version_is_repaired_without_data_loss(
        self, repo: Repository, user_id: str,
    ) -> None:
        await repo.db.execute("DELETE FROM schema_version")
        await repo.db.execute("DROP TABLE sync_preferences")
        await repo.db.commit()

        await run_migrations(repo.db)

        async with repo.db.execute("SELECT version FROM schema_version WHERE id = 1") as cursor:
            row = await cursor.fetchone()
        assert row[0] == SCHEMA_VERSION
        assert await repo.get_user(user_id) is not None
        await repo.set_sync_preference(user_id, "meter")
        assert await repo.get_sync_preference(user_id) == "meter"


@pytest.mark.asyncio
class TestUsers:
    async def test_sync_users_require_credentials(self, repo: Repository) -> None:
        await repo.upsert_user("a", "user-a", "code-a")
        await repo.upsert_user("b", None, "code-b")
        await repo.upsert_user("c", "user-c", None)
        await repo.upsert_user("d", "user-d", "code-d", xsrf_token="tok")

        users = await repo.get_sync_users()
        assert [u["id"] for u in users] == ["a", "d"]
        assert users[1]["xsrf_token"] == "tok"
        assert await repo.count_sync_users() == 2

    async def test_update_token(self, repo: Repository, user_id: str) -> None:
        await repo.update_user_token(user_id, "new-token")
        user = await repo.get_user(user_id)
        assert user is not None
        assert user["xsrf_token"] == "new-token"

    async def test_get_missing_user(self, repo: Repository) -> None:
        assert await repo.get_user("nobody") is None


@pytest.mark.asyncio
class TestPlants:
    async def test_upsert_is_idempotent(self, repo: Repository, user_id: str) -> None:
        plant = Plant(station_code="NE=1", station_name="Roof", capacity=6.6)
        await repo.upsert_plant(user_id, plant)
        await repo.upsert_plant(user_id, plant)

        rows = await repo.get_plants(user_id)
        assert len(rows) == 1
        assert rows[0]["station_name"] == "Roof"

    async def test_upsert_updates_fields(self, repo: Repository, user_id: str) -> None:
        await repo.upsert_plant(user_id, Plant(station_code="NE=1", station_name="Old"))
        await repo.upsert_plant(user_id, Plant(station_code="NE=1", station_name="New"))

        rows = await repo.get_plants(user_id)
        assert [r["station_name"] for r in rows] == ["New"]

    async def test_plants_scoped_per_user(self, repo: Repository, user_id: str) -> None:
        await repo.upsert_user("user-2", "other", "code")
        await repo.upsert_plant(user_id, Plant(station_code="NE=1"))
        await repo.upsert_plant("user-2", Plant(station_code="NE=1"))

        assert len(await repo.get_plants(user_id)) == 1
        assert len(await repo.get_plants("user-2")) == 1


@pytest.mark.asyncio
class TestDevices:
    async def test_replace_leaves_only_fresh_set(self, repo: Repository, user_id: str) -> None:
        await repo.replace_devices(user_id, "NE=1", [_inverter("old-inv"), _meter("old-meter")])
        await repo.replace_devices(user_id, "NE=1", [_inverter("new-inv")])

        rows = await repo.get_devices(user_id, "NE=1")
        assert [r["dev_id"] for r in rows] == ["new-inv"]
        assert rows[0]["device_type"] == "inverter"

    async def test_replace_only_touches_one_station(self, repo: Repository, user_id: str) -> None:
        await repo.replace_devices(user_id, "NE=1", [_inverter("inv-1")])
        await repo.replace_devices(user_id, "NE=2", [_inverter("inv-2")])
        await repo.replace_devices(user_id, "NE=1", [])

        assert await repo.get_devices(user_id, "NE=1") == []
        assert len(await repo.get_devices(user_id, "NE=2")) == 1

    async def test_failed_replace_keeps_previous_rows(
        self, repo: Repository, user_id: str,
    ) -> None:
        await repo.replace_devices(user_id, "NE=1", [_inverter("inv-1")])

        # Duplicate dev_id violates the unique key part-way through the insert.
        with pytest.raises(aiosqlite.IntegrityError):
            await repo.replace_devices(user_id, "NE=1", [_meter("dup"), _meter("dup")])

        rows = await repo.get_devices(user_id, "NE=1")
        assert [r["dev_id"] for r in rows] == ["inv-1"]


@pytest.mark.asyncio
class TestTelemetry:
    async def test_daily_upsert_per_date(self, repo: Repository, user_id: str) -> None:
        await repo.upsert_daily_data(
            user_id, DailySnapshot(station_code="NE=1", data_date="2026-03-01", day_power=1.0),
        )
        await repo.upsert_daily_data(
            user_id, DailySnapshot(station_code="NE=1", data_date="2026-03-01", day_power=4.5),
        )
        await repo.upsert_daily_data(
            user_id, DailySnapshot(station_code="NE=1", data_date="2026-03-02", day_power=2.0),
        )

        rows = await repo.get_daily_data(user_id, "NE=1")
        assert [(r["data_date"], r["day_power"]) for r in rows] == [
            ("2026-03-02", 2.0),
            ("2026-03-01", 4.5),
        ]

    async def test_inverter_and_meter_upserts(self, repo: Repository, user_id: str) -> None:
        await repo.upsert_inverter_data(
            user_id, InverterSnapshot(station_code="NE=1", dev_id="inv", active_power=3.0),
        )
        await repo.upsert_inverter_data(
            user_id, InverterSnapshot(station_code="NE=1", dev_id="inv", active_power=3.5),
        )
        await repo.upsert_meter_data(
            user_id, MeterSnapshot(station_code="NE=1", dev_id="meter", active_power=-0.8),
        )

        inverters = await repo.get_inverter_data(user_id, "NE=1")
        meters = await repo.get_meter_data(user_id, "NE=1")
        assert [r["active_power"] for r in inverters] == [3.5]
        assert meters[0]["active_power"] == pytest.approx(-0.8)
        assert meters[0]["status"] == 1


@pytest.mark.asyncio
class TestSyncPreferences:
    async def test_missing_preference(self, repo: Repository, user_id: str) -> None:
        assert await repo.get_sync_preference(user_id) is None

    async def test_set_and_overwrite(self, repo: Repository, user_id: str) -> None:
        await repo.set_sync_preference(user_id, "inverter")
        await repo.set_sync_preference(user_id, "meter")
        assert await repo.get_sync_preference(user_id) == "meter"
