"""Data access layer for all database operations."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import aiosqlite

from fusion_sync.sync.models import (
    DailySnapshot,
    Device,
    InverterSnapshot,
    MeterSnapshot,
    Plant,
)

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Repository:
    """Centralised data access for all tables.

    Every write holds ``_write_lock`` so a multi-statement write is never
    committed halfway by another task sharing the connection.
    """

    def __init__(self, db: aiosqlite.Connection) -> None:
        self.db = db
        self._write_lock = asyncio.Lock()

    async def _fetch_all(self, sql: str, params: tuple[Any, ...] = ()) -> list[dict[str, Any]]:
        async with self.db.execute(sql, params) as cursor:
            rows = await cursor.fetchall()
            return [dict(r) for r in rows]

    async def _write(self, sql: str, params: tuple[Any, ...]) -> None:
        async with self._write_lock:
            await self.db.execute(sql, params)
            await self.db.commit()

    # ── Users ───────────────────────────────────────────────

    async def upsert_user(
        self,
        user_id: str,
        api_username: str | None,
        api_password: str | None,
        xsrf_token: str | None = None,
    ) -> None:
        now = _now()
        await self._write(
            """INSERT INTO users (id, api_username, api_password, xsrf_token, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   api_username = excluded.api_username,
                   api_password = excluded.api_password,
                   xsrf_token = excluded.xsrf_token,
                   updated_at = excluded.updated_at""",
            (user_id, api_username, api_password, xsrf_token, now, now),
        )

    async def get_user(self, user_id: str) -> dict[str, Any] | None:
        rows = await self._fetch_all("SELECT * FROM users WHERE id = ?", (user_id,))
        return rows[0] if rows else None

    async def get_sync_users(self) -> list[dict[str, Any]]:
        """Users that have both vendor credentials set."""
        return await self._fetch_all(
            """SELECT id, api_username, api_password, xsrf_token FROM users
               WHERE api_username IS NOT NULL AND api_password IS NOT NULL
               ORDER BY created_at, id"""
        )

    async def update_user_token(self, user_id: str, token: str | None) -> None:
        await self._write(
            "UPDATE users SET xsrf_token = ?, updated_at = ? WHERE id = ?",
            (token, _now(), user_id),
        )

    # ── Plants ──────────────────────────────────────────────

    async def upsert_plant(self, user_id: str, plant: Plant) -> None:
        await self._write(
            """INSERT INTO plants
               (user_id, station_code, station_name, station_addr, capacity, aid_type,
                build_state, combine_type, linkman_pho, station_linkman, fetched_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(user_id, station_code) DO UPDATE SET
                   station_name = excluded.station_name,
                   station_addr = excluded.station_addr,
                   capacity = excluded.capacity,
                   aid_type = excluded.aid_type,
                   build_state = excluded.build_state,
                   combine_type = excluded.combine_type,
                   linkman_pho = excluded.linkman_pho,
                   station_linkman = excluded.station_linkman,
                   fetched_at = excluded.fetched_at""",
            (
                user_id, plant.station_code, plant.station_name, plant.station_addr,
                plant.capacity, plant.aid_type, plant.build_state, plant.combine_type,
                plant.linkman_pho, plant.station_linkman, _now(),
            ),
        )

    async def get_plants(self, user_id: str) -> list[dict[str, Any]]:
        return await self._fetch_all(
            "SELECT * FROM plants WHERE user_id = ? ORDER BY id", (user_id,)
        )

    # ── Devices ─────────────────────────────────────────────

    async def replace_devices(
        self, user_id: str, station_code: str, devices: list[Device],
    ) -> None:
        """Replace the stored device set for a station in one transaction."""
        now = _now()
        async with self._write_lock:
            try:
                await self.db.execute(
                    "DELETE FROM devices WHERE user_id = ? AND station_code = ?",
                    (user_id, station_code),
                )
                if devices:
                    await self.db.executemany(
                        """INSERT INTO devices
                           (user_id, station_code, dev_id, dev_dn, dev_name,
                            dev_type_id, device_type, updated_at)
                           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                        [
                            (
                                user_id, station_code, d.dev_id, d.dev_dn, d.dev_name,
                                d.dev_type_id, d.device_type.value, now,
                            )
                            for d in devices
                        ],
                    )
                await self.db.commit()
                logger.debug(
                    "Replaced devices for %s/%s: %d rows", user_id, station_code, len(devices),
                )
            except Exception:
                await self.db.rollback()
                raise

    async def get_devices(self, user_id: str, station_code: str) -> list[dict[str, Any]]:
        return await self._fetch_all(
            """SELECT * FROM devices WHERE user_id = ? AND station_code = ?
               ORDER BY id""",
            (user_id, station_code),
        )

    # ── Daily data ──────────────────────────────────────────

    async def upsert_daily_data(self, user_id: str, snapshot: DailySnapshot) -> None:
        await self._write(
            """INSERT INTO solar_daily_data
               (user_id, station_code, data_date, day_power, month_power, total_power,
                day_use_energy, day_on_grid_energy, day_income, total_income,
                health_state, fetched_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(user_id, station_code, data_date) DO UPDATE SET
                   day_power = excluded.day_power,
                   month_power = excluded.month_power,
                   total_power = excluded.total_power,
                   day_use_energy = excluded.day_use_energy,
                   day_on_grid_energy = excluded.day_on_grid_energy,
                   day_income = excluded.day_income,
                   total_income = excluded.total_income,
                   health_state = excluded.health_state,
                   fetched_at = excluded.fetched_at""",
            (
                user_id, snapshot.station_code, snapshot.data_date,
                snapshot.day_power, snapshot.month_power, snapshot.total_power,
                snapshot.day_use_energy, snapshot.day_on_grid_energy,
                snapshot.day_income, snapshot.total_income,
                snapshot.health_state, _now(),
            ),
        )

    async def get_daily_data(self, user_id: str, station_code: str) -> list[dict[str, Any]]:
        return await self._fetch_all(
            """SELECT * FROM solar_daily_data WHERE user_id = ? AND station_code = ?
               ORDER BY data_date DESC""",
            (user_id, station_code),
        )

    # ── Real-time data ──────────────────────────────────────

    async def upsert_inverter_data(self, user_id: str, snapshot: InverterSnapshot) -> None:
        await self._write(
            """INSERT INTO inverter_data
               (user_id, station_code, dev_id, active_power, temperature, efficiency, fetched_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(user_id, station_code, dev_id) DO UPDATE SET
                   active_power = excluded.active_power,
                   temperature = excluded.temperature,
                   efficiency = excluded.efficiency,
                   fetched_at = excluded.fetched_at""",
            (
                user_id, snapshot.station_code, snapshot.dev_id,
                snapshot.active_power, snapshot.temperature, snapshot.efficiency, _now(),
            ),
        )

    async def upsert_meter_data(self, user_id: str, snapshot: MeterSnapshot) -> None:
        await self._write(
            """INSERT INTO meter_data
               (user_id, station_code, dev_id, active_power, voltage, current,
                frequency, status, fetched_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(user_id, station_code, dev_id) DO UPDATE SET
                   active_power = excluded.active_power,
                   voltage = excluded.voltage,
                   current = excluded.current,
                   frequency = excluded.frequency,
                   status = excluded.status,
                   fetched_at = excluded.fetched_at""",
            (
                user_id, snapshot.station_code, snapshot.dev_id,
                snapshot.active_power, snapshot.voltage, snapshot.current,
                snapshot.frequency, snapshot.status, _now(),
            ),
        )

    async def get_inverter_data(self, user_id: str, station_code: str) -> list[dict[str, Any]]:
        return await self._fetch_all(
            "SELECT * FROM inverter_data WHERE user_id = ? AND station_code = ?",
            (user_id, station_code),
        )

    async def get_meter_data(self, user_id: str, station_code: str) -> list[dict[str, Any]]:
        return await self._fetch_all(
            "SELECT * FROM meter_data WHERE user_id = ? AND station_code = ?",
            (user_id, station_code),
        )

    # ── Sync preferences ────────────────────────────────────

    async def get_sync_preference(self, user_id: str) -> str | None:
        rows = await self._fetch_all(
            "SELECT last_priority FROM sync_preferences WHERE user_id = ?", (user_id,)
        )
        return rows[0]["last_priority"] if rows else None

    async def set_sync_preference(self, user_id: str, last_priority: str) -> None:
        await self._write(
            """INSERT INTO sync_preferences (user_id, last_priority, updated_at)
               VALUES (?, ?, ?)
               ON CONFLICT(user_id) DO UPDATE SET
                   last_priority = excluded.last_priority,
                   updated_at = excluded.updated_at""",
            (user_id, last_priority, _now()),
        )

    async def count_sync_users(self) -> int:
        async with self.db.execute(
            """SELECT COUNT(*) FROM users
               WHERE api_username IS NOT NULL AND api_password IS NOT NULL"""
        ) as cursor:
            row = await cursor.fetchone()
            return row[0] if row else 0
