"""Shared test fixtures for Fusion Sync."""

from __future__ import annotations

from collections import defaultdict
from pathlib import Path
from typing import Any, AsyncGenerator

import aiosqlite
import pytest
import pytest_asyncio

from fusion_sync.config.manager import ConfigManager
from fusion_sync.config.schema import VendorConfig
from fusion_sync.db.engine import init_db
from fusion_sync.db.repository import Repository
from fusion_sync.vendor.base import (
    DEVICE_LIST,
    DEVICE_REAL_KPI,
    STATION_LIST,
    STATION_REAL_KPI,
)
from fusion_sync.vendor.client import FusionSolarClient


def ok(data: Any) -> dict[str, Any]:
    return {"success": True, "data": data, "failCode": 0}


def fail(code: int, data: Any = None, message: str | None = None) -> dict[str, Any]:
    return {"success": False, "data": data, "failCode": code, "message": message}


def station(code: str, name: str = "") -> dict[str, Any]:
    return {
        "stationCode": code,
        "stationName": name or f"Plant {code}",
        "stationAddr": "1 Solar Way",
        "capacity": 0.0066,
        "aidType": 1,
        "buildState": "2",
        "combineType": "1",
        "linkmanPho": "+44 0000",
        "stationLinkman": "Owner",
    }


def device(dev_id: str, type_id: int) -> dict[str, Any]:
    return {"id": dev_id, "devDn": f"NE={dev_id}", "devName": f"dev {dev_id}", "devTypeId": type_id}


def kpi(data_map: dict[str, Any]) -> dict[str, Any]:
    return ok([{"dataItemMap": data_map}])


class FakeVendorClient(FusionSolarClient):
    """FusionSolar client with scripted responses and recorded calls.

    Responses are queued per endpoint and consumed in order; once a queue is
    empty the endpoint's default is used. A response may be a body dict,
    ``None`` (transport failure), an exception to raise, or a callable taking
    the request payload.
    """

    def __init__(self, login_tokens: list[str | None] | None = None) -> None:
        super().__init__(VendorConfig(base_url="http://vendor.test"))
        self.login_tokens: list[str | None] = list(login_tokens or ["fresh-token"])
        self.login_calls: list[tuple[str, str]] = []
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        self._queued: dict[str, list[Any]] = defaultdict(list)
        self._defaults: dict[str, Any] = {}

    ok = staticmethod(ok)
    fail = staticmethod(fail)
    station = staticmethod(station)
    device = staticmethod(device)
    kpi = staticmethod(kpi)

    # ── scripting ──

    def queue(self, endpoint: str, *responses: Any) -> None:
        self._queued[endpoint].extend(responses)

    def set_default(self, endpoint: str, response: Any) -> None:
        self._defaults[endpoint] = response

    def calls_to(self, endpoint: str) -> list[tuple[str, str, dict[str, Any]]]:
        return [c for c in self.calls if c[0] == endpoint]

    def script_healthy(self, station_codes: tuple[str, ...] = ("NE=100", "NE=200")) -> None:
        """Stations each with one inverter and one meter, all KPIs available."""
        self.set_default(STATION_LIST, ok([station(code) for code in station_codes]))

        def _devices(payload: dict[str, Any]) -> dict[str, Any]:
            code = payload["stationCodes"]
            return ok([
                device(f"{code}-inv", 38),
                device(f"{code}-meter", 47),
            ])

        def _device_kpi(payload: dict[str, Any]) -> dict[str, Any]:
            if payload["devTypeId"] == 38:
                return kpi({"active_power": 4.2, "temperature": 41.5, "efficiency": 98.1})
            return kpi({
                "active_power": -1500, "meter_u": 230.1, "meter_i": 6.5,
                "grid_frequency": 50.01, "meter_status": 1,
            })

        self.set_default(DEVICE_LIST, _devices)
        self.set_default(
            STATION_REAL_KPI,
            kpi({"day_power": "12.5", "month_power": "310.2", "total_power": "8120",
                 "day_income": "3.4", "real_health_state": "3"}),
        )
        self.set_default(DEVICE_REAL_KPI, _device_kpi)

    # ── FusionSolarClient overrides ──

    async def login(self, username: str, password: str) -> str | None:
        self.login_calls.append((username, password))
        return self.login_tokens.pop(0) if self.login_tokens else None

    async def call(
        self, endpoint: str, token: str, payload: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        payload = dict(payload or {})
        self.calls.append((endpoint, token, payload))
        queued = self._queued.get(endpoint)
        response = queued.pop(0) if queued else self._defaults.get(endpoint)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(payload)
        return response


@pytest.fixture
def config_manager(tmp_path: Path) -> ConfigManager:
    """Provide a config manager with test paths."""
    defaults = tmp_path / "config.defaults.yaml"
    defaults.write_text("db:\n  path: ':memory:'\n")
    user = tmp_path / "config.yaml"
    mgr = ConfigManager(defaults_path=defaults, user_path=user)
    mgr.load()
    return mgr


@pytest_asyncio.fixture
async def db(tmp_path: Path) -> AsyncGenerator[aiosqlite.Connection, None]:
    """Provide a fresh database for each test."""
    conn = await init_db(tmp_path / "test.db")
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def repo(db: aiosqlite.Connection) -> Repository:
    """Provide a repository with a fresh database."""
    return Repository(db)


@pytest_asyncio.fixture
async def user_id(repo: Repository) -> str:
    """A registered user without a cached token."""
    await repo.upsert_user("user-1", "api-user", "system-code")
    return "user-1"


@pytest_asyncio.fixture
async def vendor() -> AsyncGenerator[FakeVendorClient, None]:
    client = FakeVendorClient()
    yield client
    await client.close()
