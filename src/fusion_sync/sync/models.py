"""Domain models and per-step result types for the sync pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

INVERTER_TYPE_ID = 38
METER_TYPE_ID = 47


class DeviceType(str, Enum):
    INVERTER = "inverter"
    METER = "meter"

    @property
    def other(self) -> DeviceType:
        return DeviceType.METER if self is DeviceType.INVERTER else DeviceType.INVERTER

    @property
    def type_id(self) -> int:
        """Vendor devTypeId polled for this role."""
        return INVERTER_TYPE_ID if self is DeviceType.INVERTER else METER_TYPE_ID


class SyncStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


def parse_float(value: Any, default: float = 0.0) -> float:
    """Parse a vendor numeric field, falling back to ``default`` on junk."""
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def parse_int(value: Any, default: int | None = None) -> int | None:
    if value is None or value == "":
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _as_text(value: Any) -> str | None:
    return None if value is None else str(value)


# ── Accounts and inventory ───────────────────────────────


@dataclass
class UserAccount:
    """A user with vendor credentials and an optional cached session token."""

    id: str
    api_username: str
    api_password: str
    xsrf_token: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> UserAccount:
        return cls(
            id=str(row["id"]),
            api_username=row["api_username"],
            api_password=row["api_password"],
            xsrf_token=row.get("xsrf_token") or None,
        )


@dataclass
class Plant:
    """A solar station as reported by the vendor station list."""

    station_code: str
    station_name: str | None = None
    station_addr: str | None = None
    capacity: float = 0.0
    aid_type: int | None = None
    build_state: str | None = None
    combine_type: str | None = None
    linkman_pho: str | None = None
    station_linkman: str | None = None

    @classmethod
    def from_vendor(cls, item: dict[str, Any]) -> Plant:
        return cls(
            station_code=str(item["stationCode"]),
            station_name=item.get("stationName"),
            station_addr=item.get("stationAddr"),
            capacity=parse_float(item.get("capacity")),
            aid_type=parse_int(item.get("aidType")),
            build_state=_as_text(item.get("buildState")),
            combine_type=_as_text(item.get("combineType")),
            linkman_pho=_as_text(item.get("linkmanPho")),
            station_linkman=item.get("stationLinkman"),
        )

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Plant:
        return cls(
            station_code=row["station_code"],
            station_name=row.get("station_name"),
            station_addr=row.get("station_addr"),
            capacity=parse_float(row.get("capacity")),
            aid_type=row.get("aid_type"),
            build_state=row.get("build_state"),
            combine_type=row.get("combine_type"),
            linkman_pho=row.get("linkman_pho"),
            station_linkman=row.get("station_linkman"),
        )


@dataclass
class Device:
    """An inverter or meter attached to a station."""

    dev_id: str
    device_type: DeviceType
    dev_dn: str | None = None
    dev_name: str | None = None
    dev_type_id: int | None = None

    @classmethod
    def from_vendor(cls, item: dict[str, Any]) -> Device:
        """Map a getDevList entry. Type 38 is an inverter, anything else a meter."""
        dev_id = item.get("id")
        if dev_id in (None, ""):
            dev_id = item["devDn"]
        type_id = parse_int(item.get("devTypeId"))
        return cls(
            dev_id=str(dev_id),
            device_type=DeviceType.INVERTER if type_id == INVERTER_TYPE_ID else DeviceType.METER,
            dev_dn=item.get("devDn"),
            dev_name=item.get("devName"),
            dev_type_id=type_id,
        )

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Device:
        return cls(
            dev_id=row["dev_id"],
            device_type=DeviceType(row["device_type"]),
            dev_dn=row.get("dev_dn"),
            dev_name=row.get("dev_name"),
            dev_type_id=row.get("dev_type_id"),
        )

    @property
    def kpi_type_id(self) -> int:
        """Device type id to send to getDevRealKpi."""
        if self.dev_type_id is not None:
            return self.dev_type_id
        return self.device_type.type_id

    def polls_as(self, role: DeviceType) -> bool:
        """True when this device is the real-time source for ``role``.

        Only type 38 polls as the inverter and type 47 as the meter; dongles,
        batteries and other auxiliaries stored as meters never do. Rows without
        a vendor type id fall back to their stored role.
        """
        if self.dev_type_id is None:
            return self.device_type is role
        return self.dev_type_id == role.type_id


# ── Telemetry snapshots ──────────────────────────────────


@dataclass
class DailySnapshot:
    """Cumulative day/month/lifetime figures for one station on one UTC date."""

    station_code: str
    data_date: str
    day_power: float = 0.0
    month_power: float = 0.0
    total_power: float = 0.0
    day_use_energy: float = 0.0
    day_on_grid_energy: float = 0.0
    day_income: float = 0.0
    total_income: float = 0.0
    health_state: int = 3

    @classmethod
    def from_kpi(
        cls, station_code: str, data_map: dict[str, Any], data_date: date | None = None,
    ) -> DailySnapshot:
        return cls(
            station_code=station_code,
            data_date=(data_date or datetime.now(timezone.utc).date()).isoformat(),
            day_power=parse_float(data_map.get("day_power")),
            month_power=parse_float(data_map.get("month_power")),
            total_power=parse_float(data_map.get("total_power")),
            day_use_energy=parse_float(data_map.get("day_use_energy")),
            day_on_grid_energy=parse_float(data_map.get("day_on_grid_energy")),
            day_income=parse_float(data_map.get("day_income")),
            total_income=parse_float(data_map.get("total_income")),
            health_state=parse_int(data_map.get("real_health_state"), 3),
        )


@dataclass
class InverterSnapshot:
    station_code: str
    dev_id: str
    active_power: float = 0.0  # kW
    temperature: float = 0.0
    efficiency: float = 0.0

    @classmethod
    def from_kpi(cls, station_code: str, dev_id: str, data_map: dict[str, Any]) -> InverterSnapshot:
        return cls(
            station_code=station_code,
            dev_id=dev_id,
            active_power=parse_float(data_map.get("active_power")),
            temperature=parse_float(data_map.get("temperature")),
            efficiency=parse_float(data_map.get("efficiency")),
        )


@dataclass
class MeterSnapshot:
    station_code: str
    dev_id: str
    active_power: float = 0.0  # kW, the meter reports W
    voltage: float = 0.0
    current: float = 0.0
    frequency: float = 0.0
    status: int = 1

    @classmethod
    def from_kpi(cls, station_code: str, dev_id: str, data_map: dict[str, Any]) -> MeterSnapshot:
        return cls(
            station_code=station_code,
            dev_id=dev_id,
            active_power=parse_float(data_map.get("active_power")) / 1000,
            voltage=parse_float(data_map.get("meter_u")),
            current=parse_float(data_map.get("meter_i")),
            frequency=parse_float(data_map.get("grid_frequency")),
            status=parse_int(data_map.get("meter_status"), 1),
        )


# ── Step results ─────────────────────────────────────────

# Trigger payload keys, as read by the mobile client.
_WIRE_KEYS = {
    "user_id": "userId",
    "plants_processed": "plantsProcessed",
    "plants_from_cache": "plantsFromCache",
    "devices_from_cache": "devicesFromCache",
    "daily_data_skipped": "dailyDataLimited",
    "duration_seconds": "durationSeconds",
}


def _to_wire(data: dict[str, Any]) -> dict[str, Any]:
    return {_WIRE_KEYS.get(key, key): value for key, value in data.items()}



@dataclass
class PlantSyncResult:
    plants: list[Plant] = field(default_factory=list)
    from_cache: bool = False


@dataclass
class DeviceSyncResult:
    devices: list[Device] = field(default_factory=list)
    from_cache: bool = False


@dataclass
class RealTimeSyncResult:
    written: list[DeviceType] = field(default_factory=list)
    priority: DeviceType | None = None


@dataclass
class UserSyncResult:
    """Outcome of one user's sync run."""

    user_id: str
    status: SyncStatus
    plants_processed: int = 0
    plants_from_cache: bool = False
    devices_from_cache: bool = False
    daily_data_skipped: bool = False
    error: str | None = None
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status is SyncStatus.SUCCESS

    @classmethod
    def failed(cls, user_id: str, error: str, duration_seconds: float = 0.0) -> UserSyncResult:
        return cls(
            user_id=user_id,
            status=SyncStatus.ERROR,
            error=error,
            duration_seconds=duration_seconds,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        if self.error is None:
            del data["error"]
        return _to_wire(data)


@dataclass
class SyncSummary:
    """Counts across one batch run."""

    total: int = 0
    successful: int = 0
    errors: int = 0
    plants_from_cache: int = 0
    devices_from_cache: int = 0
    daily_data_skipped: int = 0
    duration_seconds: float = 0.0

    @classmethod
    def from_results(
        cls, results: list[UserSyncResult], duration_seconds: float = 0.0,
    ) -> SyncSummary:
        return cls(
            total=len(results),
            successful=sum(1 for r in results if r.ok),
            errors=sum(1 for r in results if not r.ok),
            plants_from_cache=sum(1 for r in results if r.plants_from_cache),
            devices_from_cache=sum(1 for r in results if r.devices_from_cache),
            daily_data_skipped=sum(1 for r in results if r.daily_data_skipped),
            duration_seconds=duration_seconds,
        )

    def to_dict(self) -> dict[str, Any]:
        return _to_wire(asdict(self))


@dataclass
class BatchRunResult:
    summary: SyncSummary
    results: list[UserSyncResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "summary": self.summary.to_dict(),
            "results": [r.to_dict() for r in self.results],
        }
