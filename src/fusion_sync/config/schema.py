"""Pydantic configuration models for all service settings."""

from __future__ import annotations

from pydantic import BaseModel, Field


class VendorConfig(BaseModel):
    base_url: str = "https://eu5.fusionsolar.huawei.com"
    timeout_seconds: float = Field(30.0, gt=0.0)


class SyncConfig(BaseModel):
    interval_seconds: int = Field(1800, ge=60)
    run_on_startup: bool = True
    scheduler_enabled: bool = True
    max_concurrent_users: int = Field(1, ge=1)  # 1 = strictly sequential


class ApiConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8080
    cors_allow_origin: str = "*"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "json"
    file: str = ""


class DBConfig(BaseModel):
    path: str = "fusion_sync.db"


class AppConfig(BaseModel):
    """Root configuration model containing all service settings."""

    vendor: VendorConfig = VendorConfig()
    sync: SyncConfig = SyncConfig()
    api: ApiConfig = ApiConfig()
    logging: LoggingConfig = LoggingConfig()
    db: DBConfig = DBConfig()
