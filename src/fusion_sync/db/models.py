"""SQL table definitions for users, plants, devices and telemetry snapshots."""

SCHEMA_VERSION = 1

TABLES = [
    # ── Schema version ──────────────────────────────────────
    """
    CREATE TABLE IF NOT EXISTS schema_version (
        id      INTEGER PRIMARY KEY CHECK (id = 1),
        version INTEGER NOT NULL
    )
    """,

    # ── Users ───────────────────────────────────────────────
    """
    CREATE TABLE IF NOT EXISTS users (
        id              TEXT PRIMARY KEY,
        api_username    TEXT,
        api_password    TEXT,
        xsrf_token      TEXT,
        created_at      TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
        updated_at      TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
    )
    """,

    # ── Plants (stations) ───────────────────────────────────
    """
    CREATE TABLE IF NOT EXISTS plants (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id         TEXT NOT NULL,
        station_code    TEXT NOT NULL,
        station_name    TEXT,
        station_addr    TEXT,
        capacity        REAL,
        aid_type        INTEGER,
        build_state     TEXT,
        combine_type    TEXT,
        linkman_pho     TEXT,
        station_linkman TEXT,
        fetched_at      TEXT NOT NULL,
        UNIQUE (user_id, station_code),
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_plants_user ON plants(user_id)",

    # ── Devices ─────────────────────────────────────────────
    """
    CREATE TABLE IF NOT EXISTS devices (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id         TEXT NOT NULL,
        station_code    TEXT NOT NULL,
        dev_id          TEXT NOT NULL,
        dev_dn          TEXT,
        dev_name        TEXT,
        dev_type_id     INTEGER,
        device_type     TEXT NOT NULL CHECK (device_type IN ('inverter', 'meter')),
        updated_at      TEXT NOT NULL,
        UNIQUE (user_id, station_code, dev_id),
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_devices_station ON devices(user_id, station_code)",

    # ── Daily data ──────────────────────────────────────────
    """
    CREATE TABLE IF NOT EXISTS solar_daily_data (
        id                  INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id             TEXT NOT NULL,
        station_code        TEXT NOT NULL,
        data_date           TEXT NOT NULL,
        day_power           REAL NOT NULL DEFAULT 0,
        month_power         REAL NOT NULL DEFAULT 0,
        total_power         REAL NOT NULL DEFAULT 0,
        day_use_energy      REAL NOT NULL DEFAULT 0,
        day_on_grid_energy  REAL NOT NULL DEFAULT 0,
        day_income          REAL NOT NULL DEFAULT 0,
        total_income        REAL NOT NULL DEFAULT 0,
        health_state        INTEGER NOT NULL DEFAULT 3,
        fetched_at          TEXT NOT NULL,
        UNIQUE (user_id, station_code, data_date),
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_daily_date ON solar_daily_data(user_id, data_date)",

    # ── Real-time snapshots ─────────────────────────────────
    """
    CREATE TABLE IF NOT EXISTS inverter_data (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id         TEXT NOT NULL,
        station_code    TEXT NOT NULL,
        dev_id          TEXT NOT NULL,
        active_power    REAL NOT NULL DEFAULT 0,
        temperature     REAL NOT NULL DEFAULT 0,
        efficiency      REAL NOT NULL DEFAULT 0,
        fetched_at      TEXT NOT NULL,
        UNIQUE (user_id, station_code, dev_id),
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS meter_data (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id         TEXT NOT NULL,
        station_code    TEXT NOT NULL,
        dev_id          TEXT NOT NULL,
        active_power    REAL NOT NULL DEFAULT 0,  -- kW
        voltage         REAL NOT NULL DEFAULT 0,
        current         REAL NOT NULL DEFAULT 0,
        frequency       REAL NOT NULL DEFAULT 0,
        status          INTEGER NOT NULL DEFAULT 1,
        fetched_at      TEXT NOT NULL,
        UNIQUE (user_id, station_code, dev_id),
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
    )
    """,

    # ── Sync preferences ────────────────────────────────────
    """
    CREATE TABLE IF NOT EXISTS sync_preferences (
        user_id         TEXT PRIMARY KEY,
        last_priority   TEXT NOT NULL CHECK (last_priority IN ('inverter', 'meter')),
        updated_at      TEXT NOT NULL,
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
    )
    """,
]
