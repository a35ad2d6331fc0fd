"""Fusion Sync: FusionSolar telemetry synchronisation service."""

try:
    from importlib.metadata import version as _pkg_version
    __version__ = _pkg_version("fusion-sync")
except Exception:
    __version__ = "dev"
