"""Database engine and repository for Fusion Sync."""

from fusion_sync.db.engine import close_db, init_db
from fusion_sync.db.repository import Repository

__all__ = ["close_db", "init_db", "Repository"]
