"""Database engine and repository for SolarSnoop."""

from solarsnoop.db.engine import close_db, init_db
from solarsnoop.db.repository import AuthSession, Repository

__all__ = ["AuthSession", "close_db", "init_db", "Repository"]
