"""Persistence layer: async engine, ORM tables and repositories."""

from vynox.persistence.db import close_db, get_session, init_db, session_context
from vynox.persistence.tables import Base

__all__ = ["Base", "close_db", "get_session", "init_db", "session_context"]
