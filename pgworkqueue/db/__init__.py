"""
Database module.
Contains database connection, models, and the record store.
"""

from pgworkqueue.db.connection import (
    close_db,
    create_schema,
    drop_schema,
    get_engine,
    get_session_context,
    get_session_factory,
    init_db,
    make_session_factory,
)
from pgworkqueue.db.models import Base, QueueItem
from pgworkqueue.db.repository import JobRepository

__all__ = [
    "get_session_context",
    "get_session_factory",
    "get_engine",
    "init_db",
    "close_db",
    "make_session_factory",
    "create_schema",
    "drop_schema",
    "QueueItem",
    "Base",
    "JobRepository",
]
