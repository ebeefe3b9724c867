"""
Database package for PostgreSQL integration
"""
from .config import postgres_settings
from .connection import (
    Base,
    build_engine,
    build_session_maker,
    get_engine,
    get_session_maker,
    reset_engine,
    init_postgres_db,
    get_postgres_session,
    close_postgres_db
)
from .models import (
    WorkRequest,
    Lot,
    SamplingLot,
    RequestStatusHistory
)

__all__ = [
    # Config
    "postgres_settings",
    # Connection
    "Base",
    "build_engine",
    "build_session_maker",
    "get_engine",
    "get_session_maker",
    "reset_engine",
    "init_postgres_db",
    "get_postgres_session",
    "close_postgres_db",
    # Models
    "WorkRequest",
    "Lot",
    "SamplingLot",
    "RequestStatusHistory"
]
