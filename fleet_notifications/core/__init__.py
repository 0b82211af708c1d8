"""Core application utilities."""

from .config import Settings, get_settings, to_async_database_url
from .database import (
    close_db,
    create_engine_from_settings,
    create_session_factory,
    get_engine,
    get_session,
    get_session_factory,
    init_db,
)
from .dependencies import CompanyIdDep, SessionDep, get_company_id

__all__ = [
    # Config
    "Settings",
    "get_settings",
    "to_async_database_url",
    # Database
    "create_engine_from_settings",
    "create_session_factory",
    "get_engine",
    "get_session_factory",
    "get_session",
    "init_db",
    "close_db",
    # Dependencies
    "CompanyIdDep",
    "SessionDep",
    "get_company_id",
]
