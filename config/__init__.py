"""
Configuration: environment settings and the Supabase client.
"""

from config.settings import settings, get_settings, Settings
from config.database import (
    IMPORT_TABLES,
    DatabaseConnectionError,
    check_connection,
    get_supabase_client,
)

__all__ = [
    "settings",
    "get_settings",
    "Settings",
    "IMPORT_TABLES",
    "DatabaseConnectionError",
    "check_connection",
    "get_supabase_client",
]
