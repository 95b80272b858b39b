"""
Supabase client for the catalog store.

One client per process, created on first use.
"""

from supabase import create_client, Client
from functools import lru_cache
import structlog

from config.settings import settings

logger = structlog.get_logger(__name__)

# Tables an import reads or writes
IMPORT_TABLES = ("products", "product_categories", "stocks", "stock_produit")


class DatabaseConnectionError(Exception):
    """Supabase client could not be created."""
    pass


@lru_cache()
def get_supabase_client() -> Client:
    """
    Get the shared Supabase client.

    Call get_supabase_client.cache_clear() to reconnect.

    Raises:
        DatabaseConnectionError: If the client cannot be created
    """
    logger.info(
        "connecting_to_supabase",
        url=settings.supabase_url[:30] + "..."
    )
    try:
        client = create_client(settings.supabase_url, settings.supabase_key)
    except Exception as e:
        logger.error(
            "supabase_connection_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        raise DatabaseConnectionError(f"Failed to connect to Supabase: {e}") from e

    logger.info("supabase_client_created")
    return client


def check_connection() -> dict:
    """
    Count the rows of every import table.

    Returns:
        {"status": "healthy", "tables": {name: count}} or
        {"status": "unhealthy", "table": name, "error": message}
    """
    counts = {}
    for table in IMPORT_TABLES:
        try:
            result = (
                get_supabase_client()
                .table(table)
                .select("id", count="exact")
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.warning("import_table_unreachable", table=table, error=str(e))
            return {"status": "unhealthy", "table": table, "error": str(e)}
        counts[table] = result.count

    return {"status": "healthy", "tables": counts}
