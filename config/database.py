"""
Supabase client for the price list store and the catalog tables.

The sync writes catalog prices and creates catalog variants, so the
service role key is used when configured; the anon key otherwise.
"""

from supabase import create_client, Client
from functools import lru_cache
import structlog

from config.settings import settings

logger = structlog.get_logger(__name__)

# Tables that must answer for the service to be healthy
STORE_TABLES = ("suppliers", "supplier_price_lists", "supplier_price_list_items")
CATALOG_TABLES = ("product_variants", "variant_prices")


class DatabaseConnectionError(Exception):
    """Failed to connect to Supabase."""
    pass


@lru_cache()
def get_supabase_client() -> Client:
    """
    Get the cached Supabase client.

    Call get_supabase_client.cache_clear() to reconnect.

    Raises:
        DatabaseConnectionError: If the client cannot reach the store
    """
    key = settings.supabase_service_key or settings.supabase_key
    try:
        logger.info(
            "connecting_to_supabase",
            url=settings.supabase_url[:30] + "...",
            role="service" if settings.supabase_service_key else "anon"
        )

        client = create_client(settings.supabase_url, key)
        client.table("supplier_price_lists").select("id").limit(1).execute()

        logger.info("supabase_connected")
        return client

    except Exception as e:
        logger.error(
            "supabase_connection_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        raise DatabaseConnectionError(f"Failed to connect to Supabase: {e}") from e


def check_connection() -> dict:
    """
    Health of the store and catalog tables.

    Returns:
        dict: status plus supplier and active price list counts, or the
        first failing table
    """
    try:
        client = get_supabase_client()
    except DatabaseConnectionError as e:
        return {"status": "unhealthy", "error": str(e)}

    for table in STORE_TABLES + CATALOG_TABLES:
        try:
            client.table(table).select("*").limit(1).execute()
        except Exception as e:
            logger.warning("table_unreachable", table=table, error=str(e))
            return {"status": "unhealthy", "table": table, "error": str(e)}

    try:
        suppliers = client.table("suppliers").select("id", count="exact").execute()
        price_lists = (
            client.table("supplier_price_lists")
            .select("id", count="exact")
            .eq("is_active", True)
            .execute()
        )
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}

    return {
        "status": "healthy",
        "suppliers_count": suppliers.count,
        "active_price_lists_count": price_lists.count
    }
