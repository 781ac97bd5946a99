"""
Price list store: supplier price lists and their items.

Items are written in bulk when a list is committed. Afterwards only the
variant resolver (variant links) and the sync orchestrator (sync status)
change them. Lists are never deleted; deactivated lists stay as history.
"""

from datetime import datetime, timezone
from typing import Any, Iterable, Optional
import structlog

from config import get_supabase_client
from models.price_list import (
    SupplierResponse,
    PriceListMetadata,
    PriceListResponse,
    PriceListItemCreate,
    PriceListItemResponse,
    SyncStatus,
)
from exceptions import (
    DatabaseError,
    SupplierNotFoundError,
    PriceListNotFoundError,
)

logger = structlog.get_logger(__name__)

# Rows per insert/upsert/in_ request
BATCH_SIZE = 500


def _chunks(values: list, size: int = BATCH_SIZE) -> Iterable[list]:
    for start in range(0, len(values), size):
        yield values[start:start + size]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class PriceListService:
    """
    Price list business logic.

    Handles suppliers (read-only), price lists and price list items.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.suppliers_table = "suppliers"
        self.table = "supplier_price_lists"
        self.items_table = "supplier_price_list_items"

    # ===================
    # SUPPLIERS
    # ===================

    def get_supplier(self, supplier_id: str) -> SupplierResponse:
        """
        Get a supplier by ID.

        Raises:
            SupplierNotFoundError: If supplier doesn't exist
        """
        try:
            result = (
                self.db.table(self.suppliers_table)
                .select("*")
                .eq("id", supplier_id)
                .execute()
            )
        except Exception as e:
            logger.error("get_supplier_failed", supplier_id=supplier_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise SupplierNotFoundError(supplier_id)
        return SupplierResponse(**result.data[0])

    def get_suppliers(self, supplier_ids: list[str]) -> dict[str, SupplierResponse]:
        """Suppliers by id. Unknown ids are left out."""
        suppliers: dict[str, SupplierResponse] = {}
        ids = sorted(set(supplier_ids))
        try:
            for chunk in _chunks(ids):
                result = (
                    self.db.table(self.suppliers_table)
                    .select("*")
                    .in_("id", chunk)
                    .execute()
                )
                for row in result.data:
                    suppliers[row["id"]] = SupplierResponse(**row)
        except Exception as e:
            logger.error("get_suppliers_failed", count=len(ids), error=str(e))
            raise DatabaseError("select", str(e))
        return suppliers

    # ===================
    # PRICE LISTS
    # ===================

    def create_price_list(
        self,
        supplier_id: str,
        metadata: PriceListMetadata,
        currency_code: str,
        import_summary: Optional[dict[str, Any]] = None,
    ) -> PriceListResponse:
        """Create an active price list for a supplier."""
        logger.info("creating_price_list", supplier_id=supplier_id, name=metadata.name)

        insert_data = {
            "supplier_id": supplier_id,
            "name": metadata.name,
            "effective_date": metadata.effective_date.isoformat() if metadata.effective_date else None,
            "expiry_date": metadata.expiry_date.isoformat() if metadata.expiry_date else None,
            "is_active": True,
            "currency_code": currency_code,
            "priority_rank": metadata.priority_rank,
            "upload_filename": metadata.upload_filename,
            "import_summary": import_summary,
        }

        try:
            result = self.db.table(self.table).insert(insert_data).execute()
        except Exception as e:
            logger.error("create_price_list_failed", supplier_id=supplier_id, error=str(e))
            raise DatabaseError("insert", str(e))

        price_list = PriceListResponse(**result.data[0])
        logger.info("price_list_created", price_list_id=price_list.id, supplier_id=supplier_id)
        return price_list

    def get_by_id(self, price_list_id: str) -> PriceListResponse:
        """
        Get a price list by ID.

        Raises:
            PriceListNotFoundError: If price list doesn't exist
        """
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", price_list_id)
                .execute()
            )
        except Exception as e:
            logger.error("get_price_list_failed", price_list_id=price_list_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise PriceListNotFoundError(price_list_id)
        return PriceListResponse(**result.data[0])

    def get_by_ids(self, price_list_ids: list[str]) -> dict[str, PriceListResponse]:
        """Price lists by id. Unknown ids are left out."""
        price_lists: dict[str, PriceListResponse] = {}
        ids = sorted(set(price_list_ids))
        try:
            for chunk in _chunks(ids):
                result = (
                    self.db.table(self.table)
                    .select("*")
                    .in_("id", chunk)
                    .execute()
                )
                for row in result.data:
                    price_lists[row["id"]] = PriceListResponse(**row)
        except Exception as e:
            logger.error("get_price_lists_failed", count=len(ids), error=str(e))
            raise DatabaseError("select", str(e))
        return price_lists

    def list_for_supplier(
        self,
        supplier_id: str,
        active_only: bool = False,
    ) -> list[PriceListResponse]:
        """A supplier's price lists, newest first."""
        try:
            query = (
                self.db.table(self.table)
                .select("*")
                .eq("supplier_id", supplier_id)
            )
            if active_only:
                query = query.eq("is_active", True)
            result = query.order("created_at", desc=True).execute()
        except Exception as e:
            logger.error("list_price_lists_failed", supplier_id=supplier_id, error=str(e))
            raise DatabaseError("select", str(e))

        return [PriceListResponse(**row) for row in result.data]

    def deactivate(self, price_list_id: str) -> PriceListResponse:
        """
        Mark a price list inactive. Its items stop taking part in conflicts.

        Raises:
            PriceListNotFoundError: If price list doesn't exist
        """
        self.get_by_id(price_list_id)

        try:
            result = (
                self.db.table(self.table)
                .update({"is_active": False, "updated_at": _now()})
                .eq("id", price_list_id)
                .execute()
            )
        except Exception as e:
            logger.error("deactivate_price_list_failed", price_list_id=price_list_id, error=str(e))
            raise DatabaseError("update", str(e))

        logger.info("price_list_deactivated", price_list_id=price_list_id)
        return PriceListResponse(**result.data[0])

    def supersede_previous(self, supplier_id: str, keep_id: str) -> list[str]:
        """
        Deactivate the supplier's other active price lists.

        Returns:
            IDs of the lists that were deactivated
        """
        previous = [
            price_list.id
            for price_list in self.list_for_supplier(supplier_id, active_only=True)
            if price_list.id != keep_id
        ]
        if not previous:
            return []

        try:
            (
                self.db.table(self.table)
                .update({"is_active": False, "updated_at": _now()})
                .in_("id", previous)
                .execute()
            )
        except Exception as e:
            logger.error("supersede_price_lists_failed", supplier_id=supplier_id, error=str(e))
            raise DatabaseError("update", str(e))

        logger.info(
            "price_lists_superseded",
            supplier_id=supplier_id,
            kept=keep_id,
            deactivated=len(previous)
        )
        return previous

    # ===================
    # ITEMS
    # ===================

    def upsert_items(
        self,
        price_list_id: str,
        supplier_id: str,
        items: list[PriceListItemCreate],
        currency_code: str,
    ) -> int:
        """
        Store items of a price list in bulk.

        Rows are keyed by (price_list_id, supplier_sku); a part number that
        appears twice keeps its last row.

        Returns:
            Number of items stored
        """
        rows: dict[str, dict] = {}
        for item in items:
            rows[item.supplier_sku] = {
                "price_list_id": price_list_id,
                "supplier_id": supplier_id,
                "supplier_sku": item.supplier_sku,
                "variant_sku": item.variant_sku,
                "cost_price": str(item.cost_price),
                "gross_price": str(item.gross_price) if item.gross_price is not None else None,
                "discount_percentage": (
                    str(item.discount_percentage) if item.discount_percentage is not None else None
                ),
                "currency_code": item.currency_code or currency_code,
                "quantity": item.quantity,
                "lead_time_days": item.lead_time_days,
                "description": item.description,
                "notes": item.notes,
                "sync_status": SyncStatus.PENDING.value,
            }

        try:
            for chunk in _chunks(list(rows.values())):
                (
                    self.db.table(self.items_table)
                    .upsert(chunk, on_conflict="price_list_id,supplier_sku")
                    .execute()
                )
        except Exception as e:
            logger.error("upsert_price_list_items_failed", price_list_id=price_list_id, error=str(e))
            raise DatabaseError("upsert", str(e))

        logger.info("price_list_items_stored", price_list_id=price_list_id, count=len(rows))
        return len(rows)

    def get_items(
        self,
        price_list_id: str,
        status: Optional[SyncStatus] = None,
    ) -> list[PriceListItemResponse]:
        """Items of a price list, optionally only those with one sync status."""
        try:
            query = (
                self.db.table(self.items_table)
                .select("*")
                .eq("price_list_id", price_list_id)
            )
            if status is not None:
                query = query.eq("sync_status", status.value)
            result = query.order("supplier_sku").execute()
        except Exception as e:
            logger.error("get_price_list_items_failed", price_list_id=price_list_id, error=str(e))
            raise DatabaseError("select", str(e))

        return [PriceListItemResponse(**row) for row in result.data]

    def get_active_list_ids(self) -> list[str]:
        """IDs of all active price lists."""
        try:
            result = (
                self.db.table(self.table)
                .select("id")
                .eq("is_active", True)
                .execute()
            )
        except Exception as e:
            logger.error("get_active_price_lists_failed", error=str(e))
            raise DatabaseError("select", str(e))
        return [row["id"] for row in result.data]

    def get_active_items_for_variants(
        self,
        variant_ids: list[str],
        exclude_price_list_id: Optional[str] = None,
    ) -> list[PriceListItemResponse]:
        """Items of active price lists linked to these variants."""
        list_ids = [
            list_id for list_id in self.get_active_list_ids()
            if list_id != exclude_price_list_id
        ]
        ids = sorted(set(variant_ids))
        if not list_ids or not ids:
            return []

        items: list[PriceListItemResponse] = []
        try:
            for chunk in _chunks(ids):
                result = (
                    self.db.table(self.items_table)
                    .select("*")
                    .in_("product_variant_id", chunk)
                    .in_("price_list_id", list_ids)
                    .execute()
                )
                items.extend(PriceListItemResponse(**row) for row in result.data)
        except Exception as e:
            logger.error("get_variant_items_failed", count=len(ids), error=str(e))
            raise DatabaseError("select", str(e))
        return items

    def update_item_status(
        self,
        item_id: str,
        status: SyncStatus,
        note: Optional[str] = None,
    ) -> None:
        """Record the sync outcome of one item."""
        try:
            (
                self.db.table(self.items_table)
                .update({
                    "sync_status": status.value,
                    "sync_note": note,
                    "last_synced_at": _now(),
                })
                .eq("id", item_id)
                .execute()
            )
        except Exception as e:
            logger.error("update_item_status_failed", item_id=item_id, error=str(e))
            raise DatabaseError("update", str(e))

    def link_variant(self, item_ids: list[str], variant_id: str, variant_sku: str) -> int:
        """
        Point items at a catalog variant.

        Returns:
            Number of items linked
        """
        if not item_ids:
            return 0

        try:
            for chunk in _chunks(item_ids):
                (
                    self.db.table(self.items_table)
                    .update({
                        "product_variant_id": variant_id,
                        "variant_sku": variant_sku,
                        "updated_at": _now(),
                    })
                    .in_("id", chunk)
                    .execute()
                )
        except Exception as e:
            logger.error("link_variant_failed", variant_id=variant_id, error=str(e))
            raise DatabaseError("update", str(e))

        logger.debug("items_linked", variant_id=variant_id, count=len(item_ids))
        return len(item_ids)


# Singleton instance
_service: Optional[PriceListService] = None


def get_price_list_service() -> PriceListService:
    """Get or create PriceListService instance."""
    global _service
    if _service is None:
        _service = PriceListService()
    return _service
