"""
Catalog access for price sync.

The catalog owns products, variants and selling prices. Sync code only
talks to it through CatalogGateway, so tests and other backends can stand
in for the Supabase implementation below.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional, Protocol
import re
import structlog

from config import get_supabase_client
from exceptions import DatabaseError

logger = structlog.get_logger(__name__)


@dataclass
class VariantSeed:
    """What an orphan provisioner knows about a part it needs in the catalog."""
    part_number: str
    title: str
    amount: Decimal
    currency_code: str
    metadata: dict[str, Any] = field(default_factory=dict)


class CatalogGateway(Protocol):
    """Operations the sync depends on."""

    def find_variant_by_sku(self, sku: str) -> Optional[str]:
        """Variant id with exactly this SKU, or None."""
        ...

    def create_product_and_variant(self, seed: VariantSeed) -> str:
        """Create product + variant (+ seed price) as one unit. Returns variant id."""
        ...

    def get_variant_price(self, variant_id: str, currency_code: str) -> Optional[Decimal]:
        """Current price in this currency, or None when unpriced."""
        ...

    def set_variant_price(
        self,
        variant_id: str,
        amount: Optional[Decimal],
        currency_code: str,
    ) -> Optional[Decimal]:
        """Set (or with None, remove) the price. Returns the previous amount."""
        ...


def _handle(part_number: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", part_number.lower()).strip("-") or part_number


def _amount(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


class SupabaseCatalogService:
    """
    Catalog backed by the products, product_variants and variant_prices tables.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.products_table = "products"
        self.variants_table = "product_variants"
        self.prices_table = "variant_prices"

    # ===================
    # VARIANTS
    # ===================

    def find_variant_by_sku(self, sku: str) -> Optional[str]:
        """
        Look up a variant by exact SKU.

        No normalization: "ab-1" and "AB1" are different SKUs.
        """
        try:
            result = (
                self.db.table(self.variants_table)
                .select("id")
                .eq("sku", sku)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("find_variant_failed", sku=sku, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            return None
        return result.data[0]["id"]

    def _product_exists(self, product_id: str) -> bool:
        result = (
            self.db.table(self.products_table)
            .select("id")
            .eq("id", product_id)
            .execute()
        )
        return bool(result.data)

    def create_product_and_variant(self, seed: VariantSeed) -> str:
        """
        Create a product and its single variant for a supplier part.

        Product id, variant id and variant SKU are the part number. An
        existing product with that id is reused. If the variant or its price
        cannot be written, rows created by this call are removed again.

        Returns:
            New variant id

        Raises:
            DatabaseError: If creation fails
        """
        part_number = seed.part_number
        logger.info("creating_catalog_variant", part_number=part_number)

        created_product = False
        created_variant = False
        try:
            if not self._product_exists(part_number):
                self.db.table(self.products_table).insert({
                    "id": part_number,
                    "title": seed.title,
                    "handle": _handle(part_number),
                    "status": "draft",
                    "metadata": seed.metadata,
                }).execute()
                created_product = True

            self.db.table(self.variants_table).insert({
                "id": part_number,
                "product_id": part_number,
                "sku": part_number,
                "title": seed.title,
                "metadata": seed.metadata,
            }).execute()
            created_variant = True

            self.db.table(self.prices_table).insert({
                "variant_id": part_number,
                "currency_code": seed.currency_code,
                "amount": str(seed.amount),
            }).execute()

        except Exception as e:
            logger.error(
                "create_catalog_variant_failed",
                part_number=part_number,
                error=str(e)
            )
            self._remove_partial(part_number, created_product, created_variant)
            raise DatabaseError("insert", str(e), {"part_number": part_number})

        logger.info("catalog_variant_created", variant_id=part_number)
        return part_number

    def _remove_partial(self, part_number: str, product: bool, variant: bool) -> None:
        try:
            if variant:
                self.db.table(self.variants_table).delete().eq("id", part_number).execute()
            if product:
                self.db.table(self.products_table).delete().eq("id", part_number).execute()
        except Exception as e:
            logger.error("remove_partial_variant_failed", part_number=part_number, error=str(e))

    # ===================
    # PRICES
    # ===================

    def get_variant_price(self, variant_id: str, currency_code: str) -> Optional[Decimal]:
        try:
            result = (
                self.db.table(self.prices_table)
                .select("amount")
                .eq("variant_id", variant_id)
                .eq("currency_code", currency_code)
                .execute()
            )
        except Exception as e:
            logger.error("get_variant_price_failed", variant_id=variant_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            return None
        return _amount(result.data[0]["amount"])

    def set_variant_price(
        self,
        variant_id: str,
        amount: Optional[Decimal],
        currency_code: str,
    ) -> Optional[Decimal]:
        """
        Set the variant's price in one currency.

        Calling again with the returned previous amount undoes the change;
        amount=None removes the price.

        Returns:
            Amount before the change (None if there was none)
        """
        previous = self.get_variant_price(variant_id, currency_code)

        try:
            query = self.db.table(self.prices_table)
            if amount is None:
                query = query.delete()
            elif previous is None:
                query = query.insert({
                    "variant_id": variant_id,
                    "currency_code": currency_code,
                    "amount": str(amount),
                })
            else:
                query = query.update({"amount": str(amount)})

            if amount is None or previous is not None:
                query = query.eq("variant_id", variant_id).eq("currency_code", currency_code)
            query.execute()

        except Exception as e:
            logger.error(
                "set_variant_price_failed",
                variant_id=variant_id,
                amount=str(amount),
                error=str(e)
            )
            raise DatabaseError("update", str(e))

        logger.debug(
            "variant_price_set",
            variant_id=variant_id,
            previous=str(previous) if previous is not None else None,
            amount=str(amount) if amount is not None else None,
            currency_code=currency_code
        )
        return previous


# Singleton instance
_service: Optional[SupabaseCatalogService] = None


def get_catalog_service() -> SupabaseCatalogService:
    """Get or create SupabaseCatalogService instance."""
    global _service
    if _service is None:
        _service = SupabaseCatalogService()
    return _service
