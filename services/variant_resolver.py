"""
Variant resolution for price list items.

VariantResolver maps supplier part numbers to existing catalog variants.
OrphanProvisioner creates a product + variant for parts the catalog does
not know yet. Both write the result back onto the items (link-back).
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Optional, Union
import structlog

from config import settings
from exceptions import ResolutionError
from models.price_list import PriceListItemResponse, PriceListResponse, SupplierResponse
from services.catalog_service import CatalogGateway, VariantSeed, get_catalog_service
from services.price_list_service import PriceListService, get_price_list_service

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Resolved:
    variant_id: str
    sku: Optional[str] = None
    created: bool = False


@dataclass(frozen=True)
class Orphan:
    reason: str


Resolution = Union[Resolved, Orphan]


class VariantResolver:
    """
    Resolves items to catalog variants by exact SKU.

    Matching is exact-string: no case folding, no stripping of dashes or
    leading zeros.
    """

    def __init__(
        self,
        catalog: Optional[CatalogGateway] = None,
        store: Optional[PriceListService] = None,
        max_workers: Optional[int] = None,
    ):
        self.catalog = catalog or get_catalog_service()
        self.store = store or get_price_list_service()
        self.max_workers = max_workers or settings.sync_max_workers

    def _lookup(self, sku: str) -> Optional[str]:
        return self.catalog.find_variant_by_sku(sku)

    def resolve(self, item: PriceListItemResponse) -> Resolution:
        """Resolve one item: linked variant, SKU match, or orphan."""
        if item.product_variant_id:
            return Resolved(variant_id=item.product_variant_id, sku=item.variant_sku)

        for sku in (item.variant_sku, item.supplier_sku):
            if not sku:
                continue
            variant_id = self._lookup(sku)
            if variant_id:
                return Resolved(variant_id=variant_id, sku=sku)

        return Orphan(reason=f"No catalog variant with SKU {item.supplier_sku}")

    def resolve_all(self, items: list[PriceListItemResponse]) -> dict[str, Resolution]:
        """
        Resolve many items, looking up each distinct SKU once on a thread pool.

        Returns:
            Item id -> Resolved | Orphan
        """
        skus = sorted({
            sku
            for item in items
            if not item.product_variant_id
            for sku in (item.variant_sku, item.supplier_sku)
            if sku
        })

        found: dict[str, Optional[str]] = {}
        if skus:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = {executor.submit(self._lookup, sku): sku for sku in skus}
                for future in as_completed(futures):
                    found[futures[future]] = future.result()

        resolutions: dict[str, Resolution] = {}
        for item in items:
            if item.product_variant_id:
                resolutions[item.id] = Resolved(variant_id=item.product_variant_id, sku=item.variant_sku)
                continue
            resolution: Resolution = Orphan(reason=f"No catalog variant with SKU {item.supplier_sku}")
            for sku in (item.variant_sku, item.supplier_sku):
                if sku and found.get(sku):
                    resolution = Resolved(variant_id=found[sku], sku=sku)
                    break
            resolutions[item.id] = resolution

        logger.info(
            "variants_resolved",
            items=len(items),
            lookups=len(skus),
            orphans=sum(1 for r in resolutions.values() if isinstance(r, Orphan))
        )
        return resolutions

    def link_back(
        self,
        items: list[PriceListItemResponse],
        resolutions: dict[str, Resolution],
    ) -> int:
        """
        Write resolved variant ids onto items that are not linked yet.

        Skipped entirely when every resolved item already points at its
        variant.

        Returns:
            Number of items linked
        """
        by_variant: dict[tuple[str, str], list[str]] = {}
        for item in items:
            resolution = resolutions.get(item.id)
            if not isinstance(resolution, Resolved):
                continue
            if item.product_variant_id == resolution.variant_id:
                continue
            key = (resolution.variant_id, resolution.sku or item.supplier_sku)
            by_variant.setdefault(key, []).append(item.id)

        if not by_variant:
            logger.debug("link_back_skipped", items=len(items))
            return 0

        linked = 0
        for (variant_id, variant_sku), item_ids in by_variant.items():
            linked += self.store.link_variant(item_ids, variant_id, variant_sku)

        logger.info("items_linked_to_variants", linked=linked, variants=len(by_variant))
        return linked


class OrphanProvisioner:
    """
    Creates catalog products + variants for orphan items.

    The new product id, variant id and variant SKU are the part number; the
    supplier and price list are kept in variant metadata.
    """

    def __init__(self, catalog: Optional[CatalogGateway] = None):
        self.catalog = catalog or get_catalog_service()

    def provision(
        self,
        item: PriceListItemResponse,
        price_list: PriceListResponse,
        supplier: Optional[SupplierResponse] = None,
    ) -> str:
        """
        Create the catalog variant for one orphan item.

        Returns:
            New variant id

        Raises:
            ResolutionError: If the catalog refuses the product or variant
        """
        seed = VariantSeed(
            part_number=item.supplier_sku,
            title=item.description or item.supplier_sku,
            amount=item.cost_price,
            currency_code=item.currency_code,
            metadata={
                "supplier_id": item.supplier_id,
                "supplier_name": supplier.name if supplier else None,
                "price_list_id": price_list.id,
                "supplier_sku": item.supplier_sku,
            },
        )
        try:
            return self.catalog.create_product_and_variant(seed)
        except Exception as e:
            logger.warning(
                "orphan_provision_failed",
                supplier_sku=item.supplier_sku,
                price_list_id=price_list.id,
                error=str(e)
            )
            raise ResolutionError(item.supplier_sku, str(e))

    def provision_all(
        self,
        items: list[PriceListItemResponse],
        price_list: PriceListResponse,
        supplier: Optional[SupplierResponse] = None,
    ) -> tuple[dict[str, Resolved], dict[str, str]]:
        """
        Provision orphans one part number at a time.

        Items sharing a part number get the same variant. A failure only
        affects the items of that part number.

        Returns:
            (item id -> Resolved, item id -> error message)
        """
        by_sku: dict[str, list[PriceListItemResponse]] = {}
        for item in items:
            by_sku.setdefault(item.supplier_sku, []).append(item)

        created: dict[str, Resolved] = {}
        failed: dict[str, str] = {}
        for sku, group in by_sku.items():
            try:
                variant_id = self.provision(group[0], price_list, supplier)
            except ResolutionError as e:
                for item in group:
                    failed[item.id] = e.message
                continue
            for item in group:
                created[item.id] = Resolved(variant_id=variant_id, sku=sku, created=True)

        logger.info(
            "orphans_provisioned",
            price_list_id=price_list.id,
            created=len(created),
            failed=len(failed)
        )
        return created, failed
