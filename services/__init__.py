"""
Business logic services.

Each service handles one domain area.
"""

from services.catalog_service import (
    CatalogGateway,
    SupabaseCatalogService,
    VariantSeed,
    get_catalog_service,
)
from services.price_list_service import PriceListService, get_price_list_service
from services.preview_service import PreviewService, get_preview_service
from services.conflict_resolver import PriceCandidate, resolve_conflicts
from services.variant_resolver import (
    Orphan,
    OrphanProvisioner,
    Resolved,
    VariantResolver,
)
from services.sync_service import SyncService, get_sync_service
from services.ingestion_service import IngestionService, get_ingestion_service

__all__ = [
    "CatalogGateway",
    "SupabaseCatalogService",
    "VariantSeed",
    "get_catalog_service",
    "PriceListService",
    "get_price_list_service",
    "PreviewService",
    "get_preview_service",
    "PriceCandidate",
    "resolve_conflicts",
    "Orphan",
    "OrphanProvisioner",
    "Resolved",
    "VariantResolver",
    "SyncService",
    "get_sync_service",
    "IngestionService",
    "get_ingestion_service",
]
