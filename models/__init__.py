"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    TimestampMixin,
)
from models.parse_config import (
    ParseFormat,
    FixedWidthColumn,
    Transformation,
    DivideTransform,
    MultiplyTransform,
    DateTransform,
    SubstringTransform,
    TrimZerosTransform,
    TrimTransform,
    UppercaseTransform,
    LowercaseTransform,
    ParseConfig,
    ColumnMapping,
    ParserTemplate,
)
from models.price_list import (
    SyncStatus,
    SupplierResponse,
    PriceListMetadata,
    PriceListResponse,
    PriceListListResponse,
    PriceListItemCreate,
    PriceListItemResponse,
    PriceListItemListResponse,
    PriceListCommitRequest,
    PriceListUploadOptions,
    ImportSummary,
    PriceListCommitResponse,
)
from models.preview import (
    PreviewRequest,
    PreviewStats,
    PreviewResult,
)
from models.sync import (
    SyncState,
    SyncRequest,
    SyncDecision,
    ItemOutcome,
    SyncSummary,
    SyncRunReport,
)

__all__ = [
    # Base
    "BaseSchema",
    "TimestampMixin",

    # Parse config
    "ParseFormat",
    "FixedWidthColumn",
    "Transformation",
    "DivideTransform",
    "MultiplyTransform",
    "DateTransform",
    "SubstringTransform",
    "TrimZerosTransform",
    "TrimTransform",
    "UppercaseTransform",
    "LowercaseTransform",
    "ParseConfig",
    "ColumnMapping",
    "ParserTemplate",

    # Price lists
    "SyncStatus",
    "SupplierResponse",
    "PriceListMetadata",
    "PriceListResponse",
    "PriceListListResponse",
    "PriceListItemCreate",
    "PriceListItemResponse",
    "PriceListItemListResponse",
    "PriceListCommitRequest",
    "PriceListUploadOptions",
    "ImportSummary",
    "PriceListCommitResponse",

    # Preview
    "PreviewRequest",
    "PreviewStats",
    "PreviewResult",

    # Sync
    "SyncState",
    "SyncRequest",
    "SyncDecision",
    "ItemOutcome",
    "SyncSummary",
    "SyncRunReport",
]
