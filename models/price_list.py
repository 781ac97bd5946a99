"""
Supplier price list schemas for validation and serialization.

A price list groups the rows of one supplier submission. Items are created
in bulk when a list is committed; variant links and sync status are only
written by the resolver and the sync orchestrator.
"""

from pydantic import ConfigDict, Field, field_validator
from typing import Any, Optional
from enum import Enum
from datetime import date, datetime
from decimal import Decimal

from models.base import BaseSchema, TimestampMixin
from models.parse_config import ParseConfig, ColumnMapping


class SyncStatus(str, Enum):
    """Sync state of a price list item."""
    PENDING = "pending"
    SYNCED = "synced"
    SKIPPED = "skipped"
    ERROR = "error"


# ===================
# SUPPLIER
# ===================

class SupplierResponse(BaseSchema):
    """Supplier fields the price sync depends on."""

    id: str = Field(..., description="Supplier UUID")
    name: str = Field(..., description="Supplier name")
    is_preferred_supplier: bool = Field(
        False,
        description="Preferred suppliers win price conflicts unless force_sync is used"
    )
    auto_sync_prices: bool = Field(
        False,
        description="Sync catalog prices right after a price list is committed"
    )
    currency_code: Optional[str] = Field(None, description="Supplier default currency")


# ===================
# PRICE LIST
# ===================

class PriceListMetadata(BaseSchema):
    """
    Caller-supplied attributes of a new price list.

    Everything except name is optional.
    """

    name: str = Field(..., min_length=1, max_length=200, description="Price list version name")
    effective_date: Optional[date] = Field(None, description="First day the prices apply")
    expiry_date: Optional[date] = Field(None, description="Last day the prices apply")
    currency_code: Optional[str] = Field(
        None,
        min_length=3,
        max_length=3,
        description="ISO currency; falls back to supplier, then settings"
    )
    priority_rank: int = Field(100, ge=0, description="Lower wins conflicts")
    upload_filename: Optional[str] = Field(None, max_length=255)
    supersede_previous: Optional[bool] = Field(
        None,
        description="Deactivate the supplier's older active lists (default from settings)"
    )

    @field_validator("currency_code")
    @classmethod
    def upper_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v

    @field_validator("expiry_date")
    @classmethod
    def expiry_after_effective(cls, v: Optional[date], info) -> Optional[date]:
        effective = info.data.get("effective_date")
        if v and effective and v < effective:
            raise ValueError("expiry_date must not be before effective_date")
        return v


class PriceListResponse(BaseSchema, TimestampMixin):
    """Stored price list."""

    id: str = Field(..., description="Price list UUID")
    supplier_id: str
    name: str
    effective_date: Optional[date] = None
    expiry_date: Optional[date] = None
    is_active: bool = True
    currency_code: str
    priority_rank: int = 100
    upload_filename: Optional[str] = None
    import_summary: Optional[dict[str, Any]] = None


class PriceListListResponse(BaseSchema):
    """A supplier's price list history."""

    data: list[PriceListResponse]
    total: int


# ===================
# PRICE LIST ITEMS
# ===================

class PriceListItemCreate(BaseSchema):
    """One mapped row ready to be stored."""

    supplier_sku: str = Field(..., min_length=1, max_length=100, description="Supplier part number")
    cost_price: Decimal = Field(..., ge=0, description="Net cost paid to the supplier")
    gross_price: Optional[Decimal] = Field(None, ge=0, description="List price before discount")
    discount_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    currency_code: Optional[str] = Field(None, min_length=3, max_length=3)
    variant_sku: Optional[str] = Field(None, max_length=100)
    quantity: int = Field(1, ge=1, description="Minimum order quantity")
    lead_time_days: Optional[int] = Field(None, ge=0)
    description: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = Field(None, max_length=1000)
    row_number: Optional[int] = Field(None, description="Source line, for error messages")


class PriceListItemResponse(BaseSchema, TimestampMixin):
    """Stored price list item."""

    id: str = Field(..., description="Item UUID")
    price_list_id: str
    supplier_id: str
    supplier_sku: str
    variant_sku: Optional[str] = None
    product_variant_id: Optional[str] = None
    cost_price: Decimal
    gross_price: Optional[Decimal] = None
    discount_percentage: Optional[Decimal] = None
    currency_code: str
    quantity: int = 1
    lead_time_days: Optional[int] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    sync_status: SyncStatus = SyncStatus.PENDING
    sync_note: Optional[str] = None
    last_synced_at: Optional[datetime] = None


class PriceListItemListResponse(BaseSchema):
    """Items of one price list."""

    data: list[PriceListItemResponse]
    total: int


# ===================
# COMMIT
# ===================

class PriceListCommitRequest(BaseSchema):
    """Body of a price list commit."""
    model_config = ConfigDict(str_strip_whitespace=False)

    file_content: str = Field(..., min_length=1, description="Raw file text")
    parse_config: Optional[ParseConfig] = Field(None, description="Grammar; template default when omitted")
    column_mapping: Optional[ColumnMapping] = Field(None, description="Source column -> canonical field")
    template_id: Optional[str] = Field(None, description="Parser template to start from")
    metadata: PriceListMetadata


class PriceListUploadOptions(BaseSchema):
    """JSON form field sent along with an uploaded price file."""
    model_config = ConfigDict(str_strip_whitespace=False)

    parse_config: Optional[ParseConfig] = None
    column_mapping: Optional[ColumnMapping] = None
    template_id: Optional[str] = None
    metadata: Optional[PriceListMetadata] = Field(
        None,
        description="Defaults to a list named after the uploaded file"
    )


class ImportSummary(BaseSchema):
    """Row accounting for one committed file."""

    total_rows: int = 0
    processed_rows: int = 0
    error_count: int = 0
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class PriceListCommitResponse(BaseSchema):
    """Result of committing a price list."""

    price_list_id: str
    supplier_id: str
    items_created: int
    superseded_price_list_ids: list[str] = Field(default_factory=list)
    import_summary: ImportSummary
    sync_report: Optional[dict[str, Any]] = None
