"""
Price sync run schemas.

SyncDecision and the report are computed per run and never stored as
such; only the per-item status they produce is persisted.
"""

from pydantic import Field
from typing import Optional
from enum import Enum
from decimal import Decimal

from models.base import BaseSchema
from models.price_list import SyncStatus


class SyncState(str, Enum):
    """Saga states of a sync run."""
    RESOLVING = "resolving"
    DIFFING = "diffing"
    APPLYING = "applying"
    COMPENSATING = "compensating"
    REPORTING = "reporting"
    DONE = "done"
    FAILED = "failed"


class SyncRequest(BaseSchema):
    """Options of a sync run."""

    force_sync: bool = Field(False, description="Ignore preferred-supplier precedence")
    dry_run: bool = Field(False, description="Compute decisions without touching the catalog")


class SyncDecision(BaseSchema):
    """Winning price for one variant."""

    variant_id: str
    winning_price_list_item_id: str
    amount: Decimal
    currency_code: str
    losing_item_ids: list[str] = Field(default_factory=list)
    skip_notes: dict[str, str] = Field(default_factory=dict)
    previous_amount: Optional[Decimal] = None


class ItemOutcome(BaseSchema):
    """Final status of one candidate item."""

    id: str
    status: SyncStatus
    note: Optional[str] = None


class SyncSummary(BaseSchema):
    """Counts over items_processed."""

    total_items: int = 0
    variants_to_update: int = 0
    synced: int = 0
    skipped: int = 0
    errors: int = 0


class SyncRunReport(BaseSchema):
    """Structured result of a sync, returned on success and on failure."""

    price_list_id: str
    success: bool
    state: SyncState
    dry_run: bool
    updated_count: int = 0
    items_processed: list[ItemOutcome] = Field(default_factory=list)
    decisions: list[SyncDecision] = Field(default_factory=list)
    summary: SyncSummary = Field(default_factory=SyncSummary)
    rolled_back_count: int = 0
    requires_manual_review: bool = False
    error: Optional[str] = None
