"""
Conflict resolution between supplier prices for one variant.

Pure functions: no database access, same candidates in any order give the
same winner.

Precedence:
    1. Only active price lists inside their effective/expiry window
    2. Preferred suppliers first (ignored with force_sync)
    3. Lowest priority_rank
    4. Lowest cost_price
    5. Most recent effective_date (no date counts as oldest), then item id
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from exceptions import ConflictPolicyViolation
from models.price_list import PriceListItemResponse, PriceListResponse, SupplierResponse
from models.sync import SyncDecision


@dataclass(frozen=True)
class PriceCandidate:
    """One supplier price for a variant, flattened with its list and supplier."""
    item_id: str
    variant_id: str
    price_list_id: str
    supplier_id: str
    supplier_name: str
    cost_price: Decimal
    currency_code: str
    is_preferred_supplier: bool = False
    priority_rank: int = 100
    effective_date: Optional[date] = None
    expiry_date: Optional[date] = None
    is_active: bool = True

    @classmethod
    def from_records(
        cls,
        item: PriceListItemResponse,
        price_list: PriceListResponse,
        supplier: SupplierResponse,
    ) -> "PriceCandidate":
        return cls(
            item_id=item.id,
            variant_id=item.product_variant_id,
            price_list_id=price_list.id,
            supplier_id=supplier.id,
            supplier_name=supplier.name,
            cost_price=item.cost_price,
            currency_code=item.currency_code,
            is_preferred_supplier=supplier.is_preferred_supplier,
            priority_rank=price_list.priority_rank,
            effective_date=price_list.effective_date,
            expiry_date=price_list.expiry_date,
            is_active=price_list.is_active,
        )


def exclusion_reason(candidate: PriceCandidate, today: date) -> Optional[str]:
    """Why a candidate cannot win at all, or None if it is eligible."""
    if not candidate.is_active:
        return "Price list inactive"
    if candidate.expiry_date and candidate.expiry_date < today:
        return f"Price list expired on {candidate.expiry_date.isoformat()}"
    if candidate.effective_date and candidate.effective_date > today:
        return f"Price list not effective until {candidate.effective_date.isoformat()}"
    return None


def _ordering_key(candidate: PriceCandidate, force_sync: bool) -> tuple:
    preference = 0 if force_sync or candidate.is_preferred_supplier else 1
    if candidate.effective_date is None:
        recency = (1, 0)
    else:
        recency = (0, -candidate.effective_date.toordinal())
    return (
        preference,
        candidate.priority_rank,
        candidate.cost_price,
        recency,
        candidate.item_id,
    )


def resolve_conflicts(
    variant_id: str,
    candidates: list[PriceCandidate],
    force_sync: bool = False,
    today: Optional[date] = None,
) -> Optional[SyncDecision]:
    """
    Pick the winning price for a variant.

    Every other candidate ends up in skip_notes: losers with a note naming
    the winner, excluded candidates with the exclusion reason.

    Returns:
        SyncDecision, or None when no candidate is eligible

    Raises:
        ConflictPolicyViolation: If two candidates cannot be told apart
    """
    today = today or date.today()

    skip_notes: dict[str, str] = {}
    eligible: list[PriceCandidate] = []
    for candidate in candidates:
        reason = exclusion_reason(candidate, today)
        if reason:
            skip_notes[candidate.item_id] = reason
        else:
            eligible.append(candidate)

    if not eligible:
        return None

    ranked = sorted(eligible, key=lambda c: _ordering_key(c, force_sync))
    if len(ranked) > 1 and _ordering_key(ranked[0], force_sync) == _ordering_key(ranked[1], force_sync):
        raise ConflictPolicyViolation(
            variant_id,
            f"Candidates for variant {variant_id} tie on every rule (item {ranked[0].item_id})"
        )

    winner = ranked[0]
    for loser in ranked[1:]:
        skip_notes[loser.item_id] = (
            f"Lost to {winner.supplier_name} (item {winner.item_id}) "
            f"at {winner.cost_price} {winner.currency_code}"
        )

    return SyncDecision(
        variant_id=variant_id,
        winning_price_list_item_id=winner.item_id,
        amount=winner.cost_price,
        currency_code=winner.currency_code,
        losing_item_ids=[loser.item_id for loser in ranked[1:]],
        skip_notes=skip_notes,
    )
