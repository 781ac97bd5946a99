"""
Price list ingestion: parse, map and store a supplier file.

Commit flow:
    parse -> map -> build items -> create price list -> store items
    -> supersede older lists -> (optional) sync prices

Bad rows are reported in the import summary and left out; a file with no
usable row at all is rejected.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional
import structlog

from pydantic import ValidationError as PydanticValidationError

from config import settings
from exceptions import MappingError, PriceListParseError
from models.parse_config import ColumnMapping, ParseConfig
from models.price_list import (
    ImportSummary,
    PriceListCommitResponse,
    PriceListItemCreate,
    PriceListMetadata,
)
from parsers.column_mapper import MappedRow, map_rows, to_decimal
from parsers.line_parser import parse
from services.preview_service import apply_aliases, build_parse_plan
from services.price_list_service import PriceListService, get_price_list_service
from services.sync_service import SyncService, get_sync_service

logger = structlog.get_logger(__name__)

# Messages kept on a stored import summary
SUMMARY_MESSAGE_LIMIT = 100

PERCENT = Decimal("0.01")

ITEM_FIELDS = (
    "supplier_sku",
    "variant_sku",
    "currency_code",
    "quantity",
    "lead_time_days",
    "description",
    "notes",
)


@dataclass
class ItemBuildResult:
    """Typed items built from mapped rows."""
    items: list[PriceListItemCreate] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def _as_int(field_name: str, value: Any) -> Optional[int]:
    if value is None:
        return None
    number = to_decimal(field_name, str(value))
    if number != number.to_integral_value():
        raise MappingError(field_name, value, "not a whole number")
    return int(number)


def _price(values: dict[str, Any], name: str) -> Optional[Decimal]:
    value = values.get(name)
    if value is None:
        return None
    number = value if isinstance(value, Decimal) else to_decimal(name, str(value))
    if number < 0:
        raise MappingError(name, value, "must not be negative")
    return number


def resolve_pricing(values: dict[str, Any]) -> tuple[Decimal, Optional[Decimal], Optional[Decimal]]:
    """
    Net cost, gross price and discount percentage of a mapped row.

    Precedence:
        1. net_price (a zero net price counts as absent; part lists
           zero-fill the column). With a gross price the discount is derived.
        2. cost_price, as given.
        3. gross_price less discount_percentage, or gross_price alone.

    Raises:
        MappingError: If no price is given or the prices contradict
    """
    net = _price(values, "net_price")
    if net == 0:
        net = None
    cost = _price(values, "cost_price")
    gross = _price(values, "gross_price")
    discount = _price(values, "discount_percentage")
    if discount is not None and discount > 100:
        raise MappingError("discount_percentage", values.get("discount_percentage"), "must be at most 100")

    if net is not None:
        if gross:
            if net > gross:
                raise MappingError("net_price", values.get("net_price"), f"exceeds gross price {gross}")
            discount = ((gross - net) / gross * 100).quantize(PERCENT)
        return net, gross, discount

    if cost is not None:
        return cost, gross, discount

    if gross is not None:
        if discount is None:
            return gross, gross, None
        return gross - gross * discount / 100, gross, discount

    raise MappingError("cost_price", None, "required")


def build_item(row: MappedRow) -> PriceListItemCreate:
    """
    Build one item from a mapped row.

    Raises:
        MappingError: If a required field is missing or malformed
        pydantic.ValidationError: If a value breaks an item constraint
    """
    values = row.values
    supplier_sku = values.get("supplier_sku")
    if supplier_sku is None or not str(supplier_sku).strip():
        raise MappingError("supplier_sku", supplier_sku, "required")

    cost_price, gross_price, discount = resolve_pricing(values)

    payload = {name: values.get(name) for name in ITEM_FIELDS if values.get(name) is not None}
    payload["supplier_sku"] = str(supplier_sku).strip()
    payload["cost_price"] = cost_price
    payload["gross_price"] = gross_price
    payload["discount_percentage"] = discount
    quantity = _as_int("quantity", values.get("quantity"))
    payload["quantity"] = 1 if quantity is None else quantity
    payload["lead_time_days"] = _as_int("lead_time_days", values.get("lead_time_days"))
    if payload.get("currency_code"):
        payload["currency_code"] = str(payload["currency_code"]).upper()
    payload["row_number"] = row.row_number

    return PriceListItemCreate(**payload)


def build_items(rows: list[MappedRow]) -> ItemBuildResult:
    """Build items, collecting a `Row N: ...` error for each rejected row."""
    result = ItemBuildResult()
    for row in rows:
        try:
            result.items.append(build_item(row))
        except MappingError as e:
            result.errors.append(f"Row {row.row_number}: {e.message}")
        except PydanticValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first.get("loc", ()))
            result.errors.append(f"Row {row.row_number}: {location}: {first.get('msg')}")
    return result


class IngestionService:
    """
    Commits supplier price files as price lists.
    """

    def __init__(
        self,
        store: Optional[PriceListService] = None,
        sync_service: Optional[SyncService] = None,
    ):
        self.store = store or get_price_list_service()
        self._sync_service = sync_service

    @property
    def sync_service(self) -> SyncService:
        if self._sync_service is None:
            self._sync_service = get_sync_service()
        return self._sync_service

    def commit_price_list(
        self,
        supplier_id: str,
        file_content: str,
        metadata: PriceListMetadata,
        parse_config: Optional[ParseConfig] = None,
        column_mapping: Optional[ColumnMapping] = None,
        template_id: Optional[str] = None,
    ) -> PriceListCommitResponse:
        """
        Parse a file and store it as a new price list for a supplier.

        Args:
            supplier_id: Supplier UUID
            file_content: Raw file text
            metadata: Name, validity window, currency, priority
            parse_config: Grammar (template default when omitted)
            column_mapping: Source column -> canonical field
            template_id: Parser template to start from

        Returns:
            PriceListCommitResponse with the new price list id

        Raises:
            SupplierNotFoundError: If supplier doesn't exist
            PriceListParseError: If no row could be used
        """
        supplier = self.store.get_supplier(supplier_id)

        logger.info(
            "committing_price_list",
            supplier_id=supplier_id,
            name=metadata.name,
            template_id=template_id
        )

        plan = build_parse_plan(
            file_content,
            parse_config=parse_config,
            column_mapping=column_mapping,
            template_id=template_id,
            detect=False,
        )
        parsed = parse(file_content, plan.config)
        mapping = apply_aliases(plan, parsed.columns)
        mapped = map_rows(parsed.rows, mapping, plan.config.transformations)
        built = build_items(mapped.rows)

        errors = parsed.errors + built.errors
        warnings = plan.warnings + parsed.warnings + mapped.warnings

        if not built.items:
            logger.warning(
                "price_list_has_no_valid_rows",
                supplier_id=supplier_id,
                total_rows=parsed.total_rows,
                errors=len(errors)
            )
            raise PriceListParseError("No valid rows found in price list", errors)

        skus = [item.supplier_sku for item in built.items]
        duplicates = len(skus) - len(set(skus))
        if duplicates:
            warnings.append(f"{duplicates} duplicate part number(s); the last row of each was kept")

        summary = ImportSummary(
            total_rows=parsed.total_rows,
            processed_rows=len(built.items),
            error_count=len(errors),
            errors=errors[:SUMMARY_MESSAGE_LIMIT],
            warnings=warnings[:SUMMARY_MESSAGE_LIMIT],
        )

        currency_code = (
            metadata.currency_code
            or supplier.currency_code
            or settings.default_currency_code
        )
        price_list = self.store.create_price_list(
            supplier_id,
            metadata,
            currency_code,
            import_summary=summary.model_dump(),
        )
        items_created = self.store.upsert_items(price_list.id, supplier_id, built.items, currency_code)

        supersede = (
            metadata.supersede_previous
            if metadata.supersede_previous is not None
            else settings.supersede_previous_price_lists
        )
        superseded = self.store.supersede_previous(supplier_id, price_list.id) if supersede else []

        sync_report = None
        if settings.auto_sync_prices and supplier.auto_sync_prices:
            logger.info("auto_syncing_price_list", price_list_id=price_list.id)
            report = self.sync_service.sync(price_list.id)
            sync_report = report.model_dump(mode="json")

        logger.info(
            "price_list_committed",
            price_list_id=price_list.id,
            supplier_id=supplier_id,
            items=items_created,
            errors=len(errors),
            superseded=len(superseded)
        )

        return PriceListCommitResponse(
            price_list_id=price_list.id,
            supplier_id=supplier_id,
            items_created=items_created,
            superseded_price_list_ids=superseded,
            import_summary=summary,
            sync_report=sync_report,
        )


# =============================================================================
# Singleton
# =============================================================================

_ingestion_service: Optional[IngestionService] = None


def get_ingestion_service() -> IngestionService:
    """Get or create IngestionService instance."""
    global _ingestion_service
    if _ingestion_service is None:
        _ingestion_service = IngestionService()
    return _ingestion_service
