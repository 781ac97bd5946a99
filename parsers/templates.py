"""
Parser templates for common supplier file layouts.

A template is a starting point: callers can use it as-is or override its
parse config and column mapping per supplier.
"""

from typing import Optional

from exceptions import ParserTemplateNotFoundError
from models.parse_config import (
    DivideTransform,
    FixedWidthColumn,
    ParseConfig,
    ParseFormat,
    ParserTemplate,
    TrimTransform,
)

# =============================================================================
# COLUMN ALIASES
# =============================================================================
# Header names accepted for each canonical field (case-insensitive).

CSV_COLUMN_ALIASES: dict[str, list[str]] = {
    "supplier_sku": ["sku", "part_number", "partno", "onderdeelnummer"],
    "cost_price": ["price", "cost"],
    "net_price": ["net", "nettoprijs"],
    "gross_price": ["gross", "list_price", "lijstprijs"],
    "discount_percentage": ["discount", "discount_pct", "korting"],
    "variant_sku": ["internal_sku", "our_sku"],
    "description": ["desc", "name", "omschrijving"],
    "quantity": ["qty", "amount"],
    "lead_time_days": ["lead_time", "delivery_time"],
    "notes": ["comment", "remarks"],
    "currency_code": ["currency"],
}

SEMICOLON_COLUMN_ALIASES: dict[str, list[str]] = {
    "supplier_sku": ["sku", "part_number"],
    "cost_price": ["price"],
    "net_price": ["net"],
    "gross_price": ["gross", "list_price"],
    "discount_percentage": ["discount"],
    "variant_sku": ["internal_sku"],
    "description": ["desc", "name"],
}


# =============================================================================
# FIXED-WIDTH PART LISTS
# =============================================================================
# Heavy-equipment part lists: 18-char part number, 40-char description,
# prices in 1/100000 currency units.

PARTS_PRICE_DIVISOR = 100000

PARTS_FIXED_WIDTH_COLUMNS = [
    FixedWidthColumn(name="supplier_sku", start_offset=0, width=18),
    FixedWidthColumn(name="description", start_offset=18, width=40),
    FixedWidthColumn(name="gross_price", start_offset=69, width=13),
    FixedWidthColumn(name="net_price", start_offset=82, width=13),
    FixedWidthColumn(name="currency_code", start_offset=95, width=3),
    FixedWidthColumn(name="lead_time_days", start_offset=99, width=2),
    FixedWidthColumn(name="notes", start_offset=128, width=20),
]


PARSER_TEMPLATES: dict[str, ParserTemplate] = {
    "generic-csv": ParserTemplate(
        id="generic-csv",
        name="Generic CSV",
        parse_config=ParseConfig(
            format=ParseFormat.DELIMITED,
            delimiter=",",
            has_header=True,
        ),
        column_aliases=CSV_COLUMN_ALIASES,
    ),
    "semicolon-csv": ParserTemplate(
        id="semicolon-csv",
        name="Semicolon CSV",
        parse_config=ParseConfig(
            format=ParseFormat.DELIMITED,
            delimiter=";",
            has_header=True,
        ),
        column_aliases=SEMICOLON_COLUMN_ALIASES,
    ),
    "fixed-width-parts": ParserTemplate(
        id="fixed-width-parts",
        name="Fixed Width Part List",
        parse_config=ParseConfig(
            format=ParseFormat.FIXED_WIDTH,
            skip_rows=1,
            fixed_width_columns=PARTS_FIXED_WIDTH_COLUMNS,
            transformations={
                "gross_price": DivideTransform(divisor=PARTS_PRICE_DIVISOR),
                "net_price": DivideTransform(divisor=PARTS_PRICE_DIVISOR),
                "supplier_sku": TrimTransform(),
                "description": TrimTransform(),
            },
        ),
    ),
}


def get_parser_template(template_id: str) -> ParserTemplate:
    """
    Get a template by id.

    Raises:
        ParserTemplateNotFoundError: If no template has this id
    """
    template = PARSER_TEMPLATES.get(template_id)
    if template is None:
        raise ParserTemplateNotFoundError(template_id)
    return template


def find_parser_template(template_id: Optional[str]) -> Optional[ParserTemplate]:
    """Like get_parser_template, but None when no id is given."""
    if not template_id:
        return None
    return get_parser_template(template_id)


def list_parser_templates() -> list[ParserTemplate]:
    return list(PARSER_TEMPLATES.values())
