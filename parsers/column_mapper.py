"""
Column mapper for parsed price file rows.

Renames source columns to canonical field names and applies the
configured value transformations. A failing transformation nulls the
field and leaves a warning on the row; rows are never dropped here.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

import structlog

from exceptions import MappingError
from models.parse_config import (
    ColumnMapping,
    DateTransform,
    DivideTransform,
    LowercaseTransform,
    MultiplyTransform,
    SubstringTransform,
    Transformation,
    TrimTransform,
    TrimZerosTransform,
    UppercaseTransform,
)
from parsers.line_parser import RawRow

logger = structlog.get_logger(__name__)

# Date tokens as used in supplier templates, longest first.
_DATE_TOKENS = [
    ("YYYY", "%Y"),
    ("YY", "%y"),
    ("MM", "%m"),
    ("DD", "%d"),
]

_NUMERIC = re.compile(r"^\d+$")


@dataclass
class MappedRow:
    """Canonical field -> value for one source row."""
    row_number: int
    values: dict[str, Any]
    warnings: list[str] = field(default_factory=list)


@dataclass
class MappingResult:
    rows: list[MappedRow] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


# ===================
# TRANSFORMATIONS
# ===================

def to_decimal(field_name: str, value: str) -> Decimal:
    cleaned = value.replace(" ", "")
    # European decimal comma, when there is no dot
    if "," in cleaned and "." not in cleaned:
        cleaned = cleaned.replace(",", ".")
    try:
        number = Decimal(cleaned)
    except InvalidOperation:
        raise MappingError(field_name, value, "not a number")
    if not number.is_finite():
        raise MappingError(field_name, value, "not a finite number")
    return number


def strftime_pattern(input_format: str) -> str:
    """Turn a token format (YYYYMMDD, DD/MM/YYYY) into a strftime pattern."""
    if "%" in input_format:
        return input_format
    pattern = input_format
    for token, directive in _DATE_TOKENS:
        pattern = pattern.replace(token, directive)
    return pattern


def apply_transformation(field_name: str, value: str, transformation: Transformation) -> Any:
    """
    Apply one transformation to a non-empty string value.

    Raises:
        MappingError: If the value cannot be transformed
    """
    if isinstance(transformation, DivideTransform):
        return to_decimal(field_name, value) / transformation.divisor

    if isinstance(transformation, MultiplyTransform):
        return to_decimal(field_name, value) * transformation.multiplier

    if isinstance(transformation, DateTransform):
        pattern = strftime_pattern(transformation.input_format)
        try:
            return datetime.strptime(value, pattern).date().isoformat()
        except ValueError:
            raise MappingError(
                field_name, value, f"does not match {transformation.input_format}"
            )

    if isinstance(transformation, SubstringTransform):
        start = transformation.start
        if transformation.length is None:
            return value[start:]
        return value[start:start + transformation.length]

    if isinstance(transformation, TrimZerosTransform):
        if _NUMERIC.match(value):
            return value.lstrip("0") or "0"
        return value

    if isinstance(transformation, TrimTransform):
        return value.strip()

    if isinstance(transformation, UppercaseTransform):
        return value.upper()

    if isinstance(transformation, LowercaseTransform):
        return value.lower()

    raise MappingError(field_name, value, f"unsupported transformation {transformation!r}")


# ===================
# MAPPING
# ===================

def _canonical_transformations(
    column_mapping: Optional[ColumnMapping],
    transformations: dict[str, Transformation],
) -> dict[str, Transformation]:
    """Key transformations by canonical field, translating source column keys."""
    if not column_mapping:
        return dict(transformations)

    canonical: dict[str, Transformation] = {}
    for key, transformation in transformations.items():
        if key in column_mapping:
            canonical[column_mapping[key]] = transformation
        else:
            canonical.setdefault(key, transformation)
    return canonical


def map_row(
    row: RawRow,
    column_mapping: Optional[ColumnMapping],
    transformations: dict[str, Transformation],
) -> MappedRow:
    """
    Map one row.

    Unmapped source columns are dropped; with no mapping, source names are
    taken as canonical. Empty strings become None and are not transformed.
    """
    if column_mapping is None:
        renamed = dict(row.values)
    else:
        renamed = {
            canonical: row.values[source]
            for source, canonical in column_mapping.items()
            if source in row.values
        }

    mapped = MappedRow(row_number=row.row_number, values={})
    for name, raw in renamed.items():
        if raw is None or raw == "":
            mapped.values[name] = None
            continue

        transformation = transformations.get(name)
        if transformation is None:
            mapped.values[name] = raw
            continue

        try:
            mapped.values[name] = apply_transformation(name, raw, transformation)
        except MappingError as e:
            mapped.values[name] = None
            mapped.warnings.append(f"Row {row.row_number}: {e.message}")

    return mapped


def map_rows(
    rows: Iterable[RawRow],
    column_mapping: Optional[ColumnMapping],
    transformations: Optional[dict[str, Transformation]] = None,
) -> MappingResult:
    """Map rows to canonical fields and collect per-row warnings."""
    canonical = _canonical_transformations(column_mapping, transformations or {})

    result = MappingResult()
    for row in rows:
        mapped = map_row(row, column_mapping, canonical)
        result.rows.append(mapped)
        result.warnings.extend(mapped.warnings)

    if result.warnings:
        logger.debug("mapping_warnings", count=len(result.warnings))
    return result


def resolve_column_mapping(
    headers: list[str],
    aliases: dict[str, list[str]],
) -> ColumnMapping:
    """
    Build a mapping from header names using canonical -> alias lists.

    Matching is case-insensitive; the first alias found wins and each
    header maps to at most one canonical field.
    """
    by_lower = {header.strip().lower(): header for header in headers}
    mapping: ColumnMapping = {}

    for canonical, names in aliases.items():
        for alias in [canonical, *names]:
            header = by_lower.get(alias.strip().lower())
            if header is not None and header not in mapping:
                mapping[header] = canonical
                break

    return mapping
