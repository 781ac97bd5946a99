"""
Unit tests for the column mapper and value transformations.

Run: pytest tests/unit/test_column_mapper.py -v
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from exceptions import MappingError
from models.parse_config import (
    DateTransform,
    DivideTransform,
    LowercaseTransform,
    MultiplyTransform,
    ParseConfig,
    SubstringTransform,
    TrimZerosTransform,
    UppercaseTransform,
)
from parsers.column_mapper import (
    apply_transformation,
    map_rows,
    resolve_column_mapping,
    strftime_pattern,
    to_decimal,
)
from parsers.line_parser import RawRow


# ===================
# TRANSFORMATIONS
# ===================

class TestApplyTransformation:
    """Tests for apply_transformation()."""

    def test_divide(self):
        """Should divide numeric strings."""
        result = apply_transformation("cost_price", "1234500", DivideTransform(divisor=100000))
        assert result == Decimal("12.345")

    def test_multiply(self):
        """Should multiply numeric strings."""
        result = apply_transformation("cost_price", "2.5", MultiplyTransform(multiplier=4))
        assert result == Decimal("10")

    def test_divide_accepts_decimal_comma(self):
        """Should read 10,50 as 10.50."""
        result = apply_transformation("cost_price", "10,50", DivideTransform(divisor=1))
        assert result == Decimal("10.50")

    def test_divide_non_numeric_raises(self):
        """Should raise MappingError for non-numbers."""
        with pytest.raises(MappingError) as exc_info:
            apply_transformation("cost_price", "abc", DivideTransform(divisor=100))

        assert exc_info.value.field == "cost_price"
        assert "not a number" in exc_info.value.message

    @pytest.mark.parametrize("value,input_format,expected", [
        ("20260115", "YYYYMMDD", "2026-01-15"),
        ("15/01/2026", "DD/MM/YYYY", "2026-01-15"),
        ("15-01-26", "DD-MM-YY", "2026-01-15"),
        ("2026.01.15", "%Y.%m.%d", "2026-01-15"),
    ])
    def test_date_formats(self, value, input_format, expected):
        """Should parse token and strftime date formats into ISO dates."""
        result = apply_transformation("effective_date", value, DateTransform(input_format=input_format))
        assert result == expected

    def test_date_mismatch_raises(self):
        """Should raise MappingError when the date doesn't match."""
        with pytest.raises(MappingError):
            apply_transformation("effective_date", "2026-13-45", DateTransform(input_format="YYYY-MM-DD"))

    def test_substring(self):
        """Should keep `length` characters from `start`."""
        transform = SubstringTransform(start=2, length=3)
        assert apply_transformation("supplier_sku", "ABCDEFG", transform) == "CDE"

    def test_substring_without_length_keeps_rest(self):
        """Should keep everything from start when length is None."""
        assert apply_transformation("supplier_sku", "XX-1234", SubstringTransform(start=3)) == "1234"

    @pytest.mark.parametrize("value,expected", [
        ("000123", "123"),
        ("0000", "0"),
        ("00A1", "00A1"),
    ])
    def test_trim_zeros(self, value, expected):
        """Should strip leading zeros only from digit strings."""
        assert apply_transformation("supplier_sku", value, TrimZerosTransform()) == expected

    def test_case_transforms(self):
        """Should upper- and lower-case values."""
        assert apply_transformation("supplier_sku", "ab-1", UppercaseTransform()) == "AB-1"
        assert apply_transformation("supplier_sku", "AB-1", LowercaseTransform()) == "ab-1"


class TestHelpers:
    """Tests for number and date helpers."""

    def test_to_decimal_strips_spaces(self):
        """Should ignore spaces inside numbers."""
        assert to_decimal("cost_price", " 1 250.00 ") == Decimal("1250.00")

    def test_to_decimal_rejects_infinity(self):
        """Should reject non-finite numbers."""
        with pytest.raises(MappingError):
            to_decimal("cost_price", "Infinity")

    def test_strftime_pattern_translates_tokens(self):
        """Should turn tokens into strftime directives."""
        assert strftime_pattern("YYYYMMDD") == "%Y%m%d"
        assert strftime_pattern("DD/MM/YY") == "%d/%m/%y"


class TestParseConfigTransformations:
    """Transformations are validated with the parse config."""

    def test_unknown_transformation_type_rejected(self):
        """Should reject an unknown transformation type up front."""
        with pytest.raises(PydanticValidationError):
            ParseConfig(transformations={"cost_price": {"type": "explode"}})

    def test_zero_divisor_rejected(self):
        """Should reject division by zero."""
        with pytest.raises(PydanticValidationError):
            ParseConfig(transformations={"cost_price": {"type": "divide", "divisor": 0}})

    def test_transformations_from_json_dicts(self):
        """Should build typed transformations from plain dicts."""
        config = ParseConfig(transformations={"cost_price": {"type": "divide", "divisor": "100"}})

        assert isinstance(config.transformations["cost_price"], DivideTransform)

    def test_delimiter_equal_to_quote_char_rejected(self):
        """Should reject a delimiter equal to the quote character."""
        with pytest.raises(PydanticValidationError):
            ParseConfig(delimiter='"')


# ===================
# MAPPING
# ===================

class TestMapRows:
    """Tests for map_rows()."""

    def test_renames_and_drops_unmapped_columns(self):
        """Should keep only mapped columns under canonical names."""
        # Arrange
        rows = [RawRow(row_number=2, values={"SKU": "A1", "PRICE": "10.00", "Color": "red"})]

        # Act
        result = map_rows(rows, {"SKU": "supplier_sku", "PRICE": "cost_price"})

        # Assert
        assert result.rows[0].values == {"supplier_sku": "A1", "cost_price": "10.00"}

    def test_no_mapping_passes_columns_through(self):
        """Should use source names when no mapping is given."""
        rows = [RawRow(row_number=1, values={"supplier_sku": "A1"})]

        result = map_rows(rows, None)

        assert result.rows[0].values == {"supplier_sku": "A1"}

    def test_transformation_keyed_by_source_column(self):
        """Should apply transformations configured on source column names."""
        rows = [RawRow(row_number=2, values={"PRICE": "1000"})]

        result = map_rows(rows, {"PRICE": "cost_price"}, {"PRICE": DivideTransform(divisor=100)})

        assert result.rows[0].values["cost_price"] == Decimal("10")

    def test_transformation_keyed_by_canonical_field(self):
        """Should apply transformations configured on canonical names."""
        rows = [RawRow(row_number=2, values={"PRICE": "1000"})]

        result = map_rows(rows, {"PRICE": "cost_price"}, {"cost_price": DivideTransform(divisor=100)})

        assert result.rows[0].values["cost_price"] == Decimal("10")

    def test_failed_transformation_nulls_field_and_warns(self):
        """Should null the field, keep the row and record a warning."""
        # Arrange
        rows = [
            RawRow(row_number=2, values={"PRICE": "abc", "SKU": "A1"}),
            RawRow(row_number=3, values={"PRICE": "200", "SKU": "A2"}),
        ]

        # Act
        result = map_rows(
            rows,
            {"SKU": "supplier_sku", "PRICE": "cost_price"},
            {"cost_price": DivideTransform(divisor=100)},
        )

        # Assert
        assert len(result.rows) == 2
        assert result.rows[0].values == {"supplier_sku": "A1", "cost_price": None}
        assert result.rows[1].values["cost_price"] == Decimal("2")
        assert result.warnings == ["Row 2: cost_price: cannot transform 'abc' (not a number)"]

    def test_empty_values_become_none_without_transforming(self):
        """Should map empty strings to None and skip their transformation."""
        rows = [RawRow(row_number=2, values={"PRICE": ""})]

        result = map_rows(rows, {"PRICE": "cost_price"}, {"cost_price": DivideTransform(divisor=100)})

        assert result.rows[0].values == {"cost_price": None}
        assert result.warnings == []


class TestResolveColumnMapping:
    """Tests for resolve_column_mapping()."""

    def test_matches_aliases_case_insensitively(self):
        """Should match headers to canonical fields ignoring case."""
        aliases = {"supplier_sku": ["sku", "part_number"], "cost_price": ["price"]}

        mapping = resolve_column_mapping(["Part_Number", "PRICE", "Color"], aliases)

        assert mapping == {"Part_Number": "supplier_sku", "PRICE": "cost_price"}

    def test_canonical_name_matches_itself(self):
        """Should accept the canonical name as a header."""
        mapping = resolve_column_mapping(["supplier_sku"], {"supplier_sku": ["sku"]})

        assert mapping == {"supplier_sku": "supplier_sku"}

    def test_header_maps_to_one_field_only(self):
        """Should not map one header to two canonical fields."""
        aliases = {"cost_price": ["price"], "notes": ["price"]}

        mapping = resolve_column_mapping(["price"], aliases)

        assert mapping == {"price": "cost_price"}
