"""
Parse grammar schemas for supplier price files.

A ParseConfig describes how raw text becomes rows (delimited or
fixed-width) and which value transformations run on canonical fields.
Transformations are a discriminated union on "type", so an unknown kind
is rejected when the config is validated, not when a row is mapped.
"""

from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ParseFormat(str, Enum):
    """Supported file grammars."""
    DELIMITED = "delimited"
    FIXED_WIDTH = "fixed-width"


# Whitespace is significant here (tab delimiter, space padding), so these
# models do not use BaseSchema's str_strip_whitespace.
_GRAMMAR_CONFIG = ConfigDict(from_attributes=True, validate_assignment=True)


class FixedWidthColumn(BaseModel):
    """One column of a fixed-width grammar."""
    model_config = _GRAMMAR_CONFIG

    name: str = Field(..., min_length=1, description="Source column name")
    start_offset: int = Field(..., ge=0, description="Zero-based start position")
    width: int = Field(..., ge=1, description="Column width in characters")


# ===================
# TRANSFORMATIONS
# ===================

class DivideTransform(BaseModel):
    """Scale a numeric value down, e.g. integer cents to currency units."""
    type: Literal["divide"] = "divide"
    divisor: Decimal

    @field_validator("divisor")
    @classmethod
    def non_zero(cls, v: Decimal) -> Decimal:
        if v == 0:
            raise ValueError("divisor must not be zero")
        return v


class MultiplyTransform(BaseModel):
    """Scale a numeric value up."""
    type: Literal["multiply"] = "multiply"
    multiplier: Decimal


class DateTransform(BaseModel):
    """
    Parse a date into ISO format.

    input_format accepts tokens (YYYYMMDD, DD/MM/YYYY, YY) or a strftime
    pattern containing '%'.
    """
    type: Literal["date"] = "date"
    input_format: str = Field(..., min_length=2)


class SubstringTransform(BaseModel):
    """Keep `length` characters from `start` (to the end when length is None)."""
    type: Literal["substring"] = "substring"
    start: int = Field(0, ge=0)
    length: Optional[int] = Field(None, ge=0)


class TrimZerosTransform(BaseModel):
    """Strip leading zeros from numeric-looking values."""
    type: Literal["trim_zeros"] = "trim_zeros"


class TrimTransform(BaseModel):
    type: Literal["trim"] = "trim"


class UppercaseTransform(BaseModel):
    type: Literal["uppercase"] = "uppercase"


class LowercaseTransform(BaseModel):
    type: Literal["lowercase"] = "lowercase"


Transformation = Annotated[
    Union[
        DivideTransform,
        MultiplyTransform,
        DateTransform,
        SubstringTransform,
        TrimZerosTransform,
        TrimTransform,
        UppercaseTransform,
        LowercaseTransform,
    ],
    Field(discriminator="type"),
]


# ===================
# PARSE CONFIG
# ===================

class ParseConfig(BaseModel):
    """
    Grammar for one supplier file.

    delimiter=None means "detect" in previews and comma everywhere else.
    """
    model_config = _GRAMMAR_CONFIG

    format: ParseFormat = Field(
        ParseFormat.DELIMITED,
        description="delimited or fixed-width"
    )
    delimiter: Optional[str] = Field(
        None,
        description="Single field delimiter character; None to auto-detect"
    )
    quote_char: str = Field(
        '"',
        description="Quote character for delimited fields"
    )
    has_header: bool = Field(
        True,
        description="First row (after skip_rows) holds column names"
    )
    skip_rows: int = Field(
        0,
        ge=0,
        description="Rows skipped before the header"
    )
    fixed_width_columns: list[FixedWidthColumn] = Field(
        default_factory=list,
        description="Column layout, required for fixed-width files"
    )
    transformations: dict[str, Transformation] = Field(
        default_factory=dict,
        description="Canonical field name -> transformation"
    )

    @field_validator("delimiter", "quote_char")
    @classmethod
    def single_character(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) != 1:
            raise ValueError("must be a single character")
        return v

    @model_validator(mode="after")
    def check_grammar(self) -> "ParseConfig":
        if self.format == ParseFormat.FIXED_WIDTH and not self.fixed_width_columns:
            raise ValueError("fixed-width format requires fixed_width_columns")
        if (
            self.format == ParseFormat.DELIMITED
            and self.delimiter is not None
            and self.delimiter == self.quote_char
        ):
            raise ValueError("delimiter and quote_char must differ")
        return self

    @property
    def effective_delimiter(self) -> str:
        """Delimiter to split on when none was configured or detected."""
        return self.delimiter or ","


# Raw source column name -> canonical field name
ColumnMapping = dict[str, str]


class ParserTemplate(BaseModel):
    """Pre-configured grammar for a common supplier file layout."""
    id: str
    name: str
    parse_config: ParseConfig
    # canonical field -> accepted source header names
    column_aliases: dict[str, list[str]] = Field(default_factory=dict)
    column_mapping: Optional[ColumnMapping] = None
