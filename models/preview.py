"""
Price list preview schemas.
"""

from pydantic import ConfigDict, Field
from typing import Any, Optional

from models.base import BaseSchema
from models.parse_config import ParseConfig, ParseFormat, ColumnMapping


class PreviewRequest(BaseSchema):
    """Body of a preview call."""
    model_config = ConfigDict(str_strip_whitespace=False)

    file_content: str = Field(..., min_length=1, description="Raw file text (only a prefix is parsed)")
    file_type: Optional[ParseFormat] = Field(None, description="Detected from content when omitted")
    parse_config: Optional[ParseConfig] = None
    column_mapping: Optional[ColumnMapping] = None
    template_id: Optional[str] = None


class PreviewStats(BaseSchema):
    """Row accounting over the previewed prefix."""

    lines_sampled: int = 0
    total_rows: int = 0
    valid_rows: int = 0
    error_rows: int = 0


class PreviewResult(BaseSchema):
    """What the file would look like once parsed and mapped."""
    model_config = ConfigDict(str_strip_whitespace=False)

    detected_format: ParseFormat
    delimiter: Optional[str] = None
    preview_rows: list[dict[str, Any]] = Field(default_factory=list)
    detected_columns: list[str] = Field(default_factory=list)
    source_columns: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    stats: PreviewStats = Field(default_factory=PreviewStats)
