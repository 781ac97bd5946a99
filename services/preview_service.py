"""
Price list preview service.

Parses and maps the first lines of a file so a user can check the grammar
and column mapping before committing. Stateless: no storage and no catalog
access.
"""

from dataclasses import dataclass, field
from typing import Optional
import structlog

from config import settings
from exceptions import InvalidParseConfigError
from models.parse_config import ColumnMapping, ParseConfig, ParseFormat
from models.preview import PreviewResult, PreviewStats
from parsers.column_mapper import map_rows, resolve_column_mapping
from parsers.format_detection import detect_delimiter, detect_format
from parsers.line_parser import parse
from parsers.templates import CSV_COLUMN_ALIASES, find_parser_template, get_parser_template

logger = structlog.get_logger(__name__)


@dataclass
class ParsePlan:
    """Grammar and mapping to use for one file."""
    config: ParseConfig
    column_mapping: Optional[ColumnMapping]
    aliases: dict[str, list[str]] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


def build_parse_plan(
    raw_text: str,
    file_type: Optional[ParseFormat] = None,
    parse_config: Optional[ParseConfig] = None,
    column_mapping: Optional[ColumnMapping] = None,
    template_id: Optional[str] = None,
    detect: bool = True,
) -> ParsePlan:
    """
    Decide grammar and mapping from caller input, template and content.

    An explicit parse_config wins over the template's. Without either, the
    format is detected (when `detect`) and a fixed-width file falls back to
    the fixed-width part list template. A missing delimiter is detected
    when `detect`, comma otherwise.

    Raises:
        ParserTemplateNotFoundError: If template_id is unknown
        InvalidParseConfigError: If the grammar cannot be applied
    """
    template = find_parser_template(template_id)
    warnings: list[str] = []

    config = parse_config or (template.parse_config if template else None)
    fmt = file_type or (config.format if config else None)
    if fmt is None:
        fmt = detect_format(raw_text) if detect else ParseFormat.DELIMITED

    if config is None:
        if fmt == ParseFormat.FIXED_WIDTH:
            template = get_parser_template("fixed-width-parts")
            config = template.parse_config
            warnings.append(f"No parse config given; using template '{template.id}'")
        else:
            config = ParseConfig(format=fmt)
    elif config.format != fmt:
        config = config.model_copy(update={"format": fmt})

    if fmt == ParseFormat.FIXED_WIDTH and not config.fixed_width_columns:
        raise InvalidParseConfigError("fixed-width format requires fixed_width_columns")

    if fmt == ParseFormat.DELIMITED:
        delimiter = config.delimiter
        if delimiter is None:
            delimiter = detect_delimiter(raw_text, config.skip_rows) if detect else ","
        if delimiter == config.quote_char:
            raise InvalidParseConfigError(
                "delimiter and quote_char must differ",
                {"delimiter": delimiter, "quote_char": config.quote_char}
            )
        config = config.model_copy(update={"delimiter": delimiter})

    mapping = column_mapping
    if mapping is None and template is not None and template.column_mapping is not None:
        mapping = template.column_mapping

    aliases: dict[str, list[str]] = {}
    if mapping is None and fmt == ParseFormat.DELIMITED:
        aliases = template.column_aliases if template and template.column_aliases else CSV_COLUMN_ALIASES

    return ParsePlan(config=config, column_mapping=mapping, aliases=aliases, warnings=warnings)


def apply_aliases(plan: ParsePlan, columns: list[str]) -> Optional[ColumnMapping]:
    """
    Mapping to use once the source columns are known.

    Alias matching only runs when no mapping was given; if no alias
    matches, columns pass through under their source names.
    """
    if plan.column_mapping is not None or not plan.aliases:
        return plan.column_mapping
    resolved = resolve_column_mapping(columns, plan.aliases)
    if not resolved:
        plan.warnings.append("No column matched a known field name; columns kept as-is")
        return None
    return resolved


class PreviewService:
    """
    Price list preview logic.
    """

    def __init__(self, max_lines: Optional[int] = None, max_rows: Optional[int] = None):
        self.max_lines = max_lines or settings.preview_max_lines
        self.max_rows = max_rows or settings.preview_max_rows

    def preview(
        self,
        file_content: str,
        file_type: Optional[ParseFormat] = None,
        parse_config: Optional[ParseConfig] = None,
        column_mapping: Optional[ColumnMapping] = None,
        template_id: Optional[str] = None,
    ) -> PreviewResult:
        """
        Preview how a file will be parsed and mapped.

        Only the first `max_lines` lines are read.

        Returns:
            PreviewResult with up to `max_rows` mapped rows
        """
        sample_lines = file_content.splitlines()[:self.max_lines]
        sample = "\n".join(sample_lines)

        plan = build_parse_plan(
            sample,
            file_type=file_type,
            parse_config=parse_config,
            column_mapping=column_mapping,
            template_id=template_id,
            detect=True,
        )

        parsed = parse(sample, plan.config)
        mapping = apply_aliases(plan, parsed.columns)
        mapped = map_rows(parsed.rows, mapping, plan.config.transformations)

        detected = sorted({
            name
            for row in mapped.rows
            for name, value in row.values.items()
            if value is not None
        })

        result = PreviewResult(
            detected_format=plan.config.format,
            delimiter=plan.config.delimiter if plan.config.format == ParseFormat.DELIMITED else None,
            preview_rows=[row.values for row in mapped.rows[:self.max_rows]],
            detected_columns=detected,
            source_columns=parsed.columns,
            warnings=plan.warnings + parsed.warnings + mapped.warnings,
            errors=parsed.errors,
            stats=PreviewStats(
                lines_sampled=len(sample_lines),
                total_rows=parsed.total_rows,
                valid_rows=len(parsed.rows),
                error_rows=parsed.error_rows,
            ),
        )

        logger.info(
            "price_list_previewed",
            format=result.detected_format.value,
            delimiter=result.delimiter,
            rows=len(result.preview_rows),
            errors=len(result.errors)
        )
        return result


# Singleton instance
_service: Optional[PreviewService] = None


def get_preview_service() -> PreviewService:
    """Get or create PreviewService instance."""
    global _service
    if _service is None:
        _service = PreviewService()
    return _service
