"""
Line parser for supplier price files.

Turns raw file text into ordered rows of source column -> string value,
following a ParseConfig grammar:

- delimited: one record per line, quoted fields may contain the delimiter,
  "" inside a quoted field is a literal quote
- fixed-width: each column is a slice [start_offset, start_offset + width)

Parsing never raises on bad rows. A delimited row whose column count does
not match the header is counted, reported in `errors` and left out.
A first line with an unclosed quote raises PriceListParseError.
"""

from dataclasses import dataclass, field
from typing import Iterator, Optional, Union

import structlog

from exceptions import PriceListParseError
from models.parse_config import ParseConfig, ParseFormat

logger = structlog.get_logger(__name__)

# Parsed rows stay untyped until the column mapper.
RawValues = dict[str, str]


@dataclass
class RawRow:
    """One data row with its physical line number (1-based)."""
    row_number: int
    values: RawValues


@dataclass
class ParsedLine:
    """Outcome for one data line: values, or an error message."""
    row_number: int
    values: Optional[RawValues] = None
    error: Optional[str] = None
    warning: Optional[str] = None


@dataclass
class LineParseResult:
    """Result of parsing a whole file."""
    columns: list[str] = field(default_factory=list)
    rows: list[RawRow] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    total_rows: int = 0

    @property
    def error_rows(self) -> int:
        return self.total_rows - len(self.rows)


# ===================
# HELPERS
# ===================

def _content_lines(raw_text: str) -> list[tuple[int, str]]:
    """Non-blank lines with their 1-based line numbers."""
    return [
        (number, line)
        for number, line in enumerate(raw_text.splitlines(), start=1)
        if line.strip()
    ]


class QuoteError(ValueError):
    """A quoted field is not closed before the end of the line."""


def _read_quoted(line: str, position: int, quote_char: str) -> tuple[str, int]:
    """Content of a quoted field opened just before `position`, and the index after its closing quote."""
    chunks = []
    while True:
        close = line.find(quote_char, position)
        if close == -1:
            raise QuoteError(f"unterminated quoted field at column {position}")
        chunks.append(line[position:close])
        if line.startswith(quote_char, close + 1):
            chunks.append(quote_char)
            position = close + 2
            continue
        return "".join(chunks), close + 1


def split_delimited(line: str, delimiter: str = ",", quote_char: str = '"') -> list[str]:
    """
    Split one record into fields.

    Unquoted fields are trimmed; a quoted field keeps its content as is.
    Delimiters inside an open quote do not split; a doubled quote inside a
    quoted field becomes one literal quote character.

    Raises:
        QuoteError: If a quoted field is not closed
    """
    if not line:
        return []

    fields = []
    position = 0
    while True:
        while line.startswith(" ", position):
            position += 1
        if line.startswith(quote_char, position):
            value, position = _read_quoted(line, position + 1, quote_char)
            end = line.find(delimiter, position)
            end = len(line) if end == -1 else end
            value += line[position:end].rstrip()
        else:
            end = line.find(delimiter, position)
            end = len(line) if end == -1 else end
            value = line[position:end].strip()
        fields.append(value)
        if end >= len(line):
            return fields
        position = end + len(delimiter)


def synthesize_columns(count: int) -> list[str]:
    """Column names for header-less files: col_0 .. col_{count-1}."""
    return [f"col_{i}" for i in range(count)]


def _header_names(fields: list[str]) -> list[str]:
    """Header cells as column names; blank cells fall back to col_i."""
    return [name if name else f"col_{i}" for i, name in enumerate(fields)]


def _grammar_lines(raw_text: str, config: ParseConfig) -> tuple[list[str], list[tuple[int, str]]]:
    """Resolve column names and the data lines they apply to."""
    lines = _content_lines(raw_text)[config.skip_rows:]

    if config.format == ParseFormat.FIXED_WIDTH:
        # Header lines in fixed-width files are dropped with skip_rows.
        return [column.name for column in config.fixed_width_columns], lines

    if not lines:
        return [], []

    delimiter = config.effective_delimiter
    try:
        first = split_delimited(lines[0][1], delimiter, config.quote_char)
    except QuoteError as e:
        raise PriceListParseError(f"Line {lines[0][0]}: {e}")

    if config.has_header:
        return _header_names(first), lines[1:]
    return synthesize_columns(len(first)), lines


def read_columns(raw_text: str, config: ParseConfig) -> list[str]:
    """Source column names the grammar produces for this text."""
    columns, _ = _grammar_lines(raw_text, config)
    return columns


# ===================
# PARSING
# ===================

def _iter_delimited(
    columns: list[str],
    lines: list[tuple[int, str]],
    config: ParseConfig,
) -> Iterator[ParsedLine]:
    delimiter = config.effective_delimiter

    for row_number, line in lines:
        try:
            fields = split_delimited(line, delimiter, config.quote_char)
        except QuoteError as e:
            yield ParsedLine(row_number=row_number, error=f"Row {row_number}: {e}")
            continue

        if len(fields) != len(columns):
            yield ParsedLine(
                row_number=row_number,
                error=(
                    f"Row {row_number}: expected {len(columns)} columns, "
                    f"found {len(fields)}"
                ),
            )
            continue

        yield ParsedLine(row_number=row_number, values=dict(zip(columns, fields)))


def _iter_fixed_width(
    lines: list[tuple[int, str]],
    config: ParseConfig,
) -> Iterator[ParsedLine]:
    layout = config.fixed_width_columns
    line_width = max(c.start_offset + c.width for c in layout)

    for row_number, line in lines:
        values = {
            column.name: line[column.start_offset:column.start_offset + column.width].strip()
            for column in layout
        }
        warning = None
        if len(line) < line_width:
            warning = (
                f"Row {row_number}: line shorter than expected "
                f"({len(line)} < {line_width}), some fields may be empty"
            )
        yield ParsedLine(row_number=row_number, values=values, warning=warning)


def iter_lines(raw_text: str, config: ParseConfig) -> Iterator[ParsedLine]:
    """
    Lazily parse data lines.

    Pure: every call starts from the beginning of `raw_text` and the same
    input and config always produce the same sequence.
    """
    columns, lines = _grammar_lines(raw_text, config)

    if config.format == ParseFormat.FIXED_WIDTH:
        yield from _iter_fixed_width(lines, config)
    else:
        yield from _iter_delimited(columns, lines, config)


def parse(raw_text: str, config: ParseConfig) -> LineParseResult:
    """
    Parse a whole file.

    Args:
        raw_text: File content
        config: Grammar to apply

    Returns:
        LineParseResult with kept rows, per-row errors and warnings
    """
    result = LineParseResult(columns=read_columns(raw_text, config))

    for parsed in iter_lines(raw_text, config):
        result.total_rows += 1
        if parsed.error:
            result.errors.append(parsed.error)
            continue
        if parsed.warning:
            result.warnings.append(parsed.warning)
        result.rows.append(RawRow(row_number=parsed.row_number, values=parsed.values))

    logger.debug(
        "lines_parsed",
        format=config.format.value,
        columns=len(result.columns),
        total_rows=result.total_rows,
        kept_rows=len(result.rows),
        errors=len(result.errors),
    )
    return result


def _quote_field(value: str, delimiter: str, quote_char: str) -> str:
    if (
        delimiter in value
        or quote_char in value
        or "\n" in value
        or "\r" in value
        or value != value.strip()
    ):
        return quote_char + value.replace(quote_char, quote_char * 2) + quote_char
    return value


def serialize_row(values: Union[RawValues, list[str]], config: ParseConfig) -> str:
    """
    Write a row back in the grammar it was parsed with.

    Delimited fields are quoted only when needed (delimiter, quote, line
    break or edge whitespace inside); fixed-width values are padded or cut
    to their column.
    """
    if config.format == ParseFormat.FIXED_WIDTH:
        if isinstance(values, list):
            values = dict(zip((c.name for c in config.fixed_width_columns), values))
        line_width = max(c.start_offset + c.width for c in config.fixed_width_columns)
        buffer = [" "] * line_width
        for column in config.fixed_width_columns:
            cell = str(values.get(column.name, "")).ljust(column.width)[:column.width]
            buffer[column.start_offset:column.start_offset + column.width] = list(cell)
        return "".join(buffer).rstrip()

    fields = list(values.values()) if isinstance(values, dict) else values
    delimiter = config.effective_delimiter
    return delimiter.join(
        _quote_field("" if value is None else str(value), delimiter, config.quote_char)
        for value in fields
    )
