"""
Price file parsers module.

line_parser turns raw text into rows, column_mapper maps them to
canonical fields.
"""

from parsers.line_parser import (
    RawRow,
    ParsedLine,
    LineParseResult,
    iter_lines,
    parse,
    read_columns,
    serialize_row,
    split_delimited,
)
from parsers.column_mapper import (
    MappedRow,
    MappingResult,
    apply_transformation,
    map_rows,
    resolve_column_mapping,
)
from parsers.format_detection import (
    detect_delimiter,
    detect_format,
)
from parsers.templates import (
    PARSER_TEMPLATES,
    get_parser_template,
    find_parser_template,
    list_parser_templates,
)
from parsers.spreadsheet_reader import (
    read_upload,
    spreadsheet_to_text,
)

__all__ = [
    # Line parser
    "RawRow",
    "ParsedLine",
    "LineParseResult",
    "iter_lines",
    "parse",
    "read_columns",
    "serialize_row",
    "split_delimited",

    # Column mapper
    "MappedRow",
    "MappingResult",
    "apply_transformation",
    "map_rows",
    "resolve_column_mapping",

    # Detection
    "detect_delimiter",
    "detect_format",

    # Templates
    "PARSER_TEMPLATES",
    "get_parser_template",
    "find_parser_template",
    "list_parser_templates",

    # Uploads
    "read_upload",
    "spreadsheet_to_text",
]
