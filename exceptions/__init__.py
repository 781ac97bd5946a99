"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ExternalServiceError,
    DatabaseError,

    # Lookups
    SupplierNotFoundError,
    PriceListNotFoundError,
    ParserTemplateNotFoundError,

    # Parsing
    InvalidParseConfigError,
    PriceListParseError,
    SpreadsheetReadError,
    MappingError,

    # Sync
    ResolutionError,
    ConflictPolicyViolation,
    ApplyFailure,
    CompensationFailure,

    # Alerts
    TelegramError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ExternalServiceError",
    "DatabaseError",

    # Lookups
    "SupplierNotFoundError",
    "PriceListNotFoundError",
    "ParserTemplateNotFoundError",

    # Parsing
    "InvalidParseConfigError",
    "PriceListParseError",
    "SpreadsheetReadError",
    "MappingError",

    # Sync
    "ResolutionError",
    "ConflictPolicyViolation",
    "ApplyFailure",
    "CompensationFailure",

    # Alerts
    "TelegramError",
]
