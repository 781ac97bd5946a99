"""
Custom exception classes for the application.

Row-level problems (parse, mapping, resolution) are normally recorded as
messages on results and item statuses; the classes below are raised where a
caller has to stop or where a message needs a stable code.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "PRICE_LIST_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# LOOKUP ERRORS
# ===================

class SupplierNotFoundError(NotFoundError):
    """Supplier not found."""

    def __init__(self, supplier_id: str):
        super().__init__(
            resource="Supplier",
            identifier=supplier_id,
            code="SUPPLIER_NOT_FOUND"
        )


class PriceListNotFoundError(NotFoundError):
    """Supplier price list not found."""

    def __init__(self, price_list_id: str):
        super().__init__(
            resource="Price list",
            identifier=price_list_id,
            code="PRICE_LIST_NOT_FOUND"
        )


class ParserTemplateNotFoundError(NotFoundError):
    """Parser template not found."""

    def __init__(self, template_id: str):
        super().__init__(
            resource="Parser template",
            identifier=template_id,
            code="PARSER_TEMPLATE_NOT_FOUND"
        )


# ===================
# PARSING ERRORS
# ===================

class InvalidParseConfigError(ValidationError):
    """Parse configuration cannot be used as given."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="INVALID_PARSE_CONFIG",
            message=message,
            details=details
        )


class PriceListParseError(ValidationError):
    """Price list file produced no usable rows."""

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(
            code="PRICE_LIST_PARSE_ERROR",
            message=message,
            details={"errors": (errors or [])[:50], "error_count": len(errors or [])}
        )


class SpreadsheetReadError(ValidationError):
    """Uploaded spreadsheet could not be read."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="SPREADSHEET_READ_ERROR",
            message=message,
            details=details
        )


class MappingError(AppError):
    """A single field transformation failed. The field is nulled, the row kept."""

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        super().__init__(
            code="MAPPING_ERROR",
            message=f"{field}: cannot transform {value!r} ({reason})",
            status_code=422,
            details={"field": field, "value": str(value), "reason": reason}
        )


# ===================
# SYNC ERRORS
# ===================

class ResolutionError(AppError):
    """Part number has no catalog variant and one could not be provisioned."""

    def __init__(self, supplier_sku: str, reason: str):
        self.supplier_sku = supplier_sku
        super().__init__(
            code="VARIANT_RESOLUTION_FAILED",
            message=f"Could not resolve variant for {supplier_sku}: {reason}",
            status_code=422,
            details={"supplier_sku": supplier_sku, "reason": reason}
        )


class ConflictPolicyViolation(AppError):
    """Conflict resolution could not single out a winner. Indicates a bug."""

    def __init__(self, variant_id: str, message: str):
        super().__init__(
            code="CONFLICT_POLICY_VIOLATION",
            message=message,
            status_code=500,
            details={"variant_id": variant_id}
        )


class ApplyFailure(AppError):
    """Catalog price update failed or timed out."""

    def __init__(self, variant_id: str, reason: str):
        self.variant_id = variant_id
        super().__init__(
            code="PRICE_APPLY_FAILED",
            message=f"Price update for variant {variant_id} failed: {reason}",
            status_code=502,
            details={"variant_id": variant_id, "reason": reason}
        )


class CompensationFailure(AppError):
    """Reverting an applied price failed. Catalog needs manual review."""

    def __init__(self, failures: list[dict]):
        self.failures = failures
        super().__init__(
            code="PRICE_COMPENSATION_FAILED",
            message=f"Could not revert {len(failures)} price update(s); manual review required",
            status_code=500,
            details={"failures": failures}
        )


class TelegramError(ExternalServiceError):
    """Telegram API error."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("telegram", message, details)
