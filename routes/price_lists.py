"""
Supplier price list API routes.

Mounted at /api/suppliers:
    POST /{supplier_id}/price-lists/preview
    POST /{supplier_id}/price-lists
    POST /{supplier_id}/price-lists/upload
    GET  /{supplier_id}/price-lists
    GET  /{supplier_id}/price-lists/{price_list_id}/items
    POST /{supplier_id}/price-lists/{price_list_id}/deactivate
    POST /{supplier_id}/price-lists/{price_list_id}/sync
"""

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, File, Form, Query, UploadFile
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
import structlog

from exceptions import AppError, PriceListNotFoundError, ValidationError
from models.preview import PreviewRequest, PreviewResult
from models.price_list import (
    PriceListCommitRequest,
    PriceListCommitResponse,
    PriceListItemListResponse,
    PriceListListResponse,
    PriceListMetadata,
    PriceListResponse,
    PriceListUploadOptions,
    SyncStatus,
)
from models.sync import SyncRequest, SyncRunReport
from parsers.spreadsheet_reader import read_upload
from services.ingestion_service import get_ingestion_service
from services.preview_service import get_preview_service
from services.price_list_service import get_price_list_service
from services.sync_service import get_sync_service

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


def _supplier_price_list(supplier_id: str, price_list_id: str) -> PriceListResponse:
    """Get a price list, treating one of another supplier as missing."""
    price_list = get_price_list_service().get_by_id(price_list_id)
    if price_list.supplier_id != supplier_id:
        raise PriceListNotFoundError(price_list_id)
    return price_list


# ===================
# PREVIEW / COMMIT
# ===================

@router.post("/{supplier_id}/price-lists/preview", response_model=PreviewResult)
async def preview_price_list(supplier_id: str, data: PreviewRequest):
    """
    Preview how a file will be parsed and mapped.

    Nothing is stored.
    """
    try:
        logger.info("preview_requested", supplier_id=supplier_id)
        return get_preview_service().preview(
            data.file_content,
            file_type=data.file_type,
            parse_config=data.parse_config,
            column_mapping=data.column_mapping,
            template_id=data.template_id,
        )

    except Exception as e:
        return handle_error(e)


@router.post("/{supplier_id}/price-lists", response_model=PriceListCommitResponse, status_code=201)
async def commit_price_list(supplier_id: str, data: PriceListCommitRequest):
    """
    Commit a price file as a new price list.

    Raises:
        404: Supplier not found
        422: No usable rows, or invalid parse config
    """
    try:
        return get_ingestion_service().commit_price_list(
            supplier_id,
            data.file_content,
            data.metadata,
            parse_config=data.parse_config,
            column_mapping=data.column_mapping,
            template_id=data.template_id,
        )

    except Exception as e:
        return handle_error(e)


@router.post("/{supplier_id}/price-lists/upload", response_model=PriceListCommitResponse, status_code=201)
async def upload_price_list(
    supplier_id: str,
    file: UploadFile = File(..., description="Price file (.csv, .txt, .xlsx)"),
    options: Optional[str] = Form(None, description="PriceListUploadOptions as JSON"),
):
    """
    Upload a price file and commit it as a new price list.

    Spreadsheets are converted to comma-delimited text first.
    """
    try:
        try:
            upload = PriceListUploadOptions.model_validate_json(options or "{}")
        except PydanticValidationError as e:
            raise ValidationError(
                "Invalid upload options",
                details={"errors": e.errors(include_url=False, include_context=False)}
            )

        contents = await file.read()
        text = read_upload(file.filename, contents)

        metadata = upload.metadata or PriceListMetadata(
            name=Path(file.filename or "price-list").stem or "price-list",
        )
        if metadata.upload_filename is None:
            metadata = metadata.model_copy(update={"upload_filename": file.filename})

        logger.info("price_list_uploaded", supplier_id=supplier_id, filename=file.filename, size=len(contents))

        return get_ingestion_service().commit_price_list(
            supplier_id,
            text,
            metadata,
            parse_config=upload.parse_config,
            column_mapping=upload.column_mapping,
            template_id=upload.template_id,
        )

    except Exception as e:
        return handle_error(e)


# ===================
# HISTORY / ITEMS
# ===================

@router.get("/{supplier_id}/price-lists", response_model=PriceListListResponse)
async def list_price_lists(
    supplier_id: str,
    active_only: bool = Query(False, description="Only active price lists")
):
    """A supplier's price lists, newest first."""
    try:
        service = get_price_list_service()
        service.get_supplier(supplier_id)
        price_lists = service.list_for_supplier(supplier_id, active_only=active_only)
        return PriceListListResponse(data=price_lists, total=len(price_lists))

    except Exception as e:
        return handle_error(e)


@router.get(
    "/{supplier_id}/price-lists/{price_list_id}/items",
    response_model=PriceListItemListResponse
)
async def list_price_list_items(
    supplier_id: str,
    price_list_id: str,
    status: Optional[SyncStatus] = Query(None, description="Filter by sync status")
):
    """Items of a price list."""
    try:
        _supplier_price_list(supplier_id, price_list_id)
        items = get_price_list_service().get_items(price_list_id, status=status)
        return PriceListItemListResponse(data=items, total=len(items))

    except Exception as e:
        return handle_error(e)


@router.post(
    "/{supplier_id}/price-lists/{price_list_id}/deactivate",
    response_model=PriceListResponse
)
async def deactivate_price_list(supplier_id: str, price_list_id: str):
    """
    Deactivate a price list. It is kept, but no longer competes for prices.

    Raises:
        404: Price list not found
    """
    try:
        _supplier_price_list(supplier_id, price_list_id)
        return get_price_list_service().deactivate(price_list_id)

    except Exception as e:
        return handle_error(e)


# ===================
# SYNC
# ===================

@router.post(
    "/{supplier_id}/price-lists/{price_list_id}/sync",
    response_model=SyncRunReport
)
async def sync_price_list(
    supplier_id: str,
    price_list_id: str,
    data: Optional[SyncRequest] = None
):
    """
    Sync a price list's prices into the catalog.

    A failed run still answers 200 with success=false and the report.
    """
    try:
        _supplier_price_list(supplier_id, price_list_id)
        options = data or SyncRequest()
        return get_sync_service().sync(
            price_list_id,
            force_sync=options.force_sync,
            dry_run=options.dry_run,
        )

    except Exception as e:
        return handle_error(e)
