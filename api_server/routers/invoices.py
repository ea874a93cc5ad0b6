import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, Request

from ..database import DatabaseClient, apply_timestamps
from ..errors import ConflictError, InvoiceAPIError, NotFoundError, StoreError, ValidationError
from ..models import (
    DeletedInvoice,
    InvoiceCreatedResponse,
    InvoiceDeletedResponse,
    InvoiceListResponse,
    InvoiceResponse,
    Pagination,
)
from ..validation import validate_invoice

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
DEFAULT_SKIP = 0

router = APIRouter(
    prefix="/api/invoices",
    tags=["invoices"]
)


def get_store(request: Request) -> DatabaseClient:
    """Store client created at startup and shared by all requests"""
    return request.app.state.store


def _parse_int(value: Optional[str], default: int, minimum: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed >= minimum else default


@router.post("", status_code=201, response_model=InvoiceCreatedResponse)
async def create_invoice(
    payload: Any = Body(..., description="Invoice document"),
    store: DatabaseClient = Depends(get_store)
):
    result = validate_invoice(payload)
    if not result.is_valid:
        raise ValidationError(result.error, details=result.details)

    invoice_number = result.invoice.invoiceNumber
    try:
        # Fast path only; the unique index decides concurrent creates
        if await store.invoice_exists(invoice_number):
            raise ConflictError()

        document = apply_timestamps(result.invoice.to_document())
        saved = await store.insert_invoice(document)
    except InvoiceAPIError:
        raise
    except Exception as e:
        logger.exception("Error saving invoice %s", invoice_number)
        raise StoreError("Failed to save invoice", details=str(e))

    logger.info("Saved invoice %s (%s)", saved["invoiceNumber"], saved["id"])
    return InvoiceCreatedResponse(
        message="Invoice saved successfully",
        invoiceId=str(saved["id"]),
        invoiceNumber=saved["invoiceNumber"],
        createdAt=saved["createdAt"]
    )


@router.get("/{invoice_number}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_number: str = Path(..., description="Invoice number (e.g., INV-20240101-001)"),
    store: DatabaseClient = Depends(get_store)
):
    try:
        invoice = await store.get_invoice(invoice_number)
    except Exception as e:
        logger.exception("Error fetching invoice %s", invoice_number)
        raise StoreError("Failed to fetch invoice", details=str(e))

    if not invoice:
        raise NotFoundError()
    return InvoiceResponse(invoice=invoice)


@router.get("", response_model=InvoiceListResponse)
async def list_invoices(
    limit: Optional[str] = Query(None, description="Page size (default 50)"),
    skip: Optional[str] = Query(None, description="Number of invoices to skip (default 0)"),
    sortBy: str = Query("createdAt", description="Field to sort by"),
    sortOrder: str = Query("desc", description="asc or desc"),
    store: DatabaseClient = Depends(get_store)
):
    page_limit = _parse_int(limit, DEFAULT_LIMIT, 1)
    page_skip = _parse_int(skip, DEFAULT_SKIP, 0)

    try:
        invoices, total = await store.list_invoices(
            limit=page_limit,
            skip=page_skip,
            sort_by=sortBy,
            descending=sortOrder == "desc"
        )
    except Exception as e:
        logger.exception("Error fetching invoices")
        raise StoreError("Failed to fetch invoices", details=str(e))

    return InvoiceListResponse(
        invoices=invoices,
        pagination=Pagination(
            total=total,
            limit=page_limit,
            skip=page_skip,
            hasMore=page_skip + page_limit < total
        )
    )


@router.delete("/{invoice_number}", response_model=InvoiceDeletedResponse)
async def delete_invoice(
    invoice_number: str = Path(..., description="Invoice number to delete"),
    store: DatabaseClient = Depends(get_store)
):
    try:
        deleted = await store.delete_invoice(invoice_number)
    except Exception as e:
        logger.exception("Error deleting invoice %s", invoice_number)
        raise StoreError("Failed to delete invoice", details=str(e))

    if not deleted:
        raise NotFoundError()

    logger.info("Deleted invoice %s", invoice_number)
    return InvoiceDeletedResponse(
        message="Invoice deleted successfully",
        deletedInvoice=DeletedInvoice(id=str(deleted["id"]), invoiceNumber=deleted["invoiceNumber"])
    )
