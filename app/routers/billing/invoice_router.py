from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.models.enums.document_status import DocumentKind
from app.schemas.billing.invoice_schemas import InvoiceOut, InvoiceListData
from app.services.auth.capability_service import ensure_capability
from app.services.billing.invoice_service import get_invoice, list_invoices
from app.utils.get_user import get_current_actor
from app.utils.response import success_response, APIResponse

# Invoices are only ever created by converting a proforma invoice or a
# sales order, so this router is read-only.
router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.get("/{invoice_id}", response_model=APIResponse[InvoiceOut])
async def get_invoice_api(
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
    actor=Depends(get_current_actor),
):
    ensure_capability(actor, "invoice.view")
    return success_response(
        "Invoice retrieved successfully",
        await get_invoice(db, invoice_id),
    )


@router.get("/", response_model=APIResponse[InvoiceListData])
async def list_invoices_api(
    db: AsyncSession = Depends(get_db),
    actor=Depends(get_current_actor),
    customer_id: Optional[int] = Query(None),
    source_kind: Optional[DocumentKind] = Query(None, description="quote or order"),
    search: Optional[str] = Query(None, description="Invoice number or source ref number"),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
):
    ensure_capability(actor, "invoice.view")
    data = await list_invoices(
        db,
        customer_id=customer_id,
        source_kind=source_kind,
        search=search,
        page=page,
        page_size=page_size,
    )
    return success_response("Invoices retrieved successfully", data)
