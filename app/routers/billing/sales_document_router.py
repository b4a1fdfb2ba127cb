from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.models.enums.document_status import DocumentStatus
from app.utils.get_user import get_current_actor
from app.utils.response import success_response, APIResponse
from app.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

from app.schemas.billing.sales_document_schemas import (
    BulkCreateRequest,
    BulkCreateResult,
    ConvertRequest,
    FulfillRequest,
    RejectRequest,
    ReopenRequest,
    SalesDocumentCreate,
    SalesDocumentFilters,
    SalesDocumentListData,
    SalesDocumentOut,
    SalesDocumentStats,
    SalesDocumentUpdate,
    SortField,
)

from app.services.billing.document_kinds import DocumentKindDescriptor, ORDER, QUOTE
from app.services.billing.sales_document_service import (
    accept_document,
    bulk_create_documents,
    create_document,
    delete_document,
    fulfill_document,
    get_document,
    get_document_stats,
    list_sales_documents,
    send_document,
    update_document,
)
from app.services.billing.document_rejection_service import reject_document
from app.services.billing.document_expiry_service import reopen_document
from app.services.billing.document_conversion_service import convert_document


def build_sales_document_router(
    descriptor: DocumentKindDescriptor,
    prefix: str,
    tags: list[str],
) -> APIRouter:
    """One set of endpoints per document kind; ``fulfill`` only where deliveries exist."""
    router = APIRouter(prefix=prefix, tags=tags)
    label = descriptor.label.capitalize()

    @router.post(
        "",
        response_model=APIResponse[SalesDocumentOut],
    )
    async def create_document_api(
        payload: SalesDocumentCreate,
        db: AsyncSession = Depends(get_db),
        actor=Depends(get_current_actor),
    ):
        doc = await create_document(db, descriptor, payload, actor)
        return success_response(f"{label} created successfully", doc)

    @router.post(
        "/bulk",
        response_model=APIResponse[BulkCreateResult],
    )
    async def bulk_create_documents_api(
        payload: BulkCreateRequest,
        db: AsyncSession = Depends(get_db),
        actor=Depends(get_current_actor),
    ):
        result = await bulk_create_documents(db, descriptor, payload.rows, actor)
        return success_response(
            f"Bulk create finished: {result.succeeded} succeeded, {result.failed} failed",
            result,
        )

    @router.get(
        "/",
        response_model=APIResponse[SalesDocumentListData],
    )
    async def list_documents_api(
        db: AsyncSession = Depends(get_db),
        actor=Depends(get_current_actor),
        search: Optional[str] = Query(None, description="Ref number, notes or shipping address"),
        status: Optional[DocumentStatus] = Query(None, description="Effective status, including expired"),
        store_id: Optional[int] = Query(None),
        customer_id: Optional[int] = Query(None),
        currency_id: Optional[int] = Query(None),
        date_from: Optional[date] = Query(None),
        date_to: Optional[date] = Query(None),
        converted: Optional[bool] = Query(None),
        page: int = Query(1, ge=1),
        page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
        sort_by: SortField = Query("created_at"),
        order: Literal["asc", "desc"] = Query("desc"),
    ):
        filters = SalesDocumentFilters(
            search=search,
            status=status,
            store_id=store_id,
            customer_id=customer_id,
            currency_id=currency_id,
            date_from=date_from,
            date_to=date_to,
            converted=converted,
        )
        data = await list_sales_documents(
            db,
            descriptor,
            filters,
            actor,
            page=page,
            page_size=page_size,
            sort_by=sort_by,
            order=order,
        )
        return success_response(f"{label}s retrieved successfully", data)

    @router.get(
        "/stats/overview",
        response_model=APIResponse[SalesDocumentStats],
    )
    async def document_stats_api(
        db: AsyncSession = Depends(get_db),
        actor=Depends(get_current_actor),
    ):
        stats = await get_document_stats(db, descriptor, actor)
        return success_response(f"{label} stats fetched", stats)

    @router.get(
        "/{document_id}",
        response_model=APIResponse[SalesDocumentOut],
    )
    async def get_document_api(
        document_id: int,
        db: AsyncSession = Depends(get_db),
        actor=Depends(get_current_actor),
    ):
        doc = await get_document(db, descriptor, document_id, actor)
        return success_response(f"{label} retrieved successfully", doc)

    @router.patch(
        "/{document_id}",
        response_model=APIResponse[SalesDocumentOut],
    )
    async def update_document_api(
        document_id: int,
        payload: SalesDocumentUpdate,
        db: AsyncSession = Depends(get_db),
        actor=Depends(get_current_actor),
    ):
        doc = await update_document(db, descriptor, document_id, payload, actor)
        return success_response(f"{label} updated successfully", doc)

    @router.delete(
        "/{document_id}",
        response_model=APIResponse[SalesDocumentOut],
    )
    async def delete_document_api(
        document_id: int,
        version: int = Query(...),
        db: AsyncSession = Depends(get_db),
        actor=Depends(get_current_actor),
    ):
        doc = await delete_document(db, descriptor, document_id, version, actor)
        return success_response(f"{label} deleted successfully", doc)

    @router.post(
        "/{document_id}/send",
        response_model=APIResponse[SalesDocumentOut],
    )
    async def send_document_api(
        document_id: int,
        version: int = Query(...),
        db: AsyncSession = Depends(get_db),
        actor=Depends(get_current_actor),
    ):
        doc = await send_document(db, descriptor, document_id, version, actor)
        return success_response(f"{label} sent successfully", doc)

    @router.post(
        "/{document_id}/accept",
        response_model=APIResponse[SalesDocumentOut],
    )
    async def accept_document_api(
        document_id: int,
        version: int = Query(...),
        db: AsyncSession = Depends(get_db),
        actor=Depends(get_current_actor),
    ):
        doc = await accept_document(db, descriptor, document_id, version, actor)
        return success_response(f"{label} accepted successfully", doc)

    @router.post(
        "/{document_id}/reject",
        response_model=APIResponse[SalesDocumentOut],
    )
    async def reject_document_api(
        document_id: int,
        payload: Optional[RejectRequest] = None,
        version: int = Query(...),
        db: AsyncSession = Depends(get_db),
        actor=Depends(get_current_actor),
    ):
        reason = payload.rejection_reason if payload else ""
        doc = await reject_document(db, descriptor, document_id, version, reason, actor)
        return success_response(f"{label} rejected successfully", doc)

    if descriptor.supports_delivery:

        @router.post(
            "/{document_id}/fulfill",
            response_model=APIResponse[SalesDocumentOut],
        )
        async def fulfill_document_api(
            document_id: int,
            payload: Optional[FulfillRequest] = None,
            version: int = Query(...),
            db: AsyncSession = Depends(get_db),
            actor=Depends(get_current_actor),
        ):
            doc = await fulfill_document(
                db,
                descriptor,
                document_id,
                version,
                actor,
                delivery_date=payload.delivery_date if payload else None,
            )
            return success_response(f"{label} marked as delivered", doc)

    @router.post(
        "/{document_id}/reopen",
        response_model=APIResponse[SalesDocumentOut],
    )
    async def reopen_document_api(
        document_id: int,
        payload: ReopenRequest,
        version: int = Query(...),
        db: AsyncSession = Depends(get_db),
        actor=Depends(get_current_actor),
    ):
        doc = await reopen_document(db, descriptor, document_id, version, payload.valid_until, actor)
        return success_response(f"{label} reopened successfully", doc)

    @router.post(
        "/{document_id}/convert-to-invoice",
        response_model=APIResponse[SalesDocumentOut],
    )
    async def convert_document_api(
        document_id: int,
        payload: Optional[ConvertRequest] = None,
        version: int = Query(...),
        db: AsyncSession = Depends(get_db),
        actor=Depends(get_current_actor),
    ):
        doc = await convert_document(
            db,
            descriptor,
            document_id,
            version,
            actor,
            as_of_date=payload.as_of_date if payload else None,
            due_date=payload.due_date if payload else None,
        )
        return success_response(f"{label} converted to invoice successfully", doc)

    return router


proforma_invoice_router = build_sales_document_router(QUOTE, "/proforma-invoices", ["Proforma Invoices"])
sales_order_router = build_sales_document_router(ORDER, "/sales-orders", ["Sales Orders"])
