"""
Persistence for sales documents.

``load_document`` / ``save_document`` implement optimistic concurrency in two
layers: the caller's expected version is compared before anything is
touched, and the mapper's ``version_id_col`` rejects the UPDATE at commit if
another request got there first.
"""

from datetime import date
import logging
import math

from sqlalchemy import asc, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from app.constants.error_codes import ErrorCode
from app.core.exceptions import Conflict, NotFound
from app.models.billing.sales_document_models import SalesDocument, SalesDocumentItem
from app.models.enums.document_status import DocumentEvent, DocumentKind, DocumentStatus
from app.schemas.billing.sales_document_schemas import (
    AuditStamp,
    SalesDocumentFilters,
    SalesDocumentItemOut,
    SalesDocumentListData,
    SalesDocumentListItem,
    SalesDocumentOut,
)
from app.services.billing.document_expiry_core import effective_status, effective_status_expr
from app.services.billing.document_kinds import DocumentKindDescriptor, get_descriptor
from app.services.billing.document_state_machine import WORKFLOWS

logger = logging.getLogger(__name__)

# Events that no longer apply once an invoice exists
_CLOSED_BY_CONVERSION = {
    DocumentEvent.edit,
    DocumentEvent.delete,
    DocumentEvent.reject,
    DocumentEvent.reopen,
    DocumentEvent.convert,
}


# =====================================================
# LOAD / SAVE
# =====================================================
async def load_document(
    db: AsyncSession,
    descriptor: DocumentKindDescriptor,
    document_id: int,
    *,
    for_update: bool = False,
) -> SalesDocument:
    model = descriptor.model
    stmt = (
        select(model)
        .options(selectinload(model.items))
        .where(
            model.id == document_id,
            model.is_deleted.is_(False),
        )
    )
    if for_update:
        stmt = stmt.with_for_update()

    result = await db.execute(stmt)
    doc = result.scalar_one_or_none()
    if not doc:
        raise NotFound(
            f"{descriptor.label.capitalize()} not found",
            ErrorCode.DOCUMENT_NOT_FOUND,
        )
    return doc


def ensure_version(doc: SalesDocument, expected_version: int) -> None:
    if doc.version != expected_version:
        logger.warning(
            "Version conflict",
            extra={
                "ref_number": doc.ref_number,
                "expected_version": expected_version,
                "current_version": doc.version,
            },
        )
        raise Conflict(
            "Document was modified by another request",
            {"expected_version": expected_version, "current_version": doc.version},
        )


async def save_document(
    db: AsyncSession,
    doc: SalesDocument,
    expected_version: int,
) -> None:
    """Flush and commit ``doc``; any lost race rolls everything back."""
    ensure_version(doc, expected_version)
    try:
        await db.flush()
        await db.commit()
    except StaleDataError:
        await db.rollback()
        logger.warning(
            "Concurrent modification detected at commit",
            extra={"document_id": doc.id, "expected_version": expected_version},
        )
        raise Conflict(
            "Document was modified by another request",
            {"expected_version": expected_version},
        )


# =====================================================
# MAPPING
# =====================================================
def _stamp(doc: SalesDocument, prefix: str) -> AuditStamp:
    return AuditStamp(
        by_id=getattr(doc, f"{prefix}_by_id"),
        by_name=getattr(doc, f"{prefix}_by_name"),
        at=getattr(doc, f"{prefix}_at"),
    )


def available_actions(doc: SalesDocument, today: date) -> list[str]:
    events = WORKFLOWS[DocumentKind(doc.kind)].events_from(effective_status(doc, today))
    if doc.is_converted:
        events = [e for e in events if e not in _CLOSED_BY_CONVERSION]
    return [e.value for e in events]


def map_document(doc: SalesDocument, today: date) -> SalesDocumentOut:
    descriptor = get_descriptor(doc.kind)
    status = effective_status(doc, today)

    return SalesDocumentOut(
        id=doc.id,
        kind=doc.kind,
        ref_number=doc.ref_number,
        document_date=doc.document_date,
        customer_id=doc.customer_id,
        store_id=doc.store_id,
        status=status,
        stored_status=doc.status,
        is_expired=status == DocumentStatus.expired,
        is_converted=doc.is_converted,
        available_actions=available_actions(doc, today),
        currency_id=doc.currency_id,
        system_currency_id=doc.system_currency_id,
        exchange_rate_value=doc.exchange_rate_value,
        subtotal=doc.subtotal,
        discount_amount=doc.discount_amount,
        tax_amount=doc.tax_amount,
        total_amount=doc.total_amount,
        equivalent_amount=doc.equivalent_amount,
        valid_until=doc.valid_until,
        delivery_date=doc.delivery_date,
        shipping_address=doc.shipping_address,
        notes=doc.notes,
        terms_conditions=doc.terms_conditions,
        rejection_reason=doc.rejection_reason,
        sent=_stamp(doc, "sent"),
        accepted=_stamp(doc, "accepted"),
        rejected=_stamp(doc, "rejected"),
        delivered=_stamp(doc, "delivered") if descriptor.supports_delivery else None,
        converted_invoice_id=doc.converted_invoice_id,
        converted_invoice_ref=doc.converted_invoice_ref,
        converted=_stamp(doc, "converted"),
        version=doc.version,
        created_by_id=doc.created_by_id,
        created_by_name=doc.created_by_name,
        updated_by_id=doc.updated_by_id,
        updated_by_name=doc.updated_by_name,
        created_at=doc.created_at,
        updated_at=doc.updated_at,
        items=[
            SalesDocumentItemOut(
                id=i.id,
                line_no=i.line_no,
                product_id=i.product_id,
                description=i.description,
                quantity=i.quantity,
                unit_price=i.unit_price,
                discount_percentage=i.discount_percentage,
                discount_amount=i.discount_amount,
                tax_percentage=i.tax_percentage,
                tax_amount=i.tax_amount,
                line_total=i.line_total,
            )
            for i in doc.active_items
        ],
    )


# =====================================================
# LIST
# =====================================================
def filter_clauses(descriptor: DocumentKindDescriptor, filters: SalesDocumentFilters, today: date) -> list:
    model = descriptor.model
    clauses = [
        model.kind == descriptor.kind,
        model.is_deleted.is_(False),
    ]

    if filters.search:
        pattern = f"%{filters.search.strip()}%"
        clauses.append(
            or_(
                model.ref_number.ilike(pattern),
                model.notes.ilike(pattern),
                model.shipping_address.ilike(pattern),
            )
        )

    if filters.status:
        clauses.append(effective_status_expr(descriptor, today) == filters.status.name)

    if filters.store_id:
        clauses.append(model.store_id == filters.store_id)

    if filters.customer_id:
        clauses.append(model.customer_id == filters.customer_id)

    if filters.currency_id:
        clauses.append(model.currency_id == filters.currency_id)

    if filters.date_from:
        clauses.append(model.document_date >= filters.date_from)

    if filters.date_to:
        clauses.append(model.document_date <= filters.date_to)

    if filters.converted is True:
        clauses.append(model.converted_invoice_id.isnot(None))
    elif filters.converted is False:
        clauses.append(model.converted_invoice_id.is_(None))

    return clauses


def _sort_column(descriptor: DocumentKindDescriptor, sort_by: str, today: date):
    model = descriptor.model
    sort_map = {
        "ref_number": model.ref_number,
        "document_date": model.document_date,
        "total_amount": model.total_amount,
        "status": effective_status_expr(descriptor, today),
        "valid_until": model.valid_until,
        "delivery_date": model.delivery_date,
        "created_at": model.created_at,
        "updated_at": model.updated_at,
        "sent_at": model.sent_at,
        "accepted_at": model.accepted_at,
        "rejected_at": model.rejected_at,
        "delivered_at": model.delivered_at,
    }
    return sort_map.get(sort_by, model.created_at)


async def list_documents(
    db: AsyncSession,
    descriptor: DocumentKindDescriptor,
    filters: SalesDocumentFilters,
    *,
    today: date,
    page: int = 1,
    page_size: int = 20,
    sort_by: str = "created_at",
    order: str = "desc",
) -> SalesDocumentListData:
    model = descriptor.model
    clauses = filter_clauses(descriptor, filters, today)
    status_expr = effective_status_expr(descriptor, today)

    items_count = (
        select(func.count(SalesDocumentItem.id))
        .where(
            SalesDocumentItem.document_id == model.id,
            SalesDocumentItem.is_deleted.is_(False),
        )
        .correlate(model)
        .scalar_subquery()
    )

    total = await db.scalar(
        select(func.count()).select_from(
            select(model.id).where(*clauses).subquery()
        )
    ) or 0

    sort_col = _sort_column(descriptor, sort_by, today)
    direction = asc if order == "asc" else desc

    result = await db.execute(
        select(
            model.id,
            model.ref_number,
            model.document_date,
            model.customer_id,
            model.store_id,
            status_expr.label("effective_status"),
            model.converted_invoice_id,
            items_count.label("items_count"),
            model.currency_id,
            model.total_amount,
            model.equivalent_amount,
            model.valid_until,
            model.version,
            model.created_at,
            model.created_by_name,
        )
        .where(*clauses)
        .order_by(direction(sort_col), direction(model.id))
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    items = [
        SalesDocumentListItem(
            id=r.id,
            ref_number=r.ref_number,
            document_date=r.document_date,
            customer_id=r.customer_id,
            store_id=r.store_id,
            status=DocumentStatus[r.effective_status],
            is_converted=r.converted_invoice_id is not None,
            items_count=r.items_count,
            currency_id=r.currency_id,
            total_amount=r.total_amount,
            equivalent_amount=r.equivalent_amount,
            valid_until=r.valid_until,
            version=r.version,
            created_at=r.created_at,
            created_by_name=r.created_by_name,
        )
        for r in result.all()
    ]

    return SalesDocumentListData(
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size) if total else 0,
        items=items,
    )
