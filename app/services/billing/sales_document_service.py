"""
Lifecycle operations shared by proforma invoices and sales orders.

Every function takes the kind descriptor first, so the routers for both
document kinds call into the same code. ``reject``, ``reopen`` and
``convert`` live in their own modules.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
import logging
from typing import List

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.activity_codes import ActivityCode
from app.constants.error_codes import ErrorCode
from app.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.core.exceptions import AppException, ValidationError
from app.models.billing.sales_document_models import SalesDocument, SalesDocumentItem
from app.models.enums.document_status import DocumentEvent, DocumentStatus
from app.schemas.billing.sales_document_schemas import (
    BulkCreateResult,
    BulkRowResult,
    SalesDocumentCreate,
    SalesDocumentFilters,
    SalesDocumentItemIn,
    SalesDocumentListData,
    SalesDocumentOut,
    SalesDocumentStats,
    SalesDocumentUpdate,
)
from app.services.auth.capability_service import ensure_capability
from app.services.billing.currency_equivalence import refresh_exchange_snapshot
from app.services.billing.document_expiry_core import effective_status_expr
from app.services.billing.document_kinds import DocumentKindDescriptor
from app.services.billing.document_state_machine import (
    apply_transition,
    ensure_mutable,
    ensure_sendable,
    resolve_transition,
)
from app.services.billing.document_store import (
    ensure_version,
    list_documents,
    load_document,
    map_document,
    save_document,
)
from app.services.billing.exchange_rate_service import DatabaseRateSource, RateSource
from app.utils.activity_helpers import emit_activity
from app.utils.clock import request_clock
from app.utils.decimal_utils import percentage_of, to_decimal

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

# Header fields an edit may change directly
_EDITABLE_FIELDS = (
    "document_date",
    "customer_id",
    "store_id",
    "currency_id",
    "delivery_date",
    "shipping_address",
    "notes",
    "terms_conditions",
)


# =====================================================
# TOTALS
# =====================================================
def _line_gross(quantity, unit_price) -> Decimal:
    return to_decimal(Decimal(quantity) * Decimal(unit_price))


def _build_items(items: List[SalesDocumentItemIn], actor) -> list[SalesDocumentItem]:
    built = []
    for line_no, i in enumerate(items, start=1):
        gross = _line_gross(i.quantity, i.unit_price)
        discount = percentage_of(gross, i.discount_percentage)
        tax = percentage_of(gross - discount, i.tax_percentage)
        built.append(
            SalesDocumentItem(
                line_no=line_no,
                product_id=i.product_id,
                description=i.description,
                quantity=i.quantity,
                unit_price=i.unit_price,
                discount_percentage=i.discount_percentage,
                discount_amount=discount,
                tax_percentage=i.tax_percentage,
                tax_amount=tax,
                line_total=gross - discount + tax,
                created_by_id=actor.id,
                created_by_name=actor.username,
            )
        )
    return built


def recalculate_totals(doc: SalesDocument) -> None:
    items = doc.active_items
    doc.subtotal = sum((_line_gross(i.quantity, i.unit_price) for i in items), ZERO)
    doc.discount_amount = sum((to_decimal(i.discount_amount) for i in items), ZERO)
    doc.tax_amount = sum((to_decimal(i.tax_amount) for i in items), ZERO)
    doc.total_amount = doc.subtotal - doc.discount_amount + doc.tax_amount


def _ensure_valid_until(valid_until: date | None, today: date) -> None:
    if valid_until is not None and valid_until < today:
        raise ValidationError(
            "Valid until date cannot be in the past",
            {"valid_until": str(valid_until), "today": str(today)},
        )


# =====================================================
# CREATE
# =====================================================
async def create_document(
    db: AsyncSession,
    descriptor: DocumentKindDescriptor,
    payload: SalesDocumentCreate,
    actor,
    *,
    rate_source: RateSource | None = None,
    now: datetime | None = None,
) -> SalesDocumentOut:
    ensure_capability(actor, descriptor.capability(DocumentEvent.create))
    now, today = request_clock(now)

    if not payload.items:
        raise ValidationError(f"A {descriptor.label} must contain at least one item")

    _ensure_valid_until(payload.valid_until, today)

    doc = descriptor.model(
        ref_number="TEMP",
        document_date=payload.document_date,
        customer_id=payload.customer_id,
        store_id=payload.store_id,
        status=DocumentStatus.draft,
        valid_until=payload.valid_until,
        currency_id=payload.currency_id,
        delivery_date=payload.delivery_date,
        shipping_address=payload.shipping_address,
        notes=payload.notes,
        terms_conditions=payload.terms_conditions,
    )
    doc.stamp_created(actor)
    doc.items = _build_items(payload.items, actor)
    recalculate_totals(doc)

    await refresh_exchange_snapshot(db, doc, rate_source or DatabaseRateSource(db), today)

    db.add(doc)
    await db.flush()

    doc.ref_number = descriptor.ref_number_for(doc.id)
    await db.flush()

    await emit_activity(
        db,
        actor=actor,
        code=ActivityCode.CREATE_DOCUMENT,
        document_label=descriptor.label,
        target_name=doc.ref_number,
    )
    await db.commit()

    logger.info(
        "Document created",
        extra={
            "ref_number": doc.ref_number,
            "kind": descriptor.kind.value,
            "total_amount": str(doc.total_amount),
            "equivalent_amount": str(doc.equivalent_amount),
        },
    )
    return map_document(doc, today)


async def bulk_create_documents(
    db: AsyncSession,
    descriptor: DocumentKindDescriptor,
    rows: list[dict],
    actor,
    *,
    rate_source: RateSource | None = None,
    now: datetime | None = None,
) -> BulkCreateResult:
    """Create each row on its own; one bad row never affects the others."""
    ensure_capability(actor, descriptor.capability(DocumentEvent.create))
    now, _ = request_clock(now)

    results: list[BulkRowResult] = []

    for index, row in enumerate(rows, start=1):
        try:
            payload = SalesDocumentCreate.model_validate(row)
            created = await create_document(
                db, descriptor, payload, actor, rate_source=rate_source, now=now
            )
        except SchemaValidationError as exc:
            results.append(
                BulkRowResult(
                    row=index,
                    success=False,
                    error_code=ErrorCode.VALIDATION_ERROR.value,
                    message="; ".join(
                        f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()
                    ),
                )
            )
            continue
        except AppException as exc:
            await db.rollback()
            results.append(
                BulkRowResult(
                    row=index,
                    success=False,
                    error_code=ErrorCode(exc.error_code).value,
                    message=exc.detail,
                )
            )
            continue
        except IntegrityError as exc:
            await db.rollback()
            logger.warning("Bulk row rejected by database", extra={"row": index, "error": str(exc.orig)})
            results.append(
                BulkRowResult(
                    row=index,
                    success=False,
                    error_code=ErrorCode.CONFLICT.value,
                    message="Row conflicts with existing data",
                )
            )
            continue

        results.append(
            BulkRowResult(row=index, success=True, id=created.id, ref_number=created.ref_number)
        )

    succeeded = sum(1 for r in results if r.success)
    logger.info(
        "Bulk create finished",
        extra={"kind": descriptor.kind.value, "succeeded": succeeded, "failed": len(results) - succeeded},
    )
    return BulkCreateResult(succeeded=succeeded, failed=len(results) - succeeded, results=results)


# =====================================================
# READ
# =====================================================
async def get_document(
    db: AsyncSession,
    descriptor: DocumentKindDescriptor,
    document_id: int,
    actor,
    *,
    now: datetime | None = None,
) -> SalesDocumentOut:
    ensure_capability(actor, descriptor.capability(DocumentEvent.view))
    _, today = request_clock(now)
    doc = await load_document(db, descriptor, document_id)
    return map_document(doc, today)


async def list_sales_documents(
    db: AsyncSession,
    descriptor: DocumentKindDescriptor,
    filters: SalesDocumentFilters,
    actor,
    *,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    sort_by: str = "created_at",
    order: str = "desc",
    now: datetime | None = None,
) -> SalesDocumentListData:
    ensure_capability(actor, descriptor.capability(DocumentEvent.view))
    _, today = request_clock(now)

    page = max(page, 1)
    page_size = max(1, min(page_size, MAX_PAGE_SIZE))

    return await list_documents(
        db,
        descriptor,
        filters,
        today=today,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        order=order,
    )


def _month_bounds(today: date) -> tuple[date, date, date]:
    this_month = today.replace(day=1)
    last_month = (this_month - timedelta(days=1)).replace(day=1)
    next_month = (this_month + timedelta(days=32)).replace(day=1)
    return last_month, this_month, next_month


async def get_document_stats(
    db: AsyncSession,
    descriptor: DocumentKindDescriptor,
    actor,
    *,
    now: datetime | None = None,
) -> SalesDocumentStats:
    ensure_capability(actor, descriptor.capability(DocumentEvent.view))
    _, today = request_clock(now)
    model = descriptor.model
    last_month, this_month, next_month = _month_bounds(today)

    docs = (
        select(
            effective_status_expr(descriptor, today).label("effective_status"),
            model.converted_invoice_id,
            model.equivalent_amount,
            model.document_date,
        )
        .where(
            model.kind == descriptor.kind,
            model.is_deleted.is_(False),
        )
        .subquery()
    )

    def count_status(status: DocumentStatus):
        return func.count().filter(docs.c.effective_status == status.name).label(status.value)

    result = await db.execute(
        select(
            func.count().label("total"),
            count_status(DocumentStatus.draft),
            count_status(DocumentStatus.sent),
            count_status(DocumentStatus.accepted),
            count_status(DocumentStatus.rejected),
            count_status(DocumentStatus.expired),
            count_status(DocumentStatus.delivered),
            func.count(docs.c.converted_invoice_id).label("converted"),
            func.sum(docs.c.equivalent_amount).label("total_value"),
            func.count()
            .filter(and_(docs.c.document_date >= this_month, docs.c.document_date < next_month))
            .label("this_month"),
            func.count()
            .filter(and_(docs.c.document_date >= last_month, docs.c.document_date < this_month))
            .label("last_month"),
        )
    )
    row = result.one()

    return SalesDocumentStats(
        total=row.total,
        draft=row.draft,
        sent=row.sent,
        accepted=row.accepted,
        rejected=row.rejected,
        expired=row.expired,
        delivered=row.delivered if descriptor.supports_delivery else None,
        converted=row.converted,
        total_value=to_decimal(row.total_value),
        this_month=row.this_month,
        last_month=row.last_month,
    )


# =====================================================
# EDIT / DELETE
# =====================================================
async def update_document(
    db: AsyncSession,
    descriptor: DocumentKindDescriptor,
    document_id: int,
    payload: SalesDocumentUpdate,
    actor,
    *,
    rate_source: RateSource | None = None,
    now: datetime | None = None,
) -> SalesDocumentOut:
    ensure_capability(actor, descriptor.capability(DocumentEvent.edit))
    now, today = request_clock(now)

    doc = await load_document(db, descriptor, document_id, for_update=True)
    ensure_version(doc, payload.version)
    ensure_mutable(doc, DocumentEvent.edit, today)

    changes: list[str] = []

    for field in _EDITABLE_FIELDS:
        value = getattr(payload, field)
        if value is not None and value != getattr(doc, field):
            setattr(doc, field, value)
            changes.append(field)

    if payload.valid_until is not None and payload.valid_until != doc.valid_until:
        _ensure_valid_until(payload.valid_until, today)
        doc.valid_until = payload.valid_until
        changes.append("valid_until")

    if payload.items is not None:
        if not payload.items:
            raise ValidationError(f"A {descriptor.label} must contain at least one item")
        doc.items = _build_items(payload.items, actor)
        changes.append("items")

    # The rate is re-fetched on every edit; a moved rate is itself a change
    previous_rate = doc.exchange_rate_value
    recalculate_totals(doc)
    await refresh_exchange_snapshot(db, doc, rate_source or DatabaseRateSource(db), today)
    if doc.exchange_rate_value != previous_rate:
        changes.append("exchange_rate")

    if not changes:
        return map_document(doc, today)

    doc.touch(actor, now)

    await emit_activity(
        db,
        actor=actor,
        code=ActivityCode.UPDATE_DOCUMENT,
        document_label=descriptor.label,
        target_name=doc.ref_number,
        changes=", ".join(changes),
    )
    await save_document(db, doc, payload.version)

    return map_document(doc, today)


async def delete_document(
    db: AsyncSession,
    descriptor: DocumentKindDescriptor,
    document_id: int,
    version: int,
    actor,
    *,
    now: datetime | None = None,
) -> SalesDocumentOut:
    ensure_capability(actor, descriptor.capability(DocumentEvent.delete))
    now, today = request_clock(now)

    doc = await load_document(db, descriptor, document_id, for_update=True)
    ensure_version(doc, version)
    ensure_mutable(doc, DocumentEvent.delete, today)

    doc.is_deleted = True
    doc.touch(actor, now)

    await emit_activity(
        db,
        actor=actor,
        code=ActivityCode.DELETE_DOCUMENT,
        document_label=descriptor.label,
        target_name=doc.ref_number,
    )
    await save_document(db, doc, version)

    return map_document(doc, today)


# =====================================================
# TRANSITIONS
# =====================================================
async def send_document(
    db: AsyncSession,
    descriptor: DocumentKindDescriptor,
    document_id: int,
    version: int,
    actor,
    *,
    now: datetime | None = None,
) -> SalesDocumentOut:
    ensure_capability(actor, descriptor.capability(DocumentEvent.send))
    now, today = request_clock(now)

    doc = await load_document(db, descriptor, document_id, for_update=True)
    ensure_version(doc, version)
    transition = resolve_transition(doc, DocumentEvent.send, today)
    ensure_sendable(doc)

    # A draft whose deadline already passed would be expired the moment it is sent
    if doc.valid_until is not None and doc.valid_until < today:
        raise ValidationError(
            "Valid until date has passed; edit the document before sending",
            {"valid_until": str(doc.valid_until), "today": str(today)},
        )

    apply_transition(doc, transition, actor, now)

    await emit_activity(
        db,
        actor=actor,
        code=ActivityCode.SEND_DOCUMENT,
        document_label=descriptor.label,
        target_name=doc.ref_number,
    )
    await save_document(db, doc, version)

    return map_document(doc, today)


async def accept_document(
    db: AsyncSession,
    descriptor: DocumentKindDescriptor,
    document_id: int,
    version: int,
    actor,
    *,
    now: datetime | None = None,
) -> SalesDocumentOut:
    ensure_capability(actor, descriptor.capability(DocumentEvent.accept))
    now, today = request_clock(now)

    doc = await load_document(db, descriptor, document_id, for_update=True)
    ensure_version(doc, version)
    transition = resolve_transition(doc, DocumentEvent.accept, today)

    apply_transition(doc, transition, actor, now)

    await emit_activity(
        db,
        actor=actor,
        code=ActivityCode.ACCEPT_DOCUMENT,
        document_label=descriptor.label,
        target_name=doc.ref_number,
    )
    await save_document(db, doc, version)

    return map_document(doc, today)


async def fulfill_document(
    db: AsyncSession,
    descriptor: DocumentKindDescriptor,
    document_id: int,
    version: int,
    actor,
    *,
    delivery_date: date | None = None,
    now: datetime | None = None,
) -> SalesDocumentOut:
    ensure_capability(actor, descriptor.capability(DocumentEvent.fulfill))
    now, today = request_clock(now)

    doc = await load_document(db, descriptor, document_id, for_update=True)
    ensure_version(doc, version)
    transition = resolve_transition(doc, DocumentEvent.fulfill, today)

    doc.delivery_date = delivery_date or doc.delivery_date or today
    apply_transition(doc, transition, actor, now)

    await emit_activity(
        db,
        actor=actor,
        code=ActivityCode.FULFILL_DOCUMENT,
        document_label=descriptor.label,
        target_name=doc.ref_number,
    )
    await save_document(db, doc, version)

    return map_document(doc, today)
