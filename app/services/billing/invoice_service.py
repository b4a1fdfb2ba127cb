from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
import logging
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, desc, or_
from sqlalchemy.orm import selectinload

from app.models.billing.invoice_models import Invoice, InvoiceItem
from app.models.enums.document_status import DocumentKind

from app.schemas.billing.invoice_schemas import (
    InvoiceOut,
    InvoiceItemOut,
    InvoiceListData,
    InvoiceListItem,
)

from app.constants.activity_codes import ActivityCode
from app.constants.error_codes import ErrorCode

from app.core.exceptions import NotFound
from app.utils.activity_helpers import emit_activity

logger = logging.getLogger(__name__)


# =====================================================
# COLLABORATOR CONTRACT
# =====================================================
@dataclass(frozen=True)
class InvoiceLine:
    line_no: int
    product_id: int
    description: str | None
    quantity: Decimal
    unit_price: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class InvoiceDraft:
    """Everything an invoice needs, copied from the frozen source document."""
    source_document_kind: DocumentKind
    source_document_id: int
    source_ref_number: str
    customer_id: int
    store_id: int
    invoice_date: date
    due_date: date
    currency_id: int
    system_currency_id: int
    exchange_rate_value: Decimal
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    equivalent_amount: Decimal
    lines: tuple[InvoiceLine, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class InvoiceReceipt:
    invoice_id: str
    invoice_ref: str


class InvoiceCreator(Protocol):
    async def create_invoice(self, draft: InvoiceDraft, actor) -> InvoiceReceipt:
        ...


class LocalInvoiceCreator:
    """Writes the invoice into the caller's session without committing.

    The conversion commit then covers both the invoice and the source
    document, so either both exist or neither does.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_invoice(self, draft: InvoiceDraft, actor) -> InvoiceReceipt:
        invoice = Invoice(
            invoice_number="TEMP",
            source_document_kind=draft.source_document_kind,
            source_document_id=draft.source_document_id,
            source_ref_number=draft.source_ref_number,
            customer_id=draft.customer_id,
            store_id=draft.store_id,
            invoice_date=draft.invoice_date,
            due_date=draft.due_date,
            currency_id=draft.currency_id,
            system_currency_id=draft.system_currency_id,
            exchange_rate_value=draft.exchange_rate_value,
            subtotal=draft.subtotal,
            discount_amount=draft.discount_amount,
            tax_amount=draft.tax_amount,
            total_amount=draft.total_amount,
            equivalent_amount=draft.equivalent_amount,
        )
        invoice.stamp_created(actor)
        invoice.items = [
            InvoiceItem(
                line_no=line.line_no,
                product_id=line.product_id,
                description=line.description,
                quantity=line.quantity,
                unit_price=line.unit_price,
                discount_amount=line.discount_amount,
                tax_amount=line.tax_amount,
                line_total=line.line_total,
                created_by_id=actor.id,
                created_by_name=actor.username,
            )
            for line in draft.lines
        ]

        self.db.add(invoice)
        await self.db.flush()

        invoice.invoice_number = f"INV-{invoice.id:06d}"
        await self.db.flush()

        await emit_activity(
            self.db,
            actor=actor,
            code=ActivityCode.CREATE_INVOICE,
            target_name=invoice.invoice_number,
            source_ref=draft.source_ref_number,
        )

        logger.info(
            "Invoice created",
            extra={
                "invoice_number": invoice.invoice_number,
                "source_ref_number": draft.source_ref_number,
            },
        )
        return InvoiceReceipt(invoice_id=str(invoice.id), invoice_ref=invoice.invoice_number)


# =====================================================
# READS
# =====================================================
def _map_invoice(invoice: Invoice) -> InvoiceOut:
    return InvoiceOut(
        id=invoice.id,
        invoice_number=invoice.invoice_number,
        source_document_kind=invoice.source_document_kind,
        source_document_id=invoice.source_document_id,
        source_ref_number=invoice.source_ref_number,
        customer_id=invoice.customer_id,
        store_id=invoice.store_id,
        invoice_date=invoice.invoice_date,
        due_date=invoice.due_date,
        currency_id=invoice.currency_id,
        system_currency_id=invoice.system_currency_id,
        exchange_rate_value=invoice.exchange_rate_value,
        subtotal=invoice.subtotal,
        discount_amount=invoice.discount_amount,
        tax_amount=invoice.tax_amount,
        total_amount=invoice.total_amount,
        equivalent_amount=invoice.equivalent_amount,
        created_by_name=invoice.created_by_name,
        created_at=invoice.created_at,
        items=[
            InvoiceItemOut(
                id=i.id,
                line_no=i.line_no,
                product_id=i.product_id,
                description=i.description,
                quantity=i.quantity,
                unit_price=i.unit_price,
                discount_amount=i.discount_amount,
                tax_amount=i.tax_amount,
                line_total=i.line_total,
            )
            for i in invoice.items
        ],
    )


async def get_invoice(db: AsyncSession, invoice_id: int) -> InvoiceOut:
    result = await db.execute(
        select(Invoice)
        .options(selectinload(Invoice.items))
        .where(Invoice.id == invoice_id)
    )

    invoice = result.scalar_one_or_none()
    if not invoice:
        raise NotFound("Invoice not found", ErrorCode.INVOICE_NOT_FOUND)

    return _map_invoice(invoice)


async def list_invoices(
    db: AsyncSession,
    *,
    customer_id: int | None = None,
    source_kind: DocumentKind | None = None,
    search: str | None = None,
    page: int = 1,
    page_size: int = 20,
) -> InvoiceListData:
    clauses = []
    if customer_id:
        clauses.append(Invoice.customer_id == customer_id)

    if source_kind:
        clauses.append(Invoice.source_document_kind == source_kind)

    if search:
        pattern = f"%{search.strip()}%"
        clauses.append(
            or_(
                Invoice.invoice_number.ilike(pattern),
                Invoice.source_ref_number.ilike(pattern),
            )
        )

    total = await db.scalar(
        select(func.count(Invoice.id)).where(*clauses)
    )

    result = await db.execute(
        select(
            Invoice.id,
            Invoice.invoice_number,
            Invoice.source_ref_number,
            Invoice.customer_id,
            Invoice.invoice_date,
            Invoice.due_date,
            Invoice.total_amount,
            Invoice.equivalent_amount,
        )
        .where(*clauses)
        .order_by(desc(Invoice.created_at), desc(Invoice.id))
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    items = [
        InvoiceListItem(
            id=r.id,
            invoice_number=r.invoice_number,
            source_ref_number=r.source_ref_number,
            customer_id=r.customer_id,
            invoice_date=r.invoice_date,
            due_date=r.due_date,
            total_amount=r.total_amount,
            equivalent_amount=r.equivalent_amount,
        )
        for r in result.all()
    ]

    return InvoiceListData(total=total or 0, items=items)
