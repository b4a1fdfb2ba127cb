from datetime import date, datetime, timedelta
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.activity_codes import ActivityCode
from app.core.config import INVOICE_DUE_DAYS
from app.core.exceptions import AlreadyConverted, AppException, Conflict, InvoiceCreationFailed, ValidationError
from app.models.billing.sales_document_models import SalesDocument
from app.models.enums.document_status import DocumentEvent, DocumentKind
from app.schemas.billing.sales_document_schemas import SalesDocumentOut
from app.services.auth.capability_service import ensure_capability
from app.services.billing.document_kinds import DocumentKindDescriptor
from app.services.billing.document_state_machine import apply_transition, resolve_transition
from app.services.billing.document_store import ensure_version, load_document, map_document, save_document
from app.services.billing.invoice_service import (
    InvoiceCreator,
    InvoiceDraft,
    InvoiceLine,
    LocalInvoiceCreator,
)
from app.utils.activity_helpers import emit_activity
from app.utils.clock import request_clock

logger = logging.getLogger(__name__)


def build_invoice_draft(doc: SalesDocument, invoice_date: date, due_date: date) -> InvoiceDraft:
    return InvoiceDraft(
        source_document_kind=DocumentKind(doc.kind),
        source_document_id=doc.id,
        source_ref_number=doc.ref_number,
        customer_id=doc.customer_id,
        store_id=doc.store_id,
        invoice_date=invoice_date,
        due_date=due_date,
        currency_id=doc.currency_id,
        system_currency_id=doc.system_currency_id,
        exchange_rate_value=doc.exchange_rate_value,
        subtotal=doc.subtotal,
        discount_amount=doc.discount_amount,
        tax_amount=doc.tax_amount,
        total_amount=doc.total_amount,
        equivalent_amount=doc.equivalent_amount,
        lines=tuple(
            InvoiceLine(
                line_no=i.line_no,
                product_id=i.product_id,
                description=i.description,
                quantity=i.quantity,
                unit_price=i.unit_price,
                discount_amount=i.discount_amount,
                tax_amount=i.tax_amount,
                line_total=i.line_total,
            )
            for i in doc.active_items
        ),
    )


async def convert_document(
    db: AsyncSession,
    descriptor: DocumentKindDescriptor,
    document_id: int,
    version: int,
    actor,
    *,
    as_of_date: date | None = None,
    due_date: date | None = None,
    invoice_creator: InvoiceCreator | None = None,
    now: datetime | None = None,
) -> SalesDocumentOut:
    """Materialise an invoice from a sent, accepted or delivered document.

    A retry after success fails with AlreadyConverted before the invoice
    creator is touched. A failed attempt stores nothing and can be retried.
    """
    ensure_capability(actor, descriptor.capability(DocumentEvent.convert))
    now, today = request_clock(now)
    invoice_date = as_of_date or today

    doc = await load_document(db, descriptor, document_id, for_update=True)

    if doc.is_converted:
        logger.info(
            "Conversion retry refused",
            extra={"ref_number": doc.ref_number, "invoice_ref": doc.converted_invoice_ref},
        )
        raise AlreadyConverted(doc.ref_number, doc.converted_invoice_ref)

    ensure_version(doc, version)
    transition = resolve_transition(doc, DocumentEvent.convert, today)

    due = due_date or invoice_date + timedelta(days=INVOICE_DUE_DAYS)
    if due < invoice_date:
        raise ValidationError(
            "Due date cannot be before the invoice date",
            {"invoice_date": str(invoice_date), "due_date": str(due)},
        )

    draft = build_invoice_draft(doc, invoice_date, due)
    creator = invoice_creator or LocalInvoiceCreator(db)

    try:
        receipt = await creator.create_invoice(draft, actor)
    except AppException:
        await db.rollback()
        raise
    except IntegrityError:
        await db.rollback()
        logger.warning("Concurrent conversion detected", extra={"ref_number": draft.source_ref_number})
        raise Conflict("Document is being converted by another request")
    except Exception as exc:
        await db.rollback()
        logger.exception("Invoice creation failed", extra={"ref_number": draft.source_ref_number})
        raise InvoiceCreationFailed(draft.source_ref_number, str(exc)) from exc

    doc.converted_invoice_id = receipt.invoice_id
    doc.converted_invoice_ref = receipt.invoice_ref
    apply_transition(doc, transition, actor, now)

    await emit_activity(
        db,
        actor=actor,
        code=ActivityCode.CONVERT_DOCUMENT_TO_INVOICE,
        document_label=descriptor.label,
        target_name=doc.ref_number,
        invoice_ref=receipt.invoice_ref,
    )
    await save_document(db, doc, version)

    return map_document(doc, today)
