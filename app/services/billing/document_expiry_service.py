from datetime import date, datetime
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.activity_codes import ActivityCode
from app.core.exceptions import AlreadyConverted, InvalidReopenDate
from app.models.enums.document_status import DocumentEvent
from app.schemas.billing.sales_document_schemas import SalesDocumentOut
from app.services.auth.capability_service import ensure_capability
from app.services.billing.document_kinds import DocumentKindDescriptor
from app.services.billing.document_state_machine import apply_transition, resolve_transition
from app.services.billing.document_store import ensure_version, load_document, map_document, save_document
from app.utils.activity_helpers import emit_activity
from app.utils.clock import request_clock

logger = logging.getLogger(__name__)


async def reopen_document(
    db: AsyncSession,
    descriptor: DocumentKindDescriptor,
    document_id: int,
    version: int,
    new_valid_until: date,
    actor,
    *,
    now: datetime | None = None,
) -> SalesDocumentOut:
    """Bring an expired document back to draft with a new deadline.

    Audit stamps and the exchange snapshot are left as they were; the rate
    is only refreshed by a later edit.
    """
    ensure_capability(actor, descriptor.capability(DocumentEvent.reopen))
    now, today = request_clock(now)

    doc = await load_document(db, descriptor, document_id, for_update=True)
    ensure_version(doc, version)

    if doc.is_converted:
        raise AlreadyConverted(doc.ref_number, doc.converted_invoice_ref)

    transition = resolve_transition(doc, DocumentEvent.reopen, today)

    if new_valid_until is None or new_valid_until <= today:
        raise InvalidReopenDate(new_valid_until, today)

    previous_valid_until = doc.valid_until
    doc.valid_until = new_valid_until
    apply_transition(doc, transition, actor, now)

    await emit_activity(
        db,
        actor=actor,
        code=ActivityCode.REOPEN_DOCUMENT,
        document_label=descriptor.label,
        target_name=doc.ref_number,
        valid_until=new_valid_until,
    )
    await save_document(db, doc, version)

    logger.info(
        "Document reopened",
        extra={
            "ref_number": doc.ref_number,
            "previous_valid_until": str(previous_valid_until),
            "valid_until": str(new_valid_until),
        },
    )
    return map_document(doc, today)
