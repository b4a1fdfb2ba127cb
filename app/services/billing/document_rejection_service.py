from datetime import datetime
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.activity_codes import ActivityCode
from app.core.exceptions import AlreadyConverted, MissingRejectionReason
from app.models.enums.document_status import DocumentEvent
from app.schemas.billing.sales_document_schemas import SalesDocumentOut
from app.services.auth.capability_service import ensure_capability
from app.services.billing.document_kinds import DocumentKindDescriptor
from app.services.billing.document_state_machine import apply_transition, resolve_transition
from app.services.billing.document_store import ensure_version, load_document, map_document, save_document
from app.utils.activity_helpers import emit_activity
from app.utils.clock import request_clock

logger = logging.getLogger(__name__)


async def reject_document(
    db: AsyncSession,
    descriptor: DocumentKindDescriptor,
    document_id: int,
    version: int,
    reason: str | None,
    actor,
    *,
    now: datetime | None = None,
) -> SalesDocumentOut:
    ensure_capability(actor, descriptor.capability(DocumentEvent.reject))
    now, today = request_clock(now)

    doc = await load_document(db, descriptor, document_id, for_update=True)
    ensure_version(doc, version)

    cleaned = (reason or "").strip()
    if not cleaned:
        logger.warning("Rejection without reason refused", extra={"ref_number": doc.ref_number})
        raise MissingRejectionReason()

    # An invoice already exists for it; rejecting now would contradict that
    if doc.is_converted:
        raise AlreadyConverted(doc.ref_number, doc.converted_invoice_ref)

    transition = resolve_transition(doc, DocumentEvent.reject, today)

    doc.rejection_reason = cleaned
    apply_transition(doc, transition, actor, now)

    await emit_activity(
        db,
        actor=actor,
        code=ActivityCode.REJECT_DOCUMENT,
        document_label=descriptor.label,
        target_name=doc.ref_number,
        reason=cleaned,
    )
    await save_document(db, doc, version)

    return map_document(doc, today)
