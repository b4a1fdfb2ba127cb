from datetime import date

from sqlalchemy import String, and_, case, cast, literal

from app.models.billing.sales_document_models import SalesDocument
from app.models.enums.document_status import DocumentStatus
from app.services.billing.document_kinds import get_descriptor


def is_expired(doc: SalesDocument, today: date) -> bool:
    """True when an awaiting document has passed its validity deadline.

    Pure predicate: nothing is written. ``today`` must be the single date
    fixed for the whole request.
    """
    descriptor = get_descriptor(doc.kind)
    return (
        doc.status in descriptor.expirable_states
        and doc.valid_until is not None
        and today > doc.valid_until
    )


def effective_status(doc: SalesDocument, today: date) -> DocumentStatus:
    if is_expired(doc, today):
        return DocumentStatus.expired
    return DocumentStatus(doc.status)


def expired_clause(descriptor, today: date):
    model = descriptor.model
    return and_(
        model.status.in_(list(descriptor.expirable_states)),
        model.valid_until.isnot(None),
        model.valid_until < today,
    )


def effective_status_expr(descriptor, today: date):
    """SQL twin of :func:`effective_status`, for filtering, sorting and stats."""
    model = descriptor.model
    return case(
        (expired_clause(descriptor, today), literal(DocumentStatus.expired.name)),
        else_=cast(model.status, String),
    )
