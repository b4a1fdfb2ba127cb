"""
Sales document state machine.

One transition table serves both document kinds; it is built from each
kind's descriptor so that ``delivered`` (and the ``fulfill`` event leading
to it) only exists for sales orders.

``expired`` never appears as a stored status. It is the effective status of
an awaiting document whose ``valid_until`` has passed, and the table treats
it like any other state: only ``reopen`` leaves it.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime

from app.core.exceptions import InvalidTransition, NotEditableInCurrentState, ValidationError
from app.models.billing.sales_document_models import SalesDocument
from app.models.enums.document_status import DocumentEvent, DocumentKind, DocumentStatus
from app.services.billing.document_expiry_core import effective_status
from app.services.billing.document_kinds import DOCUMENT_KINDS, DocumentKindDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Guard:
    """A condition checked before a transition fires. Descriptive only."""
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    from_states: frozenset[DocumentStatus]
    event: DocumentEvent
    # None keeps the current status (convert) or removes the document (delete)
    to_state: DocumentStatus | None
    guards: tuple[Guard, ...] = ()


@dataclass(frozen=True)
class Workflow:
    name: str
    initial_state: DocumentStatus
    states: tuple[DocumentStatus, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[DocumentStatus, ...] = ()

    def find(self, status: DocumentStatus, event: DocumentEvent) -> Transition | None:
        for transition in self.transitions:
            if transition.event == event and status in transition.from_states:
                return transition
        return None

    def events_from(self, status: DocumentStatus) -> list[DocumentEvent]:
        return [t.event for t in self.transitions if status in t.from_states]


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

HAS_LINE_ITEMS = Guard("has_line_items", "Document has at least one line item")
POSITIVE_TOTAL = Guard("positive_total", "Document total is greater than zero")
REASON_PROVIDED = Guard("reason_provided", "Rejection reason is not blank")
FUTURE_VALID_UNTIL = Guard("future_valid_until", "New validity date is after today")
NOT_CONVERTED = Guard("not_converted", "Document has not been converted to an invoice")

# Audit pair written by each stamped event: (actor id, actor name, timestamp)
AUDIT_FIELDS: dict[DocumentEvent, tuple[str, str, str]] = {
    DocumentEvent.send: ("sent_by_id", "sent_by_name", "sent_at"),
    DocumentEvent.accept: ("accepted_by_id", "accepted_by_name", "accepted_at"),
    DocumentEvent.reject: ("rejected_by_id", "rejected_by_name", "rejected_at"),
    DocumentEvent.fulfill: ("delivered_by_id", "delivered_by_name", "delivered_at"),
    DocumentEvent.convert: ("converted_by_id", "converted_by_name", "converted_at"),
}


def build_workflow(descriptor: DocumentKindDescriptor) -> Workflow:
    states = [
        DocumentStatus.draft,
        DocumentStatus.sent,
        DocumentStatus.accepted,
        DocumentStatus.rejected,
        DocumentStatus.expired,
    ]
    transitions = [
        Transition(frozenset({DocumentStatus.draft}), DocumentEvent.edit, DocumentStatus.draft, (NOT_CONVERTED,)),
        Transition(frozenset({DocumentStatus.draft}), DocumentEvent.delete, None, (NOT_CONVERTED,)),
        Transition(
            frozenset({DocumentStatus.draft}),
            DocumentEvent.send,
            DocumentStatus.sent,
            (HAS_LINE_ITEMS, POSITIVE_TOTAL),
        ),
        Transition(frozenset({DocumentStatus.sent}), DocumentEvent.accept, DocumentStatus.accepted),
        Transition(
            frozenset({DocumentStatus.sent}),
            DocumentEvent.reject,
            DocumentStatus.rejected,
            (REASON_PROVIDED,),
        ),
        Transition(
            frozenset({DocumentStatus.expired}),
            DocumentEvent.reopen,
            DocumentStatus.draft,
            (FUTURE_VALID_UNTIL, NOT_CONVERTED),
        ),
        Transition(descriptor.convertible_states, DocumentEvent.convert, None, (NOT_CONVERTED,)),
    ]

    if descriptor.supports_delivery:
        states.append(DocumentStatus.delivered)
        transitions.append(
            Transition(frozenset({DocumentStatus.accepted}), DocumentEvent.fulfill, DocumentStatus.delivered)
        )

    return Workflow(
        name=f"{descriptor.kind.value}_lifecycle",
        initial_state=DocumentStatus.draft,
        states=tuple(states),
        transitions=tuple(transitions),
        terminal_states=(DocumentStatus.rejected,),
    )


WORKFLOWS: dict[DocumentKind, Workflow] = {
    kind: build_workflow(descriptor) for kind, descriptor in DOCUMENT_KINDS.items()
}


def resolve_transition(doc: SalesDocument, event: DocumentEvent, today: date) -> Transition:
    """Return the transition for ``event`` from the document's effective status.

    Raises InvalidTransition when the event is not legal from there.
    """
    workflow = WORKFLOWS[DocumentKind(doc.kind)]
    current = effective_status(doc, today)
    transition = workflow.find(current, event)

    if transition is None:
        logger.warning(
            "Transition refused",
            extra={
                "ref_number": doc.ref_number,
                "status": current.value,
                "event": event.value,
            },
        )
        raise InvalidTransition(current.value, event.value)

    return transition


def ensure_mutable(doc: SalesDocument, event: DocumentEvent, today: date) -> None:
    """Edit and delete are only possible on unconverted drafts."""
    current = effective_status(doc, today)
    workflow = WORKFLOWS[DocumentKind(doc.kind)]

    if doc.is_converted or workflow.find(current, event) is None:
        raise NotEditableInCurrentState(doc.ref_number, current.value, doc.is_converted)


def ensure_sendable(doc: SalesDocument) -> None:
    if not doc.active_items:
        raise ValidationError(
            "Document must contain at least one line item",
            {"guard": HAS_LINE_ITEMS.name},
        )
    if doc.total_amount is None or doc.total_amount <= 0:
        raise ValidationError(
            "Document total must be greater than zero",
            {"guard": POSITIVE_TOTAL.name, "total_amount": str(doc.total_amount)},
        )


def stamp_audit(doc: SalesDocument, event: DocumentEvent, actor, now: datetime) -> None:
    """Write the audit pair for ``event`` unless an earlier occurrence already did.

    Pairs are never cleared or overwritten, so a document sent again after a
    reopen keeps its first dispatch stamp.
    """
    fields = AUDIT_FIELDS.get(event)
    if fields is None:
        return

    by_id, by_name, at = fields
    if getattr(doc, at) is not None:
        return

    setattr(doc, by_id, actor.id)
    setattr(doc, by_name, actor.username)
    setattr(doc, at, now)


def apply_transition(
    doc: SalesDocument,
    transition: Transition,
    actor,
    now: datetime,
) -> None:
    previous = doc.status
    if transition.to_state is not None:
        doc.status = transition.to_state

    stamp_audit(doc, transition.event, actor, now)
    doc.touch(actor, now)

    logger.info(
        "Document transition applied",
        extra={
            "ref_number": doc.ref_number,
            "event": transition.event.value,
            "from_status": DocumentStatus(previous).value,
            "to_status": DocumentStatus(doc.status).value,
            "actor_id": actor.id,
        },
    )
