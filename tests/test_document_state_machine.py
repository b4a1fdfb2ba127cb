"""
State machine tests.

Exercise the transition table for both document kinds without a database:
legal and illegal events per state, effective expiry, audit stamping.
"""

from datetime import timedelta
from decimal import Decimal

import pydantic
import pytest

from app.core.exceptions import InvalidTransition, NotEditableInCurrentState, ValidationError
from app.models.billing.sales_document_models import Order, Quote, SalesDocumentItem
from app.models.enums.document_status import DocumentEvent, DocumentKind, DocumentStatus
from app.schemas.auth.auth_schemas import Actor
from app.services.billing.document_expiry_core import effective_status, is_expired
from app.services.billing.document_state_machine import (
    WORKFLOWS,
    apply_transition,
    ensure_mutable,
    ensure_sendable,
    resolve_transition,
    stamp_audit,
)

from tests.conftest import NOW, TODAY

ACTOR = Actor(id=7, username="seller@example.com", role="sales")
LATER_ACTOR = Actor(id=8, username="other@example.com", role="sales")


def make_doc(model=Quote, status=DocumentStatus.draft, valid_until=None, converted=False):
    doc = model(
        ref_number="PI-000001" if model is Quote else "SO-000001",
        status=status,
        valid_until=valid_until,
        total_amount=Decimal("100.00"),
    )
    if converted:
        doc.converted_invoice_id = "1"
        doc.converted_invoice_ref = "INV-000001"
    return doc


# =============================================================================
# Transition table
# =============================================================================


class TestTransitionTable:
    @pytest.mark.parametrize(
        "status,event,expected",
        [
            (DocumentStatus.draft, DocumentEvent.send, DocumentStatus.sent),
            (DocumentStatus.sent, DocumentEvent.accept, DocumentStatus.accepted),
            (DocumentStatus.sent, DocumentEvent.reject, DocumentStatus.rejected),
            (DocumentStatus.expired, DocumentEvent.reopen, DocumentStatus.draft),
            (DocumentStatus.draft, DocumentEvent.edit, DocumentStatus.draft),
        ],
    )
    def test_legal_quote_transitions(self, status, event, expected):
        transition = WORKFLOWS[DocumentKind.quote].find(status, event)
        assert transition is not None
        assert transition.to_state == expected

    @pytest.mark.parametrize(
        "status,event",
        [
            (DocumentStatus.draft, DocumentEvent.accept),
            (DocumentStatus.draft, DocumentEvent.reject),
            (DocumentStatus.draft, DocumentEvent.convert),
            (DocumentStatus.accepted, DocumentEvent.send),
            (DocumentStatus.accepted, DocumentEvent.reject),
            (DocumentStatus.rejected, DocumentEvent.accept),
            (DocumentStatus.rejected, DocumentEvent.convert),
            (DocumentStatus.rejected, DocumentEvent.reopen),
            (DocumentStatus.expired, DocumentEvent.accept),
            (DocumentStatus.expired, DocumentEvent.convert),
            (DocumentStatus.sent, DocumentEvent.edit),
        ],
    )
    def test_illegal_quote_transitions(self, status, event):
        assert WORKFLOWS[DocumentKind.quote].find(status, event) is None

    def test_fulfill_only_exists_for_orders(self):
        assert WORKFLOWS[DocumentKind.quote].find(DocumentStatus.accepted, DocumentEvent.fulfill) is None
        transition = WORKFLOWS[DocumentKind.order].find(DocumentStatus.accepted, DocumentEvent.fulfill)
        assert transition.to_state == DocumentStatus.delivered

    def test_delivered_state_only_for_orders(self):
        assert DocumentStatus.delivered not in WORKFLOWS[DocumentKind.quote].states
        assert DocumentStatus.delivered in WORKFLOWS[DocumentKind.order].states

    @pytest.mark.parametrize(
        "status", [DocumentStatus.sent, DocumentStatus.accepted, DocumentStatus.delivered]
    )
    def test_orders_convert_without_fulfillment(self, status):
        transition = WORKFLOWS[DocumentKind.order].find(status, DocumentEvent.convert)
        assert transition is not None
        assert transition.to_state is None

    def test_rejected_is_terminal(self):
        for workflow in WORKFLOWS.values():
            assert workflow.events_from(DocumentStatus.rejected) == []


# =============================================================================
# Effective status
# =============================================================================


class TestExpiry:
    def test_sent_document_expires_after_deadline(self):
        doc = make_doc(status=DocumentStatus.sent, valid_until=TODAY)
        assert not is_expired(doc, TODAY)
        assert is_expired(doc, TODAY + timedelta(days=1))
        assert effective_status(doc, TODAY + timedelta(days=1)) == DocumentStatus.expired

    def test_draft_never_expires(self):
        doc = make_doc(status=DocumentStatus.draft, valid_until=TODAY - timedelta(days=5))
        assert effective_status(doc, TODAY) == DocumentStatus.draft

    def test_rejected_never_expires(self):
        doc = make_doc(status=DocumentStatus.rejected, valid_until=TODAY - timedelta(days=5))
        assert effective_status(doc, TODAY) == DocumentStatus.rejected

    def test_no_deadline_never_expires(self):
        doc = make_doc(status=DocumentStatus.sent, valid_until=None)
        assert not is_expired(doc, TODAY + timedelta(days=3650))

    def test_expiry_is_not_written(self):
        doc = make_doc(status=DocumentStatus.accepted, valid_until=TODAY - timedelta(days=1))
        assert effective_status(doc, TODAY) == DocumentStatus.expired
        assert doc.status == DocumentStatus.accepted

    def test_expired_document_cannot_be_accepted(self):
        doc = make_doc(status=DocumentStatus.sent, valid_until=TODAY - timedelta(days=1))
        with pytest.raises(InvalidTransition) as exc:
            resolve_transition(doc, DocumentEvent.accept, TODAY)
        assert exc.value.current_status == "expired"


# =============================================================================
# Guards
# =============================================================================


class TestGuards:
    def test_resolve_refuses_illegal_event(self):
        doc = make_doc(status=DocumentStatus.draft)
        with pytest.raises(InvalidTransition) as exc:
            resolve_transition(doc, DocumentEvent.accept, TODAY)
        assert exc.value.error_code == "INVALID_TRANSITION"
        assert exc.value.status_code == 409

    def test_fulfill_on_quote_is_invalid(self):
        doc = make_doc(status=DocumentStatus.accepted)
        with pytest.raises(InvalidTransition):
            resolve_transition(doc, DocumentEvent.fulfill, TODAY)

    def test_edit_outside_draft_is_refused(self):
        doc = make_doc(status=DocumentStatus.sent)
        with pytest.raises(NotEditableInCurrentState):
            ensure_mutable(doc, DocumentEvent.edit, TODAY)

    def test_converted_document_is_immutable(self):
        doc = make_doc(model=Order, status=DocumentStatus.draft, converted=True)
        with pytest.raises(NotEditableInCurrentState) as exc:
            ensure_mutable(doc, DocumentEvent.delete, TODAY)
        assert exc.value.details["converted"] is True

    def test_send_requires_items(self):
        doc = make_doc()
        with pytest.raises(ValidationError):
            ensure_sendable(doc)

    def test_send_requires_positive_total(self):
        doc = make_doc()
        doc.items = [
            SalesDocumentItem(
                line_no=1,
                product_id=1,
                quantity=Decimal("1"),
                unit_price=Decimal("0.00"),
                line_total=Decimal("0.00"),
                is_deleted=False,
            )
        ]
        doc.total_amount = Decimal("0.00")
        with pytest.raises(ValidationError):
            ensure_sendable(doc)


# =============================================================================
# Audit stamps
# =============================================================================


class TestAuditStamps:
    def test_transition_stamps_actor_and_time(self):
        doc = make_doc(status=DocumentStatus.draft)
        transition = resolve_transition(doc, DocumentEvent.send, TODAY)

        apply_transition(doc, transition, ACTOR, NOW)

        assert doc.status == DocumentStatus.sent
        assert doc.sent_by_id == ACTOR.id
        assert doc.sent_by_name == ACTOR.username
        assert doc.sent_at == NOW
        assert doc.updated_by_id == ACTOR.id

    def test_stamp_is_never_overwritten(self):
        doc = make_doc(status=DocumentStatus.draft)
        stamp_audit(doc, DocumentEvent.send, ACTOR, NOW)
        stamp_audit(doc, DocumentEvent.send, LATER_ACTOR, NOW + timedelta(days=3))

        assert doc.sent_by_id == ACTOR.id
        assert doc.sent_at == NOW

    def test_events_without_stamp_leave_pairs_alone(self):
        doc = make_doc(status=DocumentStatus.draft)
        stamp_audit(doc, DocumentEvent.edit, ACTOR, NOW)
        assert doc.sent_at is None
        assert doc.accepted_at is None


class TestActor:
    def test_actor_is_immutable_and_hashable(self):
        with pytest.raises(pydantic.ValidationError):
            ACTOR.role = "admin"
        assert {ACTOR, Actor(id=7, username="seller@example.com", role="sales")} == {ACTOR}

