"""
Conversion tests.

One invoice per document at most: a retry after success is refused before the
invoice creator is called, and a failed attempt leaves nothing behind.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app.core.exceptions import (
    AlreadyConverted,
    Conflict,
    InvalidTransition,
    InvoiceCreationFailed,
    NotEditableInCurrentState,
    PermissionDenied,
    ValidationError,
)
from app.models.billing.invoice_models import Invoice
from app.models.enums.document_status import DocumentStatus
from app.schemas.billing.sales_document_schemas import SalesDocumentFilters, SalesDocumentUpdate
from app.services.billing.document_conversion_service import convert_document
from app.services.billing.document_kinds import ORDER, QUOTE
from app.services.billing.invoice_service import get_invoice, list_invoices
from app.services.billing.sales_document_service import (
    accept_document,
    create_document,
    delete_document,
    fulfill_document,
    get_document,
    get_document_stats,
    list_sales_documents,
    send_document,
    update_document,
)

from tests.conftest import FailingInvoiceCreator, NOW, TODAY, days_later


async def sent_document(db, descriptor, actor, payload):
    doc = await create_document(db, descriptor, payload, actor, now=NOW)
    return await send_document(db, descriptor, doc.id, doc.version, actor, now=NOW)


async def invoice_count(db) -> int:
    return await db.scalar(select(func.count(Invoice.id)))


# =============================================================================
# Happy path
# =============================================================================


class TestConvert:
    async def test_convert_accepted_quote(self, db, admin, make_payload, counting_creator):
        sent = await sent_document(db, QUOTE, admin, make_payload())
        accepted = await accept_document(db, QUOTE, sent.id, sent.version, admin, now=NOW)

        converted = await convert_document(
            db, QUOTE, accepted.id, accepted.version, admin, invoice_creator=counting_creator, now=NOW
        )

        assert converted.is_converted
        assert converted.status == DocumentStatus.accepted
        assert converted.converted_invoice_ref.startswith("INV-")
        assert converted.converted.by_id == admin.id
        assert converted.converted.at == NOW
        assert "convert" not in converted.available_actions
        assert counting_creator.calls == 1

        invoice = await get_invoice(db, int(converted.converted_invoice_id))
        assert invoice.invoice_number == converted.converted_invoice_ref
        assert invoice.source_document_id == accepted.id
        assert invoice.source_ref_number == accepted.ref_number
        assert invoice.total_amount == Decimal("1000.00")
        assert invoice.equivalent_amount == Decimal("2654.32")
        assert invoice.exchange_rate_value == Decimal("2.654321")
        assert invoice.invoice_date == TODAY
        assert invoice.due_date == TODAY + timedelta(days=30)
        assert [i.product_id for i in invoice.items] == [100]

    async def test_convert_sent_quote_directly(self, db, admin, make_payload):
        sent = await sent_document(db, QUOTE, admin, make_payload())
        converted = await convert_document(db, QUOTE, sent.id, sent.version, admin, now=NOW)
        assert converted.status == DocumentStatus.sent
        assert converted.is_converted

    @pytest.mark.parametrize("stage", ["sent", "accepted", "delivered"])
    async def test_order_converts_from_each_awaiting_stage(self, db, admin, make_payload, stage):
        doc = await sent_document(db, ORDER, admin, make_payload())
        if stage in ("accepted", "delivered"):
            doc = await accept_document(db, ORDER, doc.id, doc.version, admin, now=NOW)
        if stage == "delivered":
            doc = await fulfill_document(db, ORDER, doc.id, doc.version, admin, now=NOW)

        converted = await convert_document(db, ORDER, doc.id, doc.version, admin, now=NOW)

        assert converted.status == DocumentStatus(stage)
        assert converted.is_converted
        assert await invoice_count(db) == 1

    async def test_explicit_dates(self, db, admin, make_payload):
        sent = await sent_document(db, QUOTE, admin, make_payload())
        converted = await convert_document(
            db,
            QUOTE,
            sent.id,
            sent.version,
            admin,
            as_of_date=TODAY + timedelta(days=1),
            due_date=TODAY + timedelta(days=8),
            now=NOW,
        )
        invoice = await get_invoice(db, int(converted.converted_invoice_id))
        assert invoice.invoice_date == TODAY + timedelta(days=1)
        assert invoice.due_date == TODAY + timedelta(days=8)

    async def test_due_date_before_invoice_date_refused(self, db, admin, make_payload):
        sent = await sent_document(db, QUOTE, admin, make_payload())
        with pytest.raises(ValidationError):
            await convert_document(
                db, QUOTE, sent.id, sent.version, admin, due_date=TODAY - timedelta(days=1), now=NOW
            )
        assert await invoice_count(db) == 0

    async def test_cashier_converts_but_cannot_create(self, db, admin, cashier, make_payload):
        sent = await sent_document(db, QUOTE, admin, make_payload())
        converted = await convert_document(db, QUOTE, sent.id, sent.version, cashier, now=NOW)
        assert converted.converted.by_name == cashier.username

    async def test_sales_cannot_convert(self, db, sales_user, make_payload):
        sent = await sent_document(db, QUOTE, sales_user, make_payload())
        with pytest.raises(PermissionDenied):
            await convert_document(db, QUOTE, sent.id, sent.version, sales_user, now=NOW)


# =============================================================================
# Idempotence
# =============================================================================


class TestIdempotence:
    async def test_second_conversion_refused_without_calling_creator(
        self, db, admin, make_payload, counting_creator
    ):
        sent = await sent_document(db, QUOTE, admin, make_payload())
        converted = await convert_document(
            db, QUOTE, sent.id, sent.version, admin, invoice_creator=counting_creator, now=NOW
        )

        with pytest.raises(AlreadyConverted) as exc:
            await convert_document(
                db, QUOTE, sent.id, converted.version, admin, invoice_creator=counting_creator, now=NOW
            )

        assert exc.value.status_code == 409
        assert exc.value.details["invoice_ref"] == converted.converted_invoice_ref
        assert counting_creator.calls == 1
        assert await invoice_count(db) == 1

    async def test_retry_with_stale_version_still_reports_conversion(self, db, admin, make_payload):
        sent = await sent_document(db, QUOTE, admin, make_payload())
        await convert_document(db, QUOTE, sent.id, sent.version, admin, now=NOW)

        with pytest.raises(AlreadyConverted):
            await convert_document(db, QUOTE, sent.id, sent.version, admin, now=NOW)

    async def test_wrong_version_on_first_attempt(self, db, admin, make_payload, counting_creator):
        sent = await sent_document(db, QUOTE, admin, make_payload())
        with pytest.raises(Conflict):
            await convert_document(
                db, QUOTE, sent.id, sent.version - 1, admin, invoice_creator=counting_creator, now=NOW
            )
        assert counting_creator.calls == 0


# =============================================================================
# Failure and retry
# =============================================================================


class TestCreatorFailure:
    async def test_failure_stores_nothing_and_retry_succeeds(
        self, db, admin, make_payload, failing_creator, counting_creator
    ):
        sent = await sent_document(db, QUOTE, admin, make_payload())

        with pytest.raises(InvoiceCreationFailed) as exc:
            await convert_document(
                db, QUOTE, sent.id, sent.version, admin, invoice_creator=failing_creator, now=NOW
            )
        assert exc.value.status_code == 502
        assert failing_creator.calls == 1

        after_failure = await get_document(db, QUOTE, sent.id, admin, now=NOW)
        assert not after_failure.is_converted
        assert after_failure.converted.at is None
        assert after_failure.version == sent.version
        assert await invoice_count(db) == 0

        converted = await convert_document(
            db, QUOTE, sent.id, sent.version, admin, invoice_creator=counting_creator, now=NOW
        )
        assert converted.is_converted
        assert counting_creator.calls == 1
        assert await invoice_count(db) == 1

    async def test_app_errors_from_creator_pass_through(self, db, admin, make_payload):
        sent = await sent_document(db, QUOTE, admin, make_payload())
        creator = FailingInvoiceCreator(ValidationError("Customer has no billing address"))

        with pytest.raises(ValidationError):
            await convert_document(db, QUOTE, sent.id, sent.version, admin, invoice_creator=creator, now=NOW)

        after = await get_document(db, QUOTE, sent.id, admin, now=NOW)
        assert not after.is_converted


# =============================================================================
# Eligibility
# =============================================================================


class TestEligibility:
    async def test_draft_not_convertible(self, db, admin, make_payload):
        doc = await create_document(db, QUOTE, make_payload(), admin, now=NOW)
        with pytest.raises(InvalidTransition):
            await convert_document(db, QUOTE, doc.id, doc.version, admin, now=NOW)

    async def test_expired_not_convertible(self, db, admin, make_payload, counting_creator):
        sent = await sent_document(db, QUOTE, admin, make_payload(valid_until=TODAY))
        with pytest.raises(InvalidTransition):
            await convert_document(
                db, QUOTE, sent.id, sent.version, admin, invoice_creator=counting_creator, now=days_later(1)
            )
        assert counting_creator.calls == 0


# =============================================================================
# After conversion
# =============================================================================


class TestAfterConversion:
    async def test_converted_document_is_read_only(self, db, admin, make_payload):
        sent = await sent_document(db, ORDER, admin, make_payload())
        converted = await convert_document(db, ORDER, sent.id, sent.version, admin, now=NOW)

        with pytest.raises(NotEditableInCurrentState):
            await update_document(
                db, ORDER, converted.id, SalesDocumentUpdate(notes="x", version=converted.version), admin, now=NOW
            )
        with pytest.raises(NotEditableInCurrentState):
            await delete_document(db, ORDER, converted.id, converted.version, admin, now=NOW)

    async def test_converted_order_can_still_be_accepted_and_fulfilled(self, db, admin, make_payload):
        sent = await sent_document(db, ORDER, admin, make_payload())
        converted = await convert_document(db, ORDER, sent.id, sent.version, admin, now=NOW)

        accepted = await accept_document(db, ORDER, converted.id, converted.version, admin, now=NOW)
        delivered = await fulfill_document(db, ORDER, accepted.id, accepted.version, admin, now=NOW)

        assert delivered.status == DocumentStatus.delivered
        assert delivered.converted_invoice_ref == converted.converted_invoice_ref

    async def test_converted_filter_and_stats(self, db, admin, make_payload):
        sent = await sent_document(db, QUOTE, admin, make_payload())
        await create_document(db, QUOTE, make_payload(), admin, now=NOW)
        await convert_document(db, QUOTE, sent.id, sent.version, admin, now=NOW)

        converted = await list_sales_documents(
            db, QUOTE, SalesDocumentFilters(converted=True), admin, now=NOW
        )
        assert [i.id for i in converted.items] == [sent.id]
        assert converted.items[0].is_converted

        stats = await get_document_stats(db, QUOTE, admin, now=NOW)
        assert stats.converted == 1

        invoices = await list_invoices(db)
        assert invoices.total == 1
        assert invoices.items[0].source_ref_number == sent.ref_number
