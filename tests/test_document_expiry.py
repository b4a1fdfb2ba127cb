"""
Lazy expiry and reopen tests.

Nothing writes ``expired``: documents read after their deadline present it,
and ``reopen`` is the only way out.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from app.constants.activity_codes import ActivityCode
from app.core.exceptions import AlreadyConverted, InvalidReopenDate, InvalidTransition
from app.models.billing.sales_document_models import SalesDocument
from app.models.enums.document_status import DocumentStatus
from app.models.support.activity_models import UserActivity
from app.schemas.billing.currency_schemas import ExchangeRateCreate
from app.schemas.billing.sales_document_schemas import SalesDocumentUpdate
from app.services.billing.document_conversion_service import convert_document
from app.services.billing.document_expiry_service import reopen_document
from app.services.billing.document_kinds import ORDER, QUOTE
from app.services.billing.exchange_rate_service import record_exchange_rate
from app.services.billing.sales_document_service import (
    accept_document,
    create_document,
    get_document,
    send_document,
    update_document,
)

from tests.conftest import NOW, TODAY, days_later


async def sent_document(db, descriptor, actor, payload):
    doc = await create_document(db, descriptor, payload, actor, now=NOW)
    return await send_document(db, descriptor, doc.id, doc.version, actor, now=NOW)


# =============================================================================
# Expiry on read
# =============================================================================


class TestExpiryOnRead:
    async def test_expired_after_deadline(self, db, admin, make_payload):
        sent = await sent_document(db, QUOTE, admin, make_payload(valid_until=TODAY + timedelta(days=5)))

        on_deadline = await get_document(db, QUOTE, sent.id, admin, now=days_later(5))
        assert on_deadline.status == DocumentStatus.sent

        after = await get_document(db, QUOTE, sent.id, admin, now=days_later(6))
        assert after.status == DocumentStatus.expired
        assert after.is_expired
        assert after.stored_status == DocumentStatus.sent
        assert after.available_actions == ["reopen"]

    async def test_expiry_is_never_persisted(self, db, admin, make_payload):
        sent = await sent_document(db, QUOTE, admin, make_payload(valid_until=TODAY))
        await get_document(db, QUOTE, sent.id, admin, now=days_later(3))

        stored = await db.scalar(select(SalesDocument.status).where(SalesDocument.id == sent.id))
        assert stored == DocumentStatus.sent

    async def test_accept_after_expiry_fails(self, db, admin, make_payload):
        sent = await sent_document(db, QUOTE, admin, make_payload(valid_until=TODAY))
        with pytest.raises(InvalidTransition) as exc:
            await accept_document(db, QUOTE, sent.id, sent.version, admin, now=days_later(1))
        assert exc.value.current_status == "expired"

    async def test_accepted_order_expires(self, db, admin, make_payload):
        sent = await sent_document(db, ORDER, admin, make_payload(valid_until=TODAY))
        accepted = await accept_document(db, ORDER, sent.id, sent.version, admin, now=NOW)

        later = await get_document(db, ORDER, accepted.id, admin, now=days_later(2))
        assert later.status == DocumentStatus.expired

    async def test_draft_past_deadline_stays_draft(self, db, admin, make_payload):
        doc = await create_document(db, QUOTE, make_payload(valid_until=TODAY), admin, now=NOW)
        later = await get_document(db, QUOTE, doc.id, admin, now=days_later(30))
        assert later.status == DocumentStatus.draft


# =============================================================================
# Reopen
# =============================================================================


class TestReopen:
    async def test_reopen_expired_document(self, db, admin, make_payload):
        sent = await sent_document(db, QUOTE, admin, make_payload(valid_until=TODAY))
        today = TODAY + timedelta(days=3)

        reopened = await reopen_document(
            db, QUOTE, sent.id, sent.version, today + timedelta(days=14), admin, now=days_later(3)
        )

        assert reopened.status == DocumentStatus.draft
        assert reopened.valid_until == today + timedelta(days=14)
        assert reopened.sent.at == NOW
        assert reopened.sent.by_id == admin.id
        assert "edit" in reopened.available_actions

    async def test_reopen_until_tomorrow(self, db, admin, make_payload):
        sent = await sent_document(db, QUOTE, admin, make_payload(valid_until=TODAY))
        reopen_day = TODAY + timedelta(days=2)
        tomorrow = reopen_day + timedelta(days=1)

        reopened = await reopen_document(db, QUOTE, sent.id, sent.version, tomorrow, admin, now=days_later(2))
        resent = await send_document(db, QUOTE, reopened.id, reopened.version, admin, now=days_later(2))

        assert resent.status == DocumentStatus.sent
        on_tomorrow = await get_document(db, QUOTE, sent.id, admin, now=days_later(3))
        assert on_tomorrow.status == DocumentStatus.sent
        after = await get_document(db, QUOTE, sent.id, admin, now=days_later(4))
        assert after.status == DocumentStatus.expired

    @pytest.mark.parametrize("offset", [0, -1, -30])
    async def test_reopen_requires_future_date(self, db, admin, make_payload, offset):
        sent = await sent_document(db, QUOTE, admin, make_payload(valid_until=TODAY))
        today = TODAY + timedelta(days=3)

        with pytest.raises(InvalidReopenDate) as exc:
            await reopen_document(
                db, QUOTE, sent.id, sent.version, today + timedelta(days=offset), admin, now=days_later(3)
            )
        assert exc.value.status_code == 400

        after = await get_document(db, QUOTE, sent.id, admin, now=days_later(3))
        assert after.status == DocumentStatus.expired
        assert after.valid_until == TODAY

    async def test_reopen_not_expired_is_invalid(self, db, admin, make_payload):
        sent = await sent_document(db, QUOTE, admin, make_payload())
        with pytest.raises(InvalidTransition):
            await reopen_document(db, QUOTE, sent.id, sent.version, TODAY + timedelta(days=60), admin, now=NOW)

    async def test_reopen_converted_refused(self, db, admin, make_payload):
        sent = await sent_document(db, QUOTE, admin, make_payload(valid_until=TODAY))
        converted = await convert_document(db, QUOTE, sent.id, sent.version, admin, now=NOW)

        with pytest.raises(AlreadyConverted):
            await reopen_document(
                db, QUOTE, converted.id, converted.version, TODAY + timedelta(days=30), admin, now=days_later(5)
            )

    async def test_reopen_keeps_rate_until_next_edit(self, db, admin, make_payload, currencies):
        sent = await sent_document(db, QUOTE, admin, make_payload(valid_until=TODAY))
        await record_exchange_rate(
            db,
            currencies["EUR"],
            ExchangeRateCreate(rate=Decimal("3.000000"), effective_date=TODAY + timedelta(days=1)),
            admin,
        )

        reopened = await reopen_document(
            db, QUOTE, sent.id, sent.version, TODAY + timedelta(days=20), admin, now=days_later(3)
        )
        assert reopened.exchange_rate_value == Decimal("2.654321")
        assert reopened.equivalent_amount == Decimal("2654.32")

        edited = await update_document(
            db,
            QUOTE,
            reopened.id,
            SalesDocumentUpdate(notes="Refreshed", version=reopened.version),
            admin,
            now=days_later(3),
        )
        assert edited.exchange_rate_value == Decimal("3.000000")
        assert edited.equivalent_amount == Decimal("3000.00")

    async def test_resend_keeps_first_stamp_and_logs_both(self, db, admin, sales_user, make_payload):
        sent = await sent_document(db, QUOTE, admin, make_payload(valid_until=TODAY))
        reopened = await reopen_document(
            db, QUOTE, sent.id, sent.version, TODAY + timedelta(days=10), admin, now=days_later(1)
        )
        resent = await send_document(db, QUOTE, reopened.id, reopened.version, sales_user, now=days_later(1))

        assert resent.sent.by_id == admin.id
        assert resent.sent.at == NOW

        codes = (await db.scalars(select(UserActivity.code))).all()
        assert codes.count(ActivityCode.SEND_DOCUMENT.value) == 2
        assert codes.count(ActivityCode.REOPEN_DOCUMENT.value) == 1
