from datetime import date
from decimal import Decimal
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ValidationError
from app.models.billing.sales_document_models import SalesDocument
from app.models.enums.document_status import DocumentStatus
from app.services.billing.exchange_rate_service import RateSource, get_base_currency, get_currency
from app.utils.decimal_utils import quantize_places, to_rate

logger = logging.getLogger(__name__)


def compute_equivalent_amount(
    total_amount: Decimal,
    exchange_rate_value: Decimal,
    decimal_places: int = 2,
) -> Decimal:
    """Base-currency equivalent of ``total_amount``.

    The rate is used at full precision; only the product is rounded,
    half-up, to the base currency's minor unit.
    """
    if exchange_rate_value is None or exchange_rate_value <= 0:
        raise ValidationError(
            "Exchange rate must be positive",
            {"exchange_rate_value": str(exchange_rate_value)},
        )
    return quantize_places(Decimal(total_amount) * Decimal(exchange_rate_value), decimal_places)


async def refresh_exchange_snapshot(
    db: AsyncSession,
    doc: SalesDocument,
    rate_source: RateSource,
    as_of: date,
) -> None:
    """Re-fetch the rate and recompute the equivalent amount of a draft.

    Documents outside draft keep the snapshot taken before they were sent.
    """
    if doc.status != DocumentStatus.draft:
        raise ValidationError(
            "Exchange snapshot is frozen once a document leaves draft",
            {"ref_number": doc.ref_number, "status": DocumentStatus(doc.status).value},
        )

    await get_currency(db, doc.currency_id)
    base = await get_base_currency(db)
    rate = to_rate(await rate_source.get_rate(doc.currency_id, as_of))
    if rate <= 0:
        raise ValidationError("Exchange rate must be positive", {"currency_id": doc.currency_id})

    doc.system_currency_id = base.id
    doc.exchange_rate_value = rate
    doc.equivalent_amount = compute_equivalent_amount(doc.total_amount, rate, base.decimal_places)

    logger.debug(
        "Exchange snapshot refreshed",
        extra={
            "currency_id": doc.currency_id,
            "rate": str(rate),
            "equivalent_amount": str(doc.equivalent_amount),
        },
    )
