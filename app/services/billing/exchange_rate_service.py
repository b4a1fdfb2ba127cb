from datetime import date
from decimal import Decimal
import logging
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.activity_codes import ActivityCode
from app.constants.error_codes import ErrorCode
from app.core.exceptions import NotFound, ValidationError
from app.models.billing.currency_models import Currency, ExchangeRate
from app.schemas.billing.currency_schemas import (
    CurrencyCreate,
    CurrencyOut,
    ExchangeRateCreate,
    ExchangeRateOut,
)
from app.utils.activity_helpers import emit_activity
from app.utils.decimal_utils import to_rate

logger = logging.getLogger(__name__)

BASE_RATE = Decimal("1.000000")


class RateSource(Protocol):
    async def get_rate(self, currency_id: int, as_of: date) -> Decimal:
        """Rate converting one unit of ``currency_id`` into the base currency."""
        ...


class DatabaseRateSource:
    """Latest recorded rate effective on or before ``as_of``."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_rate(self, currency_id: int, as_of: date) -> Decimal:
        currency = await get_currency(self.db, currency_id)
        if currency.is_base:
            return BASE_RATE

        rate = await self.db.scalar(
            select(ExchangeRate.rate)
            .where(
                ExchangeRate.currency_id == currency_id,
                ExchangeRate.effective_date <= as_of,
            )
            .order_by(ExchangeRate.effective_date.desc())
            .limit(1)
        )
        if rate is None:
            raise ValidationError(
                f"No exchange rate for {currency.code} on or before {as_of}",
                {"currency_id": currency_id, "as_of": str(as_of)},
            )
        return to_rate(rate)


async def get_currency(db: AsyncSession, currency_id: int) -> Currency:
    currency = await db.get(Currency, currency_id)
    if not currency:
        raise NotFound("Currency not found", ErrorCode.CURRENCY_NOT_FOUND)
    return currency


async def get_base_currency(db: AsyncSession) -> Currency:
    currency = await db.scalar(select(Currency).where(Currency.is_base.is_(True)))
    if not currency:
        raise ValidationError(
            "No base currency configured",
            {"error": ErrorCode.BASE_CURRENCY_MISSING.value},
        )
    return currency


def _map_currency(c: Currency) -> CurrencyOut:
    return CurrencyOut(
        id=c.id,
        code=c.code,
        name=c.name,
        symbol=c.symbol,
        decimal_places=c.decimal_places,
        is_base=c.is_base,
    )


async def create_currency(db: AsyncSession, payload: CurrencyCreate, actor) -> CurrencyOut:
    code = payload.code.upper()
    exists = await db.scalar(select(Currency.id).where(Currency.code == code))
    if exists:
        raise ValidationError(f"Currency {code} already exists", {"code": code})

    if payload.is_base:
        # Only one base currency at a time
        await db.execute(update(Currency).values(is_base=False))

    currency = Currency(
        code=code,
        name=payload.name,
        symbol=payload.symbol,
        decimal_places=payload.decimal_places,
        is_base=payload.is_base,
    )
    currency.stamp_created(actor)
    db.add(currency)
    await db.flush()

    await emit_activity(
        db,
        actor=actor,
        code=ActivityCode.CREATE_CURRENCY,
        target_name=currency.code,
    )
    result = _map_currency(currency)
    await db.commit()

    logger.info("Currency created", extra={"code": code, "is_base": payload.is_base})
    return result


async def list_currencies(db: AsyncSession) -> list[CurrencyOut]:
    result = await db.execute(select(Currency).order_by(Currency.code))
    return [_map_currency(c) for c in result.scalars()]


async def record_exchange_rate(
    db: AsyncSession,
    currency_id: int,
    payload: ExchangeRateCreate,
    actor,
) -> ExchangeRateOut:
    currency = await get_currency(db, currency_id)
    if currency.is_base:
        raise ValidationError("The base currency always has a rate of 1")

    existing = await db.scalar(
        select(ExchangeRate).where(
            ExchangeRate.currency_id == currency_id,
            ExchangeRate.effective_date == payload.effective_date,
        )
    )
    rate_value = to_rate(payload.rate)

    if existing:
        existing.rate = rate_value
        existing.stamp_updated(actor)
        rate = existing
    else:
        rate = ExchangeRate(
            currency_id=currency_id,
            rate=rate_value,
            effective_date=payload.effective_date,
        )
        rate.stamp_created(actor)
        db.add(rate)

    await db.flush()

    await emit_activity(
        db,
        actor=actor,
        code=ActivityCode.RECORD_EXCHANGE_RATE,
        target_name=currency.code,
        rate=rate_value,
        effective_date=payload.effective_date,
    )
    result = ExchangeRateOut(
        id=rate.id,
        currency_id=currency_id,
        rate=rate_value,
        effective_date=rate.effective_date,
    )
    await db.commit()
    return result
