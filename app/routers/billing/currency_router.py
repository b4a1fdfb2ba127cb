from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.utils.get_user import get_current_actor
from app.utils.response import success_response, APIResponse

from app.schemas.billing.currency_schemas import (
    CurrencyCreate,
    CurrencyOut,
    ExchangeRateCreate,
    ExchangeRateOut,
)

from app.services.auth.capability_service import ensure_capability
from app.services.billing.exchange_rate_service import (
    create_currency,
    list_currencies,
    record_exchange_rate,
)

router = APIRouter(
    prefix="/currencies",
    tags=["Currencies"],
)


@router.post(
    "",
    response_model=APIResponse[CurrencyOut],
)
async def create_currency_api(
    payload: CurrencyCreate,
    db: AsyncSession = Depends(get_db),
    actor=Depends(get_current_actor),
):
    ensure_capability(actor, "currency.manage")
    currency = await create_currency(db, payload, actor)
    return success_response("Currency created successfully", currency)


@router.get(
    "/",
    response_model=APIResponse[List[CurrencyOut]],
)
async def list_currencies_api(
    db: AsyncSession = Depends(get_db),
    actor=Depends(get_current_actor),
):
    ensure_capability(actor, "currency.view")
    currencies = await list_currencies(db)
    return success_response("Currencies retrieved successfully", currencies)


@router.post(
    "/{currency_id}/rates",
    response_model=APIResponse[ExchangeRateOut],
)
async def record_exchange_rate_api(
    currency_id: int,
    payload: ExchangeRateCreate,
    db: AsyncSession = Depends(get_db),
    actor=Depends(get_current_actor),
):
    ensure_capability(actor, "currency.manage")
    rate = await record_exchange_rate(db, currency_id, payload, actor)
    return success_response("Exchange rate recorded successfully", rate)
