from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class CurrencyCreate(BaseModel):
    code: str = Field(..., min_length=3, max_length=3)
    name: str = Field(..., min_length=1, max_length=100)
    symbol: Optional[str] = Field(None, max_length=10)
    decimal_places: int = Field(2, ge=0, le=6)
    is_base: bool = False


class CurrencyOut(BaseModel):
    id: int
    code: str
    name: str
    symbol: Optional[str]
    decimal_places: int
    is_base: bool


class ExchangeRateCreate(BaseModel):
    rate: Decimal = Field(..., gt=0, max_digits=18, decimal_places=6)
    effective_date: date


class ExchangeRateOut(BaseModel):
    id: int
    currency_id: int
    rate: Decimal
    effective_date: date
