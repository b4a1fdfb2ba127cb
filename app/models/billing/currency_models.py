from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Numeric, Index, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.types import Date

from app.core.db import Base
from app.models.base.mixins import TimestampMixin, AuditMixin


class Currency(Base, TimestampMixin, AuditMixin):
    __tablename__ = "currencies"

    id = Column(Integer, primary_key=True)
    code = Column(String(3), nullable=False, unique=True, index=True)
    name = Column(String(100), nullable=False)
    symbol = Column(String(10), nullable=True)
    decimal_places = Column(Integer, nullable=False, default=2)
    is_base = Column(Boolean, nullable=False, default=False)

    rates = relationship("ExchangeRate", back_populates="currency", cascade="all, delete-orphan", lazy="noload")

    __table_args__ = (
        CheckConstraint("decimal_places >= 0 AND decimal_places <= 6", name="ck_currency_decimal_places"),
    )

    def __repr__(self):
        return f"<Currency {self.code} base={self.is_base}>"


class ExchangeRate(Base, TimestampMixin, AuditMixin):
    """Rate converting one unit of ``currency`` into the base currency."""

    __tablename__ = "exchange_rates"

    id = Column(Integer, primary_key=True)
    currency_id = Column(Integer, ForeignKey("currencies.id", ondelete="CASCADE"), nullable=False, index=True)
    rate = Column(Numeric(18, 6), nullable=False)
    effective_date = Column(Date, nullable=False)

    currency = relationship("Currency", back_populates="rates", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("currency_id", "effective_date", name="uq_exchange_rate_currency_date"),
        Index("ix_exchange_rate_lookup", "currency_id", "effective_date"),
        CheckConstraint("rate > 0", name="ck_exchange_rate_positive"),
    )

    def __repr__(self):
        return f"<ExchangeRate currency_id={self.currency_id} rate={self.rate} from={self.effective_date}>"
