from decimal import Decimal

from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    Numeric,
    Enum,
    Index,
    CheckConstraint,
    DateTime,
)
from sqlalchemy.orm import relationship
from sqlalchemy.types import Date

from app.core.db import Base
from app.models.base.mixins import TimestampMixin, SoftDeleteMixin, AuditMixin
from app.models.enums.document_status import DocumentStatus, DocumentKind


class SalesDocument(Base, TimestampMixin, SoftDeleteMixin, AuditMixin):
    """Proforma invoices and sales orders share this table, told apart by ``kind``."""

    __tablename__ = "sales_documents"

    id = Column(Integer, primary_key=True)
    kind = Column(Enum(DocumentKind), nullable=False, index=True)
    ref_number = Column(String(50), nullable=False, unique=True, index=True)
    document_date = Column(Date, nullable=False)
    customer_id = Column(Integer, nullable=False, index=True)
    store_id = Column(Integer, nullable=False, index=True)
    status = Column(Enum(DocumentStatus), nullable=False, default=DocumentStatus.draft, index=True)
    valid_until = Column(Date, nullable=True)

    currency_id = Column(Integer, ForeignKey("currencies.id", ondelete="RESTRICT"), nullable=False)
    system_currency_id = Column(Integer, ForeignKey("currencies.id", ondelete="RESTRICT"), nullable=False)
    exchange_rate_value = Column(Numeric(18, 6), nullable=False, default=Decimal("1.000000"))

    subtotal = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    discount_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    tax_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    total_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    equivalent_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))

    delivery_date = Column(Date, nullable=True)
    shipping_address = Column(String, nullable=True)
    notes = Column(String, nullable=True)
    terms_conditions = Column(String, nullable=True)

    sent_by_id = Column(Integer, nullable=True)
    sent_by_name = Column(String(150), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)

    accepted_by_id = Column(Integer, nullable=True)
    accepted_by_name = Column(String(150), nullable=True)
    accepted_at = Column(DateTime(timezone=True), nullable=True)

    rejected_by_id = Column(Integer, nullable=True)
    rejected_by_name = Column(String(150), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(String, nullable=True)

    delivered_by_id = Column(Integer, nullable=True)
    delivered_by_name = Column(String(150), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)

    converted_invoice_id = Column(String(64), nullable=True, unique=True)
    converted_invoice_ref = Column(String(50), nullable=True)
    converted_by_id = Column(Integer, nullable=True)
    converted_by_name = Column(String(150), nullable=True)
    converted_at = Column(DateTime(timezone=True), nullable=True)

    version = Column(Integer, nullable=False)

    currency = relationship("Currency", foreign_keys=[currency_id], lazy="selectin")
    system_currency = relationship("Currency", foreign_keys=[system_currency_id], lazy="selectin")
    items = relationship(
        "SalesDocumentItem",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="SalesDocumentItem.line_no",
        lazy="selectin",
    )

    __mapper_args__ = {
        "polymorphic_on": kind,
        "version_id_col": version,
    }

    __table_args__ = (
        Index("ix_sales_document_kind_status", "kind", "status"),
        Index("ix_sales_document_customer", "kind", "customer_id"),
        CheckConstraint(
            "subtotal >= 0 AND discount_amount >= 0 AND tax_amount >= 0 "
            "AND total_amount >= 0 AND equivalent_amount >= 0",
            name="ck_sales_document_amounts_non_negative",
        ),
        CheckConstraint("exchange_rate_value > 0", name="ck_sales_document_rate_positive"),
        CheckConstraint(
            "(status = 'rejected' AND rejection_reason IS NOT NULL) "
            "OR (status <> 'rejected' AND rejection_reason IS NULL)",
            name="ck_sales_document_rejection_reason",
        ),
        CheckConstraint(
            "kind = 'order' OR (status <> 'delivered' AND delivered_at IS NULL)",
            name="ck_sales_document_delivery_orders_only",
        ),
        CheckConstraint("status <> 'expired'", name="ck_sales_document_expiry_not_stored"),
    )

    @property
    def is_converted(self) -> bool:
        return self.converted_invoice_id is not None

    def touch(self, actor, now) -> None:
        # Always dirties the row so the version counter moves, even when only items changed
        self.stamp_updated(actor)
        self.updated_at = now

    @property
    def active_items(self):
        return [i for i in self.items if not i.is_deleted]

    def __repr__(self):
        return f"<SalesDocument {self.ref_number} kind={self.kind} status={self.status}>"


class Quote(SalesDocument):
    """Proforma invoice."""

    __mapper_args__ = {"polymorphic_identity": DocumentKind.quote}


class Order(SalesDocument):
    """Sales order."""

    __mapper_args__ = {"polymorphic_identity": DocumentKind.order}


class SalesDocumentItem(Base, TimestampMixin, SoftDeleteMixin, AuditMixin):
    __tablename__ = "sales_document_items"

    id = Column(Integer, primary_key=True)
    document_id = Column(Integer, ForeignKey("sales_documents.id", ondelete="CASCADE"), nullable=False, index=True)
    line_no = Column(Integer, nullable=False)
    product_id = Column(Integer, nullable=False, index=True)
    description = Column(String, nullable=True)
    quantity = Column(Numeric(14, 3), nullable=False)
    unit_price = Column(Numeric(14, 2), nullable=False)
    discount_percentage = Column(Numeric(5, 2), nullable=False, default=Decimal("0.00"))
    discount_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    tax_percentage = Column(Numeric(5, 2), nullable=False, default=Decimal("0.00"))
    tax_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    line_total = Column(Numeric(14, 2), nullable=False)

    document = relationship("SalesDocument", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_sales_document_item_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_sales_document_item_price_non_negative"),
        CheckConstraint("line_total >= 0", name="ck_sales_document_item_total_non_negative"),
        CheckConstraint(
            "discount_percentage >= 0 AND discount_percentage <= 100",
            name="ck_sales_document_item_discount_range",
        ),
        CheckConstraint(
            "tax_percentage >= 0 AND tax_percentage <= 100",
            name="ck_sales_document_item_tax_range",
        ),
    )

    def __repr__(self):
        return f"<SalesDocumentItem id={self.id} product_id={self.product_id} qty={self.quantity}>"
