from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, Enum, Index, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.types import Date
from decimal import Decimal
from app.core.db import Base
from app.models.base.mixins import TimestampMixin, AuditMixin
from app.models.enums.document_status import DocumentKind


class Invoice(Base, TimestampMixin, AuditMixin):
    """Issued from a converted sales document. Never updated after insert."""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True)
    invoice_number = Column(String(50), nullable=False, unique=True, index=True)
    source_document_kind = Column(Enum(DocumentKind), nullable=False)
    # One invoice per source document, whatever the caller retries
    source_document_id = Column(Integer, ForeignKey("sales_documents.id", ondelete="RESTRICT"), nullable=False, unique=True)
    source_ref_number = Column(String(50), nullable=False)

    customer_id = Column(Integer, nullable=False, index=True)
    store_id = Column(Integer, nullable=False)
    invoice_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)

    currency_id = Column(Integer, ForeignKey("currencies.id", ondelete="RESTRICT"), nullable=False)
    system_currency_id = Column(Integer, ForeignKey("currencies.id", ondelete="RESTRICT"), nullable=False)
    exchange_rate_value = Column(Numeric(18, 6), nullable=False)

    subtotal = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    discount_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    tax_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    total_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    equivalent_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))

    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.line_no",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_invoice_customer_date", "customer_id", "invoice_date"),
        CheckConstraint("total_amount > 0", name="ck_invoice_total_positive"),
        CheckConstraint("due_date >= invoice_date", name="ck_invoice_due_after_issue"),
    )

    def __repr__(self):
        return f"<Invoice {self.invoice_number} source={self.source_ref_number}>"


class InvoiceItem(Base, TimestampMixin, AuditMixin):
    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    line_no = Column(Integer, nullable=False)
    product_id = Column(Integer, nullable=False, index=True)
    description = Column(String, nullable=True)
    quantity = Column(Numeric(14, 3), nullable=False)
    unit_price = Column(Numeric(14, 2), nullable=False)
    discount_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    tax_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    line_total = Column(Numeric(14, 2), nullable=False)

    invoice = relationship("Invoice", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_invoice_item_qty_positive"),
        CheckConstraint("unit_price >= 0", name="ck_invoice_item_price_non_negative"),
        CheckConstraint("line_total >= 0", name="ck_invoice_item_total_non_negative"),
    )

    def __repr__(self):
        return f"<InvoiceItem id={self.id} product_id={self.product_id} qty={self.quantity} total={self.line_total}>"
