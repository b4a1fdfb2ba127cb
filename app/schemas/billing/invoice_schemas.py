from pydantic import BaseModel
from typing import List, Optional
from decimal import Decimal
from datetime import datetime, date

from app.models.enums.document_status import DocumentKind


class InvoiceItemOut(BaseModel):
    id: int
    line_no: int
    product_id: int
    description: Optional[str]
    quantity: Decimal
    unit_price: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    line_total: Decimal


class InvoiceOut(BaseModel):
    id: int
    invoice_number: str
    source_document_kind: DocumentKind
    source_document_id: int
    source_ref_number: str
    customer_id: int
    store_id: int
    invoice_date: date
    due_date: date

    currency_id: int
    system_currency_id: int
    exchange_rate_value: Decimal

    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    equivalent_amount: Decimal

    created_by_name: Optional[str]
    created_at: datetime

    items: List[InvoiceItemOut]


class InvoiceListItem(BaseModel):
    id: int
    invoice_number: str
    source_ref_number: str
    customer_id: int
    invoice_date: date
    due_date: date
    total_amount: Decimal
    equivalent_amount: Decimal


class InvoiceListData(BaseModel):
    total: int
    items: List[InvoiceListItem]
