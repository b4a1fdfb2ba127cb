from pydantic import BaseModel, Field
from typing import Any, List, Literal, Optional
from decimal import Decimal
from datetime import datetime, date

from app.models.enums.document_status import DocumentKind, DocumentStatus

# =====================================================
# ITEM PAYLOADS (CREATE / UPDATE)
# =====================================================

class SalesDocumentItemIn(BaseModel):
    product_id: int
    description: Optional[str] = None
    quantity: Decimal = Field(..., gt=0, max_digits=14, decimal_places=3)
    unit_price: Decimal = Field(..., ge=0, max_digits=14, decimal_places=2)
    discount_percentage: Decimal = Field(Decimal("0"), ge=0, le=100, decimal_places=2)
    tax_percentage: Decimal = Field(Decimal("0"), ge=0, le=100, decimal_places=2)


# =====================================================
# ITEM RESPONSES
# =====================================================

class SalesDocumentItemOut(BaseModel):
    id: int
    line_no: int
    product_id: int
    description: Optional[str]
    quantity: Decimal
    unit_price: Decimal
    discount_percentage: Decimal
    discount_amount: Decimal
    tax_percentage: Decimal
    tax_amount: Decimal
    line_total: Decimal


# =====================================================
# DOCUMENT CREATE / UPDATE
# =====================================================

class SalesDocumentCreate(BaseModel):
    document_date: date
    customer_id: int
    store_id: int
    currency_id: int
    items: List[SalesDocumentItemIn]
    valid_until: Optional[date] = None
    delivery_date: Optional[date] = None
    shipping_address: Optional[str] = None
    notes: Optional[str] = None
    terms_conditions: Optional[str] = None


class SalesDocumentUpdate(BaseModel):
    document_date: Optional[date] = None
    customer_id: Optional[int] = None
    store_id: Optional[int] = None
    currency_id: Optional[int] = None
    items: Optional[List[SalesDocumentItemIn]] = None
    valid_until: Optional[date] = None
    delivery_date: Optional[date] = None
    shipping_address: Optional[str] = None
    notes: Optional[str] = None
    terms_conditions: Optional[str] = None
    version: int


# =====================================================
# TRANSITION PAYLOADS
# =====================================================

class RejectRequest(BaseModel):
    # Blank reasons are refused by the service, not the schema
    rejection_reason: str = ""


class ReopenRequest(BaseModel):
    valid_until: date


class FulfillRequest(BaseModel):
    delivery_date: Optional[date] = None


class ConvertRequest(BaseModel):
    as_of_date: Optional[date] = None
    due_date: Optional[date] = None


# =====================================================
# AUDIT
# =====================================================

class AuditStamp(BaseModel):
    by_id: Optional[int]
    by_name: Optional[str]
    at: Optional[datetime]


# =====================================================
# DOCUMENT RESPONSE
# =====================================================

class SalesDocumentOut(BaseModel):
    id: int
    kind: DocumentKind
    ref_number: str
    document_date: date
    customer_id: int
    store_id: int

    status: DocumentStatus
    stored_status: DocumentStatus
    is_expired: bool
    is_converted: bool
    available_actions: List[str]

    currency_id: int
    system_currency_id: int
    exchange_rate_value: Decimal

    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    equivalent_amount: Decimal

    valid_until: Optional[date]
    delivery_date: Optional[date]
    shipping_address: Optional[str]
    notes: Optional[str]
    terms_conditions: Optional[str]

    rejection_reason: Optional[str]
    sent: AuditStamp
    accepted: AuditStamp
    rejected: AuditStamp
    delivered: Optional[AuditStamp]

    converted_invoice_id: Optional[str]
    converted_invoice_ref: Optional[str]
    converted: AuditStamp

    version: int

    created_by_id: Optional[int]
    created_by_name: Optional[str]
    updated_by_id: Optional[int]
    updated_by_name: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime]

    items: List[SalesDocumentItemOut]


# =====================================================
# LIST / STATS
# =====================================================

SortField = Literal[
    "ref_number",
    "document_date",
    "total_amount",
    "status",
    "valid_until",
    "delivery_date",
    "created_at",
    "updated_at",
    "sent_at",
    "accepted_at",
    "rejected_at",
    "delivered_at",
]


class SalesDocumentFilters(BaseModel):
    search: Optional[str] = None
    status: Optional[DocumentStatus] = None
    store_id: Optional[int] = None
    customer_id: Optional[int] = None
    currency_id: Optional[int] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    converted: Optional[bool] = None


class SalesDocumentListItem(BaseModel):
    id: int
    ref_number: str
    document_date: date
    customer_id: int
    store_id: int
    status: DocumentStatus
    is_converted: bool
    items_count: int
    currency_id: int
    total_amount: Decimal
    equivalent_amount: Decimal
    valid_until: Optional[date]
    version: int
    created_at: datetime
    created_by_name: Optional[str]


class SalesDocumentListData(BaseModel):
    total: int
    page: int
    page_size: int
    total_pages: int
    items: List[SalesDocumentListItem]


class SalesDocumentStats(BaseModel):
    total: int
    draft: int
    sent: int
    accepted: int
    rejected: int
    expired: int
    delivered: Optional[int]
    converted: int
    total_value: Decimal
    this_month: int
    last_month: int


# =====================================================
# BULK
# =====================================================

class BulkCreateRequest(BaseModel):
    # Rows are validated one by one so a bad row cannot sink the batch
    rows: List[dict[str, Any]]


class BulkRowResult(BaseModel):
    row: int
    success: bool
    id: Optional[int] = None
    ref_number: Optional[str] = None
    error_code: Optional[str] = None
    message: Optional[str] = None


class BulkCreateResult(BaseModel):
    succeeded: int
    failed: int
    results: List[BulkRowResult]
