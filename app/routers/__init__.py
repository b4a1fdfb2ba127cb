# app/routers/__init__.py

from .billing.sales_document_router import proforma_invoice_router, sales_order_router
from .billing.invoice_router import router as invoice_router
from .billing.currency_router import router as currency_router
from .auth.activity_router import router as activity_router


__all__ = [
"proforma_invoice_router",
"sales_order_router",

"invoice_router",
"currency_router",
"activity_router",
]
