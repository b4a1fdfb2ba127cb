# Billing
from app.models.billing.currency_models import Currency, ExchangeRate
from app.models.billing.sales_document_models import SalesDocument, Quote, Order, SalesDocumentItem
from app.models.billing.invoice_models import Invoice, InvoiceItem

# Support
from app.models.support.activity_models import UserActivity
