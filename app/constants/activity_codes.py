# app/constants/activity_codes.py
from enum import Enum


class ActivityCode(str, Enum):
    # ---------------- SALES DOCUMENTS ----------------
    CREATE_DOCUMENT = "CREATE_DOCUMENT"
    UPDATE_DOCUMENT = "UPDATE_DOCUMENT"
    DELETE_DOCUMENT = "DELETE_DOCUMENT"
    SEND_DOCUMENT = "SEND_DOCUMENT"
    ACCEPT_DOCUMENT = "ACCEPT_DOCUMENT"
    REJECT_DOCUMENT = "REJECT_DOCUMENT"
    FULFILL_DOCUMENT = "FULFILL_DOCUMENT"
    REOPEN_DOCUMENT = "REOPEN_DOCUMENT"
    CONVERT_DOCUMENT_TO_INVOICE = "CONVERT_DOCUMENT_TO_INVOICE"

    # ---------------- INVOICES ----------------
    CREATE_INVOICE = "CREATE_INVOICE"

    # ---------------- CURRENCIES ----------------
    CREATE_CURRENCY = "CREATE_CURRENCY"
    RECORD_EXCHANGE_RATE = "RECORD_EXCHANGE_RATE"
