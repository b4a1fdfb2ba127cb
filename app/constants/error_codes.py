# app/constants/error_codes.py
from enum import Enum


class ErrorCode(str, Enum):
    # ---------------- GENERIC ----------------
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # ---------------- SALES DOCUMENTS ----------------
    INVALID_TRANSITION = "INVALID_TRANSITION"
    MISSING_REJECTION_REASON = "MISSING_REJECTION_REASON"
    INVALID_REOPEN_DATE = "INVALID_REOPEN_DATE"
    ALREADY_CONVERTED = "ALREADY_CONVERTED"
    NOT_EDITABLE_IN_CURRENT_STATE = "NOT_EDITABLE_IN_CURRENT_STATE"
    DOCUMENT_NOT_FOUND = "DOCUMENT_NOT_FOUND"

    # ---------------- INVOICES ----------------
    INVOICE_NOT_FOUND = "INVOICE_NOT_FOUND"
    INVOICE_CREATION_FAILED = "INVOICE_CREATION_FAILED"

    # ---------------- CURRENCIES ----------------
    CURRENCY_NOT_FOUND = "CURRENCY_NOT_FOUND"
    EXCHANGE_RATE_NOT_FOUND = "EXCHANGE_RATE_NOT_FOUND"
    BASE_CURRENCY_MISSING = "BASE_CURRENCY_MISSING"
