# app/models/enums/document_status.py
import enum


class DocumentStatus(str, enum.Enum):
    draft = "draft"
    sent = "sent"
    accepted = "accepted"
    rejected = "rejected"
    # Derived at read time, never stored
    expired = "expired"
    # Orders only
    delivered = "delivered"


class DocumentKind(str, enum.Enum):
    quote = "quote"
    order = "order"


class DocumentEvent(str, enum.Enum):
    create = "create"
    edit = "edit"
    delete = "delete"
    send = "send"
    accept = "accept"
    reject = "reject"
    fulfill = "fulfill"
    reopen = "reopen"
    convert = "convert"
    view = "view"
