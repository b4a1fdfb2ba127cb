"""
Kind descriptors for sales documents.

A proforma invoice and a sales order follow the same lifecycle. What differs
is captured here: the model class, the reference prefix, whether the
``delivered`` state exists, and which states can expire or convert.
"""

from dataclasses import dataclass

from app.models.billing.sales_document_models import Order, Quote, SalesDocument
from app.models.enums.document_status import DocumentEvent, DocumentKind, DocumentStatus


@dataclass(frozen=True)
class DocumentKindDescriptor:
    kind: DocumentKind
    model: type[SalesDocument]
    label: str
    ref_prefix: str
    supports_delivery: bool
    expirable_states: frozenset[DocumentStatus]
    convertible_states: frozenset[DocumentStatus]

    def capability(self, event: DocumentEvent) -> str:
        return f"{self.kind.value}.{event.value}"

    def ref_number_for(self, document_id: int) -> str:
        return f"{self.ref_prefix}-{document_id:06d}"


QUOTE = DocumentKindDescriptor(
    kind=DocumentKind.quote,
    model=Quote,
    label="proforma invoice",
    ref_prefix="PI",
    supports_delivery=False,
    expirable_states=frozenset({DocumentStatus.sent, DocumentStatus.accepted}),
    convertible_states=frozenset({DocumentStatus.sent, DocumentStatus.accepted}),
)

ORDER = DocumentKindDescriptor(
    kind=DocumentKind.order,
    model=Order,
    label="sales order",
    ref_prefix="SO",
    supports_delivery=True,
    expirable_states=frozenset({
        DocumentStatus.sent,
        DocumentStatus.accepted,
        DocumentStatus.delivered,
    }),
    # Fulfilment is not a prerequisite for invoicing an order
    convertible_states=frozenset({
        DocumentStatus.sent,
        DocumentStatus.accepted,
        DocumentStatus.delivered,
    }),
)

DOCUMENT_KINDS: dict[DocumentKind, DocumentKindDescriptor] = {
    QUOTE.kind: QUOTE,
    ORDER.kind: ORDER,
}


def get_descriptor(kind: DocumentKind | str) -> DocumentKindDescriptor:
    return DOCUMENT_KINDS[DocumentKind(kind)]
