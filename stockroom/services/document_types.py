from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import ClassVar, Union

from stockroom.models import DocumentType, PurchaseOrder


class InvalidDocumentError(ValueError):
    pass


@dataclass(frozen=True)
class LineItem:
    description: str | None = None
    sku: str | None = None
    quantity: Decimal | None = None
    unit_price: Decimal | None = None
    total: Decimal | None = None


@dataclass(frozen=True)
class InvoiceDocument:
    document_type: ClassVar[DocumentType] = DocumentType.INVOICE

    vendor_name: str | None = None
    total_amount: Decimal | None = None
    line_items: tuple[LineItem, ...] = ()
    invoice_number: str | None = None
    currency: str | None = None


@dataclass(frozen=True)
class PurchaseOrderDocument:
    document_type: ClassVar[DocumentType] = DocumentType.PURCHASE_ORDER

    supplier_name: str | None = None
    total_amount: Decimal | None = None
    line_items: tuple[LineItem, ...] = ()
    po_number: str | None = None
    currency: str | None = None


@dataclass(frozen=True)
class ReceiptDocument:
    document_type: ClassVar[DocumentType] = DocumentType.RECEIPT

    vendor_name: str | None = None
    total_amount: Decimal | None = None
    line_items: tuple[LineItem, ...] = ()
    transaction_id: str | None = None
    currency: str | None = None


@dataclass(frozen=True)
class UnknownDocument:
    document_type: ClassVar[DocumentType] = DocumentType.UNKNOWN

    reason: str | None = None


ExtractedDocument = Union[InvoiceDocument, PurchaseOrderDocument, ReceiptDocument, UnknownDocument]


def _decimal(value) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = Decimal(str(value).strip().replace(',', ''))
    except InvalidOperation:
        return None
    if not parsed.is_finite():
        return None
    return parsed


def _text(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _party_name(data: dict, details_key: str, flat_key: str) -> str | None:
    details = data.get(details_key)
    if isinstance(details, dict) and _text(details.get('name')):
        return _text(details.get('name'))
    return _text(data.get(flat_key))


def _line_items(raw) -> tuple[LineItem, ...]:
    if not isinstance(raw, list):
        return ()
    items: list[LineItem] = []
    for row in raw:
        if not isinstance(row, dict):
            continue
        items.append(
            LineItem(
                description=_text(row.get('description')),
                sku=_text(row.get('sku')),
                quantity=_decimal(row.get('quantity')),
                unit_price=_decimal(row.get('unitPrice')),
                total=_decimal(row.get('total')),
            )
        )
    return tuple(items)


def parse_extracted_document(data: dict | None) -> ExtractedDocument:
    """
    Convert the extraction collaborator's JSON payload into a typed document.

    The ``documentType`` field selects the variant. Anything that is not an
    invoice, purchase order or receipt becomes ``UnknownDocument``.
    """
    if not isinstance(data, dict):
        return UnknownDocument(reason='No extracted data')

    raw_type = _text(data.get('documentType'))
    if raw_type == DocumentType.INVOICE.value:
        return InvoiceDocument(
            vendor_name=_party_name(data, 'vendorDetails', 'vendorName'),
            total_amount=_decimal(data.get('totalAmount')),
            line_items=_line_items(data.get('lineItems')),
            invoice_number=_text(data.get('invoiceNumber')),
            currency=_text(data.get('currency')),
        )
    if raw_type == DocumentType.PURCHASE_ORDER.value:
        return PurchaseOrderDocument(
            supplier_name=_party_name(data, 'supplierDetails', 'supplierName'),
            total_amount=_decimal(data.get('totalAmount')),
            line_items=_line_items(data.get('items') if data.get('items') is not None else data.get('lineItems')),
            po_number=_text(data.get('poNumber')),
            currency=_text(data.get('currency')),
        )
    if raw_type == DocumentType.RECEIPT.value:
        return ReceiptDocument(
            vendor_name=_party_name(data, 'vendorDetails', 'vendorName'),
            total_amount=_decimal(data.get('totalAmount')),
            line_items=_line_items(data.get('lineItems')),
            transaction_id=_text(data.get('transactionId')),
            currency=_text(data.get('currency')),
        )
    return UnknownDocument(reason=_text(data.get('reason')) or f'Unrecognized document type: {raw_type}')


def purchase_order_from_order(order: PurchaseOrder) -> PurchaseOrderDocument:
    return PurchaseOrderDocument(
        supplier_name=order.supplier.name if order.supplier else None,
        total_amount=order.total_amount,
        line_items=tuple(
            LineItem(
                description=line.description,
                sku=line.sku,
                quantity=line.quantity,
                unit_price=line.unit_price,
            )
            for line in order.lines
        ),
        po_number=order.order_number,
    )


def validate_amounts(document: ExtractedDocument) -> None:
    if isinstance(document, UnknownDocument):
        return
    label = document.document_type.value.replace('_', ' ')
    if document.total_amount is not None and document.total_amount < 0:
        raise InvalidDocumentError(f'Total amount on the {label} cannot be negative')
    for index, item in enumerate(document.line_items, start=1):
        if item.quantity is not None and item.quantity < 0:
            raise InvalidDocumentError(f'Line {index} quantity on the {label} cannot be negative')
        if item.unit_price is not None and item.unit_price < 0:
            raise InvalidDocumentError(f'Line {index} unit price on the {label} cannot be negative')
