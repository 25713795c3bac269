from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from fastapi.encoders import jsonable_encoder
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from stockroom.config import settings
from stockroom.models import (
    Document,
    DocumentType,
    MatchStatus,
    OrderType,
    PoInvoiceMatch,
    PurchaseOrder,
)
from stockroom.services.audit_service import log_audit
from stockroom.services.document_match_service import (
    MatchPolicy,
    MatchResult,
    match_documents,
    match_status,
)
from stockroom.services.document_types import (
    InvoiceDocument,
    PurchaseOrderDocument,
    parse_extracted_document,
    purchase_order_from_order,
    validate_amounts,
)

logger = logging.getLogger(__name__)

MATCHED_BY_USER = 'user_manual'


class DocumentNotFoundError(LookupError):
    pass


class DocumentKindError(ValueError):
    pass


@dataclass(frozen=True)
class ReconciliationOutcome:
    match_id: int
    result: MatchResult
    status: MatchStatus


def default_match_policy() -> MatchPolicy:
    return MatchPolicy(
        total_tolerance=settings.match_total_tolerance,
        auto_approve_threshold=settings.match_auto_approve_threshold,
    )


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _get_document(db: Session, *, company_id: str, document_id: int, label: str) -> Document:
    row = db.execute(
        select(Document).where(Document.id == document_id, Document.company_id == company_id)
    ).scalar_one_or_none()
    if row is None:
        raise DocumentNotFoundError(f'{label} document not found or access denied.')
    return row


def _load_invoice(db: Session, *, company_id: str, invoice_document_id: int) -> tuple[Document, InvoiceDocument]:
    row = _get_document(db, company_id=company_id, document_id=invoice_document_id, label='Invoice')
    parsed = parse_extracted_document(row.extracted_data)
    if not isinstance(parsed, InvoiceDocument):
        raise DocumentKindError('Specified document is not an invoice.')
    return row, parsed


def _load_po_document(
    db: Session, *, company_id: str, po_document_id: int
) -> tuple[Document, PurchaseOrderDocument]:
    row = _get_document(db, company_id=company_id, document_id=po_document_id, label='PO')
    parsed = parse_extracted_document(row.extracted_data)
    if not isinstance(parsed, PurchaseOrderDocument):
        raise DocumentKindError('Specified PO document is not a purchase order.')
    return row, parsed


def _load_purchase_order(
    db: Session, *, company_id: str, purchase_order_id: int
) -> tuple[PurchaseOrder, PurchaseOrderDocument]:
    order = db.execute(
        select(PurchaseOrder)
        .options(selectinload(PurchaseOrder.lines), selectinload(PurchaseOrder.supplier))
        .where(PurchaseOrder.id == purchase_order_id, PurchaseOrder.company_id == company_id)
    ).scalar_one_or_none()
    if order is None:
        raise DocumentNotFoundError('PO (Order) not found or access denied.')
    if order.order_type != OrderType.PURCHASE:
        raise DocumentKindError('Specified order is not a purchase order.')
    return order, purchase_order_from_order(order)


def reconcile_invoice(
    db: Session,
    *,
    company_id: str,
    invoice_document_id: int,
    actor_uid: str,
    po_document_id: int | None = None,
    purchase_order_id: int | None = None,
    policy: MatchPolicy | None = None,
    ip: str | None = None,
) -> ReconciliationOutcome:
    if (po_document_id is None) == (purchase_order_id is None):
        raise ValueError('Provide exactly one of PO document ID or PO order ID')

    policy = policy or default_match_policy()
    invoice_row, invoice = _load_invoice(db, company_id=company_id, invoice_document_id=invoice_document_id)

    po_row: Document | None = None
    order_row: PurchaseOrder | None = None
    if po_document_id is not None:
        po_row, po = _load_po_document(db, company_id=company_id, po_document_id=po_document_id)
    else:
        order_row, po = _load_purchase_order(db, company_id=company_id, purchase_order_id=purchase_order_id)

    validate_amounts(invoice)
    validate_amounts(po)

    result = match_documents(invoice, po, policy)
    status = match_status(result.score, policy.auto_approve_threshold)

    match_row = PoInvoiceMatch(
        company_id=company_id,
        invoice_document_id=invoice_row.id,
        po_document_id=po_row.id if po_row else None,
        purchase_order_id=order_row.id if order_row else None,
        match_score=result.score,
        status=status,
        matched_by=MATCHED_BY_USER,
        matched_by_principal=actor_uid,
        discrepancies=jsonable_encoder([item.to_dict() for item in result.discrepancies]),
    )
    db.add(match_row)

    now = _now()
    invoice_row.linked_po_document_id = po_row.id if po_row else None
    invoice_row.linked_purchase_order_id = order_row.id if order_row else None
    invoice_row.last_updated_by = actor_uid
    invoice_row.updated_at = now
    if po_row is not None:
        po_row.linked_invoice_document_id = invoice_row.id
        po_row.last_updated_by = actor_uid
        po_row.updated_at = now
    if order_row is not None:
        order_row.linked_invoice_document_id = invoice_row.id
        order_row.last_updated_by = actor_uid
        order_row.updated_at = now
    db.flush()

    log_audit(
        db,
        company_id=company_id,
        actor_uid=actor_uid,
        action='PO_INVOICE_MATCHED',
        ip=ip,
        metadata={
            'match_id': match_row.id,
            'invoice_document_id': invoice_row.id,
            'po_document_id': po_row.id if po_row else None,
            'purchase_order_id': order_row.id if order_row else None,
            'score': result.score,
            'status': status.value,
        },
    )
    logger.info(
        'Matched invoice %s for company %s: match_id=%s score=%s status=%s',
        invoice_row.id,
        company_id,
        match_row.id,
        result.score,
        status.value,
    )
    return ReconciliationOutcome(match_id=match_row.id, result=result, status=status)


def list_matches_for_invoice(db: Session, *, company_id: str, invoice_document_id: int) -> list[PoInvoiceMatch]:
    _get_document(db, company_id=company_id, document_id=invoice_document_id, label='Invoice')
    return list(
        db.execute(
            select(PoInvoiceMatch)
            .where(
                PoInvoiceMatch.company_id == company_id,
                PoInvoiceMatch.invoice_document_id == invoice_document_id,
            )
            .order_by(PoInvoiceMatch.id.desc())
        ).scalars().all()
    )
