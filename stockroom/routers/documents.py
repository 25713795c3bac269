from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict, Field, model_validator
from sqlalchemy.orm import Session

from stockroom.auth import Principal, get_current_principal
from stockroom.db import get_db
from stockroom.dependencies import get_client_ip
from stockroom.services.document_reconciliation_service import (
    DocumentNotFoundError,
    list_matches_for_invoice,
    reconcile_invoice,
)

router = APIRouter(prefix='/documents', tags=['documents'])


class MatchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    invoice_document_id: int = Field(alias='invoiceDocumentId')
    po_document_id: int | None = Field(default=None, alias='poDocumentId')
    po_order_id: int | None = Field(default=None, alias='poOrderId')

    @model_validator(mode='after')
    def _require_po_reference(self) -> MatchRequest:
        if self.po_document_id is None and self.po_order_id is None:
            raise ValueError('Either PO Document ID or PO Order ID must be provided')
        if self.po_document_id is not None and self.po_order_id is not None:
            raise ValueError('Provide only one of PO Document ID or PO Order ID')
        return self


@router.post('/match')
def match_po_invoice(
    payload: MatchRequest,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    try:
        outcome = reconcile_invoice(
            db,
            company_id=principal.company_id,
            invoice_document_id=payload.invoice_document_id,
            po_document_id=payload.po_document_id,
            purchase_order_id=payload.po_order_id,
            actor_uid=principal.uid,
            ip=get_client_ip(request),
        )
    except DocumentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    db.commit()
    return jsonable_encoder(
        {
            'message': 'PO and Invoice matched successfully.',
            'matchId': outcome.match_id,
            'matchScore': outcome.result.score,
            'status': outcome.status.value,
            'discrepancies': [item.to_dict() for item in outcome.result.discrepancies],
        }
    )


@router.get('/{document_id}/matches')
def invoice_match_history(
    document_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    try:
        rows = list_matches_for_invoice(db, company_id=principal.company_id, invoice_document_id=document_id)
    except DocumentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    return jsonable_encoder(
        {
            'data': [
                {
                    'id': row.id,
                    'invoiceId': row.invoice_document_id,
                    'poDocumentId': row.po_document_id,
                    'poOrderId': row.purchase_order_id,
                    'matchScore': row.match_score,
                    'status': row.status.value,
                    'matchedBy': row.matched_by,
                    'matchDate': row.matched_at,
                    'discrepancies': row.discrepancies,
                }
                for row in rows
            ]
        }
    )
