from __future__ import annotations

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from stockroom.auth import Principal, Role, get_current_principal, require_role
from stockroom.config import settings
from stockroom.db import get_db
from stockroom.dependencies import get_history_session_factory
from stockroom.services.reorder_batch_service import make_db_history_loader, recalculate_reorder_points
from stockroom.services.reorder_math_service import (
    ReorderOverrides,
    default_reorder_params,
    resolve_reorder_params,
)
from stockroom.services.stock_alert_service import list_low_stock_alerts

router = APIRouter(prefix='/inventory', tags=['inventory'])
admin_access = require_role(Role.ADMIN, Role.MANAGER)


class CalculateReorderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    period_days: int | None = Field(default=None, alias='periodDays')
    safety_stock_days: int | None = Field(default=None, alias='safetyStockDays')
    default_lead_time_days: int | None = Field(default=None, alias='defaultLeadTimeDays')


@router.post('/calculate-reorder')
def calculate_reorder_points(
    payload: CalculateReorderRequest | None = Body(default=None),
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    session_factory=Depends(get_history_session_factory),
):
    payload = payload or CalculateReorderRequest()
    try:
        params = resolve_reorder_params(
            default_reorder_params(),
            ReorderOverrides(
                period_days=payload.period_days,
                safety_stock_days=payload.safety_stock_days,
                default_lead_time_days=payload.default_lead_time_days,
            ),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    report = recalculate_reorder_points(
        db,
        company_id=principal.company_id,
        history_loader=make_db_history_loader(session_factory, principal.company_id),
        actor_uid=principal.uid,
        params=params,
        max_workers=settings.reorder_batch_max_workers,
    )
    db.commit()

    if not report.outcomes:
        message = 'No inventory items found for this company to calculate reorder points.'
    elif report.updated_count:
        message = 'Reorder points calculated and updated.'
    else:
        message = 'Reorder points calculation complete. No updates were necessary.'
    return {'message': message, 'details': [outcome.to_dict() for outcome in report.outcomes]}


@router.get('/alerts')
def low_stock_alerts(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    alerts = list_low_stock_alerts(db, company_id=principal.company_id)
    return jsonable_encoder({'data': [alert.to_dict() for alert in alerts]})
