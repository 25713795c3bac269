from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload, sessionmaker

from stockroom.models import InventoryItem, SalesHistory
from stockroom.services.audit_service import log_audit
from stockroom.services.reorder_math_service import (
    ReorderBasis,
    ReorderParams,
    SalesRecord,
    compute_order_quantity,
    compute_reorder_point,
    default_reorder_params,
    effective_lead_time_days,
)

logger = logging.getLogger(__name__)

HistoryLoader = Callable[[int, date], list[SalesRecord]]

STATUS_UPDATED = 'updated'
STATUS_UNCHANGED = 'unchanged'
STATUS_NO_SALES_DATA = 'no_sales_data'
STATUS_ERROR = 'error'


@dataclass(frozen=True)
class ReorderOutcome:
    sku: str
    old_reorder_point: int
    new_reorder_point: int
    status: str
    reason: str | None = None
    average_daily_usage: float = 0.0
    order_quantity: int | None = None

    def to_dict(self) -> dict:
        return {
            'sku': self.sku,
            'oldReorderPoint': self.old_reorder_point,
            'newReorderPoint': self.new_reorder_point,
            'status': self.status,
            'reason': self.reason,
            'averageDailyUsage': self.average_daily_usage,
            'orderQuantity': self.order_quantity,
        }


@dataclass(frozen=True)
class ReorderBatchReport:
    outcomes: list[ReorderOutcome]

    def count(self, status: str) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def updated_count(self) -> int:
        return self.count(STATUS_UPDATED)


def _today() -> date:
    return datetime.now(tz=timezone.utc).date()


def _list_active_items(db: Session, *, company_id: str) -> list[InventoryItem]:
    return list(
        db.execute(
            select(InventoryItem)
            .options(selectinload(InventoryItem.supplier))
            .where(InventoryItem.company_id == company_id, InventoryItem.deleted_at.is_(None))
            .order_by(InventoryItem.sku.asc())
        ).scalars().all()
    )


def load_sales_history(db: Session, *, company_id: str, inventory_item_id: int, since: date) -> list[SalesRecord]:
    rows = db.execute(
        select(SalesHistory.sale_date, SalesHistory.quantity)
        .where(
            SalesHistory.company_id == company_id,
            SalesHistory.inventory_item_id == inventory_item_id,
            SalesHistory.sale_date >= since,
        )
        .order_by(SalesHistory.sale_date.asc())
    ).all()
    return [SalesRecord(date=row.sale_date, quantity=int(row.quantity)) for row in rows]


def make_db_history_loader(session_factory: sessionmaker, company_id: str) -> HistoryLoader:
    def _load(inventory_item_id: int, since: date) -> list[SalesRecord]:
        # Own session per call so the loader is safe to use from worker threads.
        with session_factory() as db:
            return load_sales_history(db, company_id=company_id, inventory_item_id=inventory_item_id, since=since)

    return _load


def _fetch_histories(
    items: list[InventoryItem],
    history_loader: HistoryLoader,
    since: date,
    max_workers: int,
) -> dict[int, list[SalesRecord] | Exception]:
    def _safe_load(item_id: int) -> list[SalesRecord] | Exception:
        try:
            return history_loader(item_id, since)
        except Exception as exc:
            return exc

    item_ids = [item.id for item in items]
    if max_workers <= 1 or len(item_ids) <= 1:
        return {item_id: _safe_load(item_id) for item_id in item_ids}

    with ThreadPoolExecutor(max_workers=min(max_workers, len(item_ids))) as executor:
        return dict(zip(item_ids, executor.map(_safe_load, item_ids)))


def _recalculate_item(
    item: InventoryItem,
    history: list[SalesRecord],
    params: ReorderParams,
    as_of: date,
) -> ReorderOutcome:
    current = int(item.reorder_point or 0)
    result = compute_reorder_point(
        history,
        effective_lead_time_days(
            item.lead_time_days,
            params.default_lead_time_days,
            supplier_lead_time_days=item.supplier.lead_time_days if item.supplier else None,
        ),
        period_days=params.period_days,
        safety_stock_days=params.safety_stock_days,
        current_reorder_point=current,
        as_of=as_of,
    )
    if result.basis == ReorderBasis.NO_SALES_DATA:
        return ReorderOutcome(
            sku=item.sku,
            old_reorder_point=current,
            new_reorder_point=current,
            status=STATUS_NO_SALES_DATA,
            reason=f'No sales history in the last {params.period_days} days or zero sales.',
        )

    order_quantity = compute_order_quantity(
        result,
        on_hand=item.quantity,
        on_order=item.on_order_quantity or 0,
        pack_size=item.pack_size or 1,
        min_order_qty=item.min_order_qty or 0,
        order_cycle_days=params.order_cycle_days,
    )
    if result.reorder_point == current:
        return ReorderOutcome(
            sku=item.sku,
            old_reorder_point=current,
            new_reorder_point=current,
            status=STATUS_UNCHANGED,
            reason='Calculated reorder point is the same as current.',
            average_daily_usage=result.average_daily_usage,
            order_quantity=order_quantity,
        )
    return ReorderOutcome(
        sku=item.sku,
        old_reorder_point=current,
        new_reorder_point=result.reorder_point,
        status=STATUS_UPDATED,
        average_daily_usage=result.average_daily_usage,
        order_quantity=order_quantity,
    )


def recalculate_reorder_points(
    db: Session,
    *,
    company_id: str,
    history_loader: HistoryLoader,
    actor_uid: str | None,
    params: ReorderParams | None = None,
    as_of: date | None = None,
    max_workers: int = 1,
    dry_run: bool = False,
) -> ReorderBatchReport:
    """
    Recompute reorder points for every active item of a company.

    Items are independent: a failure while loading or computing one SKU is
    logged and reported with status ``error`` and the run continues. Rows are
    only written when the calculation had sales data and the value changed.
    """
    params = params or default_reorder_params()
    today = as_of or _today()
    since = today - timedelta(days=params.period_days)

    items = _list_active_items(db, company_id=company_id)
    if not items:
        return ReorderBatchReport(outcomes=[])

    histories = _fetch_histories(items, history_loader, since, max_workers)
    outcomes: list[ReorderOutcome] = []
    now = datetime.now(tz=timezone.utc)

    for item in items:
        current = int(item.reorder_point or 0)
        try:
            history = histories[item.id]
            if isinstance(history, Exception):
                raise history
            outcome = _recalculate_item(item, history, params, today)
        except Exception as exc:
            logger.exception('Reorder calculation failed for company %s sku %s', company_id, item.sku)
            outcomes.append(
                ReorderOutcome(
                    sku=item.sku,
                    old_reorder_point=current,
                    new_reorder_point=current,
                    status=STATUS_ERROR,
                    reason=str(exc) or exc.__class__.__name__,
                )
            )
            continue

        outcomes.append(outcome)
        if outcome.status != STATUS_UPDATED or dry_run:
            continue

        item.reorder_point = outcome.new_reorder_point
        item.reorder_quantity = outcome.order_quantity
        item.last_updated_by = actor_uid
        item.updated_at = now
        log_audit(
            db,
            company_id=company_id,
            actor_uid=actor_uid,
            action='REORDER_POINT_UPDATED',
            metadata={
                'inventory_item_id': item.id,
                'sku': item.sku,
                'old_reorder_point': outcome.old_reorder_point,
                'new_reorder_point': outcome.new_reorder_point,
            },
        )

    if not dry_run:
        db.flush()

    report = ReorderBatchReport(outcomes=outcomes)
    logger.info(
        'Reorder recalculation for company %s: updated=%s unchanged=%s no_sales_data=%s errors=%s dry_run=%s',
        company_id,
        report.count(STATUS_UPDATED),
        report.count(STATUS_UNCHANGED),
        report.count(STATUS_NO_SALES_DATA),
        report.count(STATUS_ERROR),
        dry_run,
    )
    return report
