from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, ROUND_CEILING
from enum import Enum

from stockroom.config import settings

DEFAULT_LEAD_TIME_DAYS = 14
DEFAULT_SAFETY_STOCK_DAYS = 7
DEFAULT_PERIOD_DAYS = 90


class ReorderBasis(str, Enum):
    CALCULATED = 'calculated'
    NO_SALES_DATA = 'no_sales_data'


@dataclass(frozen=True)
class SalesRecord:
    date: date
    quantity: int


@dataclass(frozen=True)
class ReorderParams:
    period_days: int = DEFAULT_PERIOD_DAYS
    safety_stock_days: int = DEFAULT_SAFETY_STOCK_DAYS
    default_lead_time_days: int = DEFAULT_LEAD_TIME_DAYS
    order_cycle_days: int = 30


@dataclass(frozen=True)
class ReorderOverrides:
    period_days: int | None = None
    safety_stock_days: int | None = None
    default_lead_time_days: int | None = None
    order_cycle_days: int | None = None


@dataclass(frozen=True)
class ReorderResult:
    reorder_point: int
    average_daily_usage: float
    basis: ReorderBasis
    lead_time_days: int
    safety_stock: float = 0.0
    total_quantity_sold: int = 0
    effective_days: int = 0


def _validate_params(params: ReorderParams) -> None:
    if params.period_days < 1:
        raise ValueError('Sales history period must be at least one day')
    if params.safety_stock_days < 0:
        raise ValueError('Safety stock days cannot be negative')
    if params.default_lead_time_days < 0:
        raise ValueError('Default lead time cannot be negative')
    if params.order_cycle_days < 0:
        raise ValueError('Order cycle days cannot be negative')


def default_reorder_params() -> ReorderParams:
    return ReorderParams(
        period_days=settings.reorder_history_period_days,
        safety_stock_days=settings.reorder_safety_stock_days,
        default_lead_time_days=settings.reorder_default_lead_time_days,
        order_cycle_days=settings.reorder_order_cycle_days,
    )


def resolve_reorder_params(defaults: ReorderParams, overrides: ReorderOverrides | None = None) -> ReorderParams:
    if overrides is None:
        _validate_params(defaults)
        return defaults

    resolved = ReorderParams(
        period_days=overrides.period_days if overrides.period_days is not None else defaults.period_days,
        safety_stock_days=(
            overrides.safety_stock_days if overrides.safety_stock_days is not None else defaults.safety_stock_days
        ),
        default_lead_time_days=(
            overrides.default_lead_time_days
            if overrides.default_lead_time_days is not None
            else defaults.default_lead_time_days
        ),
        order_cycle_days=(
            overrides.order_cycle_days if overrides.order_cycle_days is not None else defaults.order_cycle_days
        ),
    )
    _validate_params(resolved)
    return resolved


def effective_lead_time_days(
    item_lead_time_days: int | None,
    default: int = DEFAULT_LEAD_TIME_DAYS,
    *,
    supplier_lead_time_days: int | None = None,
) -> int:
    # A stored 0 is an explicit same-day lead time, not a missing value; only None
    # falls back, first to the supplier's lead time and then to the default.
    for candidate in (item_lead_time_days, supplier_lead_time_days):
        if candidate is not None:
            return max(int(candidate), 0)
    return default


def _today() -> date:
    return datetime.now(tz=timezone.utc).date()


def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


def compute_reorder_point(
    sales_history: Iterable[SalesRecord],
    lead_time_days: int | None = None,
    *,
    period_days: int = DEFAULT_PERIOD_DAYS,
    safety_stock_days: int = DEFAULT_SAFETY_STOCK_DAYS,
    current_reorder_point: int = 0,
    as_of: date | None = None,
) -> ReorderResult:
    """
    Derive a reorder point from the trailing sales window.

    Records outside [as_of - period_days, as_of] are ignored. Without sales in
    the window the current reorder point is echoed back with basis
    ``no_sales_data`` so batch callers can tell "nothing to update" from
    "update to zero".
    """
    lead_time = effective_lead_time_days(lead_time_days)
    today = as_of or _today()
    window_start = today - timedelta(days=period_days)

    in_window = [record for record in sales_history if window_start <= record.date <= today]
    total_sold = sum(max(int(record.quantity), 0) for record in in_window)
    if not in_window or total_sold == 0:
        return ReorderResult(
            reorder_point=current_reorder_point,
            average_daily_usage=0.0,
            basis=ReorderBasis.NO_SALES_DATA,
            lead_time_days=lead_time,
        )

    first_sale = min(record.date for record in in_window)
    last_sale = max(record.date for record in in_window)
    # Clustered sales are averaged over their own span, not the whole period.
    effective_days = max(1, min(period_days, (last_sale - first_sale).days))

    average_daily_usage = total_sold / effective_days
    safety_stock = average_daily_usage * safety_stock_days
    reorder_point = _ceil_div(total_sold * (lead_time + safety_stock_days), effective_days)

    return ReorderResult(
        reorder_point=reorder_point,
        average_daily_usage=average_daily_usage,
        basis=ReorderBasis.CALCULATED,
        lead_time_days=lead_time,
        safety_stock=safety_stock,
        total_quantity_sold=total_sold,
        effective_days=effective_days,
    )


def _round_up_to_pack(qty: int, pack_size: int) -> int:
    if qty <= 0:
        return 0
    if pack_size <= 1:
        return qty
    units = (Decimal(qty) / Decimal(pack_size)).to_integral_value(rounding=ROUND_CEILING)
    return int(units * pack_size)


def compute_order_quantity(
    result: ReorderResult,
    *,
    on_hand: int,
    on_order: int = 0,
    pack_size: int = 1,
    min_order_qty: int = 0,
    order_cycle_days: int = 30,
) -> int:
    if pack_size < 1:
        raise ValueError('Pack size must be at least 1')
    if min_order_qty < 0:
        raise ValueError('Min order quantity cannot be negative')
    if result.basis != ReorderBasis.CALCULATED:
        return 0

    position = max(int(on_hand), 0) + max(int(on_order), 0)
    if position > result.reorder_point:
        return 0

    cycle_demand = (Decimal(str(result.average_daily_usage)) * Decimal(order_cycle_days)).to_integral_value(
        rounding=ROUND_CEILING
    )
    target = result.reorder_point + int(cycle_demand)
    raw = max(target - position, min_order_qty)
    return _round_up_to_pack(raw, pack_size)
