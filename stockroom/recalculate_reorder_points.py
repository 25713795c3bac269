from __future__ import annotations

import argparse
import logging

from stockroom.config import settings
from stockroom.db import SessionLocal
from stockroom.services.reorder_batch_service import (
    STATUS_ERROR,
    STATUS_NO_SALES_DATA,
    STATUS_UNCHANGED,
    STATUS_UPDATED,
    make_db_history_loader,
    recalculate_reorder_points,
)
from stockroom.services.reorder_math_service import ReorderOverrides, default_reorder_params, resolve_reorder_params

BATCH_ACTOR = 'system:reorder-batch'


def run(
    company_id: str,
    *,
    workers: int,
    dry_run: bool,
    overrides: ReorderOverrides | None = None,
) -> dict[str, int]:
    params = resolve_reorder_params(default_reorder_params(), overrides)
    with SessionLocal() as db:
        report = recalculate_reorder_points(
            db,
            company_id=company_id,
            history_loader=make_db_history_loader(SessionLocal, company_id),
            actor_uid=BATCH_ACTOR,
            params=params,
            max_workers=workers,
            dry_run=dry_run,
        )
        if dry_run:
            db.rollback()
        else:
            db.commit()

    return {
        status: report.count(status)
        for status in (STATUS_UPDATED, STATUS_UNCHANGED, STATUS_NO_SALES_DATA, STATUS_ERROR)
    }


def main() -> None:
    parser = argparse.ArgumentParser(description='Recalculate reorder points from trailing sales for one company.')
    parser.add_argument('--company-id', required=True, help='Tenant whose inventory should be recalculated.')
    parser.add_argument(
        '--workers',
        type=int,
        default=settings.reorder_batch_max_workers,
        help='Worker threads used to fetch sales history.',
    )
    parser.add_argument('--period-days', type=int, default=None, help='Override the trailing sales window.')
    parser.add_argument('--safety-stock-days', type=int, default=None, help='Override the safety stock days.')
    parser.add_argument('--dry-run', action='store_true', help='Compute without writing changes.')
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level.upper(), format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    counts = run(
        args.company_id,
        workers=args.workers,
        dry_run=args.dry_run,
        overrides=ReorderOverrides(period_days=args.period_days, safety_stock_days=args.safety_stock_days),
    )
    summary = ', '.join(f'{status}={count}' for status, count in counts.items())
    print(f'Reorder recalculation complete for {args.company_id}: {summary}')


if __name__ == '__main__':
    main()
