from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from stockroom.models import InventoryItem

URGENCY_CRITICAL = 'critical'
URGENCY_WARNING = 'warning'


@dataclass(frozen=True)
class StockAlert:
    inventory_item_id: int
    sku: str
    name: str
    quantity: int
    reorder_point: int
    reorder_quantity: int | None
    unit_cost: Decimal
    urgency: str

    def to_dict(self) -> dict:
        return {
            'id': self.inventory_item_id,
            'sku': self.sku,
            'name': self.name,
            'quantity': self.quantity,
            'reorderPoint': self.reorder_point,
            'reorderQuantity': self.reorder_quantity,
            'unitCost': self.unit_cost,
            'urgency': self.urgency,
        }


def list_low_stock_alerts(db: Session, *, company_id: str) -> list[StockAlert]:
    rows = db.execute(
        select(InventoryItem).where(
            InventoryItem.company_id == company_id,
            InventoryItem.deleted_at.is_(None),
            InventoryItem.quantity <= InventoryItem.reorder_point,
        )
    ).scalars().all()

    alerts = [
        StockAlert(
            inventory_item_id=row.id,
            sku=row.sku,
            name=row.name,
            quantity=row.quantity,
            reorder_point=row.reorder_point,
            reorder_quantity=row.reorder_quantity,
            unit_cost=row.unit_cost,
            urgency=URGENCY_CRITICAL if row.quantity <= 0 else URGENCY_WARNING,
        )
        for row in rows
    ]
    alerts.sort(key=lambda alert: (alert.urgency != URGENCY_CRITICAL, alert.sku))
    return alerts
