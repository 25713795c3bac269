from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import select

from stockroom.db import SessionLocal, engine
from stockroom.models import (
    Base,
    Document,
    DocumentStatus,
    DocumentType,
    InventoryItem,
    OrderStatus,
    OrderType,
    PrincipalRole,
    PurchaseOrder,
    PurchaseOrderLine,
    SalesHistory,
    Supplier,
)
from stockroom.security.sessions import issue_api_token

DEMO_COMPANY_ID = 'demo-company'


def seed() -> str:
    Base.metadata.create_all(engine)
    with SessionLocal() as db:
        supplier = db.execute(
            select(Supplier).where(Supplier.company_id == DEMO_COMPANY_ID, Supplier.name == 'ApparelCo')
        ).scalar_one_or_none()
        if not supplier:
            supplier = Supplier(company_id=DEMO_COMPANY_ID, name='ApparelCo', lead_time_days=14)
            db.add(supplier)
            db.flush()

        demo_items = [
            ('SKU001', 'Blue T-Shirt', 150, 50, Decimal('12.50'), 14),
            ('SKU002', 'Wireless Mouse', 80, 30, Decimal('25.00'), None),
            ('SKU004', 'Yoga Mat', 15, 20, Decimal('30.00'), 7),
        ]
        for sku, name, quantity, reorder_point, unit_cost, lead_time in demo_items:
            item = db.execute(
                select(InventoryItem).where(InventoryItem.company_id == DEMO_COMPANY_ID, InventoryItem.sku == sku)
            ).scalar_one_or_none()
            if item:
                continue
            item = InventoryItem(
                company_id=DEMO_COMPANY_ID,
                sku=sku,
                name=name,
                quantity=quantity,
                reorder_point=reorder_point,
                unit_cost=unit_cost,
                lead_time_days=lead_time,
                supplier_id=supplier.id,
            )
            db.add(item)
            db.flush()
            start = date.today() - timedelta(days=40)
            for offset in range(0, 40, 2):
                db.add(
                    SalesHistory(
                        company_id=DEMO_COMPANY_ID,
                        inventory_item_id=item.id,
                        sku=sku,
                        sale_date=start + timedelta(days=offset),
                        quantity=(offset % 5) + 1,
                        unit_price=unit_cost * 2,
                    )
                )

        order = db.execute(
            select(PurchaseOrder).where(
                PurchaseOrder.company_id == DEMO_COMPANY_ID, PurchaseOrder.order_number == 'PO-1001'
            )
        ).scalar_one_or_none()
        if not order:
            order = PurchaseOrder(
                company_id=DEMO_COMPANY_ID,
                order_number='PO-1001',
                order_type=OrderType.PURCHASE,
                status=OrderStatus.ORDERED,
                supplier_id=supplier.id,
                total_amount=Decimal('9525.00'),
            )
            db.add(order)
            db.flush()
            db.add(PurchaseOrderLine(purchase_order_id=order.id, line_number=1, sku='SKU001', quantity=Decimal('500'), unit_price=Decimal('12.50')))
            db.add(PurchaseOrderLine(purchase_order_id=order.id, line_number=2, sku='SKU004', quantity=Decimal('109'), unit_price=Decimal('30.00')))

        invoice = db.execute(
            select(Document).where(Document.company_id == DEMO_COMPANY_ID, Document.file_name == 'apparelco-invoice.pdf')
        ).scalar_one_or_none()
        if not invoice:
            db.add(
                Document(
                    company_id=DEMO_COMPANY_ID,
                    file_name='apparelco-invoice.pdf',
                    status=DocumentStatus.EXTRACTION_COMPLETE,
                    document_type=DocumentType.INVOICE,
                    extracted_data={
                        'documentType': 'invoice',
                        'invoiceNumber': 'INV-88',
                        'vendorDetails': {'name': 'ApparelCo'},
                        'totalAmount': 9500.00,
                        'lineItems': [
                            {'description': 'Blue T-Shirt', 'sku': 'SKU001', 'quantity': 500, 'unitPrice': 12.5},
                            {'description': 'Yoga Mat', 'sku': 'SKU004', 'quantity': 108, 'unitPrice': 30},
                        ],
                    },
                )
            )

        token = issue_api_token(db, principal_uid='manager', company_id=DEMO_COMPANY_ID, role=PrincipalRole.MANAGER)
        db.commit()
    return token


if __name__ == '__main__':
    token = seed()
    print(f'Seed data inserted/verified. Manager API token: {token}')
