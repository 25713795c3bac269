from __future__ import annotations

import os
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from stockroom.auth import Principal, Role, get_current_principal
from stockroom.db import get_db
from stockroom.dependencies import get_history_session_factory
from stockroom.models import (
    Base,
    Document,
    DocumentStatus,
    DocumentType,
    InventoryItem,
    OrderType,
    PurchaseOrder,
    SalesHistory,
)
from stockroom.routers import documents, inventory

COMPANY = 'acme'


class RouterTestCase(unittest.TestCase):
    role = Role.MANAGER

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.engine = create_engine(
            f"sqlite:///{os.path.join(self._tmp.name, 'stockroom.db')}",
            connect_args={'check_same_thread': False},
        )
        Base.metadata.create_all(self.engine)
        self.session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

        def _get_db():
            db = self.session_factory()
            try:
                yield db
            finally:
                db.close()

        app = FastAPI()
        app.include_router(documents.router)
        app.include_router(inventory.router)
        app.dependency_overrides[get_db] = _get_db
        app.dependency_overrides[get_current_principal] = lambda: Principal(
            uid='user-1', company_id=COMPANY, role=self.role
        )
        app.dependency_overrides[get_history_session_factory] = lambda: self.session_factory
        self.client = TestClient(app)

    def tearDown(self) -> None:
        self.client.close()
        self.engine.dispose()
        self._tmp.cleanup()


class DocumentRoutesTests(RouterTestCase):
    def setUp(self) -> None:
        super().setUp()
        with self.session_factory() as db:
            order = PurchaseOrder(
                company_id=COMPANY,
                order_number='PO-1001',
                order_type=OrderType.PURCHASE,
                total_amount=Decimal('1000.00'),
            )
            invoice = Document(
                company_id=COMPANY,
                file_name='invoice.pdf',
                status=DocumentStatus.EXTRACTION_COMPLETE,
                document_type=DocumentType.INVOICE,
                extracted_data={'documentType': 'invoice', 'totalAmount': 1300},
            )
            receipt = Document(
                company_id=COMPANY,
                file_name='receipt.jpg',
                status=DocumentStatus.EXTRACTION_COMPLETE,
                document_type=DocumentType.RECEIPT,
                extracted_data={'documentType': 'receipt', 'totalAmount': 5},
            )
            db.add_all([order, invoice, receipt])
            db.commit()
            self.order_id = order.id
            self.invoice_id = invoice.id
            self.receipt_id = receipt.id

    def test_match_returns_score_and_discrepancies(self) -> None:
        response = self.client.post(
            '/documents/match', json={'invoiceDocumentId': self.invoice_id, 'poOrderId': self.order_id}
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['message'], 'PO and Invoice matched successfully.')
        # partial total credit only; no supplier names or line items on either side
        self.assertEqual(body['matchScore'], 10)
        self.assertEqual(body['status'], 'pending_review')
        self.assertEqual(body['discrepancies'][0]['field'], 'totalAmount')
        self.assertEqual(body['discrepancies'][0]['poValue'], 1000.0)

        history = self.client.get(f'/documents/{self.invoice_id}/matches')
        self.assertEqual(history.status_code, 200)
        rows = history.json()['data']
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]['id'], body['matchId'])
        self.assertEqual(rows[0]['poOrderId'], self.order_id)
        self.assertEqual(rows[0]['matchedBy'], 'user_manual')

    def test_match_requires_exactly_one_po_reference(self) -> None:
        neither = self.client.post('/documents/match', json={'invoiceDocumentId': self.invoice_id})
        self.assertEqual(neither.status_code, 422)
        both = self.client.post(
            '/documents/match',
            json={'invoiceDocumentId': self.invoice_id, 'poOrderId': self.order_id, 'poDocumentId': self.receipt_id},
        )
        self.assertEqual(both.status_code, 422)

    def test_missing_documents_return_404(self) -> None:
        response = self.client.post(
            '/documents/match', json={'invoiceDocumentId': self.invoice_id + 999, 'poOrderId': self.order_id}
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['detail'], 'Invoice document not found or access denied.')
        self.assertEqual(self.client.get('/documents/999999/matches').status_code, 404)

    def test_wrong_document_kind_returns_400(self) -> None:
        response = self.client.post(
            '/documents/match', json={'invoiceDocumentId': self.receipt_id, 'poOrderId': self.order_id}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['detail'], 'Specified document is not an invoice.')


class InventoryRoutesTests(RouterTestCase):
    def setUp(self) -> None:
        super().setUp()
        today = datetime.now(tz=timezone.utc).date()
        with self.session_factory() as db:
            shirt = InventoryItem(
                company_id=COMPANY,
                sku='SKU001',
                name='Blue T-Shirt',
                quantity=10,
                reorder_point=20,
                lead_time_days=14,
                unit_cost=Decimal('12.50'),
            )
            mat = InventoryItem(
                company_id=COMPANY,
                sku='SKU004',
                name='Yoga Mat',
                quantity=0,
                reorder_point=5,
                lead_time_days=7,
                unit_cost=Decimal('30.00'),
            )
            mouse = InventoryItem(
                company_id=COMPANY,
                sku='SKU002',
                name='Wireless Mouse',
                quantity=80,
                reorder_point=30,
                unit_cost=Decimal('25.00'),
            )
            db.add_all([shirt, mat, mouse])
            db.flush()
            for days_ago in (25, 5):
                db.add(
                    SalesHistory(
                        company_id=COMPANY,
                        inventory_item_id=shirt.id,
                        sku=shirt.sku,
                        sale_date=today - timedelta(days=days_ago),
                        quantity=20,
                    )
                )
            db.commit()

    def test_calculate_reorder_updates_items_with_sales(self) -> None:
        response = self.client.post('/inventory/calculate-reorder')
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['message'], 'Reorder points calculated and updated.')
        details = {row['sku']: row for row in body['details']}
        self.assertEqual(details['SKU001']['status'], 'updated')
        self.assertEqual(details['SKU001']['oldReorderPoint'], 20)
        self.assertEqual(details['SKU001']['newReorderPoint'], 42)
        self.assertEqual(details['SKU002']['status'], 'no_sales_data')
        self.assertEqual(details['SKU004']['newReorderPoint'], 5)

        with self.session_factory() as db:
            shirt = db.query(InventoryItem).filter_by(sku='SKU001').one()
            self.assertEqual(shirt.reorder_point, 42)
            self.assertEqual(shirt.last_updated_by, 'user-1')

        again = self.client.post('/inventory/calculate-reorder', json={})
        self.assertEqual(again.json()['message'], 'Reorder points calculation complete. No updates were necessary.')

    def test_calculate_reorder_accepts_parameter_overrides(self) -> None:
        response = self.client.post('/inventory/calculate-reorder', json={'safetyStockDays': 0})
        details = {row['sku']: row for row in response.json()['details']}
        # avg 2/day * 14 days
        self.assertEqual(details['SKU001']['newReorderPoint'], 28)

    def test_invalid_parameters_return_400(self) -> None:
        response = self.client.post('/inventory/calculate-reorder', json={'periodDays': 0})
        self.assertEqual(response.status_code, 400)

    def test_alerts_list_critical_items_first(self) -> None:
        response = self.client.get('/inventory/alerts')
        self.assertEqual(response.status_code, 200)
        rows = response.json()['data']
        self.assertEqual([row['sku'] for row in rows], ['SKU004', 'SKU001'])
        self.assertEqual([row['urgency'] for row in rows], ['critical', 'warning'])
        self.assertEqual(rows[1]['unitCost'], 12.5)


class InventoryRoleTests(RouterTestCase):
    role = Role.STAFF

    def test_staff_cannot_recalculate(self) -> None:
        self.assertEqual(self.client.post('/inventory/calculate-reorder').status_code, 403)

    def test_empty_company_reports_no_items(self) -> None:
        self.role = Role.ADMIN
        response = self.client.post('/inventory/calculate-reorder')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json()['message'], 'No inventory items found for this company to calculate reorder points.'
        )
        self.assertEqual(response.json()['details'], [])


if __name__ == '__main__':
    unittest.main()
