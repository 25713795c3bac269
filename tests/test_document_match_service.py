from __future__ import annotations

import unittest
from dataclasses import replace
from decimal import Decimal

from stockroom.models import MatchStatus
from stockroom.services.document_match_service import (
    MatchPolicy,
    match_documents,
    match_status,
    resolve_match_policy,
)
from stockroom.services.document_types import InvoiceDocument, LineItem, PurchaseOrderDocument


def _lines(count: int, prefix: str = 'SKU') -> tuple[LineItem, ...]:
    return tuple(
        LineItem(sku=f'{prefix}-{index}', quantity=Decimal('2'), unit_price=Decimal('10.00'))
        for index in range(count)
    )


def _invoice(**kwargs) -> InvoiceDocument:
    base = InvoiceDocument(vendor_name='Acme Supply', total_amount=Decimal('1000.00'), line_items=_lines(3))
    return replace(base, **kwargs)


def _po(**kwargs) -> PurchaseOrderDocument:
    base = PurchaseOrderDocument(supplier_name='Acme Supply', total_amount=Decimal('1000.00'), line_items=_lines(3))
    return replace(base, **kwargs)


def _swap(invoice: InvoiceDocument, po: PurchaseOrderDocument) -> tuple[InvoiceDocument, PurchaseOrderDocument]:
    return (
        InvoiceDocument(vendor_name=po.supplier_name, total_amount=po.total_amount, line_items=po.line_items),
        PurchaseOrderDocument(
            supplier_name=invoice.vendor_name, total_amount=invoice.total_amount, line_items=invoice.line_items
        ),
    )


class DocumentMatchServiceTests(unittest.TestCase):
    def test_identical_documents_score_one_hundred(self) -> None:
        result = match_documents(_invoice(), _po())
        self.assertEqual(result.score, 100)
        self.assertEqual(result.discrepancies, ())

    def test_disjoint_documents_score_at_most_thirty(self) -> None:
        invoice = _invoice(vendor_name='Globex', total_amount=Decimal('5000.00'), line_items=_lines(1, 'X'))
        po = _po(supplier_name='Initech', total_amount=Decimal('1000.00'), line_items=_lines(10, 'Y'))
        result = match_documents(invoice, po)
        self.assertLessEqual(result.score, 30)
        fields = [item.field for item in result.discrepancies]
        self.assertEqual(fields, ['supplierName', 'totalAmount', 'lineItemCount', 'lineItems'])

    def test_supplier_names_are_normalized(self) -> None:
        result = match_documents(_invoice(vendor_name='  ACME supply '), _po(supplier_name='acme SUPPLY'))
        self.assertEqual(result.score, 100)

    def test_supplier_name_mismatch_gets_partial_credit(self) -> None:
        result = match_documents(_invoice(vendor_name='Acme Supply Co'), _po())
        self.assertEqual(result.score, 85)
        self.assertEqual(len(result.discrepancies), 1)
        discrepancy = result.discrepancies[0]
        self.assertEqual(discrepancy.field, 'supplierName')
        self.assertEqual(discrepancy.po_value, 'acme supply')
        self.assertEqual(discrepancy.invoice_value, 'acme supply co')

    def test_missing_supplier_name_is_neutral(self) -> None:
        for invoice, po in (
            (_invoice(vendor_name=None), _po()),
            (_invoice(), _po(supplier_name=None)),
            (_invoice(vendor_name='   '), _po(supplier_name=None)),
        ):
            result = match_documents(invoice, po)
            self.assertEqual(result.score, 80)
            self.assertEqual(result.discrepancies, ())

    def test_total_within_tolerance_gets_full_credit(self) -> None:
        # 0.26% difference
        result = match_documents(_invoice(total_amount=Decimal('9500.00')), _po(total_amount=Decimal('9525.00')))
        self.assertEqual(result.score, 100)
        self.assertEqual(result.discrepancies, ())

    def test_total_at_tolerance_boundary_is_within(self) -> None:
        result = match_documents(_invoice(total_amount=Decimal('1050.00')), _po(total_amount=Decimal('1000.00')))
        self.assertEqual(result.discrepancies, ())

    def test_total_outside_tolerance_gets_partial_credit(self) -> None:
        result = match_documents(_invoice(total_amount=Decimal('1300.00')), _po(total_amount=Decimal('1000.00')))
        self.assertEqual(result.score, 60)
        self.assertEqual(len(result.discrepancies), 1)
        discrepancy = result.discrepancies[0]
        self.assertEqual(discrepancy.field, 'totalAmount')
        self.assertEqual(discrepancy.po_value, Decimal('1000.00'))
        self.assertEqual(discrepancy.invoice_value, Decimal('1300.00'))
        self.assertIn('more than 5%', discrepancy.difference)
        self.assertIn('300.00', discrepancy.difference)

    def test_missing_total_is_flagged(self) -> None:
        for invoice, po in (
            (_invoice(total_amount=None), _po()),
            (_invoice(), _po(total_amount=None)),
            (_invoice(total_amount=None), _po(total_amount=None)),
        ):
            result = match_documents(invoice, po)
            self.assertEqual(result.score, 50)
            self.assertEqual([item.field for item in result.discrepancies], ['totalAmount'])
            self.assertEqual(result.discrepancies[0].difference, 'Missing total amount on one or both documents.')

    def test_zero_po_total_only_matches_zero_invoice(self) -> None:
        exact = match_documents(_invoice(total_amount=Decimal('0')), _po(total_amount=Decimal('0')))
        self.assertEqual(exact.score, 100)
        off = match_documents(_invoice(total_amount=Decimal('0.01')), _po(total_amount=Decimal('0')))
        self.assertEqual(off.score, 60)

    def test_line_item_count_partial_credit(self) -> None:
        po_lines = _lines(4)
        invoice = _invoice(line_items=po_lines[:3])
        result = match_documents(invoice, _po(line_items=po_lines))
        # 20 + 50 + 15 + 10 * 3/4
        self.assertEqual(result.score, 93)
        fields = [item.field for item in result.discrepancies]
        self.assertEqual(fields, ['lineItemCount', 'lineItems'])
        count_entry = result.discrepancies[0]
        self.assertEqual(count_entry.po_value, 4)
        self.assertEqual(count_entry.invoice_value, 3)

    def test_no_line_items_on_either_side_is_neutral(self) -> None:
        for invoice, po in (
            (_invoice(line_items=()), _po()),
            (_invoice(), _po(line_items=())),
            (_invoice(line_items=()), _po(line_items=())),
        ):
            result = match_documents(invoice, po)
            self.assertEqual(result.score, 70)
            self.assertEqual(result.discrepancies, ())

    def test_equal_counts_with_different_skus_keep_count_credit(self) -> None:
        result = match_documents(_invoice(line_items=_lines(3, 'A')), _po(line_items=_lines(3, 'B')))
        self.assertEqual(result.score, 90)
        self.assertEqual([item.field for item in result.discrepancies], ['lineItems'])
        self.assertEqual(result.discrepancies[0].po_value, ['B-0', 'B-1', 'B-2'])
        self.assertEqual(result.discrepancies[0].invoice_value, ['A-0', 'A-1', 'A-2'])

    def test_line_detail_compares_quantity_and_price(self) -> None:
        po_lines = _lines(2)
        invoice_lines = (po_lines[0], replace(po_lines[1], quantity=Decimal('3')))
        result = match_documents(_invoice(line_items=invoice_lines), _po(line_items=po_lines))
        self.assertEqual(result.score, 95)
        self.assertIn('1 of 2 line items', result.discrepancies[0].difference)

    def test_loose_po_line_does_not_steal_a_stricter_lines_partner(self) -> None:
        po_lines = (
            LineItem(sku='X', unit_price=Decimal('10.00')),
            LineItem(sku='X', quantity=Decimal('2'), unit_price=Decimal('10.00')),
        )
        invoice_lines = (
            LineItem(sku='X', quantity=Decimal('2'), unit_price=Decimal('10.00')),
            LineItem(sku='X', quantity=Decimal('3'), unit_price=Decimal('10.00')),
        )
        result = match_documents(_invoice(line_items=invoice_lines), _po(line_items=po_lines))
        self.assertEqual(result.score, 100)
        self.assertEqual(result.discrepancies, ())

    def test_unpairable_lines_are_listed_in_document_order(self) -> None:
        po_lines = (LineItem(sku='A', quantity=Decimal('1')), LineItem(sku='B'), LineItem(sku='C'))
        invoice_lines = (LineItem(sku='C'), LineItem(sku='A', quantity=Decimal('5')), LineItem(sku='D'))
        result = match_documents(_invoice(line_items=invoice_lines), _po(line_items=po_lines))
        detail = result.discrepancies[-1]
        self.assertEqual(detail.field, 'lineItems')
        self.assertEqual(detail.po_value, ['A', 'B'])
        self.assertEqual(detail.invoice_value, ['A', 'D'])
        self.assertIn('2 of 3 line items', detail.difference)

    def test_line_detail_falls_back_to_description(self) -> None:
        invoice_lines = (LineItem(description='Blue T-Shirt', quantity=Decimal('5')),)
        po_lines = (LineItem(description='blue t-shirt '),)
        result = match_documents(_invoice(line_items=invoice_lines), _po(line_items=po_lines))
        self.assertEqual(result.score, 100)

    def test_score_is_symmetric_when_documents_swap(self) -> None:
        cases = [
            (_invoice(), _po()),
            (_invoice(vendor_name='Other'), _po()),
            (_invoice(total_amount=Decimal('2000.00')), _po()),
            (_invoice(total_amount=None), _po()),
            (_invoice(line_items=_lines(2)), _po(line_items=_lines(5))),
            (_invoice(vendor_name=None, line_items=()), _po(total_amount=Decimal('400.00'))),
        ]
        for invoice, po in cases:
            forward = match_documents(invoice, po)
            swapped_invoice, swapped_po = _swap(invoice, po)
            swapped = match_documents(swapped_invoice, swapped_po)
            self.assertEqual(forward.score, swapped.score)
            self.assertEqual(len(forward.discrepancies), len(swapped.discrepancies))
            for left, right in zip(forward.discrepancies, swapped.discrepancies):
                self.assertEqual(left.field, right.field)
                if left.field in {'supplierName', 'totalAmount', 'lineItemCount'}:
                    self.assertEqual(left.po_value, right.invoice_value)
                    self.assertEqual(left.invoice_value, right.po_value)

    def test_repeated_matching_is_identical(self) -> None:
        invoice = _invoice(vendor_name='Acme', total_amount=Decimal('1234.56'), line_items=_lines(2))
        po = _po(total_amount=Decimal('999.99'))
        first = match_documents(invoice, po)
        second = match_documents(invoice, po)
        self.assertEqual(first, second)
        self.assertEqual(first.to_dict(), second.to_dict())

    def test_custom_tolerance_is_applied(self) -> None:
        policy = MatchPolicy(total_tolerance=Decimal('0.50'))
        result = match_documents(_invoice(total_amount=Decimal('1300.00')), _po(), policy)
        self.assertEqual(result.score, 100)
        strict = match_documents(
            _invoice(total_amount=Decimal('1300.00')), _po(), MatchPolicy(total_tolerance=Decimal('0.10'))
        )
        self.assertIn('more than 10%', strict.discrepancies[0].difference)

    def test_to_dict_uses_camel_case_keys(self) -> None:
        result = match_documents(_invoice(vendor_name='Other'), _po())
        self.assertEqual(
            result.to_dict()['discrepancies'][0],
            {
                'field': 'supplierName',
                'poValue': 'acme supply',
                'invoiceValue': 'other',
                'difference': 'Supplier names do not match exactly.',
            },
        )


class MatchStatusTests(unittest.TestCase):
    def test_default_threshold_is_seventy_five(self) -> None:
        self.assertEqual(match_status(75), MatchStatus.APPROVED)
        self.assertEqual(match_status(100), MatchStatus.APPROVED)
        self.assertEqual(match_status(74), MatchStatus.PENDING_REVIEW)

    def test_threshold_can_be_overridden(self) -> None:
        self.assertEqual(match_status(80, threshold=90), MatchStatus.PENDING_REVIEW)
        self.assertEqual(match_status(60, threshold=60), MatchStatus.APPROVED)

    def test_resolve_policy_validates_ranges(self) -> None:
        policy = resolve_match_policy(total_tolerance=Decimal('0.1'), auto_approve_threshold=80)
        self.assertEqual(policy.total_tolerance, Decimal('0.1'))
        self.assertEqual(policy.auto_approve_threshold, 80)
        with self.assertRaises(ValueError):
            resolve_match_policy(total_tolerance=Decimal('1.5'))
        with self.assertRaises(ValueError):
            resolve_match_policy(auto_approve_threshold=101)


if __name__ == '__main__':
    unittest.main()
