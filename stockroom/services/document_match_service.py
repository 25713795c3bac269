from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from stockroom.models import MatchStatus
from stockroom.services.document_types import InvoiceDocument, LineItem, PurchaseOrderDocument

SUPPLIER_NAME_WEIGHT = 20
SUPPLIER_NAME_PARTIAL = 5
TOTAL_AMOUNT_WEIGHT = 50
TOTAL_AMOUNT_PARTIAL = 10
LINE_ITEM_COUNT_WEIGHT = 20
LINE_ITEM_DETAIL_WEIGHT = 10

DEFAULT_TOTAL_TOLERANCE = Decimal('0.05')
DEFAULT_AUTO_APPROVE_THRESHOLD = 75


@dataclass(frozen=True)
class MatchPolicy:
    total_tolerance: Decimal = DEFAULT_TOTAL_TOLERANCE
    auto_approve_threshold: int = DEFAULT_AUTO_APPROVE_THRESHOLD


@dataclass(frozen=True)
class Discrepancy:
    field: str
    po_value: object
    invoice_value: object
    difference: str

    def to_dict(self) -> dict:
        return {
            'field': self.field,
            'poValue': self.po_value,
            'invoiceValue': self.invoice_value,
            'difference': self.difference,
        }


@dataclass(frozen=True)
class MatchResult:
    score: int
    discrepancies: tuple[Discrepancy, ...] = ()

    def to_dict(self) -> dict:
        return {
            'score': self.score,
            'discrepancies': [item.to_dict() for item in self.discrepancies],
        }


def _validate_policy(policy: MatchPolicy) -> None:
    if policy.total_tolerance < 0 or policy.total_tolerance > 1:
        raise ValueError('Total tolerance must be between 0 and 1')
    if policy.auto_approve_threshold < 0 or policy.auto_approve_threshold > 100:
        raise ValueError('Auto-approve threshold must be between 0 and 100')


def resolve_match_policy(
    *,
    total_tolerance: Decimal | None = None,
    auto_approve_threshold: int | None = None,
    defaults: MatchPolicy | None = None,
) -> MatchPolicy:
    base = defaults or MatchPolicy()
    resolved = MatchPolicy(
        total_tolerance=Decimal(str(total_tolerance)) if total_tolerance is not None else base.total_tolerance,
        auto_approve_threshold=(
            int(auto_approve_threshold) if auto_approve_threshold is not None else base.auto_approve_threshold
        ),
    )
    _validate_policy(resolved)
    return resolved


def _normalize_name(name: str | None) -> str | None:
    if name is None:
        return None
    normalized = name.strip().lower()
    return normalized or None


def _percent_label(tolerance: Decimal) -> str:
    return format((tolerance * 100).normalize(), 'f')


def _supplier_name_check(invoice: InvoiceDocument, po: PurchaseOrderDocument) -> tuple[Decimal, Discrepancy | None]:
    invoice_name = _normalize_name(invoice.vendor_name)
    po_name = _normalize_name(po.supplier_name)
    if invoice_name is None or po_name is None:
        return Decimal('0'), None
    if invoice_name == po_name:
        return Decimal(SUPPLIER_NAME_WEIGHT), None
    return Decimal(SUPPLIER_NAME_PARTIAL), Discrepancy(
        field='supplierName',
        po_value=po_name,
        invoice_value=invoice_name,
        difference='Supplier names do not match exactly.',
    )


def _total_amount_check(
    invoice: InvoiceDocument, po: PurchaseOrderDocument, tolerance: Decimal
) -> tuple[Decimal, Discrepancy | None]:
    invoice_total = invoice.total_amount
    po_total = po.total_amount
    if invoice_total is None or po_total is None:
        # Missing totals are flagged because the total is the primary error signal.
        return Decimal('0'), Discrepancy(
            field='totalAmount',
            po_value=po_total,
            invoice_value=invoice_total,
            difference='Missing total amount on one or both documents.',
        )

    difference = abs(invoice_total - po_total)
    if difference <= po_total * tolerance:
        return Decimal(TOTAL_AMOUNT_WEIGHT), None
    return Decimal(TOTAL_AMOUNT_PARTIAL), Discrepancy(
        field='totalAmount',
        po_value=po_total,
        invoice_value=invoice_total,
        difference=(
            f'Total amounts differ by more than {_percent_label(tolerance)}%. '
            f"Diff: {difference.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)}"
        ),
    )


def _line_item_count_check(invoice: InvoiceDocument, po: PurchaseOrderDocument) -> tuple[Decimal, Discrepancy | None]:
    # Counts only; matching counts earn full credit even when the SKUs differ.
    invoice_count = len(invoice.line_items)
    po_count = len(po.line_items)
    if invoice_count == 0 or po_count == 0:
        return Decimal('0'), None

    credit = Decimal(LINE_ITEM_COUNT_WEIGHT) * Decimal(min(invoice_count, po_count)) / Decimal(max(invoice_count, po_count))
    if invoice_count == po_count:
        return credit, None
    return credit, Discrepancy(
        field='lineItemCount',
        po_value=po_count,
        invoice_value=invoice_count,
        difference='Number of line items differs.',
    )


def _line_key(item: LineItem) -> str | None:
    return _normalize_name(item.sku) or _normalize_name(item.description)


def _line_label(item: LineItem) -> str:
    return item.sku or item.description or '(unlabelled line)'


def _same_value(left: Decimal | None, right: Decimal | None) -> bool:
    # An absent value on either side does not contradict the other side.
    return left is None or right is None or left == right


def _lines_agree(po_line: LineItem, invoice_line: LineItem) -> bool:
    return (
        _line_key(po_line) == _line_key(invoice_line)
        and _same_value(po_line.quantity, invoice_line.quantity)
        and _same_value(po_line.unit_price, invoice_line.unit_price)
    )


def _pair_line_items(po_lines: tuple[LineItem, ...], invoice_lines: tuple[LineItem, ...]) -> dict[int, int]:
    """Maximum one-to-one pairing of agreeing lines, as {po index: invoice index}."""
    candidates = [
        [index for index, invoice_line in enumerate(invoice_lines) if _lines_agree(po_line, invoice_line)]
        for po_line in po_lines
    ]
    owner: dict[int, int] = {}

    def _augment(po_index: int, visited: set[int]) -> bool:
        for invoice_index in candidates[po_index]:
            if invoice_index in visited:
                continue
            visited.add(invoice_index)
            if invoice_index not in owner or _augment(owner[invoice_index], visited):
                owner[invoice_index] = po_index
                return True
        return False

    for po_index in range(len(po_lines)):
        _augment(po_index, set())
    return {po_index: invoice_index for invoice_index, po_index in owner.items()}


def _line_item_detail_check(invoice: InvoiceDocument, po: PurchaseOrderDocument) -> tuple[Decimal, Discrepancy | None]:
    if not invoice.line_items or not po.line_items:
        return Decimal('0'), None

    pairs = _pair_line_items(po.line_items, invoice.line_items)
    matched = len(pairs)

    largest = max(len(invoice.line_items), len(po.line_items))
    credit = Decimal(LINE_ITEM_DETAIL_WEIGHT) * Decimal(matched) / Decimal(largest)
    if matched == largest:
        return credit, None
    paired_invoice = set(pairs.values())
    return credit, Discrepancy(
        field='lineItems',
        po_value=[_line_label(line) for index, line in enumerate(po.line_items) if index not in pairs],
        invoice_value=[
            _line_label(line) for index, line in enumerate(invoice.line_items) if index not in paired_invoice
        ],
        difference=f'{largest - matched} of {largest} line items do not match on SKU, quantity or unit price.',
    )


def match_documents(
    invoice: InvoiceDocument,
    po: PurchaseOrderDocument,
    policy: MatchPolicy | None = None,
) -> MatchResult:
    """
    Score how well an invoice agrees with its purchase order.

    Sub-checks are weighted independently: supplier name 20, total amount 50,
    line-item count 20 and line-item detail 10. Missing data on both sides of
    a check is neutral; only a missing total is reported as a discrepancy.
    """
    policy = policy or MatchPolicy()
    _validate_policy(policy)

    checks = (
        _supplier_name_check(invoice, po),
        _total_amount_check(invoice, po, policy.total_tolerance),
        _line_item_count_check(invoice, po),
        _line_item_detail_check(invoice, po),
    )
    total = sum((points for points, _ in checks), Decimal('0'))
    total = min(max(total, Decimal('0')), Decimal('100'))
    score = int(total.to_integral_value(rounding=ROUND_HALF_UP))
    return MatchResult(
        score=score,
        discrepancies=tuple(discrepancy for _, discrepancy in checks if discrepancy is not None),
    )


def match_status(score: int, threshold: int | None = None) -> MatchStatus:
    limit = DEFAULT_AUTO_APPROVE_THRESHOLD if threshold is None else threshold
    return MatchStatus.APPROVED if score >= limit else MatchStatus.PENDING_REVIEW
