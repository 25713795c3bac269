from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# BIGINT keys on PostgreSQL; SQLite only autoincrements INTEGER PRIMARY KEY.
Id = BigInteger().with_variant(Integer, 'sqlite')


class Base(DeclarativeBase):
    pass


class PrincipalRole(str, Enum):
    ADMIN = 'ADMIN'
    MANAGER = 'MANAGER'
    STAFF = 'STAFF'


class DocumentType(str, Enum):
    INVOICE = 'invoice'
    PURCHASE_ORDER = 'purchase_order'
    RECEIPT = 'receipt'
    UNKNOWN = 'unknown'


class DocumentStatus(str, Enum):
    PENDING_OCR = 'pending_ocr'
    EXTRACTION_COMPLETE = 'extraction_complete'
    PENDING_REVIEW = 'pending_review'
    PROCESSED = 'processed'
    ERROR = 'error'
    ARCHIVED = 'archived'


class OrderType(str, Enum):
    PURCHASE = 'purchase'
    SALES = 'sales'
    TRANSFER = 'transfer'


class OrderStatus(str, Enum):
    DRAFT = 'draft'
    PENDING = 'pending'
    ORDERED = 'ordered'
    PARTIALLY_RECEIVED = 'partially_received'
    RECEIVED = 'received'
    CANCELLED = 'cancelled'


class MatchStatus(str, Enum):
    APPROVED = 'approved'
    PENDING_REVIEW = 'pending_review'


class Supplier(Base):
    __tablename__ = 'suppliers'

    id: Mapped[int] = mapped_column(Id, primary_key=True)
    company_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    lead_time_days: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class InventoryItem(Base):
    __tablename__ = 'inventory'
    __table_args__ = (
        UniqueConstraint('company_id', 'sku', name='inventory_company_sku_uniq'),
        CheckConstraint('quantity >= 0', name='inventory_quantity_non_negative_ck'),
        CheckConstraint('reorder_point >= 0', name='inventory_reorder_point_non_negative_ck'),
    )

    id: Mapped[int] = mapped_column(Id, primary_key=True)
    company_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    sku: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    reorder_point: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    reorder_quantity: Mapped[int | None] = mapped_column(Integer)
    on_order_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    pack_size: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default='1')
    min_order_qty: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    lead_time_days: Mapped[int | None] = mapped_column(Integer)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False, default=Decimal('0'), server_default='0')
    supplier_id: Mapped[int | None] = mapped_column(Id, ForeignKey('suppliers.id', ondelete='SET NULL'))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_updated_by: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    supplier: Mapped[Supplier | None] = relationship()


class SalesHistory(Base):
    __tablename__ = 'sales_history'
    __table_args__ = (
        CheckConstraint('quantity >= 0', name='sales_history_quantity_non_negative_ck'),
        Index('sales_history_item_date_idx', 'inventory_item_id', 'sale_date'),
    )

    id: Mapped[int] = mapped_column(Id, primary_key=True)
    company_id: Mapped[str] = mapped_column(Text, nullable=False)
    inventory_item_id: Mapped[int] = mapped_column(Id, ForeignKey('inventory.id', ondelete='CASCADE'), nullable=False)
    sku: Mapped[str] = mapped_column(Text, nullable=False)
    sale_date: Mapped[date] = mapped_column(Date, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal | None] = mapped_column(Numeric(14, 4))
    order_id: Mapped[int | None] = mapped_column(Id, ForeignKey('orders.id', ondelete='SET NULL'))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PurchaseOrder(Base):
    __tablename__ = 'orders'
    __table_args__ = (
        UniqueConstraint('company_id', 'order_type', 'order_number', name='orders_company_type_number_uniq'),
    )

    id: Mapped[int] = mapped_column(Id, primary_key=True)
    company_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    order_number: Mapped[str] = mapped_column(Text, nullable=False)
    order_type: Mapped[OrderType] = mapped_column(SQLEnum(OrderType, name='order_type'), nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        SQLEnum(OrderStatus, name='order_status'), nullable=False, default=OrderStatus.DRAFT, server_default='DRAFT'
    )
    supplier_id: Mapped[int | None] = mapped_column(Id, ForeignKey('suppliers.id', ondelete='SET NULL'))
    total_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))
    linked_invoice_document_id: Mapped[int | None] = mapped_column(Id, ForeignKey('documents.id', ondelete='SET NULL'))
    last_updated_by: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    supplier: Mapped[Supplier | None] = relationship()
    lines: Mapped[list[PurchaseOrderLine]] = relationship(
        back_populates='purchase_order', order_by='PurchaseOrderLine.line_number'
    )


class PurchaseOrderLine(Base):
    __tablename__ = 'order_lines'

    id: Mapped[int] = mapped_column(Id, primary_key=True)
    purchase_order_id: Mapped[int] = mapped_column(Id, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False)
    line_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    sku: Mapped[str | None] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)
    quantity: Mapped[Decimal | None] = mapped_column(Numeric(14, 3))
    unit_price: Mapped[Decimal | None] = mapped_column(Numeric(14, 4))

    purchase_order: Mapped[PurchaseOrder] = relationship(back_populates='lines')


class Document(Base):
    __tablename__ = 'documents'

    id: Mapped[int] = mapped_column(Id, primary_key=True)
    company_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    file_name: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[DocumentStatus] = mapped_column(
        SQLEnum(DocumentStatus, name='document_status'),
        nullable=False,
        default=DocumentStatus.PENDING_OCR,
        server_default='PENDING_OCR',
    )
    document_type: Mapped[DocumentType] = mapped_column(
        SQLEnum(DocumentType, name='document_type'),
        nullable=False,
        default=DocumentType.UNKNOWN,
        server_default='UNKNOWN',
    )
    extracted_data: Mapped[dict | None] = mapped_column(JSON)
    linked_po_document_id: Mapped[int | None] = mapped_column(Id, ForeignKey('documents.id', ondelete='SET NULL'))
    linked_purchase_order_id: Mapped[int | None] = mapped_column(
        Id, ForeignKey('orders.id', ondelete='SET NULL', use_alter=True)
    )
    linked_invoice_document_id: Mapped[int | None] = mapped_column(Id, ForeignKey('documents.id', ondelete='SET NULL'))
    last_updated_by: Mapped[str | None] = mapped_column(Text)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PoInvoiceMatch(Base):
    __tablename__ = 'po_invoice_matches'

    id: Mapped[int] = mapped_column(Id, primary_key=True)
    company_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    invoice_document_id: Mapped[int] = mapped_column(Id, ForeignKey('documents.id', ondelete='CASCADE'), nullable=False)
    po_document_id: Mapped[int | None] = mapped_column(Id, ForeignKey('documents.id', ondelete='SET NULL'))
    purchase_order_id: Mapped[int | None] = mapped_column(Id, ForeignKey('orders.id', ondelete='SET NULL'))
    match_score: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[MatchStatus] = mapped_column(SQLEnum(MatchStatus, name='match_status'), nullable=False)
    matched_by: Mapped[str] = mapped_column(Text, nullable=False)
    discrepancies: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    matched_by_principal: Mapped[str | None] = mapped_column(Text)
    matched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AuditLog(Base):
    __tablename__ = 'audit_log'

    id: Mapped[int] = mapped_column(Id, primary_key=True)
    company_id: Mapped[str] = mapped_column(Text, nullable=False)
    actor_uid: Mapped[str | None] = mapped_column(Text)
    action: Mapped[str] = mapped_column(Text, nullable=False)
    ip: Mapped[str | None] = mapped_column(Text)
    meta: Mapped[dict] = mapped_column('metadata', JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class ApiToken(Base):
    __tablename__ = 'api_tokens'
    __table_args__ = (
        UniqueConstraint('token', name='api_tokens_token_key'),
    )

    id: Mapped[int] = mapped_column(Id, primary_key=True)
    token: Mapped[str] = mapped_column(Text, nullable=False)
    principal_uid: Mapped[str] = mapped_column(Text, nullable=False)
    company_id: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[PrincipalRole] = mapped_column(SQLEnum(PrincipalRole, name='principal_role'), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_seen_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
