"""Purchase Order model."""
from sqlalchemy import (
    Column, BigInteger, Integer, String, Text, Date, DateTime, Numeric, Enum, ForeignKey, CheckConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pos_backend.database import Base
import enum


class PurchaseOrderStatus(enum.Enum):
    """Purchase order lifecycle."""
    PENDING = "PENDING"
    RECEIVED = "RECEIVED"
    CANCELLED = "CANCELLED"


class PurchaseOrder(Base):
    """Purchase Order (pedido a proveedor). Stock moves in only on receipt."""

    __tablename__ = 'purchase_order'

    id = Column(String(64), primary_key=True)
    supplier_id = Column(String(64), ForeignKey('supplier.id'), nullable=False, index=True)
    status = Column(
        Enum(PurchaseOrderStatus, name='purchase_order_status'),
        nullable=False,
        default=PurchaseOrderStatus.PENDING,
        index=True,
    )
    order_date = Column(Date, nullable=False)
    expected_date = Column(Date, nullable=True)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)
    received_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    supplier = relationship('Supplier', back_populates='purchase_orders')
    lines = relationship(
        'PurchaseOrderLine',
        back_populates='purchase_order',
        cascade='all, delete-orphan',
        order_by='PurchaseOrderLine.id',
    )

    def __repr__(self):
        return f"<PurchaseOrder(id={self.id}, supplier_id={self.supplier_id}, status={self.status.value})>"


class PurchaseOrderLine(Base):
    """Purchase Order Line (detalle del pedido)."""

    __tablename__ = 'purchase_order_line'
    __table_args__ = (
        CheckConstraint('quantity > 0', name='purchase_order_line_quantity_positive'),
    )

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    purchase_order_id = Column(
        String(64), ForeignKey('purchase_order.id', ondelete='CASCADE'), nullable=False, index=True
    )
    product_id = Column(String(64), ForeignKey('product.id'), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_cost = Column(Numeric(10, 2), nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)

    # Relationships
    purchase_order = relationship('PurchaseOrder', back_populates='lines')
    product = relationship('Product')

    def __repr__(self):
        return f"<PurchaseOrderLine(id={self.id}, product_id={self.product_id}, quantity={self.quantity})>"
