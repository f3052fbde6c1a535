"""Sale model."""
from datetime import datetime, timezone
from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from pos_backend.database import Base
import enum


class PaymentStatus(str, enum.Enum):
    """Payment status for credit tracking."""
    PAID = 'Paid'
    PARTIAL = 'Partial/Credit'
    CREDIT = 'Credit'


def _utcnow():
    return datetime.now(timezone.utc)


class Sale(Base):
    """Sale (venta confirmada)."""

    __tablename__ = 'sale'
    __table_args__ = (
        CheckConstraint('total >= 0', name='sale_total_check'),
        CheckConstraint('amount_paid >= 0', name='sale_amount_paid_check'),
    )

    id = Column(String(64), primary_key=True)
    customer_id = Column(String(64), ForeignKey('customer.id'), nullable=True, index=True)
    subtotal = Column(Numeric(10, 2), nullable=False)
    discount = Column(Numeric(10, 2), nullable=False, default=0)
    tax = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String(30), nullable=False, default='Cash')
    amount_paid = Column(Numeric(10, 2), nullable=False, default=0)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PAID.value)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    # Idempotency key to prevent duplicate sales on client retries
    idempotency_key = Column(String(64), unique=True, nullable=True, index=True)

    # Relationships
    customer = relationship('Customer', back_populates='sales')
    lines = relationship(
        'SaleItem',
        back_populates='sale',
        cascade='all, delete-orphan',
        passive_deletes=True,
        order_by='SaleItem.id',
    )

    @property
    def balance(self):
        """Amount still owed: total - amount_paid."""
        return (self.total or 0) - (self.amount_paid or 0)

    def __repr__(self):
        return f"<Sale(id={self.id}, total={self.total}, status={self.payment_status})>"
