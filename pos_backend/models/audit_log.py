"""
Audit Log model for tracking critical actions in the system.
"""
from sqlalchemy import Column, BigInteger, Integer, String, Text, DateTime, Enum as SQLEnum
from datetime import datetime, timezone
import enum

from pos_backend.database import Base


class AuditAction(enum.Enum):
    """Enumeration of auditable actions."""
    # Product management
    PRODUCT_CREATED = "PRODUCT_CREATED"
    PRODUCT_UPDATED = "PRODUCT_UPDATED"
    PRODUCT_DELETED = "PRODUCT_DELETED"
    STOCK_ADJUSTED = "STOCK_ADJUSTED"

    # Customers and suppliers
    CUSTOMER_UPDATED = "CUSTOMER_UPDATED"
    CUSTOMER_DELETED = "CUSTOMER_DELETED"
    SUPPLIER_UPDATED = "SUPPLIER_UPDATED"
    SUPPLIER_DELETED = "SUPPLIER_DELETED"

    # Purchase orders
    PURCHASE_ORDER_CREATED = "PURCHASE_ORDER_CREATED"
    PURCHASE_ORDER_UPDATED = "PURCHASE_ORDER_UPDATED"
    PURCHASE_ORDER_RECEIVED = "PURCHASE_ORDER_RECEIVED"
    PURCHASE_ORDER_DELETED = "PURCHASE_ORDER_DELETED"

    # Sales
    SALE_CREATED = "SALE_CREATED"
    SALE_REVERSED = "SALE_REVERSED"
    SALE_PAYMENT_RECORDED = "SALE_PAYMENT_RECORDED"


class AuditLog(Base):
    """Audit log for tracking catalog and sale mutations."""
    __tablename__ = 'audit_log'

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    action = Column(SQLEnum(AuditAction, name='audit_action'), nullable=False, index=True)
    resource_type = Column(String(50))  # e.g., 'product', 'sale'
    resource_id = Column(String(64))  # ID of the affected resource
    details = Column(Text)  # JSON with additional details
    ip_address = Column(String(45))  # IPv4 or IPv6
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog {self.action.value} on {self.resource_type} {self.resource_id}>"
