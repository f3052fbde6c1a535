"""Models package - exports all SQLAlchemy models."""
from pos_backend.models.supplier import Supplier
from pos_backend.models.product import Product
from pos_backend.models.customer import Customer
from pos_backend.models.sale import Sale, PaymentStatus
from pos_backend.models.sale_item import SaleItem
from pos_backend.models.stock_move import StockMove, StockMoveType
from pos_backend.models.purchase_order import PurchaseOrder, PurchaseOrderLine, PurchaseOrderStatus
from pos_backend.models.audit_log import AuditLog, AuditAction

__all__ = [
    'Supplier', 'Product', 'Customer',
    'Sale', 'PaymentStatus', 'SaleItem',
    'StockMove', 'StockMoveType',
    'PurchaseOrder', 'PurchaseOrderLine', 'PurchaseOrderStatus',
    'AuditLog', 'AuditAction',
]
