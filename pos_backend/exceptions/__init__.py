"""Custom exceptions for the POS backend.

Every error carries a stable ``code`` tag so API clients can branch on the
failure kind without parsing messages.
"""
from decimal import Decimal


class PosError(Exception):
    """Base exception for all application errors."""
    code = 'InternalError'

    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['code'] = self.code
        rv['status'] = 'error'
        return rv


class BusinessLogicError(PosError):
    """Exception raised for business logic violations."""
    code = 'BusinessRule'

    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(PosError):
    """Exception raised when a resource is not found."""
    code = 'NotFound'

    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class EmptyCartError(BusinessLogicError):
    """Raised when a sale is submitted without line items."""
    code = 'EmptyCart'

    def __init__(self, message="Sale items are required"):
        super().__init__(message)


class InvalidItemError(BusinessLogicError):
    """Raised for a malformed line item or monetary field."""
    code = 'InvalidItem'

    def __init__(self, message, index=None):
        payload = {'index': index} if index is not None else None
        super().__init__(message, payload=payload)


class InvalidDiscountError(InvalidItemError):
    """Raised when the discount is negative or larger than the subtotal."""
    code = 'InvalidDiscount'


class ProductNotFoundError(NotFoundError):
    code = 'ProductNotFound'

    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found", payload={'productId': product_id})


class CustomerNotFoundError(NotFoundError):
    code = 'CustomerNotFound'

    def __init__(self, customer_id):
        self.customer_id = customer_id
        super().__init__(f"Customer {customer_id} not found", payload={'customerId': customer_id})


class SaleNotFoundError(NotFoundError):
    code = 'SaleNotFound'

    def __init__(self, sale_id):
        self.sale_id = sale_id
        super().__init__(f"Sale {sale_id} not found", payload={'saleId': sale_id})


class SupplierNotFoundError(NotFoundError):
    code = 'SupplierNotFound'

    def __init__(self, supplier_id):
        self.supplier_id = supplier_id
        super().__init__(f"Supplier {supplier_id} not found", payload={'supplierId': supplier_id})


class PurchaseOrderNotFoundError(NotFoundError):
    code = 'PurchaseOrderNotFound'

    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__(f"Purchase order {order_id} not found", payload={'purchaseOrderId': order_id})


class InsufficientStockError(BusinessLogicError):
    """Raised when an operation fails due to lack of stock."""
    code = 'InsufficientStock'

    def __init__(self, product_id, available, requested, product_name=None):
        self.product_id = product_id
        self.available = int(available)
        self.requested = int(requested)
        label = product_name or product_id
        message = (
            f"Insufficient stock for {label}: "
            f"requested {self.requested}, available {self.available}"
        )
        super().__init__(
            message,
            status_code=409,
            payload={
                'productId': product_id,
                'available': self.available,
                'requested': self.requested,
            }
        )


class CreditRequiresCustomerError(BusinessLogicError):
    """Raised when a sale leaves a balance but has no customer to carry it."""
    code = 'CreditRequiresCustomer'

    def __init__(self, balance):
        self.balance = Decimal(balance)
        super().__init__(
            'Select a customer to record credit sales',
            payload={'balance': str(self.balance)}
        )


class PersistenceError(PosError):
    """Raised when the storage transaction aborts for non-domain reasons.

    Safe to retry with the same candidate.
    """
    code = 'PersistenceFailure'

    def __init__(self, message="Storage transaction failed"):
        super().__init__(message, 503, {'retryable': True})
