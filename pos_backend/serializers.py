"""JSON shapes returned by the API. Money goes out as two-place strings."""
import json

from pos_backend.utils.money import money_str


def _iso(value):
    return value.isoformat() if value is not None else None


def supplier_to_dict(supplier):
    return {
        'id': supplier.id,
        'name': supplier.name,
        'phone': supplier.phone,
        'email': supplier.email,
        'address': supplier.address,
    }


def product_to_dict(product):
    return {
        'id': product.id,
        'name': product.name,
        'category': product.category,
        'barcode': product.barcode,
        'quantity': product.quantity,
        'buyPrice': money_str(product.buy_price),
        'sellPrice': money_str(product.sell_price),
        'lowStockThreshold': product.low_stock_threshold,
        'expiryDate': _iso(product.expiry_date),
        'supplierId': product.supplier_id,
    }


def sale_item_to_dict(item):
    return {
        'productId': item.product_id,
        'productName': item.product_name,
        'quantity': item.quantity,
        'unitPrice': money_str(item.unit_price),
        'lineTotal': money_str(item.line_total),
    }


def sale_to_dict(sale, change_due=None):
    data = {
        'id': sale.id,
        'customerId': sale.customer_id,
        'items': [sale_item_to_dict(item) for item in sale.lines],
        'subtotal': money_str(sale.subtotal),
        'discount': money_str(sale.discount),
        'tax': money_str(sale.tax),
        'total': money_str(sale.total),
        'paymentMethod': sale.payment_method,
        'amountPaid': money_str(sale.amount_paid),
        'balance': money_str(sale.balance),
        'paymentStatus': sale.payment_status,
        'createdAt': _iso(sale.created_at),
    }
    if change_due is not None:
        data['changeDue'] = money_str(change_due)
    return data


def customer_to_dict(customer, with_balance=False):
    data = {
        'id': customer.id,
        'name': customer.name,
        'phone': customer.phone,
        'email': customer.email,
        'address': customer.address,
    }
    if with_balance:
        data['balance'] = money_str(customer.balance)
    return data


def stock_move_to_dict(move):
    return {
        'id': move.id,
        'productId': move.product_id,
        'type': move.move_type.value,
        'qtyDelta': move.qty_delta,
        'quantityAfter': move.quantity_after,
        'referenceId': move.reference_id,
        'notes': move.notes,
        'createdAt': _iso(move.created_at),
    }


def purchase_order_line_to_dict(line):
    return {
        'productId': line.product_id,
        'productName': line.product.name if line.product is not None else None,
        'quantity': line.quantity,
        'unitCost': money_str(line.unit_cost),
        'lineTotal': money_str(line.line_total),
    }


def purchase_order_to_dict(order):
    return {
        'id': order.id,
        'supplierId': order.supplier_id,
        'supplierName': order.supplier.name if order.supplier is not None else None,
        'status': order.status.value,
        'orderDate': _iso(order.order_date),
        'expectedDate': _iso(order.expected_date),
        'receivedAt': _iso(order.received_at),
        'totalAmount': money_str(order.total_amount),
        'notes': order.notes,
        'items': [purchase_order_line_to_dict(line) for line in order.lines],
    }


def audit_log_to_dict(entry):
    return {
        'id': entry.id,
        'action': entry.action.value,
        'resourceType': entry.resource_type,
        'resourceId': entry.resource_id,
        'details': json.loads(entry.details) if entry.details else None,
        'createdAt': _iso(entry.created_at),
    }
