"""
Purchase order service.

An order is a priced list of products expected from one supplier. Stock only
moves when the order is received: every line goes through the same RECEIPT
path as a manual receipt, in one transaction.
"""
import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from pos_backend.exceptions import (
    PosError, BusinessLogicError, InvalidItemError, ProductNotFoundError,
    PurchaseOrderNotFoundError, SupplierNotFoundError, PersistenceError
)
from pos_backend.models import (
    Product, Supplier, PurchaseOrder, PurchaseOrderLine, PurchaseOrderStatus, AuditAction
)
from pos_backend.services.audit_service import log_action
from pos_backend.services.cache_service import invalidate_inventory_cache
from pos_backend.services.inventory_service import lock_products, apply_receipt
from pos_backend.utils.money import ZERO, parse_decimal, parse_quantity, quantize_money

logger = logging.getLogger(__name__)


def new_order_id() -> str:
    return f'po-{uuid.uuid4().hex[:16]}'


def parse_status(raw) -> Optional[PurchaseOrderStatus]:
    if raw is None or raw == '':
        return None
    try:
        return PurchaseOrderStatus(str(raw).strip().upper())
    except ValueError:
        raise InvalidItemError("status must be 'PENDING', 'RECEIVED' or 'CANCELLED'")


def _parse_date(raw, field: str) -> Optional[date]:
    if raw in (None, ''):
        return None
    try:
        return date.fromisoformat(str(raw)[:10])
    except ValueError:
        raise InvalidItemError(f'{field} must be an ISO date (YYYY-MM-DD)')


def _build_lines(session, items) -> List[PurchaseOrderLine]:
    """
    Validate order lines and price them.

    Each item needs productId, quantity (positive integer) and unitCost
    (non-negative). ``unitPrice`` is accepted as an alias of unitCost.
    """
    if not items or not isinstance(items, list):
        raise InvalidItemError('items are required')

    lines = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise InvalidItemError('Each item must be an object', index=index)
        product_id = item.get('productId') or item.get('product_id')
        if not product_id:
            raise InvalidItemError('Item is missing productId', index=index)
        if session.get(Product, product_id) is None:
            raise ProductNotFoundError(product_id)

        raw_cost = item.get('unitCost', item.get('unit_cost', item.get('unitPrice')))
        try:
            quantity = parse_quantity(item.get('quantity'))
            unit_cost = parse_decimal(raw_cost, 'unitCost')
        except ValueError as e:
            raise InvalidItemError(f'Item {product_id}: {e}', index=index)
        if unit_cost is None:
            raise InvalidItemError(f'Item {product_id}: unitCost is required', index=index)

        unit_cost = quantize_money(unit_cost)
        lines.append(PurchaseOrderLine(
            product_id=product_id,
            quantity=quantity,
            unit_cost=unit_cost,
            line_total=quantize_money(unit_cost * quantity),
        ))
    return lines


def _order_total(lines: List[PurchaseOrderLine]) -> Decimal:
    return quantize_money(sum((line.line_total for line in lines), ZERO))


def _lock_order(session, order_id: str) -> PurchaseOrder:
    order = (
        session.query(PurchaseOrder)
        .filter(PurchaseOrder.id == order_id)
        .populate_existing()
        .with_for_update()
        .first()
    )
    if order is None:
        raise PurchaseOrderNotFoundError(order_id)
    return order


def _require_pending(order: PurchaseOrder, verb: str):
    if order.status != PurchaseOrderStatus.PENDING:
        raise BusinessLogicError(
            f'Purchase order {order.id} is {order.status.value} and cannot be {verb}',
            status_code=409,
            payload={'purchaseOrderId': order.id, 'orderStatus': order.status.value},
        )


# =====================================================
# COMMANDS
# =====================================================

def create_purchase_order(session, data: dict) -> PurchaseOrder:
    """
    Create a PENDING purchase order.

    Args:
        session: SQLAlchemy session
        data: dict with
            - supplierId: str (required)
            - items: list of {productId, quantity, unitCost}
            - orderDate, expectedDate: ISO dates (orderDate defaults to today)
            - notes: str

    Returns:
        The new PurchaseOrder; total is the sum of line totals
    """
    supplier_id = data.get('supplierId') or data.get('supplier_id')
    if not supplier_id:
        raise InvalidItemError('supplierId is required')

    try:
        if session.get(Supplier, supplier_id) is None:
            raise SupplierNotFoundError(supplier_id)

        lines = _build_lines(session, data.get('items'))
        order = PurchaseOrder(
            id=data.get('id') or new_order_id(),
            supplier_id=supplier_id,
            status=PurchaseOrderStatus.PENDING,
            order_date=_parse_date(data.get('orderDate'), 'orderDate') or date.today(),
            expected_date=_parse_date(data.get('expectedDate'), 'expectedDate'),
            total_amount=_order_total(lines),
            notes=data.get('notes'),
        )
        order.lines.extend(lines)
        session.add(order)
        session.flush()

        log_action(session, AuditAction.PURCHASE_ORDER_CREATED, 'purchase_order', order.id, {
            'supplierId': supplier_id,
            'total': order.total_amount,
            'items': len(lines),
        })
        session.commit()
    except PosError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[PURCHASE] Create failed: {e}")
        raise PersistenceError(f'Could not create purchase order: {e}') from e

    logger.info(f"[PURCHASE] Order {order.id} created: total={order.total_amount}")
    return order


def update_purchase_order(session, order_id: str, data: dict) -> PurchaseOrder:
    """
    Edit a PENDING order: dates, notes, items (replaced as a whole) or
    ``status: CANCELLED``. Receiving goes through ``receive_purchase_order``.
    """
    status = parse_status(data.get('status'))
    if status == PurchaseOrderStatus.RECEIVED:
        raise BusinessLogicError('Use the receive endpoint to receive a purchase order')

    try:
        order = _lock_order(session, order_id)
        _require_pending(order, 'edited')

        changes = {}
        if 'orderDate' in data:
            order.order_date = _parse_date(data['orderDate'], 'orderDate') or order.order_date
            changes['orderDate'] = order.order_date
        if 'expectedDate' in data:
            order.expected_date = _parse_date(data['expectedDate'], 'expectedDate')
            changes['expectedDate'] = order.expected_date
        if 'notes' in data:
            order.notes = data['notes']
            changes['notes'] = order.notes
        if 'items' in data:
            lines = _build_lines(session, data['items'])
            order.lines = lines
            order.total_amount = _order_total(lines)
            changes['total'] = order.total_amount
        if status == PurchaseOrderStatus.CANCELLED:
            order.status = status
            changes['status'] = status.value

        if changes:
            log_action(session, AuditAction.PURCHASE_ORDER_UPDATED, 'purchase_order', order.id, changes)
        session.commit()
    except PosError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[PURCHASE] Update failed for {order_id}: {e}")
        raise PersistenceError(f'Could not update purchase order: {e}') from e

    return order


def receive_purchase_order(session, order_id: str) -> PurchaseOrder:
    """
    Receive a PENDING order: add every line to stock and mark it RECEIVED.

    Products are locked in ascending id order, as for a sale. Each line logs a
    RECEIPT move referencing the order id. All or nothing.
    """
    try:
        order = _lock_order(session, order_id)
        _require_pending(order, 'received')

        products = lock_products(session, [line.product_id for line in order.lines])
        for line in order.lines:
            product = products.get(line.product_id)
            if product is None:
                raise ProductNotFoundError(line.product_id)
            apply_receipt(session, product, line.quantity, reference=order.id,
                          notes=f'Purchase order {order.id}')

        order.status = PurchaseOrderStatus.RECEIVED
        order.received_at = datetime.now(timezone.utc)
        log_action(session, AuditAction.PURCHASE_ORDER_RECEIVED, 'purchase_order', order.id, {
            'items': len(order.lines),
            'units': sum(line.quantity for line in order.lines),
        })
        session.commit()
    except PosError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[PURCHASE] Receipt failed for {order_id}: {e}")
        raise PersistenceError(f'Could not receive purchase order: {e}') from e

    invalidate_inventory_cache()
    logger.info(f"[PURCHASE] Order {order_id} received")
    return order


def delete_purchase_order(session, order_id: str) -> None:
    """Delete an order whose stock has not been received."""
    try:
        order = _lock_order(session, order_id)
        if order.status == PurchaseOrderStatus.RECEIVED:
            raise BusinessLogicError(
                f'Purchase order {order_id} was received and cannot be deleted',
                status_code=409,
                payload={'purchaseOrderId': order_id},
            )
        log_action(session, AuditAction.PURCHASE_ORDER_DELETED, 'purchase_order', order.id,
                   {'status': order.status.value})
        session.delete(order)
        session.commit()
    except PosError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceError(f'Could not delete purchase order: {e}') from e

    logger.info(f"[PURCHASE] Order {order_id} deleted")


# =====================================================
# QUERIES
# =====================================================

def get_purchase_order(session, order_id: str) -> PurchaseOrder:
    order = session.get(PurchaseOrder, order_id)
    if order is None:
        raise PurchaseOrderNotFoundError(order_id)
    return order


def _filtered(query, supplier_id=None, status=None, start=None, end=None):
    if supplier_id:
        query = query.filter(PurchaseOrder.supplier_id == supplier_id)
    if status:
        query = query.filter(PurchaseOrder.status == status)
    if start:
        query = query.filter(PurchaseOrder.order_date >= start)
    if end:
        query = query.filter(PurchaseOrder.order_date <= end)
    return query


def list_purchase_orders(
    session,
    supplier_id: Optional[str] = None,
    status: Optional[PurchaseOrderStatus] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    """Orders newest first (order date, then creation)."""
    query = _filtered(session.query(PurchaseOrder), supplier_id, status, start, end)

    page = max(1, int(page or 1))
    limit = max(1, min(int(limit or 10), 100))
    total = query.count()
    orders = (
        query.order_by(PurchaseOrder.order_date.desc(), PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        'orders': orders,
        'total': total,
        'page': page,
        'limit': limit,
        'pages': (total + limit - 1) // limit,
    }


def get_purchase_order_stats(session, start: Optional[date] = None, end: Optional[date] = None) -> dict:
    """
    Order counts per status and the total ordered value.

    Cancelled orders are counted but left out of ``totalValue``.
    """
    rows = (
        _filtered(
            session.query(PurchaseOrder.status, func.count(PurchaseOrder.id), func.sum(PurchaseOrder.total_amount)),
            start=start, end=end,
        )
        .group_by(PurchaseOrder.status)
        .all()
    )
    counts = {status: 0 for status in PurchaseOrderStatus}
    total_value = ZERO
    for status, count, value in rows:
        counts[status] = count
        if status != PurchaseOrderStatus.CANCELLED:
            total_value += Decimal(str(value or 0))

    return {
        'totalOrders': sum(counts.values()),
        'pendingOrders': counts[PurchaseOrderStatus.PENDING],
        'receivedOrders': counts[PurchaseOrderStatus.RECEIVED],
        'cancelledOrders': counts[PurchaseOrderStatus.CANCELLED],
        'totalValue': quantize_money(total_value),
    }
