"""
Inventory service: row locking, guarded quantity changes, the stock move
log and the low-stock / near-expiry advisory.
"""
import logging
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from pos_backend.exceptions import (
    InsufficientStockError, InvalidItemError, PersistenceError, ProductNotFoundError
)
from pos_backend.models import Product, StockMove, StockMoveType, AuditAction
from pos_backend.services.audit_service import log_action
from pos_backend.services.cache_service import get_cache, invalidate_inventory_cache, inventory_ttl
from pos_backend.serializers import product_to_dict
from pos_backend.utils.money import parse_quantity

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_HORIZON_DAYS = 30


# =====================================================
# LOCKING AND GUARDED UPDATES
# =====================================================

def lock_products(session, product_ids: Iterable[str]) -> Dict[str, Product]:
    """
    Lock product rows FOR UPDATE and return them with fresh quantities.

    Rows are locked in ascending id order so that two sales touching the same
    products cannot deadlock. On SQLite the lock comes from BEGIN IMMEDIATE.
    """
    ids = sorted(set(product_ids))
    if not ids:
        return {}

    products = (
        session.query(Product)
        .filter(Product.id.in_(ids))
        .order_by(Product.id)
        .populate_existing()
        .with_for_update()
        .all()
    )
    return {p.id: p for p in products}


def decrement_quantity(session, product: Product, amount: int) -> int:
    """
    Take ``amount`` units out of stock; returns the new quantity.

    The WHERE clause re-checks availability in the same statement, so the
    quantity can never go below zero even if the row lock was not honored.
    """
    result = session.execute(
        update(Product)
        .where(Product.id == product.id, Product.quantity >= amount)
        .values(quantity=Product.quantity - amount)
        .execution_options(synchronize_session=False)
    )
    session.refresh(product, attribute_names=['quantity'])
    if result.rowcount != 1:
        raise InsufficientStockError(product.id, product.quantity, amount, product.name)
    return product.quantity


def increment_quantity(session, product: Product, amount: int) -> int:
    session.execute(
        update(Product)
        .where(Product.id == product.id)
        .values(quantity=Product.quantity + amount)
        .execution_options(synchronize_session=False)
    )
    session.refresh(product, attribute_names=['quantity'])
    return product.quantity


def record_move(
    session,
    product_id: str,
    move_type: StockMoveType,
    qty_delta: int,
    quantity_after: int,
    reference_id: Optional[str] = None,
    notes: Optional[str] = None,
) -> StockMove:
    move = StockMove(
        product_id=product_id,
        move_type=move_type,
        qty_delta=qty_delta,
        quantity_after=quantity_after,
        reference_id=reference_id,
        notes=notes,
    )
    session.add(move)
    return move


def get_moves(session, product_id: str, limit: int = 50) -> List[StockMove]:
    return (
        session.query(StockMove)
        .filter(StockMove.product_id == product_id)
        .order_by(StockMove.id.desc())
        .limit(limit)
        .all()
    )


# =====================================================
# MANUAL STOCK CHANGES
# =====================================================

def _lock_one(session, product_id: str) -> Product:
    product = lock_products(session, [product_id]).get(product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def adjust_stock(session, product_id: str, new_quantity, notes: str = None) -> Product:
    """Set the on-hand quantity to an absolute count (stock take)."""
    if isinstance(new_quantity, bool):
        raise InvalidItemError('quantity must be a non-negative integer')
    try:
        target = int(new_quantity)
    except (TypeError, ValueError):
        raise InvalidItemError('quantity must be a non-negative integer')
    if target < 0 or str(new_quantity).strip() not in (str(target), f'{target}.0'):
        raise InvalidItemError('quantity must be a non-negative integer')

    try:
        product = _lock_one(session, product_id)
        previous = product.quantity
        product.quantity = target
        record_move(
            session, product.id, StockMoveType.ADJUSTMENT,
            target - previous, target, notes=notes or 'Manual adjustment'
        )
        log_action(session, AuditAction.STOCK_ADJUSTED, 'product', product.id,
                   {'from': previous, 'to': target})
        session.commit()
    except (ProductNotFoundError, InvalidItemError):
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[STOCK] Adjustment failed for {product_id}: {e}")
        raise PersistenceError(f'Could not adjust stock: {e}') from e

    invalidate_inventory_cache()
    logger.info(f"[STOCK] {product_id} adjusted {previous} -> {target}")
    return product


def apply_receipt(session, product: Product, qty: int, reference: str = None, notes: str = None) -> int:
    """Add units to a locked product and log a RECEIPT move. Does not commit."""
    after = increment_quantity(session, product, qty)
    record_move(
        session, product.id, StockMoveType.RECEIPT, qty, after,
        reference_id=reference, notes=notes or 'Stock received'
    )
    return after


def receive_stock(session, product_id: str, quantity, reference: str = None, notes: str = None) -> Product:
    """Add received units without a purchase order."""
    try:
        qty = parse_quantity(quantity)
    except ValueError as e:
        raise InvalidItemError(str(e))

    try:
        product = _lock_one(session, product_id)
        after = apply_receipt(session, product, qty, reference, notes)
        session.commit()
    except ProductNotFoundError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[STOCK] Receipt failed for {product_id}: {e}")
        raise PersistenceError(f'Could not receive stock: {e}') from e

    invalidate_inventory_cache()
    logger.info(f"[STOCK] {product_id} received {qty} (now {after})")
    return product


# =====================================================
# ADVISORY
# =====================================================

def _compute_stock_alerts(session, horizon_days: int, today: date) -> dict:
    products = session.query(Product).order_by(Product.quantity.asc(), Product.name.asc()).all()
    horizon_end = today + timedelta(days=horizon_days)

    low_stock = [p for p in products if p.is_low_stock]
    out_of_stock = [p for p in products if p.is_out_of_stock]
    near_expiry = sorted(
        (p for p in products if p.expiry_date and today < p.expiry_date <= horizon_end),
        key=lambda p: p.expiry_date,
    )

    return {
        'lowStock': [product_to_dict(p) for p in low_stock],
        'outOfStock': [product_to_dict(p) for p in out_of_stock],
        'nearExpiry': [
            dict(product_to_dict(p), daysUntilExpiry=(p.expiry_date - today).days)
            for p in near_expiry
        ],
    }


def get_stock_alerts(session, horizon_days: int = DEFAULT_EXPIRY_HORIZON_DAYS, today: Optional[date] = None) -> dict:
    """
    Products needing attention.

    Returns:
        dict with keys:
            - lowStock: quantity <= the product's low stock threshold
            - outOfStock: quantity == 0
            - nearExpiry: expiry date within (today, today + horizon_days]
    """
    today = today or date.today()
    cache_key = f'alerts:{today.isoformat()}:{horizon_days}'
    return get_cache().memoize(
        'inventory',
        cache_key,
        lambda: _compute_stock_alerts(session, horizon_days, today),
        ttl=inventory_ttl(),
    )
