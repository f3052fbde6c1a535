"""
Sales service with transactional logic.
Turns a validated sale candidate into a persisted sale, its frozen line
items and the matching stock decrements, all in one transaction.
"""
import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, date, time, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from pos_backend.exceptions import (
    PosError, ProductNotFoundError, CustomerNotFoundError, SaleNotFoundError,
    InsufficientStockError, PersistenceError
)
from pos_backend.models import Sale, SaleItem, Customer, StockMoveType, AuditAction
from pos_backend.schemas import SaleCandidate, ValidatedLine, validate_items
from pos_backend.services.audit_service import log_action
from pos_backend.services.cache_service import invalidate_inventory_cache
from pos_backend.services.inventory_service import lock_products, decrement_quantity, record_move
from pos_backend.services.pricing import compute_totals, derive_payment
from pos_backend.utils.money import ZERO

logger = logging.getLogger(__name__)


@dataclass
class SaleOutcome:
    """Result of submitting a candidate.

    ``replayed`` is True when the idempotency key was already used and
    nothing was written; ``change_due`` is then zero.
    """
    sale: Sale
    change_due: Decimal
    replayed: bool = False


def new_sale_id() -> str:
    return f'sale-{uuid.uuid4().hex}'


def complete_sale(candidate: SaleCandidate, session) -> Sale:
    """Persist a candidate and return the sale (see ``submit_sale``)."""
    return submit_sale(candidate, session).sale


def submit_sale(candidate: SaleCandidate, session) -> SaleOutcome:
    """
    Validate a candidate and persist it as a sale.

    Steps:
    1. Replay: an already used idempotency key returns the stored sale
    2. Validate lines and totals (no database writes)
    3. Lock product rows in ascending id order and check stock
    4. Check the payment: a walk-in sale must be paid in full
    5. Check the customer exists
    6. Insert sale and items, decrement stock, log moves and audit entry
    7. Commit

    Raises:
        EmptyCartError, InvalidItemError, InvalidDiscountError:
            candidate rejected before any lock
        ProductNotFoundError, InsufficientStockError,
        CreditRequiresCustomerError, CustomerNotFoundError:
            rejected inside the transaction, nothing written
        PersistenceError: the storage transaction failed
    """
    try:
        if candidate.idempotency_key:
            existing = _find_by_idempotency_key(session, candidate.idempotency_key)
            if existing is not None:
                session.rollback()
                logger.info(f"[SALE] Replay of {existing.id} for key {candidate.idempotency_key}")
                return SaleOutcome(existing, ZERO, replayed=True)

        lines = validate_items(candidate.items)
        totals = compute_totals(lines, candidate.discount, candidate.discount_type, candidate.tax)

        requested = _requested_by_product(lines)
        products = lock_products(session, requested.keys())
        for product_id, qty in requested.items():
            product = products.get(product_id)
            if product is None:
                raise ProductNotFoundError(product_id)
            if product.quantity < qty:
                raise InsufficientStockError(product_id, product.quantity, qty, product.name)

        payment = derive_payment(
            totals.total, candidate.customer_id, candidate.amount_paid, candidate.payment_status
        )

        if candidate.customer_id is not None:
            if session.get(Customer, candidate.customer_id) is None:
                raise CustomerNotFoundError(candidate.customer_id)

        sale = Sale(
            id=new_sale_id(),
            customer_id=candidate.customer_id,
            subtotal=totals.subtotal,
            discount=totals.discount,
            tax=totals.tax,
            total=totals.total,
            payment_method=candidate.payment_method,
            amount_paid=payment.amount_paid,
            payment_status=payment.status.value,
            idempotency_key=candidate.idempotency_key,
        )
        session.add(sale)

        for line in lines:
            sale.lines.append(SaleItem(
                product_id=line.product_id,
                product_name=products[line.product_id].name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
            ))
        session.flush()

        for product_id, qty in requested.items():
            product = products[product_id]
            after = decrement_quantity(session, product, qty)
            record_move(session, product_id, StockMoveType.SALE, -qty, after, reference_id=sale.id)

        log_action(session, AuditAction.SALE_CREATED, 'sale', sale.id, {
            'total': totals.total,
            'items': len(lines),
            'paymentStatus': payment.status.value,
        })

        session.commit()

    except PosError:
        session.rollback()
        raise
    except IntegrityError as e:
        session.rollback()
        # Two submissions with the same key raced; the other one won
        if candidate.idempotency_key:
            existing = _find_by_idempotency_key(session, candidate.idempotency_key)
            session.rollback()
            if existing is not None:
                return SaleOutcome(existing, ZERO, replayed=True)
        logger.error(f"[SALE] Integrity error: {e}")
        raise PersistenceError(f'Could not save sale: {e.orig}') from e
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[SALE] Transaction failed: {e}")
        raise PersistenceError(f'Could not save sale: {e}') from e

    invalidate_inventory_cache()
    logger.info(
        f"[SALE] {sale.id} completed: total={sale.total} "
        f"status={sale.payment_status} items={len(lines)}"
    )
    return SaleOutcome(sale, payment.change_due)


def _find_by_idempotency_key(session, key: str) -> Optional[Sale]:
    return session.query(Sale).filter(Sale.idempotency_key == key).first()


def _requested_by_product(lines: List[ValidatedLine]) -> Dict[str, int]:
    """Total quantity per product; the same product may appear on several lines."""
    requested: Dict[str, int] = OrderedDict()
    for line in lines:
        requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity
    return requested


# =====================================================
# QUERIES
# =====================================================

def get_sale(session, sale_id: str) -> Sale:
    sale = session.get(Sale, sale_id)
    if sale is None:
        raise SaleNotFoundError(sale_id)
    return sale


def _day_start(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def list_sales(
    session,
    start: Optional[date] = None,
    end: Optional[date] = None,
    customer_id: Optional[str] = None,
    payment_method: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    """
    Sales newest first, with optional filters.

    ``end`` is inclusive (the whole day).

    Returns:
        dict with 'sales', 'total', 'page', 'limit', 'pages'
    """
    query = session.query(Sale)

    if start:
        query = query.filter(Sale.created_at >= _day_start(start))
    if end:
        query = query.filter(Sale.created_at < _day_start(end + timedelta(days=1)))
    if customer_id:
        query = query.filter(Sale.customer_id == customer_id)
    if payment_method:
        query = query.filter(Sale.payment_method == payment_method)

    page = max(1, int(page or 1))
    limit = max(1, min(int(limit or 10), 100))

    total = query.count()
    sales = (
        query.order_by(Sale.created_at.desc(), Sale.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        'sales': sales,
        'total': total,
        'page': page,
        'limit': limit,
        'pages': (total + limit - 1) // limit,
    }
