"""
Catalog service: products and suppliers.
"""
import logging
import uuid
from datetime import date
from typing import Optional

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from pos_backend.exceptions import (
    PosError, BusinessLogicError, InvalidItemError, ProductNotFoundError, SupplierNotFoundError,
    PersistenceError
)
from pos_backend.models import Product, Supplier, SaleItem, PurchaseOrder, PurchaseOrderLine, StockMoveType, AuditAction
from pos_backend.services.audit_service import log_action
from pos_backend.services.cache_service import invalidate_inventory_cache
from pos_backend.services.inventory_service import record_move
from pos_backend.utils.money import parse_decimal, quantize_money

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = {
    'name': 'name',
    'category': 'category',
    'barcode': 'barcode',
    'buyPrice': 'buy_price',
    'sellPrice': 'sell_price',
    'lowStockThreshold': 'low_stock_threshold',
    'expiryDate': 'expiry_date',
    'supplierId': 'supplier_id',
}


def _new_id(prefix: str) -> str:
    return f'{prefix}-{uuid.uuid4().hex[:16]}'


def _non_negative_int(value, field: str) -> int:
    if isinstance(value, bool):
        raise InvalidItemError(f'{field} must be a non-negative integer')
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidItemError(f'{field} must be a non-negative integer')
    if number < 0 or number != float(value):
        raise InvalidItemError(f'{field} must be a non-negative integer')
    return number


def _parse_product_fields(session, data: dict) -> dict:
    """Map API keys (camelCase or snake_case) to validated column values."""
    values = {}
    for api_key, column in PRODUCT_FIELDS.items():
        if api_key in data:
            raw = data[api_key]
        elif column in data:
            raw = data[column]
        else:
            continue

        if column in ('name', 'category'):
            raw = (raw or '').strip() if isinstance(raw, str) else raw
            if not raw:
                raise InvalidItemError(f'{api_key} is required')
        elif column == 'barcode':
            if raw is not None:
                raw = str(raw).strip() or None
        elif column in ('buy_price', 'sell_price'):
            try:
                parsed = parse_decimal(raw, api_key)
            except ValueError as e:
                raise InvalidItemError(str(e))
            raw = quantize_money(parsed) if parsed is not None else quantize_money(0)
        elif column == 'low_stock_threshold':
            raw = _non_negative_int(raw, api_key)
        elif column == 'expiry_date':
            if raw in (None, ''):
                raw = None
            else:
                try:
                    raw = date.fromisoformat(str(raw)[:10])
                except ValueError:
                    raise InvalidItemError('expiryDate must be an ISO date (YYYY-MM-DD)')
        elif column == 'supplier_id':
            raw = raw or None
            if raw is not None and session.get(Supplier, raw) is None:
                raise SupplierNotFoundError(raw)

        values[column] = raw
    return values


# =====================================================
# PRODUCTS
# =====================================================

def create_product(session, data: dict) -> Product:
    """
    Create a product. ``quantity`` is the opening stock and is logged as an
    ADJUSTMENT move.
    """
    values = _parse_product_fields(session, data)
    for required in ('name', 'category'):
        if required not in values:
            raise InvalidItemError(f'{required} is required')
    opening = _non_negative_int(data.get('quantity', 0) or 0, 'quantity')

    values.setdefault('low_stock_threshold', current_app.config.get('LOW_STOCK_THRESHOLD', 5))

    product = Product(
        id=(data.get('id') or _new_id('prod')),
        quantity=opening,
        **values
    )

    try:
        session.add(product)
        session.flush()
        if opening:
            record_move(session, product.id, StockMoveType.ADJUSTMENT, opening, opening,
                        notes='Opening stock')
        log_action(session, AuditAction.PRODUCT_CREATED, 'product', product.id,
                   {'name': product.name, 'quantity': opening})
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise BusinessLogicError(
            'A product with this id or barcode already exists', status_code=409
        ) from e
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceError(f'Could not create product: {e}') from e

    invalidate_inventory_cache()
    logger.info(f"[CATALOG] Product {product.id} created")
    return product


def get_product(session, product_id: str) -> Product:
    product = session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def update_product(session, product_id: str, data: dict) -> Product:
    """
    Update catalog fields. Quantity is not editable here (use stock
    adjustments); price changes never touch recorded sale items.
    """
    if 'quantity' in data:
        raise BusinessLogicError('Use the stock endpoint to change quantity')

    try:
        product = get_product(session, product_id)
        values = _parse_product_fields(session, data)
        changes = {}
        for column, value in values.items():
            if getattr(product, column) != value:
                changes[column] = {'from': getattr(product, column), 'to': value}
                setattr(product, column, value)

        if changes:
            log_action(session, AuditAction.PRODUCT_UPDATED, 'product', product.id, changes)
        session.commit()
    except PosError:
        session.rollback()
        raise
    except IntegrityError as e:
        session.rollback()
        raise BusinessLogicError('A product with this barcode already exists', status_code=409) from e
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceError(f'Could not update product: {e}') from e

    invalidate_inventory_cache()
    return product


def delete_product(session, product_id: str) -> None:
    """Delete a product that no sale or purchase order refers to."""
    try:
        product = get_product(session, product_id)
        referenced = session.query(SaleItem.id).filter(SaleItem.product_id == product_id).first()
        if referenced:
            raise BusinessLogicError(
                f'Product {product_id} appears on recorded sales and cannot be deleted',
                status_code=409
            )
        if session.query(PurchaseOrderLine.id).filter(PurchaseOrderLine.product_id == product_id).first():
            raise BusinessLogicError(
                f'Product {product_id} appears on purchase orders and cannot be deleted',
                status_code=409
            )
        log_action(session, AuditAction.PRODUCT_DELETED, 'product', product.id, {'name': product.name})
        session.delete(product)
        session.commit()
    except PosError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceError(f'Could not delete product: {e}') from e

    invalidate_inventory_cache()
    logger.info(f"[CATALOG] Product {product_id} deleted")


def list_products(
    session,
    category: Optional[str] = None,
    supplier_id: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
) -> dict:
    """Products ordered by name with optional filters and pagination."""
    query = session.query(Product)

    if category:
        query = query.filter(Product.category == category)
    if supplier_id:
        query = query.filter(Product.supplier_id == supplier_id)
    if search:
        pattern = f'%{search.strip()}%'
        query = query.filter(or_(
            Product.name.ilike(pattern),
            Product.barcode.ilike(pattern),
            Product.category.ilike(pattern),
        ))

    page = max(1, int(page or 1))
    limit = max(1, min(int(limit or 50), 200))
    total = query.count()
    products = query.order_by(Product.name.asc()).offset((page - 1) * limit).limit(limit).all()

    return {
        'products': products,
        'total': total,
        'page': page,
        'limit': limit,
        'pages': (total + limit - 1) // limit,
    }


# =====================================================
# SUPPLIERS
# =====================================================

def create_supplier(session, data: dict) -> Supplier:
    name = (data.get('name') or '').strip()
    if not name:
        raise InvalidItemError('name is required')

    supplier = Supplier(
        id=data.get('id') or _new_id('supp'),
        name=name,
        phone=data.get('phone'),
        email=data.get('email'),
        address=data.get('address'),
    )
    try:
        session.add(supplier)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceError(f'Could not create supplier: {e}') from e
    return supplier


def list_suppliers(session):
    return session.query(Supplier).order_by(Supplier.name.asc()).all()


def get_supplier(session, supplier_id: str) -> Supplier:
    supplier = session.get(Supplier, supplier_id)
    if supplier is None:
        raise SupplierNotFoundError(supplier_id)
    return supplier


def update_supplier(session, supplier_id: str, data: dict) -> Supplier:
    """Update name and contact details."""
    try:
        supplier = get_supplier(session, supplier_id)
        changes = {}
        for field in ('name', 'phone', 'email', 'address'):
            if field not in data:
                continue
            value = data[field]
            if field == 'name':
                value = (value or '').strip()
                if not value:
                    raise InvalidItemError('name is required')
            if getattr(supplier, field) != value:
                changes[field] = {'from': getattr(supplier, field), 'to': value}
                setattr(supplier, field, value)

        if changes:
            log_action(session, AuditAction.SUPPLIER_UPDATED, 'supplier', supplier.id, changes)
        session.commit()
    except PosError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceError(f'Could not update supplier: {e}') from e
    return supplier


def delete_supplier(session, supplier_id: str) -> None:
    """Delete a supplier with no products and no purchase orders."""
    try:
        supplier = get_supplier(session, supplier_id)
        has_products = session.query(Product.id).filter(Product.supplier_id == supplier_id).first()
        has_orders = session.query(PurchaseOrder.id).filter(PurchaseOrder.supplier_id == supplier_id).first()
        if has_products or has_orders:
            raise BusinessLogicError(
                f'Supplier {supplier_id} has products or purchase orders and cannot be deleted',
                status_code=409
            )
        log_action(session, AuditAction.SUPPLIER_DELETED, 'supplier', supplier.id, {'name': supplier.name})
        session.delete(supplier)
        session.commit()
    except PosError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceError(f'Could not delete supplier: {e}') from e

    logger.info(f"[CATALOG] Supplier {supplier_id} deleted")


def get_supplier_products(session, supplier_id: str):
    get_supplier(session, supplier_id)
    return (
        session.query(Product)
        .filter(Product.supplier_id == supplier_id)
        .order_by(Product.name.asc())
        .all()
    )
