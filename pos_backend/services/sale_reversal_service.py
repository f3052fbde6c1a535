"""Service for deleting sales with stock reversal."""
import logging

from sqlalchemy.exc import SQLAlchemyError

from pos_backend.exceptions import PosError, SaleNotFoundError, PersistenceError
from pos_backend.models import Sale, StockMoveType, AuditAction
from pos_backend.services.audit_service import log_action
from pos_backend.services.cache_service import invalidate_inventory_cache
from pos_backend.services.inventory_service import lock_products, increment_quantity, record_move

logger = logging.getLogger(__name__)


def reverse_sale(sale_id: str, session) -> dict:
    """
    Delete a sale and put its units back on the shelf.

    Steps:
    1. Lock the sale row, SaleNotFoundError if absent
    2. Lock the products of its lines (ascending id)
    3. Add each line quantity back and log a REVERSAL stock move
    4. Audit, delete the sale (items cascade) and commit

    Lines whose product no longer exists are skipped and reported.

    Returns:
        dict with 'saleId', 'restored' ({productId: qty, quantityAfter})
        and 'skipped' (product ids)
    """
    try:
        sale = (
            session.query(Sale)
            .filter(Sale.id == sale_id)
            .populate_existing()
            .with_for_update()
            .first()
        )
        if sale is None:
            raise SaleNotFoundError(sale_id)

        quantities = {}
        for line in sale.lines:
            quantities[line.product_id] = quantities.get(line.product_id, 0) + line.quantity

        products = lock_products(session, quantities.keys())

        restored = []
        skipped = []
        for product_id in sorted(quantities):
            qty = quantities[product_id]
            product = products.get(product_id)
            if product is None:
                skipped.append(product_id)
                continue
            after = increment_quantity(session, product, qty)
            record_move(session, product_id, StockMoveType.REVERSAL, qty, after,
                        reference_id=sale.id, notes=f'Reversal of {sale.id}')
            restored.append({'productId': product_id, 'quantity': qty, 'quantityAfter': after})

        log_action(session, AuditAction.SALE_REVERSED, 'sale', sale.id, {
            'total': sale.total,
            'restored': len(restored),
            'skipped': skipped,
        })

        session.delete(sale)
        session.commit()

    except PosError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[SALE] Reversal of {sale_id} failed: {e}")
        raise PersistenceError(f'Could not reverse sale: {e}') from e

    invalidate_inventory_cache()
    if skipped:
        logger.warning(f"[SALE] {sale_id} reversed; products no longer in catalog: {skipped}")
    else:
        logger.info(f"[SALE] {sale_id} reversed ({len(restored)} products restocked)")

    return {
        'saleId': sale_id,
        'restored': restored,
        'skipped': skipped,
    }
