"""Recording later payments against credit sales."""
import logging

from sqlalchemy.exc import SQLAlchemyError

from pos_backend.exceptions import (
    PosError, BusinessLogicError, InvalidItemError, PersistenceError, SaleNotFoundError
)
from pos_backend.models import Sale, AuditAction
from pos_backend.services.audit_service import log_action
from pos_backend.services.pricing import status_for_amount
from pos_backend.utils.money import parse_decimal, quantize_money

logger = logging.getLogger(__name__)


def record_payment(sale_id: str, amount, session) -> Sale:
    """
    Apply a payment to an outstanding sale balance.

    Only ``amount_paid`` and ``payment_status`` change; items and totals of
    a persisted sale are never rewritten.
    """
    try:
        value = parse_decimal(amount, 'amount')
    except ValueError as e:
        raise InvalidItemError(str(e))
    if value is None or quantize_money(value) <= 0:
        raise InvalidItemError('amount must be greater than 0')
    value = quantize_money(value)

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

        outstanding = quantize_money(sale.balance)
        if outstanding <= 0:
            raise BusinessLogicError(f'Sale {sale_id} is already paid')
        if value > outstanding:
            raise BusinessLogicError(
                f'Payment {value} exceeds outstanding balance {outstanding}',
                payload={'balance': str(outstanding)}
            )

        sale.amount_paid = quantize_money(sale.amount_paid) + value
        sale.payment_status = status_for_amount(quantize_money(sale.total), sale.amount_paid).value

        log_action(session, AuditAction.SALE_PAYMENT_RECORDED, 'sale', sale.id, {
            'amount': value,
            'balance': quantize_money(sale.balance),
        })
        session.commit()

    except PosError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[SALE] Payment on {sale_id} failed: {e}")
        raise PersistenceError(f'Could not record payment: {e}') from e

    logger.info(f"[SALE] Payment {value} on {sale_id}, status={sale.payment_status}")
    return sale
