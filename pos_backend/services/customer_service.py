"""Customer service. Customers are required to carry credit balances."""
import logging
import uuid
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from pos_backend.exceptions import (
    PosError, BusinessLogicError, CustomerNotFoundError, InvalidItemError, PersistenceError
)
from pos_backend.models import Customer, Sale, AuditAction
from pos_backend.services.audit_service import log_action
from pos_backend.services.sales_service import list_sales

logger = logging.getLogger(__name__)


def create_customer(session, data: dict) -> Customer:
    """
    Create a customer.

    Args:
        session: SQLAlchemy session
        data: dict with 'name' (required), 'phone', 'email', 'address'
              and optionally a client supplied 'id'

    Returns:
        The new Customer
    """
    name = (data.get('name') or '').strip()
    if not name:
        raise InvalidItemError('name is required')

    customer = Customer(
        id=data.get('id') or f'cust-{uuid.uuid4().hex[:16]}',
        name=name,
        phone=data.get('phone'),
        email=data.get('email'),
        address=data.get('address'),
    )
    try:
        session.add(customer)
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise BusinessLogicError(f'Customer {customer.id} already exists', status_code=409) from e
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceError(f'Could not create customer: {e}') from e
    return customer


def get_customer(session, customer_id: str) -> Customer:
    customer = session.get(Customer, customer_id)
    if customer is None:
        raise CustomerNotFoundError(customer_id)
    return customer


def list_customers(session, search: Optional[str] = None):
    query = session.query(Customer)
    if search:
        pattern = f'%{search.strip()}%'
        query = query.filter(or_(Customer.name.ilike(pattern), Customer.phone.ilike(pattern)))
    return query.order_by(Customer.name.asc()).all()


def update_customer(session, customer_id: str, data: dict) -> Customer:
    """Update name and contact details; the id never changes."""
    try:
        customer = get_customer(session, customer_id)
        changes = {}
        for field in ('name', 'phone', 'email', 'address'):
            if field not in data:
                continue
            value = data[field]
            if field == 'name':
                value = (value or '').strip()
                if not value:
                    raise InvalidItemError('name is required')
            if getattr(customer, field) != value:
                changes[field] = {'from': getattr(customer, field), 'to': value}
                setattr(customer, field, value)

        if changes:
            log_action(session, AuditAction.CUSTOMER_UPDATED, 'customer', customer.id, changes)
        session.commit()
    except PosError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceError(f'Could not update customer: {e}') from e
    return customer


def delete_customer(session, customer_id: str) -> None:
    """Delete a customer with no recorded sales."""
    try:
        customer = get_customer(session, customer_id)
        if session.query(Sale.id).filter(Sale.customer_id == customer_id).first():
            raise BusinessLogicError(
                'Cannot delete customer with existing sales records',
                status_code=409,
                payload={'customerId': customer_id},
            )
        log_action(session, AuditAction.CUSTOMER_DELETED, 'customer', customer.id, {'name': customer.name})
        session.delete(customer)
        session.commit()
    except PosError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceError(f'Could not delete customer: {e}') from e

    logger.info(f"Customer {customer_id} deleted")


def get_customer_sales(session, customer_id: str, page: int = 1, limit: int = 10) -> dict:
    """The customer's sales, newest first, paginated like ``list_sales``."""
    get_customer(session, customer_id)
    return list_sales(session, customer_id=customer_id, page=page, limit=limit)
