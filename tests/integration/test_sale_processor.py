"""
Integration tests for completing sales against a real database.
"""

import json
import pytest
from decimal import Decimal

from pos_backend.exceptions import (
    CreditRequiresCustomerError, CustomerNotFoundError, EmptyCartError,
    InsufficientStockError, InvalidDiscountError, InvalidItemError, ProductNotFoundError
)
from pos_backend.models import AuditAction, PaymentStatus, Product, Sale, SaleItem, StockMove, StockMoveType
from pos_backend.schemas import CandidateItem, DiscountType, PaymentSelection, SaleCandidate
from pos_backend.services.audit_service import get_audit_logs
from pos_backend.services.catalog_service import update_product
from pos_backend.services.sales_service import complete_sale, get_sale, list_sales, submit_sale


def _candidate(*items, **kwargs):
    return SaleCandidate(items=[CandidateItem(*item) for item in items], **kwargs)


def _quantity(session, product_id):
    session.expire_all()
    return session.get(Product, product_id).quantity


class TestCompleteSale:

    def test_totals_and_stock(self, session, product_a, product_b):
        candidate = _candidate(
            ('prod-a', 2, '10.00'), ('prod-b', 3, '5.00'),
            discount=Decimal('5'), discount_type=DiscountType.PERCENT,
        )

        sale = complete_sale(candidate, session)

        assert sale.id.startswith('sale-')
        assert sale.subtotal == Decimal('35.00')
        assert sale.discount == Decimal('1.75')
        assert sale.total == Decimal('33.25')
        assert sale.payment_status == PaymentStatus.PAID.value
        assert sale.amount_paid == Decimal('33.25')
        assert sale.payment_method == 'Cash'
        assert _quantity(session, 'prod-a') == 18
        assert _quantity(session, 'prod-b') == 17

    def test_items_are_persisted_with_names(self, session, product_a, product_b):
        sale = complete_sale(_candidate(('prod-a', 2, '10.00'), ('prod-b', 3, '5.00')), session)

        session.expire_all()
        items = session.query(SaleItem).filter_by(sale_id=sale.id).order_by(SaleItem.id).all()
        assert [(i.product_id, i.product_name, i.quantity, i.line_total) for i in items] == [
            ('prod-a', 'Rice 1kg', 2, Decimal('20.00')),
            ('prod-b', 'Sugar 1kg', 3, Decimal('15.00')),
        ]

    def test_stock_moves_and_audit(self, session, product_a):
        sale = complete_sale(_candidate(('prod-a', 4, '10.00')), session)

        move = session.query(StockMove).filter_by(reference_id=sale.id).one()
        assert move.move_type == StockMoveType.SALE
        assert move.qty_delta == -4
        assert move.quantity_after == 16

        audit = get_audit_logs(session, resource_type_filter='sale', resource_id_filter=sale.id)
        assert [entry.action for entry in audit] == [AuditAction.SALE_CREATED]
        assert json.loads(audit[0].details)['total'] == '40.00'

    def test_oversell_rejected_without_writes(self, session, make_product):
        make_product('Milk', 2, '1.50', id='prod-milk')

        with pytest.raises(InsufficientStockError) as exc:
            complete_sale(_candidate(('prod-milk', 3, '1.50')), session)

        assert exc.value.product_id == 'prod-milk'
        assert exc.value.available == 2
        assert exc.value.requested == 3
        assert _quantity(session, 'prod-milk') == 2
        assert session.query(Sale).count() == 0

    def test_repeated_product_lines_are_summed(self, session, make_product):
        make_product('Eggs', 5, '0.20', id='prod-eggs')

        with pytest.raises(InsufficientStockError) as exc:
            complete_sale(_candidate(('prod-eggs', 3, '0.20'), ('prod-eggs', 3, '0.20')), session)
        assert exc.value.requested == 6

        sale = complete_sale(_candidate(('prod-eggs', 2, '0.20'), ('prod-eggs', 3, '0.20')), session)
        assert len(sale.lines) == 2
        assert _quantity(session, 'prod-eggs') == 0

    def test_failure_on_second_line_leaves_first_untouched(self, session, product_a, make_product):
        make_product('Salt', 1, '0.50', id='prod-salt')

        with pytest.raises(InsufficientStockError):
            complete_sale(_candidate(('prod-a', 1, '10.00'), ('prod-salt', 2, '0.50')), session)

        assert _quantity(session, 'prod-a') == 20
        assert session.query(StockMove).count() == 0

    def test_unknown_product(self, session, product_a):
        with pytest.raises(ProductNotFoundError) as exc:
            complete_sale(_candidate(('prod-a', 1, '10.00'), ('prod-missing', 1, '1.00')), session)

        assert exc.value.product_id == 'prod-missing'
        assert _quantity(session, 'prod-a') == 20

    def test_empty_cart(self, session):
        with pytest.raises(EmptyCartError):
            complete_sale(SaleCandidate(items=[]), session)

    def test_invalid_quantity(self, session, product_a):
        with pytest.raises(InvalidItemError):
            complete_sale(_candidate(('prod-a', 0, '10.00')), session)

    def test_discount_over_subtotal(self, session, product_a):
        with pytest.raises(InvalidDiscountError):
            complete_sale(_candidate(('prod-a', 1, '10.00'), discount=Decimal('10.01')), session)
        assert _quantity(session, 'prod-a') == 20


class TestPaymentPolicy:

    def test_walk_in_short_payment_rejected(self, session, product_a, product_b):
        candidate = _candidate(('prod-a', 2, '10.00'), ('prod-b', 3, '5.00'), amount_paid=Decimal('20'))

        with pytest.raises(CreditRequiresCustomerError):
            complete_sale(candidate, session)

        assert session.query(Sale).count() == 0
        assert _quantity(session, 'prod-a') == 20

    def test_walk_in_change_due(self, session, product_a):
        outcome = submit_sale(_candidate(('prod-a', 1, '10.00'), amount_paid=Decimal('50')), session)

        assert outcome.sale.amount_paid == Decimal('10.00')
        assert outcome.change_due == Decimal('40.00')
        assert outcome.replayed is False

    def test_oversold_walk_in_reports_stock_before_payment(self, session, make_product):
        make_product('Oil 1L', 3, '10.00', id='prod-oil')
        candidate = _candidate(('prod-oil', 5, '10.00'), amount_paid=Decimal('1'))

        with pytest.raises(InsufficientStockError) as excinfo:
            complete_sale(candidate, session)

        assert excinfo.value.available == 3
        assert excinfo.value.requested == 5
        assert session.query(Sale).count() == 0
        assert _quantity(session, 'prod-oil') == 3

    def test_customer_partial_payment(self, session, customer, product_a, product_b):
        candidate = _candidate(
            ('prod-a', 2, '10.00'), ('prod-b', 3, '5.00'),
            customer_id='cust-1', amount_paid=Decimal('20'),
        )

        sale = complete_sale(candidate, session)

        assert sale.payment_status == PaymentStatus.PARTIAL.value
        assert sale.balance == Decimal('15.00')
        session.expire_all()
        assert session.get(type(customer), 'cust-1').balance == Decimal('15.00')

    def test_customer_credit_selection(self, session, customer, product_a):
        candidate = _candidate(
            ('prod-a', 1, '10.00'), customer_id='cust-1', payment_status=PaymentSelection.CREDIT
        )

        sale = complete_sale(candidate, session)

        assert sale.payment_status == PaymentStatus.CREDIT.value
        assert sale.amount_paid == Decimal('0.00')

    def test_unknown_customer(self, session, product_a):
        with pytest.raises(CustomerNotFoundError):
            complete_sale(_candidate(('prod-a', 1, '10.00'), customer_id='cust-ghost'), session)
        assert _quantity(session, 'prod-a') == 20


class TestPriceFreezing:

    def test_catalog_price_change_does_not_touch_sale(self, session, product_a):
        sale = complete_sale(_candidate(('prod-a', 2, '10.00')), session)

        update_product(session, 'prod-a', {'sellPrice': '12.00'})

        session.expire_all()
        stored = get_sale(session, sale.id)
        assert stored.lines[0].unit_price == Decimal('10.00')
        assert stored.total == Decimal('20.00')


class TestIdempotency:

    def test_replay_returns_same_sale(self, session, product_a):
        first = submit_sale(_candidate(('prod-a', 2, '10.00'), idempotency_key='key-1'), session)
        second = submit_sale(_candidate(('prod-a', 2, '10.00'), idempotency_key='key-1'), session)

        assert second.sale.id == first.sale.id
        assert second.replayed is True
        assert first.replayed is False
        assert second.change_due == Decimal('0.00')
        assert session.query(Sale).count() == 1
        assert _quantity(session, 'prod-a') == 18


class TestListSales:

    def test_filters_and_pagination(self, session, customer, product_a):
        for _ in range(3):
            complete_sale(_candidate(('prod-a', 1, '10.00')), session)
        complete_sale(_candidate(('prod-a', 1, '10.00'), customer_id='cust-1', payment_method='Card'), session)

        result = list_sales(session, page=1, limit=2)
        assert result['total'] == 4
        assert result['pages'] == 2
        assert len(result['sales']) == 2

        by_customer = list_sales(session, customer_id='cust-1')
        assert [s.payment_method for s in by_customer['sales']] == ['Card']

        assert list_sales(session, payment_method='Cash')['total'] == 3
