"""
Unit tests for sale totals and payment status derivation.
"""

import pytest
from decimal import Decimal

from pos_backend.exceptions import (
    CreditRequiresCustomerError, InvalidDiscountError, InvalidItemError
)
from pos_backend.models import PaymentStatus
from pos_backend.schemas import DiscountType, PaymentSelection, ValidatedLine
from pos_backend.services.pricing import compute_totals, derive_payment, discount_amount, status_for_amount


def _line(product_id, qty, price):
    price = Decimal(price)
    return ValidatedLine(product_id=product_id, quantity=qty, unit_price=price, line_total=price * qty)


@pytest.fixture
def lines():
    return [_line('prod-a', 2, '10.00'), _line('prod-b', 3, '5.00')]


class TestComputeTotals:
    """Tests for subtotal / discount / tax arithmetic."""

    def test_percent_discount(self, lines):
        totals = compute_totals(lines, Decimal('5'), DiscountType.PERCENT)

        assert totals.subtotal == Decimal('35.00')
        assert totals.discount == Decimal('1.75')
        assert totals.total == Decimal('33.25')

    def test_absolute_discount_and_tax(self, lines):
        totals = compute_totals(lines, Decimal('5'), DiscountType.ABSOLUTE, Decimal('2.10'))

        assert totals.discount == Decimal('5.00')
        assert totals.tax == Decimal('2.10')
        assert totals.total == Decimal('32.10')

    def test_no_discount(self, lines):
        totals = compute_totals(lines)
        assert totals.total == totals.subtotal == Decimal('35.00')

    def test_percent_rounds_half_up(self):
        totals = compute_totals([_line('p', 1, '0.10')], Decimal('5'), DiscountType.PERCENT)
        # 0.10 * 5% = 0.005
        assert totals.discount == Decimal('0.01')
        assert totals.total == Decimal('0.09')

    def test_discount_larger_than_subtotal(self, lines):
        with pytest.raises(InvalidDiscountError):
            compute_totals(lines, Decimal('35.01'), DiscountType.ABSOLUTE)

    def test_percent_over_hundred(self, lines):
        with pytest.raises(InvalidDiscountError):
            compute_totals(lines, Decimal('101'), DiscountType.PERCENT)

    def test_full_discount_allowed(self, lines):
        totals = compute_totals(lines, Decimal('100'), DiscountType.PERCENT)
        assert totals.total == Decimal('0.00')

    def test_negative_discount(self):
        with pytest.raises(InvalidDiscountError):
            discount_amount(Decimal('10'), Decimal('-1'), DiscountType.ABSOLUTE)

    def test_negative_tax(self, lines):
        with pytest.raises(InvalidItemError) as exc:
            compute_totals(lines, tax=Decimal('-1'))
        assert exc.value.code == 'InvalidItem'


class TestDerivePayment:
    """Tests for paid / partial / credit decisions."""

    def test_walk_in_without_amount_is_paid(self):
        outcome = derive_payment(Decimal('33.25'), None, None)

        assert outcome.status == PaymentStatus.PAID
        assert outcome.amount_paid == Decimal('33.25')
        assert outcome.change_due == Decimal('0.00')

    def test_walk_in_overpayment_returns_change(self):
        outcome = derive_payment(Decimal('33.25'), None, Decimal('40'))

        assert outcome.status == PaymentStatus.PAID
        assert outcome.amount_paid == Decimal('33.25')
        assert outcome.change_due == Decimal('6.75')

    def test_walk_in_short_payment_needs_customer(self):
        with pytest.raises(CreditRequiresCustomerError) as exc:
            derive_payment(Decimal('35.00'), None, Decimal('20'))

        assert exc.value.balance == Decimal('15.00')
        assert exc.value.to_dict()['code'] == 'CreditRequiresCustomer'

    def test_customer_partial(self):
        outcome = derive_payment(Decimal('35.00'), 'cust-1', Decimal('20'))

        assert outcome.status == PaymentStatus.PARTIAL
        assert outcome.amount_paid == Decimal('20.00')

    def test_customer_zero_is_credit(self):
        outcome = derive_payment(Decimal('35.00'), 'cust-1', Decimal('0'))
        assert outcome.status == PaymentStatus.CREDIT

    def test_customer_credit_selection_without_amount(self):
        outcome = derive_payment(Decimal('35.00'), 'cust-1', None, PaymentSelection.CREDIT)

        assert outcome.status == PaymentStatus.CREDIT
        assert outcome.amount_paid == Decimal('0.00')

    def test_amount_dominates_credit_selection(self):
        outcome = derive_payment(Decimal('35.00'), 'cust-1', Decimal('35.00'), PaymentSelection.CREDIT)
        assert outcome.status == PaymentStatus.PAID

    def test_paid_selection_settles_in_full(self):
        outcome = derive_payment(Decimal('35.00'), 'cust-1', Decimal('10'), PaymentSelection.PAID)

        assert outcome.status == PaymentStatus.PAID
        assert outcome.amount_paid == Decimal('35.00')

    def test_status_for_amount(self):
        assert status_for_amount(Decimal('10'), Decimal('10')) == PaymentStatus.PAID
        assert status_for_amount(Decimal('10'), Decimal('0.01')) == PaymentStatus.PARTIAL
        assert status_for_amount(Decimal('10'), Decimal('0')) == PaymentStatus.CREDIT
