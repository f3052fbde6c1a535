"""
Pure money math for sales: totals and payment status.

No database access here; both the cart and the sale processor call into
this module so that the preview a cashier sees and the persisted sale use
the same arithmetic.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from pos_backend.exceptions import InvalidDiscountError, InvalidItemError, CreditRequiresCustomerError
from pos_backend.models import PaymentStatus
from pos_backend.schemas import DiscountType, PaymentSelection, SaleTotals, ValidatedLine
from pos_backend.utils.money import ZERO, quantize_money

HUNDRED = Decimal('100')


def discount_amount(subtotal: Decimal, value: Decimal, discount_type: DiscountType) -> Decimal:
    """Resolve a discount input to a currency amount."""
    value = Decimal(value or 0)
    if value < 0:
        raise InvalidDiscountError('discount cannot be negative')

    if discount_type == DiscountType.PERCENT:
        if value > HUNDRED:
            raise InvalidDiscountError('Percentage discount cannot exceed 100')
        amount = quantize_money(subtotal * value / HUNDRED)
    else:
        amount = quantize_money(value)

    if amount > subtotal:
        raise InvalidDiscountError(
            f'Discount {amount} exceeds subtotal {subtotal}'
        )
    return amount


def compute_totals(
    lines: Iterable[ValidatedLine],
    discount: Decimal = ZERO,
    discount_type: DiscountType = DiscountType.ABSOLUTE,
    tax: Decimal = ZERO,
) -> SaleTotals:
    """
    subtotal = sum(unit_price * qty); total = subtotal + tax - discount.

    Line totals are already rounded to cents, so the subtotal is exact.
    """
    lines = list(lines)
    tax = Decimal(tax or 0)
    if tax < 0:
        raise InvalidItemError('tax cannot be negative')

    subtotal = sum((line.line_total for line in lines), ZERO)
    discount_value = discount_amount(subtotal, discount, discount_type)
    tax_value = quantize_money(tax)
    total = quantize_money(subtotal + tax_value - discount_value)

    return SaleTotals(
        subtotal=quantize_money(subtotal),
        discount=discount_value,
        tax=tax_value,
        total=total,
        lines=lines,
    )


@dataclass
class PaymentOutcome:
    amount_paid: Decimal
    status: PaymentStatus
    change_due: Decimal


def status_for_amount(total: Decimal, amount_paid: Decimal) -> PaymentStatus:
    """Amount dominates declared intent."""
    if amount_paid >= total:
        return PaymentStatus.PAID
    if amount_paid > 0:
        return PaymentStatus.PARTIAL
    return PaymentStatus.CREDIT


def derive_payment(
    total: Decimal,
    customer_id: Optional[str],
    amount_paid: Optional[Decimal],
    selection: Optional[PaymentSelection] = None,
) -> PaymentOutcome:
    """
    Decide what is stored as paid and the resulting payment status.

    Walk-in sales (no customer) must be settled in full: an omitted amount is
    taken as the total, a short amount raises CreditRequiresCustomerError.
    Stored ``amount_paid`` never exceeds the total; any excess is change.
    """
    total = quantize_money(total)
    tendered = quantize_money(amount_paid) if amount_paid is not None else None

    if tendered is not None and tendered < 0:
        raise InvalidItemError('amountPaid cannot be negative')

    if customer_id is None:
        if tendered is None:
            return PaymentOutcome(total, PaymentStatus.PAID, ZERO)
        if tendered < total:
            raise CreditRequiresCustomerError(total - tendered)
        return PaymentOutcome(total, PaymentStatus.PAID, tendered - total)

    if selection == PaymentSelection.PAID:
        change = max(ZERO, (tendered if tendered is not None else total) - total)
        return PaymentOutcome(total, PaymentStatus.PAID, change)

    if tendered is None:
        tendered = ZERO if selection == PaymentSelection.CREDIT else total

    stored = min(tendered, total)
    return PaymentOutcome(
        stored,
        status_for_amount(total, tendered),
        max(ZERO, tendered - total),
    )
