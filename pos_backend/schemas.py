"""
Request/response shapes for the sale workflow.

``SaleCandidate.from_payload`` is the one place where raw JSON enters the
sale pipeline: key aliases (camelCase, snake_case, legacy ``price``) are
resolved here and nowhere else.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional
import enum

from pos_backend.exceptions import (
    EmptyCartError, InvalidItemError, InvalidDiscountError
)
from pos_backend.utils.money import ZERO, parse_decimal, parse_quantity, quantize_money


class DiscountType(str, enum.Enum):
    """How a discount value is interpreted."""
    PERCENT = 'percent'
    ABSOLUTE = 'absolute'

    @classmethod
    def infer(cls, value) -> 'DiscountType':
        """Legacy heuristic: values up to 100 are percentages.

        Only for callers that cannot send an explicit type; ambiguous at 100.
        """
        return cls.PERCENT if Decimal(str(value)) <= 100 else cls.ABSOLUTE

    @classmethod
    def parse(cls, raw: Optional[str], default: 'DiscountType') -> 'DiscountType':
        if raw is None or raw == '':
            return default
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            raise InvalidDiscountError("discountType must be 'percent' or 'absolute'")


class PaymentSelection(str, enum.Enum):
    """Payment intent declared by the cashier."""
    PAID = 'Paid'
    CREDIT = 'Credit'

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional['PaymentSelection']:
        if raw is None or raw == '':
            return None
        normalized = str(raw).replace(' ', '').lower()
        if normalized == 'paid':
            return cls.PAID
        if normalized in ('credit', 'partial/credit', 'partial'):
            return cls.CREDIT
        raise InvalidItemError("paymentStatus must be 'Paid' or 'Credit'")


def _clean_str(value, field: str, max_length: int = 64):
    """Strip a string field; values too long for their column are rejected."""
    if value is None:
        return None
    cleaned = str(value).strip()
    if len(cleaned) > max_length:
        raise InvalidItemError(f'{field} must be at most {max_length} characters')
    return cleaned or None


def _pick(payload: Dict[str, Any], *keys, default=None):
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return default


@dataclass
class CandidateItem:
    product_id: Optional[str]
    quantity: Any
    unit_price: Any


@dataclass
class SaleCandidate:
    """A proposed sale, before any stock check."""
    items: List[CandidateItem]
    customer_id: Optional[str] = None
    discount: Decimal = ZERO
    discount_type: DiscountType = DiscountType.ABSOLUTE
    tax: Decimal = ZERO
    payment_method: str = 'Cash'
    amount_paid: Optional[Decimal] = None
    payment_status: Optional[PaymentSelection] = None
    idempotency_key: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]], default_payment_method: str = 'Cash') -> 'SaleCandidate':
        """Build a candidate from a JSON body.

        Raises EmptyCartError / InvalidItemError for shapes that cannot be
        normalized at all; value-level checks happen in the sale processor.
        """
        if not isinstance(payload, dict):
            raise EmptyCartError()

        raw_items = payload.get('items')
        if not raw_items:
            raise EmptyCartError()
        if not isinstance(raw_items, list):
            raise InvalidItemError('items must be a list')

        items = []
        for index, raw in enumerate(raw_items):
            if not isinstance(raw, dict):
                raise InvalidItemError('Each item must be an object', index=index)
            product_id = _pick(raw, 'productId', 'product_id')
            items.append(CandidateItem(
                product_id=str(product_id).strip() if product_id is not None else None,
                quantity=_pick(raw, 'quantity', 'qty'),
                unit_price=_pick(raw, 'unitPrice', 'unit_price', 'price'),
            ))

        try:
            discount = parse_decimal(_pick(payload, 'discount'), 'discount', ZERO)
        except ValueError as e:
            raise InvalidDiscountError(str(e))
        try:
            tax = parse_decimal(_pick(payload, 'tax'), 'tax', ZERO)
            amount_paid = parse_decimal(_pick(payload, 'amountPaid', 'amount_paid'), 'amountPaid')
        except ValueError as e:
            raise InvalidItemError(str(e))

        customer_id = _clean_str(_pick(payload, 'customerId', 'customer_id'), 'customerId')
        idempotency_key = _clean_str(_pick(payload, 'idempotencyKey', 'idempotency_key'), 'idempotencyKey')
        payment_method = _clean_str(
            _pick(payload, 'paymentMethod', 'payment_method'), 'paymentMethod', max_length=30
        ) or default_payment_method

        return cls(
            items=items,
            customer_id=customer_id,
            discount=discount,
            discount_type=DiscountType.parse(
                _pick(payload, 'discountType', 'discount_type'), DiscountType.ABSOLUTE
            ),
            tax=tax,
            payment_method=payment_method,
            amount_paid=amount_paid,
            payment_status=PaymentSelection.parse(_pick(payload, 'paymentStatus', 'payment_status')),
            idempotency_key=idempotency_key,
        )


@dataclass
class ValidatedLine:
    """A candidate line after value checks; prices are final."""
    product_id: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


@dataclass
class SaleTotals:
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal
    lines: List[ValidatedLine] = field(default_factory=list)


def validate_items(items: List[CandidateItem]) -> List[ValidatedLine]:
    """Check product reference, quantity and price of every line."""
    if not items:
        raise EmptyCartError()

    lines = []
    for index, item in enumerate(items):
        if not item.product_id:
            raise InvalidItemError('Item is missing productId', index=index)
        try:
            quantity = parse_quantity(item.quantity)
            unit_price = parse_decimal(item.unit_price, 'unitPrice')
        except ValueError as e:
            raise InvalidItemError(f'Item {item.product_id}: {e}', index=index)
        if unit_price is None:
            raise InvalidItemError(f'Item {item.product_id}: unitPrice is required', index=index)
        unit_price = quantize_money(unit_price)
        lines.append(ValidatedLine(
            product_id=item.product_id,
            quantity=quantity,
            unit_price=unit_price,
            line_total=quantize_money(unit_price * quantity),
        ))
    return lines
