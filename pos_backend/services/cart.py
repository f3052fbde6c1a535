"""
In-memory cart used to assemble a sale candidate.

The cart never touches the database. Its stock check is advisory (it uses
the last quantity the caller saw in the catalog); the authoritative check
happens inside the sale transaction.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional

from pos_backend.exceptions import InvalidItemError, ProductNotFoundError
from pos_backend.schemas import (
    CandidateItem, DiscountType, PaymentSelection, SaleCandidate, SaleTotals, ValidatedLine
)
from pos_backend.services.pricing import compute_totals
from pos_backend.utils.money import ZERO, parse_quantity, quantize_money


@dataclass(frozen=True)
class ProductSnapshot:
    """The catalog fields a cart needs, read once when the product is scanned."""
    id: str
    name: str
    unit_price: Decimal
    available: int

    @classmethod
    def from_product(cls, product) -> 'ProductSnapshot':
        return cls(
            id=product.id,
            name=product.name,
            unit_price=quantize_money(product.sell_price),
            available=int(product.quantity or 0),
        )


@dataclass
class CartLine:
    product: ProductSnapshot
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return quantize_money(self.product.unit_price * self.quantity)


class Cart:
    """Ordered set of lines keyed by product id."""

    def __init__(self):
        self._lines: Dict[str, CartLine] = {}

    def __len__(self):
        return len(self._lines)

    def __iter__(self):
        return iter(self._lines.values())

    def get(self, product_id: str) -> Optional[CartLine]:
        return self._lines.get(product_id)

    def add_item(self, product: ProductSnapshot, quantity=1) -> CartLine:
        """Add a product, accumulating quantity if it is already in the cart."""
        try:
            qty = parse_quantity(quantity)
        except ValueError as e:
            raise InvalidItemError(str(e))

        line = self._lines.get(product.id)
        if line is None:
            line = CartLine(product=product, quantity=qty)
            self._lines[product.id] = line
        else:
            line.quantity += qty
            # Keep the freshest catalog read for the advisory check
            line.product = product
        return line

    def set_quantity(self, product_id: str, quantity) -> CartLine:
        line = self._lines.get(product_id)
        if line is None:
            raise ProductNotFoundError(product_id)
        try:
            qty = parse_quantity(quantity)
        except ValueError as e:
            raise InvalidItemError(str(e))
        if qty > line.product.available:
            raise InvalidItemError(
                f'Only {line.product.available} of {line.product.name} in stock'
            )
        line.quantity = qty
        return line

    def remove_item(self, product_id: str) -> None:
        self._lines.pop(product_id, None)

    def clear(self) -> None:
        self._lines.clear()

    def over_stock_lines(self) -> List[CartLine]:
        """Lines asking for more than the last known stock."""
        return [line for line in self._lines.values() if line.quantity > line.product.available]

    def compute_totals(
        self,
        discount_value=ZERO,
        discount_type: DiscountType = DiscountType.ABSOLUTE,
        fee=ZERO,
    ) -> SaleTotals:
        """Provisional totals. A payment gateway fee is carried as tax."""
        lines = [
            ValidatedLine(
                product_id=line.product.id,
                quantity=line.quantity,
                unit_price=line.product.unit_price,
                line_total=line.line_total,
            )
            for line in self._lines.values()
        ]
        return compute_totals(lines, Decimal(str(discount_value or 0)), discount_type, Decimal(str(fee or 0)))

    def to_candidate(
        self,
        customer_id: Optional[str] = None,
        discount_value=ZERO,
        discount_type: DiscountType = DiscountType.ABSOLUTE,
        fee=ZERO,
        payment_method: str = 'Cash',
        amount_paid: Optional[Decimal] = None,
        payment_status: Optional[PaymentSelection] = None,
        idempotency_key: Optional[str] = None,
    ) -> SaleCandidate:
        """
        Freeze the cart into a candidate.

        The discount is resolved to an absolute amount here so the server
        applies exactly what the cashier previewed.
        """
        totals = self.compute_totals(discount_value, discount_type, fee)
        return SaleCandidate(
            items=[
                CandidateItem(
                    product_id=line.product.id,
                    quantity=line.quantity,
                    unit_price=line.product.unit_price,
                )
                for line in self._lines.values()
            ],
            customer_id=customer_id,
            discount=totals.discount,
            discount_type=DiscountType.ABSOLUTE,
            tax=totals.tax,
            payment_method=payment_method,
            amount_paid=amount_paid,
            payment_status=payment_status,
            idempotency_key=idempotency_key,
        )
