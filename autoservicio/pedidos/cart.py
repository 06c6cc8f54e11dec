"""Per-customer shopping carts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .catalog import Product

logger = logging.getLogger(__name__)

PENDING = "pending"
CONFIRMED = "confirmed"
CANCELLED = "cancelled"

MIN_QUANTITY = 1
MAX_QUANTITY = 100


@dataclass
class LineItem:
    product: Product
    quantity: int

    @property
    def subtotal(self) -> float:
        return self.product.price * self.quantity


@dataclass
class Order:
    customer_id: str
    items: list[LineItem] = field(default_factory=list)
    status: str = PENDING

    @property
    def total(self) -> float:
        """Recomputed from the lines on every access."""
        return sum(item.subtotal for item in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def find(self, description: str) -> LineItem | None:
        for item in self.items:
            if item.product.description == description:
                return item
        return None


class OrderStore:
    """In-memory carts keyed by customer id, owned by the host application."""

    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}

    def create_order(self, customer_id: str) -> Order:
        order = Order(customer_id=customer_id)
        self._orders[customer_id] = order
        return order

    def get_order(self, customer_id: str) -> Order | None:
        return self._orders.get(customer_id)

    def add_item(self, customer_id: str, product: Product, quantity: int) -> Order:
        """Add a product; an existing line for the same description grows.

        A merged line never goes above MAX_QUANTITY.

        Raises:
            ValueError: If quantity is not a whole number from 1 to 100.
        """
        quantity = validate_quantity(quantity)

        order = self._orders.get(customer_id) or self.create_order(customer_id)
        existing = order.find(product.description)
        if existing is not None:
            merged = existing.quantity + quantity
            if merged > MAX_QUANTITY:
                logger.warning(
                    "carrito %s: %s limitado a %d unidades",
                    customer_id, product.description, MAX_QUANTITY,
                )
                merged = MAX_QUANTITY
            existing.quantity = merged
        else:
            order.items.append(LineItem(product=product, quantity=quantity))
        logger.debug(
            "carrito %s: +%d %s (total %.0f)",
            customer_id, quantity, product.description, order.total,
        )
        return order

    def remove_item(self, customer_id: str, description: str) -> Order | None:
        order = self._orders.get(customer_id)
        if order is None:
            return None
        order.items = [i for i in order.items if i.product.description != description]
        return order

    def clear_order(self, customer_id: str) -> None:
        self._orders.pop(customer_id, None)

    def confirm_order(self, customer_id: str) -> Order | None:
        """Mark the order confirmed and hand it over; the cart is emptied."""
        return self._close(customer_id, CONFIRMED)

    def cancel_order(self, customer_id: str) -> Order | None:
        return self._close(customer_id, CANCELLED)

    def _close(self, customer_id: str, status: str) -> Order | None:
        order = self._orders.pop(customer_id, None)
        if order is None:
            return None
        order.status = status
        logger.info("pedido de %s %s, total %.0f", customer_id, status, order.total)
        return order


def validate_quantity(text: str | int) -> int:
    """Parse a quantity, accepting whole numbers from 1 to 100.

    Raises:
        ValueError: If the value is not an integer in range.
    """
    if isinstance(text, bool):
        raise ValueError(f"Cantidad invalida: {text!r}")
    try:
        value = int(str(text).strip())
    except ValueError:
        raise ValueError(f"Cantidad invalida: {text!r}") from None
    if not MIN_QUANTITY <= value <= MAX_QUANTITY:
        raise ValueError(f"Cantidad fuera de rango ({MIN_QUANTITY}-{MAX_QUANTITY}): {value}")
    return value
