"""Order price computation.

All money math runs in ``Decimal``. Each component is rounded half-up to
cents on its own and the grand total is the sum of the rounded components,
so a stored order always satisfies ``total == items + tax + shipping``.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Protocol

from .config import Settings, get_settings

CENT = Decimal("0.01")


class PricedLine(Protocol):
    price: float
    quantity: int


def to_money(value: float | int | str | Decimal) -> Decimal:
    # str() first so binary floats like 0.1 keep their printed value
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PriceBreakdown:
    items_price: Decimal
    tax_price: Decimal
    shipping_price: Decimal
    total_price: Decimal

    def as_document(self) -> dict[str, float]:
        return {
            "items_price": float(self.items_price),
            "tax_price": float(self.tax_price),
            "shipping_price": float(self.shipping_price),
            "total_price": float(self.total_price),
        }


def line_total(price: float | Decimal, quantity: int) -> Decimal:
    return to_money(Decimal(str(price)) * quantity)


def shipping_for(subtotal: Decimal, settings: Settings) -> Decimal:
    if subtotal > settings.FREE_SHIPPING_THRESHOLD:
        return to_money(0)
    return to_money(settings.FLAT_SHIPPING_PRICE)


def calculate_prices(lines: Iterable[PricedLine], settings: Settings | None = None) -> PriceBreakdown:
    settings = settings or get_settings()
    items_price = sum((line_total(line.price, line.quantity) for line in lines), Decimal("0.00"))
    items_price = to_money(items_price)
    tax_price = to_money(items_price * settings.TAX_RATE)
    shipping_price = shipping_for(items_price, settings)
    return PriceBreakdown(
        items_price=items_price,
        tax_price=tax_price,
        shipping_price=shipping_price,
        total_price=items_price + tax_price + shipping_price,
    )
