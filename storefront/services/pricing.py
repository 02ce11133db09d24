# storefront/services/pricing.py
"""
Czyste funkcje cenowe: subtotal, podatek, wysylka, rabat, total.

Brak dostepu do bazy - wejsciem sa pozycje z cena na zywo.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Iterable, Sequence

from storefront.utils.settings import TAX_RATE, FREE_SHIPPING_THRESHOLD, SHIPPING_FEE

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricedLine:
    product_id: int
    variant_id: int | None
    name: str
    sku: str | None
    unit_price: Decimal
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)


@dataclass(frozen=True)
class PriceSummary:
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    discount: Decimal
    total: Decimal
    item_count: int
    free_shipping_eligible: bool
    amount_needed_for_free_shipping: Decimal


#hook na kupony - (pozycje, subtotal) -> kwota rabatu
DiscountPolicy = Callable[[Sequence[PricedLine], Decimal], Decimal]


def no_discount(lines: Sequence[PricedLine], subtotal: Decimal) -> Decimal:
    return ZERO


def calculate_subtotal(lines: Iterable[PricedLine]) -> Decimal:
    return sum((line.line_total for line in lines), ZERO)


def calculate_tax(subtotal: Decimal, tax_rate: Decimal = TAX_RATE) -> Decimal:
    return to_money(Decimal(subtotal) * Decimal(tax_rate))


def calculate_shipping(
    subtotal: Decimal,
    free_shipping_threshold: Decimal = FREE_SHIPPING_THRESHOLD,
    shipping_fee: Decimal = SHIPPING_FEE,
) -> Decimal:
    if Decimal(subtotal) >= Decimal(free_shipping_threshold):
        return ZERO
    return to_money(shipping_fee)


def calculate_discount(subtotal: Decimal, discount_percent: Decimal = ZERO) -> Decimal:
    return to_money(Decimal(subtotal) * (Decimal(discount_percent) / Decimal(100)))


def calculate_total(
    subtotal: Decimal,
    tax: Decimal,
    shipping: Decimal,
    discount: Decimal = ZERO,
) -> Decimal:
    return to_money(Decimal(subtotal) + Decimal(tax) + Decimal(shipping) - Decimal(discount))


def get_item_count(lines: Iterable[PricedLine]) -> int:
    return sum(line.quantity for line in lines)


def is_free_shipping_eligible(subtotal: Decimal, threshold: Decimal = FREE_SHIPPING_THRESHOLD) -> bool:
    return Decimal(subtotal) >= Decimal(threshold)


def amount_needed_for_free_shipping(subtotal: Decimal, threshold: Decimal = FREE_SHIPPING_THRESHOLD) -> Decimal:
    if is_free_shipping_eligible(subtotal, threshold):
        return ZERO
    return to_money(Decimal(threshold) - Decimal(subtotal))


def summarize(
    lines: Sequence[PricedLine],
    discount_policy: DiscountPolicy = no_discount,
) -> PriceSummary:
    """Liczy pelne podsumowanie koszyka z biezacych cen."""
    subtotal = calculate_subtotal(lines)
    tax = calculate_tax(subtotal)
    #pusty koszyk - nic do wyslania, bez oplaty za wysylke
    shipping = calculate_shipping(subtotal) if lines else ZERO

    #rabat nie moze byc ujemny ani wiekszy niz subtotal
    discount = to_money(discount_policy(lines, subtotal))
    discount = min(max(discount, ZERO), subtotal)

    return PriceSummary(
        subtotal=subtotal,
        tax=tax,
        shipping=shipping,
        discount=discount,
        total=calculate_total(subtotal, tax, shipping, discount),
        item_count=get_item_count(lines),
        free_shipping_eligible=is_free_shipping_eligible(subtotal),
        amount_needed_for_free_shipping=amount_needed_for_free_shipping(subtotal),
    )
