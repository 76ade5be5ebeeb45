from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Iterable

# subtotal -> tax amount
TaxPolicy = Callable[[Decimal], Decimal]

CENT = Decimal("0.01")


def _money(x) -> Decimal:
    if x is None:
        x = 0
    return Decimal(str(x)).quantize(CENT, rounding=ROUND_HALF_UP)


def flat_rate_tax(rate: Decimal) -> TaxPolicy:
    rate = Decimal(str(rate))

    def _policy(subtotal: Decimal) -> Decimal:
        return _money(subtotal * rate)
    return _policy


no_tax: TaxPolicy = flat_rate_tax(Decimal("0"))


def line_subtotal(unit_price: Decimal, modifiers_total: Decimal, quantity: int) -> Decimal:
    return _money((Decimal(str(unit_price)) + Decimal(str(modifiers_total))) * quantity)


def compute_totals(line_subtotals: Iterable[Decimal], tax_policy: TaxPolicy, discount=0) -> dict:
    subtotal = _money(sum((Decimal(str(x)) for x in line_subtotals), Decimal("0")))
    tax = _money(tax_policy(subtotal))
    discount = _money(discount)
    return {
        "subtotal": subtotal,
        "tax": tax,
        "discount": discount,
        "total": _money(subtotal + tax - discount),
    }
