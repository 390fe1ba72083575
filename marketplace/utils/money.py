"""Decimal helpers for prices, discounts and provider minor units."""
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal('0.01')
HUNDRED = Decimal('100')


def to_decimal(value) -> Decimal:
    """Coerce int/float/str/Decimal/None to Decimal without float artefacts."""
    if value is None:
        return Decimal('0')
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def apply_discount(price, discount_percent) -> Decimal:
    """
    Price after a percentage discount, rounded to cents.

    >>> apply_discount(100, 10)
    Decimal('90.00')
    """
    price = to_decimal(price)
    discount = to_decimal(discount_percent)
    return quantize_money(price * (HUNDRED - discount) / HUNDRED)


def to_minor_units(amount) -> int:
    """Convert a major-unit amount to the integer the payment provider expects."""
    return int((to_decimal(amount) * HUNDRED).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def from_minor_units(amount) -> Decimal:
    if not amount:
        return Decimal('0.00')
    return quantize_money(Decimal(int(amount)) / HUNDRED)
