"""Fixed-point helpers for price / market-cap derivation.

Everything goes through `Decimal` with a context wide enough for uint256
operands; quotients are truncated toward zero, never banker's-rounded.
"""
from decimal import Decimal, Context, ROUND_DOWN
from typing import Union

# uint256 has 78 digits; leave room for 18 fractional places on top
CONTEXT = Context(prec=120, rounding=ROUND_DOWN)

PRICE_PLACES = 18
QUOTE_DECIMALS = 18   # native coin (wei)
BASE_DECIMALS = 6     # curve token units

Number = Union[int, str, Decimal]


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, float):
        raise TypeError("float input would lose precision; pass int, str or Decimal")
    return Decimal(value) if not isinstance(value, Decimal) else value


def truncate(value: Decimal, places: int = PRICE_PLACES) -> Decimal:
    """Round toward zero to `places` fractional digits."""
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_DOWN, context=CONTEXT)


def scale_down(raw: Number, decimals: int) -> Decimal:
    """Raw on-chain integer → human units (exact, no rounding)."""
    return CONTEXT.divide(to_decimal(raw), Decimal(10) ** decimals)


def div_truncate(numerator: Number, denominator: Number, places: int = PRICE_PLACES) -> Decimal:
    den = to_decimal(denominator)
    if den == 0:
        raise ZeroDivisionError("division by zero in fixed-point divide")
    return truncate(CONTEXT.divide(to_decimal(numerator), den), places)


def mul_truncate(a: Number, b: Number, places: int = PRICE_PLACES) -> Decimal:
    return truncate(CONTEXT.multiply(to_decimal(a), to_decimal(b)), places)


def token_price(quote_amount: Number, base_amount: Number) -> Decimal:
    """(quote / 10^18) / (base / 10^6), truncated to 18 places."""
    return div_truncate(
        scale_down(quote_amount, QUOTE_DECIMALS),
        scale_down(base_amount, BASE_DECIMALS),
    )


def market_cap(price: Number, token_supply: Number) -> Decimal:
    """price * (supply / 10^6), truncated to 18 places."""
    return mul_truncate(price, scale_down(token_supply, BASE_DECIMALS))
