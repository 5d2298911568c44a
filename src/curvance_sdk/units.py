"""Fixed-point conversions between human decimal amounts and on-chain integers.

Rounding policy:
    - integer -> decimal and USD -> token sizing round toward zero, so a
      displayed or computed amount never exceeds what is actually held.
    - decimal -> integer floors, so a submitted amount never moves more value
      than the caller asked for.
    - percentage -> basis points rounds half-up to the nearest integer.
    - basis points -> WAD uses integer floor division.

Every function validates its inputs synchronously and raises ConversionError
before any caller can reach the network.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import (
    ROUND_DOWN,
    ROUND_FLOOR,
    ROUND_HALF_UP,
    Decimal,
    InvalidOperation,
    localcontext,
)

from .constants import BPS, USD_DECIMALS, WAD
from .errors import ConversionError

# Enough digits for uint256 values at any realistic token scale
PRECISION = 120
MAX_DECIMALS = 77


@dataclass(frozen=True)
class PricedAmount:
    """A token amount (optional) together with its USD price and decimals."""

    price: Decimal
    decimals: int
    amount: Decimal | None = None


def _check_decimals(decimals: int) -> int:
    if isinstance(decimals, bool) or not isinstance(decimals, int):
        raise ConversionError(f"decimals must be an int, got {decimals!r}")
    if not 0 <= decimals <= MAX_DECIMALS:
        raise ConversionError(
            f"decimals must be between 0 and {MAX_DECIMALS}, got {decimals}"
        )
    return decimals


def _check_int(value: int, name: str, *, allow_negative: bool = False) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConversionError(f"{name} must be an int, got {type(value).__name__}")
    if not allow_negative and value < 0:
        raise ConversionError(f"{name} must be non-negative, got {value}")
    return value


def to_decimal(value: Decimal | int | str, name: str = "value") -> Decimal:
    """Coerce to Decimal, rejecting floats, bools, NaN/Infinity and negatives."""
    if isinstance(value, (bool, float)):
        raise ConversionError(
            f"{name} must be a Decimal, int or numeric string, got {type(value).__name__}"
        )
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation as e:
            raise ConversionError(f"{name} is not numeric: {value!r}") from e
    else:
        raise ConversionError(
            f"{name} must be a Decimal, int or numeric string, got {type(value).__name__}"
        )

    if not result.is_finite():
        raise ConversionError(f"{name} must be finite, got {result}")
    if result < 0:
        raise ConversionError(f"{name} must be non-negative, got {result}")
    return result


def _quantum(decimals: int) -> Decimal:
    return Decimal(1).scaleb(-decimals)


def integer_to_decimal(value: int, decimals: int) -> Decimal:
    """Convert an on-chain integer amount to a human decimal amount.

    Args:
        value: Integer amount in the token's smallest unit.
        decimals: Token decimals (18 for USD/WAD values).

    Returns:
        ``value / 10**decimals`` rounded toward zero to ``decimals`` places.
    """
    _check_int(value, "value", allow_negative=True)
    _check_decimals(decimals)
    with localcontext() as ctx:
        ctx.prec = PRECISION
        ctx.rounding = ROUND_DOWN
        return Decimal(value).scaleb(-decimals).quantize(
            _quantum(decimals), rounding=ROUND_DOWN
        )


def decimal_to_integer(value: Decimal | int | str, decimals: int) -> int:
    """Convert a human decimal amount to the integer submitted on-chain.

    Any fractional remainder below the token's smallest unit is floored.

    Args:
        value: Non-negative decimal amount in human units.
        decimals: Token decimals.

    Returns:
        ``floor(value * 10**decimals)``.

    Raises:
        ConversionError: If ``value`` is a float, non-numeric, non-finite or
            negative.
    """
    amount = to_decimal(value, "value")
    _check_decimals(decimals)
    with localcontext() as ctx:
        ctx.prec = PRECISION
        ctx.rounding = ROUND_FLOOR
        return int(amount.scaleb(decimals).to_integral_value(rounding=ROUND_FLOOR))


def integer_to_usd(value: int) -> Decimal:
    """USD values on-chain always carry 18 decimals of precision."""
    return integer_to_decimal(value, USD_DECIMALS)


def _price_to_decimal(price: Decimal | int | str) -> Decimal:
    # Integer prices are WAD-scaled USD as returned by the oracle manager
    if isinstance(price, int) and not isinstance(price, bool):
        price_value = integer_to_usd(_check_int(price, "price"))
    else:
        price_value = to_decimal(price, "price")
    if price_value == 0:
        raise ConversionError("price must be positive")
    return price_value


def usd_to_decimal_tokens(
    usd_value: Decimal | int | str, price: Decimal | int | str, decimals: int
) -> Decimal:
    """Size a token amount from a USD budget.

    Args:
        usd_value: USD budget in human units.
        price: USD price of one token; a Decimal, or an int in WAD.
        decimals: Token decimals.

    Returns:
        ``usd_value / price`` rounded down to ``decimals`` places, so
        ``result * price`` never exceeds ``usd_value``.
    """
    usd = to_decimal(usd_value, "usd_value")
    price_value = _price_to_decimal(price)
    _check_decimals(decimals)
    with localcontext() as ctx:
        ctx.prec = PRECISION
        ctx.rounding = ROUND_DOWN
        return (usd / price_value).quantize(_quantum(decimals), rounding=ROUND_DOWN)


def usd_to_integer_tokens(
    usd_value: Decimal | int | str, price: Decimal | int | str, decimals: int
) -> int:
    return decimal_to_integer(usd_to_decimal_tokens(usd_value, price, decimals), decimals)


def integer_tokens_to_usd(amount: int, price: int, decimals: int) -> Decimal:
    """Value an integer token amount using a WAD price."""
    _check_int(amount, "amount")
    _check_int(price, "price")
    _check_decimals(decimals)
    return integer_to_usd(amount * price // 10**decimals)


def decimal_tokens_to_usd(
    amount: Decimal | int | str, price: Decimal | int | str
) -> Decimal:
    token_amount = to_decimal(amount, "amount")
    price_value = to_decimal(price, "price")
    with localcontext() as ctx:
        ctx.prec = PRECISION
        ctx.rounding = ROUND_DOWN
        return token_amount * price_value


def tokens_to_tokens(
    from_token: PricedAmount, to_token: PricedAmount, formatted: bool = True
) -> Decimal | int:
    """Convert an amount of one token into the equivalent amount of another.

    Args:
        from_token: Source token; ``amount`` must be set.
        to_token: Destination token price and decimals.
        formatted: Return a Decimal in human units when True, the on-chain
            integer otherwise.
    """
    if from_token.amount is None:
        raise ConversionError("from_token.amount must be set")
    usd = decimal_tokens_to_usd(from_token.amount, from_token.price)
    converted = usd_to_decimal_tokens(usd, to_token.price, to_token.decimals)
    if formatted:
        return converted
    return decimal_to_integer(converted, to_token.decimals)


def bps_to_wad(value: int) -> int:
    """Convert basis points to a WAD-scaled fraction.

    1 bps = 1e-4 = 1e14 in WAD; 10_000 bps = 1e18.

    Example:
        50 bps (0.5%) -> 5_000_000_000_000_000
    """
    _check_int(value, "value")
    return value * WAD // BPS


def percentage_to_bps(value: Decimal | int | str) -> int:
    """Convert a fractional percentage (0.005 == 0.5%) to basis points.

    Rounds half-up to the nearest basis point.
    """
    percentage = to_decimal(value, "value")
    with localcontext() as ctx:
        ctx.prec = PRECISION
        return int((percentage * BPS).to_integral_value(rounding=ROUND_HALF_UP))


def percentage_to_bps_wad(value: Decimal | int | str) -> int:
    return bps_to_wad(percentage_to_bps(value))


def percentage_to_text(value: Decimal | int | str) -> str:
    """0.005 -> "0.50%"."""
    percentage = to_decimal(value, "value")
    with localcontext() as ctx:
        ctx.prec = PRECISION
        shown = (percentage * 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{shown}%"
