"""
Amount conversion between human-decimal strings and smallest token units.

These are the canonical conversions used when building permits and when
rendering balances. Both directions are exact: nothing is rounded or
truncated, and ``to_smallest_unit(to_decimal_string(x, p), p) == x`` for
every non-negative integer ``x``.
"""

import re
from decimal import Decimal
from typing import Union

from ..engine.exceptions import MalformedAmount

_DECIMAL_PATTERN = re.compile(r"^(\d+(\.\d*)?|\.\d+)$")


def _check_precision(precision: int) -> None:
    if not isinstance(precision, int) or isinstance(precision, bool) or precision < 0:
        raise MalformedAmount("precision must be a non-negative int")


def to_smallest_unit(amount: Union[str, int, Decimal], precision: int) -> int:
    """Convert a human-readable ``amount`` into a smallest-unit integer.

    Args:
        amount: Decimal string such as ``"1.23"``; ints and Decimals are also
            accepted. Exponent notation is rejected.
        precision: Token decimals (e.g. 6 for USDC).

    Returns:
        int: Smallest-unit integer value.

    Raises:
        MalformedAmount: If the input is not a plain non-negative decimal, or
            if it carries non-zero digits beyond ``precision``.
    """
    _check_precision(precision)

    if isinstance(amount, bool):
        raise MalformedAmount(f"Invalid amount: {amount!r}")
    if isinstance(amount, int):
        text = str(amount)
    elif isinstance(amount, Decimal):
        if not amount.is_finite():
            raise MalformedAmount(f"Invalid amount: {amount!r}")
        text = format(amount, "f")
    elif isinstance(amount, str):
        text = amount.strip()
    else:
        raise MalformedAmount(f"Unsupported amount type: {type(amount).__name__}")

    if text.startswith("-"):
        raise MalformedAmount(f"amount must be non-negative, got {amount!r}")
    if not _DECIMAL_PATTERN.match(text):
        raise MalformedAmount(f"Invalid amount: {amount!r}")

    whole, _, frac = text.partition(".")

    # Trailing zeros carry no value; anything else past `precision` would be lost.
    frac = frac.rstrip("0")
    if len(frac) > precision:
        raise MalformedAmount(
            f"amount {amount!r} has more fractional digits than precision={precision} allows"
        )

    return int(whole or "0") * 10 ** precision + int(frac.ljust(precision, "0") or "0")


def to_decimal_string(value: int, precision: int) -> str:
    """Render a smallest-unit integer with exactly ``precision`` fractional digits.

    Example::

        to_decimal_string(1_000_000, 6)  # "1.000000"
        to_decimal_string(5, 0)          # "5"
    """
    _check_precision(precision)
    if not isinstance(value, int) or isinstance(value, bool):
        raise MalformedAmount(f"value must be an int, got {type(value).__name__}")
    if value < 0:
        raise MalformedAmount("value must be non-negative")

    if precision == 0:
        return str(value)

    whole, frac = divmod(value, 10 ** precision)
    return f"{whole}.{frac:0{precision}d}"
