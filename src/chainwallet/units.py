"""
Conversion between human-readable amounts and smallest ledger units.
"""

from __future__ import annotations

from decimal import ROUND_FLOOR, Decimal, InvalidOperation, localcontext

from chainwallet.constants import ETHER_DECIMALS

# Enough digits for 256-bit wei balances at 18 decimal places
_PRECISION = 120


def _to_decimal(amount: Decimal | int | float | str) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    if isinstance(amount, float):
        # str() keeps the shortest repr, so 0.1 means one tenth
        amount = str(amount)
    try:
        return Decimal(amount)
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e


def normalize(
    amount: Decimal | int | float | str,
    exponent: int = ETHER_DECIMALS,
    decimal_places: int = ETHER_DECIMALS,
) -> str:
    """
    Scale ``amount`` by ``10**exponent`` and truncate to ``decimal_places``.

    Truncation rounds toward negative infinity, never up. The result is a
    plain decimal string without exponent notation or trailing zeros.

        normalize(0.1, 18)                    == "100000000000000000"  (ETH -> wei)
        normalize(0.1, 8)                     == "10000000"            (BTC -> sat)
        normalize("100000000000000000", -18)  == "0.1"                 (wei -> ETH)
        normalize(0.12345678, 0, 4)           == "0.1234"
    """
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        value = _to_decimal(amount) * Decimal(10) ** exponent
        quantum = Decimal(1).scaleb(-decimal_places)
        result = value.quantize(quantum, rounding=ROUND_FLOOR)
        if result.is_zero():
            return "0"
        return format(result.normalize(), "f")
