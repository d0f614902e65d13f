"""Shared constants and numeric helpers for pair accounting."""

from decimal import Decimal, getcontext

# Enough significant digits for any uint256 amount, so scaling never rounds.
getcontext().prec = 78

ADDRESS_ZERO = "0x0000000000000000000000000000000000000000"

ZERO_BD = Decimal(0)
ONE_BD = Decimal(1)
TWO_BD = Decimal(2)
BI_18 = 18

BUNDLE_ID = "1"

# Raw LP units minted to the zero address on a pair's first deposit.
MINIMUM_LIQUIDITY = 1000

# bytes32 payload some tokens return instead of an empty symbol/name.
NULL_ETH_VALUE = "0x0000000000000000000000000000000000000000000000000000000000000001"


def exponent_to_decimal(decimals: int) -> Decimal:
    return Decimal(10) ** decimals


def convert_token_to_decimal(amount: int, decimals: int) -> Decimal:
    """Scale a raw integer token amount by the token's decimal precision."""

    if decimals == 0:
        return Decimal(amount)
    return Decimal(amount) / exponent_to_decimal(decimals)


def is_null_eth_value(value: str) -> bool:
    return value == NULL_ETH_VALUE


__all__ = [
    "ADDRESS_ZERO",
    "BI_18",
    "BUNDLE_ID",
    "MINIMUM_LIQUIDITY",
    "NULL_ETH_VALUE",
    "ONE_BD",
    "TWO_BD",
    "ZERO_BD",
    "convert_token_to_decimal",
    "exponent_to_decimal",
    "is_null_eth_value",
]
