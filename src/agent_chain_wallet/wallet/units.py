"""Address/hash checks and smallest-unit conversions."""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, localcontext

from web3 import Web3

ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")

ETHER_DECIMALS = 18
GWEI_DECIMALS = 9


def is_address_shaped(value: str) -> bool:
    return isinstance(value, str) and bool(ADDRESS_RE.match(value))


def normalize_address(value: str) -> str:
    """Return the checksummed form of a 0x-prefixed 40-hex-char address.

    Raises ``ValueError`` if *value* does not have that shape. Checksum case
    is not enforced on input.
    """
    if not is_address_shaped(value):
        raise ValueError(
            f"Invalid address '{value}': expected 0x followed by 40 hex characters"
        )
    return Web3.to_checksum_address(value.lower())


def normalize_hash(value: str) -> str:
    if not isinstance(value, str) or not HASH_RE.match(value):
        raise ValueError(
            f"Invalid hash '{value}': expected 0x followed by 64 hex characters"
        )
    return value.lower()


def format_units(value: int, decimals: int) -> str:
    """Render an integer amount of smallest units as a plain decimal string.

    ``format_units(10**18, 18) == "1"``, ``format_units(15 * 10**17, 18) == "1.5"``.
    """
    with localcontext() as ctx:
        ctx.prec = 100
        scaled = Decimal(int(value)).scaleb(-decimals).normalize()
        return format(scaled, "f")


def format_ether(wei: int) -> str:
    return format_units(wei, ETHER_DECIMALS)


def format_gwei(wei: int, places: int = 2) -> str:
    with localcontext() as ctx:
        ctx.prec = 100
        return f"{Decimal(int(wei)).scaleb(-GWEI_DECIMALS):.{places}f}"


def parse_units(amount: str, decimals: int) -> int:
    """Parse a non-negative decimal string into smallest units.

    Raises ``ValueError`` for non-numeric input, negative amounts, or more
    fractional digits than *decimals*.
    """
    text = str(amount).strip()
    try:
        with localcontext() as ctx:
            ctx.prec = 100
            value = Decimal(text)
            if not value.is_finite():
                raise InvalidOperation
            scaled = value.scaleb(decimals)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount '{amount}': expected a decimal number") from exc
    if value < 0:
        raise ValueError(f"Invalid amount '{amount}': must not be negative")
    if scaled != scaled.to_integral_value():
        raise ValueError(
            f"Invalid amount '{amount}': more than {decimals} decimal places"
        )
    return int(scaled)


def parse_ether(amount: str) -> int:
    return parse_units(amount, ETHER_DECIMALS)


def to_hex(value) -> str | None:
    """Render bytes-like values (e.g. ``HexBytes``) as 0x-prefixed hex."""
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return str(value)
