"""Small helpers shared across the router modules."""

from __future__ import annotations

from contextlib import asynccontextmanager
from decimal import ROUND_DOWN, Decimal
from typing import AsyncIterator, Optional, Union

import httpx

USDC_DECIMALS = 6


def format_usdc(amount: float) -> str:
    """Format a USDC amount for display, e.g. ``$0.5000``."""
    return f"${amount:.4f}"


def truncate_address(address: str, chars: int = 4) -> str:
    """Shorten a wallet address to ``abcd...wxyz``."""
    if len(address) <= chars * 2:
        return address
    return f"{address[:chars]}...{address[-chars:]}"


def to_base_units(amount: Union[float, str, Decimal], decimals: int = USDC_DECIMALS) -> int:
    """
    Convert a human-readable token amount to integer base units.

    Any sub-unit remainder is truncated, never rounded up:
    0.1234567 USDC -> 123456.

    Args:
        amount: Decimal amount (e.g. 0.5 for half a USDC).
        decimals: Token decimal precision.

    Returns:
        Amount in the token's smallest unit.
    """
    # str() first so binary float noise (0.1 + 0.2) does not leak into the result
    value = Decimal(str(amount)) * (Decimal(10) ** decimals)
    return int(value.to_integral_value(rounding=ROUND_DOWN))


def from_base_units(amount: Union[int, str], decimals: int = USDC_DECIMALS) -> float:
    """Convert integer base units back to a decimal token amount."""
    return float(Decimal(int(amount)) / (Decimal(10) ** decimals))


@asynccontextmanager
async def open_http_client(
    client: Optional[httpx.AsyncClient] = None,
    timeout: Optional[float] = None,
) -> AsyncIterator[httpx.AsyncClient]:
    """
    Yield ``client`` if one was injected, otherwise a short-lived AsyncClient.

    Injected clients are left open; their owner closes them. Without an
    explicit ``timeout`` the own client keeps httpx's default deadlines.
    """
    if client is not None:
        yield client
        return

    kwargs = {} if timeout is None else {"timeout": timeout}
    async with httpx.AsyncClient(**kwargs) as own_client:
        yield own_client
