"""
Interactive wallet signer.

Delegates signing to an externally connected wallet (browser extension
bridge, hardware device, mobile wallet). Such wallets usually show one
approval prompt at a time, so concurrent sign requests are queued here
instead of being fired at the wallet in parallel.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional, Union

from solders.pubkey import Pubkey
from solders.transaction import Transaction

from ..errors import WalletError
from .base import Signer


def _as_pubkey(value: Union[str, Pubkey]) -> Pubkey:
    if isinstance(value, Pubkey):
        return value
    try:
        return Pubkey.from_string(str(value))
    except ValueError as e:
        raise WalletError(f"Invalid wallet public key: {value}") from e


class WalletAdapterSigner(Signer):
    """
    Signer backed by a connected wallet adapter.

    The adapter is any object with a ``public_key`` attribute (Pubkey or
    base58 string) and an async ``sign_transaction(transaction)`` method,
    e.g. WebSocketWalletAdapter.

    Usage:
        adapter = WebSocketWalletAdapter("ws://localhost:8765", public_key="...")
        signer = WalletAdapterSigner(adapter)
        router = X402Router(signer)
    """

    def __init__(self, adapter: Any):
        public_key = getattr(adapter, "public_key", None)
        sign = getattr(adapter, "sign_transaction", None)
        if public_key is None or public_key == "" or not callable(sign):
            raise WalletError("Wallet adapter is not connected or does not support signing.")

        self._adapter = adapter
        self._public_key = _as_pubkey(public_key)
        self._lock: Optional[asyncio.Lock] = None

    @property
    def public_key(self) -> Pubkey:
        return self._public_key

    async def sign_transaction(self, transaction: Transaction) -> Transaction:
        # Created lazily so the lock binds to the running loop
        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            try:
                signed = await self._adapter.sign_transaction(transaction)
            except WalletError:
                raise
            except Exception as e:
                raise WalletError(f"Wallet failed to sign transaction: {e}") from e

        if signed is None:
            raise WalletError("Wallet returned no signed transaction")
        return signed

    async def close(self) -> None:
        """Close the adapter connection, if it has one."""
        if hasattr(self._adapter, "close"):
            await self._adapter.close()
