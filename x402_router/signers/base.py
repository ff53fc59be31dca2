"""
Abstract transaction signer.

The router and payment client only ever talk to this interface. Concrete
signers decide where the key lives (a keypair file, a browser wallet, a
hardware device) and never hand the key material out.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from solders.pubkey import Pubkey
from solders.transaction import Transaction


class Signer(ABC):
    """
    Capability to authorize Solana transactions for one public identity.

    Implementations must keep the same ``public_key`` for their whole
    lifetime and must not log or expose private key material.
    """

    @property
    @abstractmethod
    def public_key(self) -> Pubkey:
        """Public identity of the wallet behind this signer."""

    @abstractmethod
    async def sign_transaction(self, transaction: Transaction) -> Transaction:
        """
        Sign a pending transaction.

        May suspend for as long as the backing wallet needs (user
        approval in an interactive wallet, local computation for a key
        file).

        Args:
            transaction: Unsigned transaction with its recent blockhash set.

        Returns:
            The transaction carrying this signer's signature.

        Raises:
            WalletError: The wallet refused or failed to sign.
        """
