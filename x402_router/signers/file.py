"""
File-backed signer.

Loads a Solana CLI keypair file (a JSON array of 64 integers) once at
construction and signs locally.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Union

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from ..errors import WalletError
from .base import Signer


def load_keypair(path: Union[str, Path]) -> Keypair:
    """
    Read a keypair from a Solana CLI style JSON file.

    Args:
        path: Path to the keypair file.

    Returns:
        The loaded Keypair.

    Raises:
        WalletError: The file is missing, unreadable or not a 64-byte key.
    """
    try:
        secret = json.loads(Path(path).read_text(encoding="utf-8"))
        return Keypair.from_bytes(bytes(secret))
    except Exception as e:
        # message names the path only, never the key bytes
        raise WalletError(f"Failed to load wallet from {path}: {e}") from e


class FileSigner(Signer):
    """
    Signs with a keypair held in process memory.

    Usage:
        signer = FileSigner("~/.config/solana/id.json")
        signer = FileSigner(Keypair())  # already loaded key
    """

    def __init__(self, source: Union[str, Path, Keypair]):
        """
        Args:
            source: Path to a keypair file, or an already loaded Keypair.
        """
        if isinstance(source, Keypair):
            self._keypair = source
        else:
            self._keypair = load_keypair(Path(source).expanduser())

    @property
    def public_key(self) -> Pubkey:
        return self._keypair.pubkey()

    async def sign_transaction(self, transaction: Transaction) -> Transaction:
        try:
            transaction.partial_sign([self._keypair], transaction.message.recent_blockhash)
        except Exception as e:
            raise WalletError(f"Failed to sign transaction: {e}") from e
        return transaction

    def __repr__(self) -> str:
        return f"FileSigner(public_key={self.public_key})"
