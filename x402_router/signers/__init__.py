"""
Signers: the only place key material lives.

- FileSigner — keypair file on local disk
- WalletAdapterSigner — externally connected, interactive wallet
- WebSocketWalletAdapter — adapter for a websocket signing bridge
"""

from .base import Signer
from .bridge import WebSocketWalletAdapter
from .file import FileSigner, load_keypair
from .wallet import WalletAdapterSigner

__all__ = [
    "Signer",
    "FileSigner",
    "load_keypair",
    "WalletAdapterSigner",
    "WebSocketWalletAdapter",
]
