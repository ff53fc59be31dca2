"""
x402-router — pay-per-call API routing for the x402 protocol.

Name an API, the router finds providers in the registry, picks one,
pays it in USDC on Solana and forwards the call with the payment proof.

Usage:
    from x402_router import FileSigner, create_router

    router = create_router(signer=FileSigner("~/.config/solana/id.json"))
    result = await router.call("weather", {"city": "Lisbon"}, max_price=0.05)
    print(result.data, result.cost, result.provider_id)
"""

from .discovery import DiscoveryClient, filter_providers
from .errors import (
    ConfigError,
    DiscoveryError,
    InsufficientFundsError,
    PaymentError,
    PaymentRejectedError,
    ProviderError,
    ProviderNotFoundError,
    RequestTimeoutError,
    RouterError,
    WalletError,
)
from .models import (
    APIResponse,
    CallOptions,
    DiscoveryRequest,
    DiscoveryResponse,
    Payment,
    Provider,
)
from .payment import PaymentClient
from .router import RouterConfig, X402Router, create_router
from .selection import select_best_provider
from .signers import FileSigner, Signer, WalletAdapterSigner, WebSocketWalletAdapter
from .stats import RouterStats
from .utils import format_usdc, truncate_address

__version__ = "0.1.0"

__all__ = [
    # Main API
    "create_router",
    "X402Router",
    "RouterConfig",
    # Components
    "DiscoveryClient",
    "PaymentClient",
    "filter_providers",
    "select_best_provider",
    "RouterStats",
    # Signers
    "Signer",
    "FileSigner",
    "WalletAdapterSigner",
    "WebSocketWalletAdapter",
    # Models
    "Provider",
    "DiscoveryRequest",
    "DiscoveryResponse",
    "Payment",
    "CallOptions",
    "APIResponse",
    # Errors
    "RouterError",
    "ConfigError",
    "WalletError",
    "DiscoveryError",
    "ProviderNotFoundError",
    "PaymentError",
    "InsufficientFundsError",
    "RequestTimeoutError",
    "PaymentRejectedError",
    "ProviderError",
    # Utils
    "format_usdc",
    "truncate_address",
]
