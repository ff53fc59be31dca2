"""
Error hierarchy for the x402 router.

Every failure raised out of X402Router.call() derives from RouterError so
callers can catch one root type and still branch on the specific kind.

    RouterError
    ├── ConfigError
    ├── WalletError
    ├── DiscoveryError
    │   └── ProviderNotFoundError
    ├── PaymentError
    │   └── InsufficientFundsError
    ├── RequestTimeoutError
    ├── PaymentRejectedError
    └── ProviderError
"""

from __future__ import annotations

from typing import Optional


class RouterError(Exception):
    """Base router error."""


class ConfigError(RouterError):
    """Missing or invalid router configuration."""


class WalletError(RouterError):
    """Signer could not be loaded or refused to sign."""


class DiscoveryError(RouterError):
    """Registry lookup failed."""


class ProviderNotFoundError(DiscoveryError):
    """The registry has no provider with the requested id."""

    def __init__(self, provider_id: str):
        super().__init__(f"Provider not found: {provider_id}")
        self.provider_id = provider_id


class PaymentError(RouterError):
    """Payment could not be constructed, signed or confirmed."""


class InsufficientFundsError(PaymentError):
    """
    Raised before paying when the balance does not cover the price.

    Attributes:
        required: Provider price in USDC.
        available: Spendable balance in USDC at the time of the check.
    """

    def __init__(self, required: float, available: float):
        super().__init__(
            f"Insufficient funds: required {required}, available {available}"
        )
        self.required = required
        self.available = available


class RequestTimeoutError(RouterError):
    """The provider did not answer within the client-side deadline."""

    def __init__(self, timeout_ms: int):
        super().__init__(f"Request timed out after {timeout_ms}ms")
        self.timeout_ms = timeout_ms


class PaymentRejectedError(RouterError):
    """
    The provider answered 402 to a request that carried a payment proof.

    The payment has already been confirmed on-chain at this point and is
    not reversed.
    """

    def __init__(self, message: str):
        super().__init__(f"Payment error: {message}")
        self.message = message


class ProviderError(RouterError):
    """Non-success answer (or transport failure) from a provider node."""

    def __init__(self, status_code: Optional[int], detail: str):
        super().__init__(f"Provider error: {detail}")
        self.status_code = status_code
        self.detail = detail
