"""
X402 router: discover → select → check funds → pay → call.

One call is a linear pipeline. Any step failing aborts the rest and the
error reaches the caller with its type intact. A payment that was
confirmed before the provider call failed is NOT refunded or retried;
the loss is recorded in the stats and the error is raised as-is.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

import httpx
from solana.rpc.async_api import AsyncClient

from .discovery import DEFAULT_REGISTRY_URL, DiscoveryClient
from .errors import (
    ConfigError,
    InsufficientFundsError,
    PaymentRejectedError,
    ProviderError,
    RequestTimeoutError,
    RouterError,
)
from .models import (
    DEFAULT_TIMEOUT_MS,
    SOLANA,
    SUPPORTED_CHAINS,
    APIResponse,
    CallOptions,
    DiscoveryRequest,
    Payment,
    Provider,
)
from .payment import PaymentClient
from .selection import ProviderSelector, select_best_provider
from .signers.base import Signer
from .stats import RouterStats
from .utils import format_usdc, open_http_client

logger = logging.getLogger(__name__)

DEFAULT_RPC_ENDPOINT = "https://api.mainnet-beta.solana.com"

# Candidates requested from discovery per call
DISCOVERY_LIMIT = 10

_FALSE_VALUES = ("0", "false", "no", "off")


@dataclass
class RouterConfig:
    """Router settings. The signer is passed separately."""
    registry: str = DEFAULT_REGISTRY_URL
    chain: str = SOLANA
    rpc_endpoint: str = DEFAULT_RPC_ENDPOINT
    logging: bool = True

    def __post_init__(self) -> None:
        if self.chain not in SUPPORTED_CHAINS:
            raise ConfigError(
                f"Unsupported chain: {self.chain} (expected one of {', '.join(SUPPORTED_CHAINS)})"
            )
        if not self.registry:
            raise ConfigError("Registry URL is required")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> "RouterConfig":
        """
        Build a config from X402_* environment variables.

        Explicit keyword overrides win over the environment.

        Variables:
            X402_REGISTRY_URL, X402_CHAIN, X402_RPC_ENDPOINT, X402_LOGGING
        """
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        if env.get("X402_REGISTRY_URL"):
            values["registry"] = env["X402_REGISTRY_URL"]
        if env.get("X402_CHAIN"):
            values["chain"] = env["X402_CHAIN"].lower()
        if env.get("X402_RPC_ENDPOINT"):
            values["rpc_endpoint"] = env["X402_RPC_ENDPOINT"]
        if env.get("X402_LOGGING"):
            values["logging"] = env["X402_LOGGING"].strip().lower() not in _FALSE_VALUES

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class X402Router:
    """
    Pay-per-call API router.

    Usage:
        signer = FileSigner("~/.config/solana/id.json")
        async with X402Router(signer) as router:
            result = await router.call("weather", {"city": "Lisbon"}, max_price=0.05)
            print(result.data, result.cost)
    """

    def __init__(
        self,
        signer: Signer,
        config: Optional[RouterConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        connection: Optional[AsyncClient] = None,
        selector: Optional[ProviderSelector] = None,
    ):
        """
        Args:
            signer: Signer for payments. Owned by the caller; never closed here.
            config: Router settings (defaults to RouterConfig()).
            http_client: Shared AsyncClient for registry and provider calls.
            connection: Pre-built Solana RPC client.
            selector: Provider selection strategy.
        """
        self.signer = signer
        self.config = config or RouterConfig()
        self._http_client = http_client
        self._selector: ProviderSelector = selector or select_best_provider

        self.discovery = DiscoveryClient(self.config.registry, http_client=http_client)
        self.payment = PaymentClient(
            signer,
            chain=self.config.chain,
            rpc_endpoint=self.config.rpc_endpoint,
            connection=connection,
        )
        self.stats = RouterStats()

    @property
    def public_key(self) -> str:
        """Address paying for calls."""
        return str(self.signer.public_key)

    async def call(
        self,
        api: str,
        params: Optional[Dict[str, Any]] = None,
        options: Optional[CallOptions] = None,
        **overrides: Any,
    ) -> APIResponse:
        """
        Route one API call to a provider and pay for it.

        Args:
            api: Logical API name.
            params: Parameters forwarded to the provider.
            options: Per-call constraints.
            **overrides: CallOptions fields, merged over ``options``.

        Returns:
            APIResponse with the provider's data, provider id, cost and latency.

        Raises:
            RouterError: No providers, or the selector found none suitable.
            DiscoveryError: Registry failure (ProviderNotFoundError for a pinned id).
            InsufficientFundsError: Balance below the provider's price.
            PaymentError: The payment could not be made.
            WalletError: The signer failed.
            RequestTimeoutError: The provider did not answer in time.
            PaymentRejectedError: The provider answered 402.
            ProviderError: The provider answered with another failure.
        """
        options = options or CallOptions()
        if overrides:
            options = dataclasses.replace(options, **overrides)
        params = params or {}

        start = time.monotonic()
        provider: Optional[Provider] = None
        payment: Optional[Payment] = None

        try:
            providers = await self._discover_providers(api, options)
            if not providers:
                raise RouterError(f"No providers available for {api}")

            if options.provider_id:
                provider = await self.discovery.get_provider(options.provider_id)
            else:
                provider = self._selector(providers, options)

            if self.config.logging:
                logger.info("→ Using provider: %s (%s)", provider.id, format_usdc(provider.price))

            await self._ensure_funds(provider.price)

            payment = await self.payment.create_payment(
                provider.wallet,
                provider.price,
                f"{provider.url}/{api}",
            )

            data = await self._call_provider(provider, api, params, payment, options)
        except Exception as e:
            latency = _elapsed_ms(start)
            if self.config.logging:
                logger.error("✗ Request failed: %s", e)
            self.stats.record(
                api,
                False,
                provider_id=provider.id if provider else None,
                cost=payment.amount if payment else 0.0,
                paid=payment is not None and not payment.is_free,
                latency_ms=latency,
                error=str(e),
            )
            raise

        latency = _elapsed_ms(start)
        if self.config.logging:
            logger.info("✓ Request completed in %dms", latency)

        self.stats.record(
            api,
            True,
            provider_id=provider.id,
            cost=payment.amount,
            paid=not payment.is_free,
            latency_ms=latency,
        )

        return APIResponse(
            data=data,
            provider_id=provider.id,
            cost=provider.price,
            latency=latency,
        )

    async def _discover_providers(self, api: str, options: CallOptions) -> List[Provider]:
        return await self.discovery.discover(
            DiscoveryRequest(
                api=api,
                max_price=options.max_price,
                min_reputation=options.min_reputation,
                max_latency=options.max_latency,
                limit=DISCOVERY_LIMIT,
            )
        )

    async def _ensure_funds(self, required: float) -> None:
        balance = await self.payment.get_balance()
        logger.debug("Balance: %s", format_usdc(balance))
        if balance < required:
            raise InsufficientFundsError(required, balance)

    async def _call_provider(
        self,
        provider: Provider,
        api: str,
        params: Dict[str, Any],
        payment: Payment,
        options: CallOptions,
    ) -> Any:
        """
        POST the call to the provider with the payment proof attached.

        The deadline covers the whole request; on expiry the in-flight
        request is cancelled.
        """
        timeout_ms = DEFAULT_TIMEOUT_MS if options.timeout is None else options.timeout
        timeout = timeout_ms / 1000
        headers = {"Content-Type": "application/json", **payment.headers()}

        try:
            async with open_http_client(self._http_client) as client:
                # per-request timeout overrides a shared client's own default
                response = await asyncio.wait_for(
                    client.post(
                        f"{provider.url}/call",
                        json={"api": api, "params": params},
                        headers=headers,
                        timeout=timeout,
                    ),
                    timeout=timeout,
                )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise RequestTimeoutError(timeout_ms) from e
        except httpx.HTTPError as e:
            raise ProviderError(None, str(e) or type(e).__name__) from e

        if response.status_code == 402:
            body = _json_body(response)
            raise PaymentRejectedError(body.get("message") or "Payment required")

        if not response.is_success:
            body = _json_body(response)
            raise ProviderError(response.status_code, body.get("error") or response.reason_phrase)

        body = _json_body(response)
        if "data" not in body:
            raise ProviderError(response.status_code, "Response is missing 'data'")
        return body["data"]

    async def get_balance(self) -> float:
        """USDC balance of the signer."""
        return await self.payment.get_balance()

    def clear_cache(self) -> None:
        """Clear the discovery cache."""
        self.discovery.clear_cache()

    def get_stats(self) -> Dict[str, Any]:
        """Spending and call statistics."""
        stats = self.stats.to_dict()
        stats["cachedQueries"] = self.discovery.cache_size
        return stats

    async def close(self) -> None:
        """Release the RPC connection. The signer is left alone."""
        await self.payment.close()

    async def __aenter__(self) -> "X402Router":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


def create_router(
    signer: Optional[Signer] = None,
    registry: Optional[str] = None,
    chain: Optional[str] = None,
    rpc_endpoint: Optional[str] = None,
    logging: Optional[bool] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    selector: Optional[ProviderSelector] = None,
) -> X402Router:
    """
    Create a router, filling unset settings from X402_* environment variables.

    Args:
        signer: Signer for payments (required).
        registry: Registry base URL.
        chain: Chain tag ("solana", "ethereum", "base").
        rpc_endpoint: Solana RPC endpoint.
        logging: Log per-call progress.
        http_client: Shared AsyncClient.
        selector: Provider selection strategy.

    Returns:
        X402Router instance.
    """
    if signer is None:
        raise ConfigError("x402-router: signer is required")
    if not hasattr(signer, "public_key") or not hasattr(signer, "sign_transaction"):
        raise ConfigError(
            "x402-router: signer must have a public_key and a sign_transaction() method"
        )

    config = RouterConfig.from_env(
        registry=registry,
        chain=chain,
        rpc_endpoint=rpc_endpoint,
        logging=logging,
    )
    return X402Router(signer, config, http_client=http_client, selector=selector)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _json_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
