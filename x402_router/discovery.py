"""
Registry discovery client with a TTL cache.

Results are cached per query shape (API name + constraints, not limit)
for the number of seconds the registry returns in ``cacheTTL``. An
expired entry is treated as absent: it is never served stale.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import httpx

from .errors import DiscoveryError, ProviderNotFoundError
from .models import DiscoveryRequest, DiscoveryResponse, Provider
from .utils import open_http_client

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_URL = "https://registry.x402apis.com"


@dataclass
class CacheEntry:
    """Cached registry result for one query shape."""
    providers: List[Provider]
    expires_at: float  # clock() value after which the entry is dead


def filter_providers(providers: List[Provider], request: DiscoveryRequest) -> List[Provider]:
    """
    Apply a request's constraints to a provider list.

    Each constraint is only applied when present. Limit is applied last.

    Args:
        providers: Candidate providers in registry order.
        request: Constraints to enforce.

    Returns:
        The surviving providers, order preserved.
    """
    filtered = providers

    if request.max_price is not None:
        filtered = [p for p in filtered if p.price <= request.max_price]

    if request.min_reputation is not None:
        filtered = [p for p in filtered if p.reputation >= request.min_reputation]

    if request.max_latency is not None:
        filtered = [p for p in filtered if p.latency <= request.max_latency]

    if request.limit is not None:
        filtered = filtered[: request.limit]

    return list(filtered)


class DiscoveryClient:
    """
    Finds providers for an API through the registry HTTP API.

    Usage:
        discovery = DiscoveryClient("https://registry.example.com")
        providers = await discovery.discover(DiscoveryRequest(api="weather", max_price=0.1))
    """

    def __init__(
        self,
        registry_url: str = DEFAULT_REGISTRY_URL,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            registry_url: Base URL of the registry.
            http_client: Optional shared AsyncClient (not closed by this class).
            clock: Seconds source used for cache expiry.
        """
        self.registry_url = registry_url.rstrip("/")
        self._http_client = http_client
        self._clock = clock

        # query shape -> CacheEntry
        self._cache: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    async def discover(self, request: DiscoveryRequest) -> List[Provider]:
        """
        Discover providers for an API.

        Args:
            request: API name and optional constraints.

        Returns:
            Providers satisfying every supplied constraint, at most ``limit``.

        Raises:
            DiscoveryError: The registry could not be reached or answered non-2xx.
        """
        cache_key = request.cache_key()
        cached = self._get_cached(cache_key)
        if cached is not None:
            logger.debug("Discovery cache hit for %s", cache_key)
            return filter_providers(cached, request)

        url = f"{self.registry_url}/discover"
        try:
            async with open_http_client(self._http_client) as client:
                response = await client.post(url, json=request.to_json())
        except httpx.HTTPError as e:
            raise DiscoveryError(f"Failed to discover providers: {e}") from e

        if response.status_code >= 400:
            raise DiscoveryError(
                f"Failed to discover providers: registry returned {response.status_code}"
            )

        try:
            data = DiscoveryResponse.from_dict(response.json())
        except (ValueError, KeyError, TypeError) as e:
            raise DiscoveryError(f"Failed to discover providers: malformed response ({e})") from e

        with self._lock:
            self._cache[cache_key] = CacheEntry(
                providers=data.providers,
                expires_at=self._clock() + data.cache_ttl,
            )

        return filter_providers(data.providers, request)

    async def get_provider(self, provider_id: str) -> Provider:
        """
        Look up one provider by id. Always goes to the registry.

        Raises:
            ProviderNotFoundError: The registry answered 404.
            DiscoveryError: Any other registry failure.
        """
        url = f"{self.registry_url}/provider/{provider_id}"
        try:
            async with open_http_client(self._http_client) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            raise DiscoveryError(f"Failed to get provider: {e}") from e

        if response.status_code == 404:
            raise ProviderNotFoundError(provider_id)
        if response.status_code >= 400:
            raise DiscoveryError(
                f"Failed to get provider: registry returned {response.status_code}"
            )

        try:
            return Provider.from_dict(response.json())
        except (ValueError, KeyError, TypeError) as e:
            raise DiscoveryError(f"Failed to get provider: malformed record ({e})") from e

    def clear_cache(self) -> None:
        """Drop every cached discovery result."""
        with self._lock:
            self._cache.clear()

    @property
    def cache_size(self) -> int:
        """Number of cache entries, expired ones included."""
        return len(self._cache)

    def _get_cached(self, cache_key: str) -> Optional[List[Provider]]:
        with self._lock:
            entry = self._cache.get(cache_key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._cache[cache_key]
                return None
            return entry.providers
