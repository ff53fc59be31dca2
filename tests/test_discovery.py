"""Tests for the registry discovery client and its TTL cache."""

import json

import httpx
import pytest

from x402_router.discovery import DiscoveryClient, filter_providers
from x402_router.errors import DiscoveryError, ProviderNotFoundError
from x402_router.models import DiscoveryRequest, Provider

REGISTRY = "https://registry.test"

PROVIDERS = [
    {"id": "p1", "url": "https://p1.test", "wallet": "w1", "price": 0.5, "reputation": 0.9, "latency": 200},
    {"id": "p2", "url": "https://p2.test", "wallet": "w2", "price": 0.1, "reputation": 0.6, "latency": 800},
    {"id": "p3", "url": "https://p3.test", "wallet": "w3", "price": 1.0, "reputation": 0.95, "latency": 50},
]


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_registry(providers=None, ttl=60, status=200):
    """MockTransport registry that records every request it receives."""
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path == "/discover":
            if status != 200:
                return httpx.Response(status, json={"error": "boom"})
            return httpx.Response(200, json={"providers": providers or PROVIDERS, "cacheTTL": ttl})
        if request.url.path.startswith("/provider/"):
            provider_id = request.url.path.rsplit("/", 1)[-1]
            for p in providers or PROVIDERS:
                if p["id"] == provider_id:
                    return httpx.Response(200, json=p)
            return httpx.Response(404, json={"error": "not found"})
        return httpx.Response(500)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client, requests


def make_providers():
    return [Provider.from_dict(p) for p in PROVIDERS]


class TestFilterProviders:
    def test_no_constraints_returns_all(self):
        result = filter_providers(make_providers(), DiscoveryRequest(api="x"))
        assert [p.id for p in result] == ["p1", "p2", "p3"]

    def test_max_price(self):
        result = filter_providers(make_providers(), DiscoveryRequest(api="x", max_price=0.5))
        assert [p.id for p in result] == ["p1", "p2"]

    def test_min_reputation(self):
        result = filter_providers(make_providers(), DiscoveryRequest(api="x", min_reputation=0.9))
        assert [p.id for p in result] == ["p1", "p3"]

    def test_max_latency(self):
        result = filter_providers(make_providers(), DiscoveryRequest(api="x", max_latency=200))
        assert [p.id for p in result] == ["p1", "p3"]

    def test_limit_applied_after_filters(self):
        request = DiscoveryRequest(api="x", min_reputation=0.9, limit=1)
        result = filter_providers(make_providers(), request)
        assert [p.id for p in result] == ["p1"]

    def test_bounds_are_inclusive(self):
        request = DiscoveryRequest(api="x", max_price=0.1, min_reputation=0.6, max_latency=800)
        result = filter_providers(make_providers(), request)
        assert [p.id for p in result] == ["p2"]

    def test_tightening_never_grows_the_result(self):
        providers = make_providers()
        loose = DiscoveryRequest(api="x", max_price=1.0, min_reputation=0.5, max_latency=1000, limit=3)
        tightened = [
            DiscoveryRequest(api="x", max_price=0.4, min_reputation=0.5, max_latency=1000, limit=3),
            DiscoveryRequest(api="x", max_price=1.0, min_reputation=0.92, max_latency=1000, limit=3),
            DiscoveryRequest(api="x", max_price=1.0, min_reputation=0.5, max_latency=100, limit=3),
            DiscoveryRequest(api="x", max_price=1.0, min_reputation=0.5, max_latency=1000, limit=2),
        ]
        baseline = len(filter_providers(providers, loose))
        for request in tightened:
            assert len(filter_providers(providers, request)) <= baseline


class TestDiscoveryRequest:
    def test_body_omits_absent_constraints(self):
        body = DiscoveryRequest(api="weather", max_price=0.2, limit=10).to_json()
        assert body == {"api": "weather", "maxPrice": 0.2, "limit": 10}

    def test_cache_key_ignores_limit(self):
        a = DiscoveryRequest(api="weather", max_price=0.2, limit=10)
        b = DiscoveryRequest(api="weather", max_price=0.2, limit=3)
        assert a.cache_key() == b.cache_key()

    def test_cache_key_includes_constraints(self):
        a = DiscoveryRequest(api="weather", max_price=0.2)
        b = DiscoveryRequest(api="weather", max_price=0.3)
        assert a.cache_key() != b.cache_key()


class TestDiscoveryCache:
    @pytest.mark.asyncio
    async def test_posts_request_to_registry(self):
        http, requests = make_registry()
        discovery = DiscoveryClient(REGISTRY, http_client=http)

        await discovery.discover(DiscoveryRequest(api="weather", max_price=2.0, limit=10))

        assert len(requests) == 1
        assert requests[0].method == "POST"
        assert str(requests[0].url) == f"{REGISTRY}/discover"
        assert json.loads(requests[0].content) == {"api": "weather", "maxPrice": 2.0, "limit": 10}

    @pytest.mark.asyncio
    async def test_second_call_within_ttl_uses_cache(self):
        http, requests = make_registry(ttl=60)
        clock = FakeClock()
        discovery = DiscoveryClient(REGISTRY, http_client=http, clock=clock)
        request = DiscoveryRequest(api="weather")

        first = await discovery.discover(request)
        clock.now += 59
        second = await discovery.discover(request)

        assert first == second
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_expired_entry_is_refreshed(self):
        http, requests = make_registry(ttl=60)
        clock = FakeClock()
        discovery = DiscoveryClient(REGISTRY, http_client=http, clock=clock)
        request = DiscoveryRequest(api="weather")

        await discovery.discover(request)
        clock.now += 60
        await discovery.discover(request)

        assert len(requests) == 2

    @pytest.mark.asyncio
    async def test_different_constraints_are_cached_separately(self):
        http, requests = make_registry()
        discovery = DiscoveryClient(REGISTRY, http_client=http, clock=FakeClock())

        await discovery.discover(DiscoveryRequest(api="weather", max_price=1.0))
        await discovery.discover(DiscoveryRequest(api="weather", max_price=0.2))

        assert len(requests) == 2
        assert discovery.cache_size == 2

    @pytest.mark.asyncio
    async def test_limit_applied_to_cached_results(self):
        http, requests = make_registry()
        discovery = DiscoveryClient(REGISTRY, http_client=http, clock=FakeClock())

        full = await discovery.discover(DiscoveryRequest(api="weather"))
        limited = await discovery.discover(DiscoveryRequest(api="weather", limit=1))

        assert len(full) == 3
        assert [p.id for p in limited] == ["p1"]
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_constraints_enforced_client_side(self):
        # Registry ignores maxPrice here; the client must still enforce it
        http, _ = make_registry()
        discovery = DiscoveryClient(REGISTRY, http_client=http, clock=FakeClock())

        result = await discovery.discover(DiscoveryRequest(api="weather", max_price=0.5))

        assert all(p.price <= 0.5 for p in result)

    @pytest.mark.asyncio
    async def test_clear_cache_forces_refetch(self):
        http, requests = make_registry()
        discovery = DiscoveryClient(REGISTRY, http_client=http, clock=FakeClock())
        request = DiscoveryRequest(api="weather")

        await discovery.discover(request)
        discovery.clear_cache()
        await discovery.discover(request)

        assert discovery.cache_size == 1
        assert len(requests) == 2

    @pytest.mark.asyncio
    async def test_registry_error_raises_discovery_error(self):
        http, requests = make_registry(status=503)
        discovery = DiscoveryClient(REGISTRY, http_client=http)

        with pytest.raises(DiscoveryError, match="503"):
            await discovery.discover(DiscoveryRequest(api="weather"))

        assert len(requests) == 1  # no retry
        assert discovery.cache_size == 0

    @pytest.mark.asyncio
    async def test_transport_error_raises_discovery_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        discovery = DiscoveryClient(REGISTRY, http_client=http)

        with pytest.raises(DiscoveryError, match="connection refused"):
            await discovery.discover(DiscoveryRequest(api="weather"))


class TestGetProvider:
    @pytest.mark.asyncio
    async def test_returns_provider(self):
        http, requests = make_registry()
        discovery = DiscoveryClient(REGISTRY, http_client=http)

        provider = await discovery.get_provider("p2")

        assert provider.id == "p2"
        assert provider.wallet == "w2"
        assert str(requests[0].url) == f"{REGISTRY}/provider/p2"

    @pytest.mark.asyncio
    async def test_bypasses_cache(self):
        http, requests = make_registry()
        discovery = DiscoveryClient(REGISTRY, http_client=http)

        await discovery.discover(DiscoveryRequest(api="weather"))
        await discovery.get_provider("p1")
        await discovery.get_provider("p1")

        assert len(requests) == 3

    @pytest.mark.asyncio
    async def test_unknown_id_raises_not_found(self):
        http, _ = make_registry()
        discovery = DiscoveryClient(REGISTRY, http_client=http)

        with pytest.raises(ProviderNotFoundError) as exc_info:
            await discovery.get_provider("nope")

        assert exc_info.value.provider_id == "nope"
        assert isinstance(exc_info.value, DiscoveryError)
