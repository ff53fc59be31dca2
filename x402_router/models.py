"""
Data model shared by the discovery, payment and routing layers.

Wire format follows the x402 registry/provider JSON (camelCase keys);
Python attributes are snake_case.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

SOLANA = "solana"
ETHEREUM = "ethereum"
BASE = "base"

SUPPORTED_CHAINS = (SOLANA, ETHEREUM, BASE)

# Proof token attached to zero-cost calls. Carries no signature.
FREE_CALL_TOKEN = "free-api-call"

DEFAULT_TIMEOUT_MS = 30000


@dataclass(frozen=True)
class Provider:
    """A priced API endpoint as advertised by the registry."""
    id: str
    url: str
    wallet: str
    price: float
    reputation: float = 0.0
    latency: float = 0.0  # ms

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Provider":
        return cls(
            id=str(data["id"]),
            url=str(data["url"]).rstrip("/"),
            wallet=str(data["wallet"]),
            price=float(data.get("price") or 0),
            reputation=float(data.get("reputation") or 0),
            latency=float(data.get("latency") or 0),
        )


@dataclass(frozen=True)
class DiscoveryRequest:
    """Registry query. Also the shape of the discovery cache key."""
    api: str
    max_price: Optional[float] = None
    min_reputation: Optional[float] = None
    max_latency: Optional[float] = None
    limit: Optional[int] = None

    def to_json(self) -> Dict[str, Any]:
        """Registry request body; absent constraints are omitted."""
        body: Dict[str, Any] = {"api": self.api}
        if self.max_price is not None:
            body["maxPrice"] = self.max_price
        if self.min_reputation is not None:
            body["minReputation"] = self.min_reputation
        if self.max_latency is not None:
            body["maxLatency"] = self.max_latency
        if self.limit is not None:
            body["limit"] = self.limit
        return body

    def cache_key(self) -> str:
        # limit is applied after retrieval, so it is not part of the key
        return f"{self.api}:{self.max_price}:{self.min_reputation}:{self.max_latency}"


@dataclass
class DiscoveryResponse:
    """Registry answer to POST /discover."""
    providers: List[Provider]
    cache_ttl: float  # seconds

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiscoveryResponse":
        return cls(
            providers=[Provider.from_dict(p) for p in data.get("providers") or []],
            cache_ttl=float(data.get("cacheTTL") or 0),
        )


@dataclass(frozen=True)
class Payment:
    """A confirmed (or waived) transfer, attached to the provider request as proof."""
    token: str
    to: str
    amount: float
    resource: str
    chain: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_free(self) -> bool:
        return self.token == FREE_CALL_TOKEN

    def headers(self) -> Dict[str, str]:
        """Request headers carrying the proof."""
        return {"X-Payment": self.token, "X-Payment-Chain": self.chain}


@dataclass
class CallOptions:
    """Per-call overrides. Nothing here outlives the call."""
    max_price: Optional[float] = None
    min_reputation: Optional[float] = None
    max_latency: Optional[float] = None
    prefer_cheap: bool = False
    provider_id: Optional[str] = None
    timeout: Optional[int] = None  # ms


@dataclass(frozen=True)
class APIResponse:
    """Result of a successful routed call."""
    data: Any
    provider_id: str
    cost: float
    latency: int  # ms, discovery through response decoding
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
