"""
x402-router demo registry + provider node

A single FastAPI app playing both sides the router talks to:

- Registry:  POST /discover, GET /provider/{id}
- Provider:  POST /call  (needs X-Payment, answers 402 without it)

Run:
    pip install -e ".[dev]"
    python examples/provider_demo.py

Then point a router at it:
    X402_REGISTRY_URL=http://localhost:8402 python -c "..."

Payment proofs are not verified against the ledger here; any non-empty
X-Payment header is accepted.
"""

import datetime
import random
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, Header, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

BASE_URL = "http://localhost:8402"

# Demo provider wallet (any valid base58 address works)
PROVIDER_WALLET = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"

PROVIDERS: List[Dict[str, Any]] = [
    {"id": "demo-joke", "api": "joke", "url": BASE_URL, "wallet": PROVIDER_WALLET,
     "price": 0.001, "reputation": 0.9, "latency": 120},
    {"id": "demo-time", "api": "time", "url": BASE_URL, "wallet": PROVIDER_WALLET,
     "price": 0, "reputation": 0.8, "latency": 40},
]

CACHE_TTL = 60


class DiscoverBody(BaseModel):
    api: str
    maxPrice: Optional[float] = None
    minReputation: Optional[float] = None
    maxLatency: Optional[float] = None
    limit: Optional[int] = None


class CallBody(BaseModel):
    api: str
    params: Dict[str, Any] = {}


def create_app(providers: Optional[List[Dict[str, Any]]] = None, cache_ttl: float = CACHE_TTL) -> FastAPI:
    """Build the demo app. Tests pass their own provider list."""
    listing = PROVIDERS if providers is None else providers

    app = FastAPI(
        title="x402-router Demo",
        description="Demo registry and provider node for x402-router",
        version="0.1.0",
    )
    app.state.calls = []

    # --- Registry ---

    @app.post("/discover")
    async def discover(body: DiscoverBody):
        matches = [p for p in listing if p["api"] == body.api]
        if body.maxPrice is not None:
            matches = [p for p in matches if p["price"] <= body.maxPrice]
        if body.minReputation is not None:
            matches = [p for p in matches if p["reputation"] >= body.minReputation]
        if body.maxLatency is not None:
            matches = [p for p in matches if p["latency"] <= body.maxLatency]
        if body.limit is not None:
            matches = matches[: body.limit]
        return {"providers": matches, "cacheTTL": cache_ttl}

    @app.get("/provider/{provider_id}")
    async def get_provider(provider_id: str):
        for p in listing:
            if p["id"] == provider_id:
                return p
        raise HTTPException(status_code=404, detail="Provider not found")

    # --- Provider node ---

    @app.post("/call")
    async def call(
        body: CallBody,
        x_payment: Optional[str] = Header(None),
        x_payment_chain: Optional[str] = Header(None),
    ):
        app.state.calls.append({"api": body.api, "payment": x_payment, "chain": x_payment_chain})

        if not x_payment:
            return JSONResponse(status_code=402, content={"message": "Payment required"})

        if body.api == "joke":
            jokes = [
                "Why do programmers prefer dark mode? Because light attracts bugs.",
                "There are only 10 types of people: those who understand binary and those who don't.",
                "!false — it's funny because it's true.",
            ]
            return {"data": {"joke": random.choice(jokes)}}

        if body.api == "time":
            now = datetime.datetime.now(datetime.timezone.utc)
            return {"data": {"time": now.isoformat(), "unix": int(now.timestamp())}}

        if body.api == "echo":
            return {"data": body.params}

        return JSONResponse(status_code=400, content={"error": f"Unknown api: {body.api}"})

    return app


app = create_app()


if __name__ == "__main__":
    print("\nx402-router Demo Registry + Provider")
    print("=" * 40)
    print("Registry:")
    print("  POST /discover")
    print("  GET  /provider/{id}")
    print("Provider:")
    print("  POST /call  — joke ($0.001), time (free)")
    print()
    uvicorn.run(app, host="0.0.0.0", port=8402)
