"""
Default provider selection strategy.

The router accepts any callable ``(providers, options) -> Provider`` as
its selector; this is the one used when none is given.

Composite score ("best"):
    reputation (50%) + cheapness (30%) + speed (20%)
each normalized against the best/worst value in the candidate set.
"""

from __future__ import annotations

from typing import Callable, List

from .errors import RouterError
from .models import CallOptions, Provider

WEIGHT_REPUTATION = 0.5
WEIGHT_PRICE = 0.3
WEIGHT_LATENCY = 0.2

ProviderSelector = Callable[[List[Provider], CallOptions], Provider]


def _qualifies(provider: Provider, options: CallOptions) -> bool:
    if options.max_price is not None and provider.price > options.max_price:
        return False
    if options.min_reputation is not None and provider.reputation < options.min_reputation:
        return False
    if options.max_latency is not None and provider.latency > options.max_latency:
        return False
    return True


def composite_score(provider: Provider, candidates: List[Provider]) -> float:
    """Score a provider relative to the other candidates (higher is better)."""
    top_reputation = max(p.reputation for p in candidates)
    top_price = max(p.price for p in candidates)
    top_latency = max(p.latency for p in candidates)

    reputation = provider.reputation / top_reputation if top_reputation > 0 else 0.0
    cheapness = 1.0 - provider.price / top_price if top_price > 0 else 1.0
    speed = 1.0 - provider.latency / top_latency if top_latency > 0 else 1.0

    return (
        reputation * WEIGHT_REPUTATION
        + cheapness * WEIGHT_PRICE
        + speed * WEIGHT_LATENCY
    )


def select_best_provider(providers: List[Provider], options: CallOptions) -> Provider:
    """
    Pick one provider from the candidates.

    Args:
        providers: Candidates in registry order.
        options: Call constraints and preferences.

    Returns:
        The chosen provider, always one of ``providers``.

    Raises:
        RouterError: No candidate satisfies the constraints.
    """
    candidates = [p for p in providers if _qualifies(p, options)]
    if not candidates:
        raise RouterError("No providers match the criteria")

    if options.prefer_cheap:
        # min() keeps the first of equal keys, so registry order breaks ties
        return min(candidates, key=lambda p: (p.price, -p.reputation))

    return max(
        candidates,
        key=lambda p: (composite_score(p, candidates), -candidates.index(p)),
    )
