"""
In-memory spend tracker for a router.

Counts calls and payments, sums USDC spent per API, and keeps the most
recent calls in a bounded list.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass
class CallRecord:
    """A single routed call."""
    api: str
    provider_id: Optional[str]
    cost: float
    latency_ms: int
    success: bool
    error: Optional[str]
    timestamp: float  # milliseconds since epoch


class RouterStats:
    """Per-router call statistics."""

    def __init__(self, max_recent: int = 100):
        self.max_recent = max_recent

        # Totals
        self.total_spent: float = 0.0
        self.total_requests: int = 0
        self.total_succeeded: int = 0
        self.total_payments: int = 0

        # Per-API: name → { spent, requests, succeeded, failed }
        self._apis: Dict[str, Dict[str, Any]] = {}

        self._recent_calls: List[CallRecord] = []

    def record(
        self,
        api: str,
        success: bool,
        provider_id: Optional[str] = None,
        cost: float = 0.0,
        paid: bool = False,
        latency_ms: int = 0,
        error: Optional[str] = None,
    ) -> None:
        """
        Record one call.

        Args:
            api: Logical API name.
            success: Whether the call returned data.
            provider_id: Chosen provider, if selection got that far.
            cost: USDC paid. Counted even for failed calls: payments are
                not refunded.
            paid: Whether a payment was confirmed for this call.
            latency_ms: Elapsed time of the call.
            error: Failure message for unsuccessful calls.
        """
        self.total_requests += 1

        if api not in self._apis:
            self._apis[api] = {"spent": 0.0, "requests": 0, "succeeded": 0, "failed": 0}
        entry = self._apis[api]
        entry["requests"] += 1

        if paid:
            self.total_payments += 1
            self.total_spent += cost
            entry["spent"] += cost

        if success:
            self.total_succeeded += 1
            entry["succeeded"] += 1
        else:
            entry["failed"] += 1

        self._recent_calls.append(
            CallRecord(
                api=api,
                provider_id=provider_id,
                cost=cost if paid else 0.0,
                latency_ms=latency_ms,
                success=success,
                error=error,
                timestamp=time.time() * 1000,
            )
        )
        if len(self._recent_calls) > self.max_recent:
            self._recent_calls = self._recent_calls[-self.max_recent:]

    def to_dict(self) -> Dict[str, Any]:
        """Stats summary as a plain dict (most recent call first)."""
        recent = [
            {
                "api": r.api,
                "providerId": r.provider_id,
                "cost": r.cost,
                "latency": r.latency_ms,
                "success": r.success,
                "error": r.error,
                "timestamp": r.timestamp,
            }
            for r in self._recent_calls[-20:]
        ]
        recent.reverse()

        return {
            "totalSpent": self.total_spent,
            "totalRequests": self.total_requests,
            "totalSucceeded": self.total_succeeded,
            "totalPayments": self.total_payments,
            "apis": {name: dict(data) for name, data in self._apis.items()},
            "recentCalls": recent,
        }
