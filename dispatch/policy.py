"""
Purpose: Central configuration for emergency-order targeting and expiry.
What it does:

Stores all tunable thresholds/caps for choosing pharmacies and expiring orders:

SEARCH_RADIUS_M = 5000
MAX_TARGETS = 5
MIN_SCORE = 40
DEFAULT_RESPONSE_TIMEOUT_MINUTES = 15
SWEEP_INTERVAL_SECONDS = 60

Rule: No logic here, just parameters so you can tune without rewriting code.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class DispatchPolicy:
    """
    Central configuration for the emergency dispatch engine.

    Notes:
    - score = distance_weight * (1 - distance / search_radius_m)   (floored at 0)
            + rating_weight * (average_rating / max_rating)
            + availability_weight if the pharmacy stocks the product
    - With the defaults the maximum attainable score is 100.
    """

    # --- Geo search ---
    # Only active pharmacies within this many metres are considered.
    search_radius_m: float = 5000

    # --- Score weights ---
    distance_weight: float = 50
    rating_weight: float = 30
    availability_weight: float = 20
    max_rating: float = 5

    # --- Target selection ---
    # Candidates must score strictly above this to be notified.
    min_score: float = 40
    max_targets: int = 5

    # --- Response window ---
    default_response_timeout_minutes: int = 15

    # --- Timeout sweeper cadence ---
    sweep_interval_seconds: int = 60

    def validate(self) -> None:
        """
        Basic sanity checks. Call once at startup.
        """
        if self.search_radius_m <= 0:
            raise ValueError("search_radius_m must be > 0")

        if min(self.distance_weight, self.rating_weight, self.availability_weight) < 0:
            raise ValueError("score weights must be >= 0")

        if self.max_rating <= 0:
            raise ValueError("max_rating must be > 0")

        if self.max_targets < 1:
            raise ValueError("max_targets must be >= 1")

        if self.default_response_timeout_minutes <= 0:
            raise ValueError("default_response_timeout_minutes must be > 0")

        if self.sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be > 0")


def default_dispatch_policy() -> DispatchPolicy:
    """
    Convenience factory for the default policy.
    """
    p = DispatchPolicy()
    p.validate()
    return p


def policy_from_mapping(overrides: Optional[Mapping[str, Any]]) -> DispatchPolicy:
    """
    Builds a policy from a settings dict (e.g. Django's EMERGENCY_ORDERS).
    Unknown keys are rejected so typos surface at startup.
    """
    overrides = dict(overrides or {})
    known = {f.name for f in fields(DispatchPolicy)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ValueError(f"Unknown dispatch policy settings: {', '.join(unknown)}")

    p = DispatchPolicy(**overrides)
    p.validate()
    return p
