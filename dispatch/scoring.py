#Purpose: Ranking model (the "who is best" layer).
#Takes nearby pharmacies (already radius-filtered) + the resolved product
#Produces a score per pharmacy:
#distance decay (closer is better, 0 at the radius boundary)
#rating share (average rating out of max rating)
#availability bonus (pharmacy stocks the product)
#Output: scored candidates, best first.

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from pharmacies.models import NearbyPharmacy
from .policy import DispatchPolicy, default_dispatch_policy


@dataclass(frozen=True)
class ScoredCandidate:
    """
    A nearby pharmacy with its score broken down into parts.
    """
    pharmacy_id: str
    distance_m: float
    distance_score: float
    rating_score: float
    availability_score: float

    @property
    def score(self) -> float:
        return self.distance_score + self.rating_score + self.availability_score

    @property
    def stocks_product(self) -> bool:
        return self.availability_score > 0


def score_candidate(
    candidate: NearbyPharmacy,
    product_id: str,
    policy: Optional[DispatchPolicy] = None,
) -> ScoredCandidate:
    policy = policy or default_dispatch_policy()
    pharmacy = candidate.pharmacy

    distance_score = max(
        0.0,
        policy.distance_weight - (candidate.distance_m / policy.search_radius_m) * policy.distance_weight,
    )
    rating_score = (pharmacy.average_rating / policy.max_rating) * policy.rating_weight
    availability_score = policy.availability_weight if pharmacy.stocks(product_id) else 0.0

    return ScoredCandidate(
        pharmacy_id=pharmacy.id,
        distance_m=candidate.distance_m,
        distance_score=distance_score,
        rating_score=rating_score,
        availability_score=float(availability_score),
    )


def rank_candidates(
    candidates: Iterable[NearbyPharmacy],
    product_id: str,
    policy: Optional[DispatchPolicy] = None,
) -> List[ScoredCandidate]:
    """
    Scores every candidate and orders them best first.
    Ties are broken by distance, then pharmacy id, so the order is deterministic.
    """
    policy = policy or default_dispatch_policy()
    scored = [score_candidate(candidate, product_id, policy) for candidate in candidates]
    scored.sort(key=lambda c: (-c.score, c.distance_m, c.pharmacy_id))
    return scored
