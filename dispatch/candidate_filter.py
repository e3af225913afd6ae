#Purpose: Hard eligibility gates applied after scoring.
#Builds the target set the order is broadcast to.
#Rules:
#must actually stock the requested product
#must score strictly above the policy floor
#at most max_targets pharmacies, best score first
#Output: ordered pharmacy ids (may be empty; the dispatcher decides what that means).

from typing import Iterable, List, Optional

from .policy import DispatchPolicy, default_dispatch_policy
from .scoring import ScoredCandidate


def is_eligible(candidate: ScoredCandidate, policy: DispatchPolicy) -> bool:
    if not candidate.stocks_product:
        return False

    if candidate.score <= policy.min_score:
        return False

    return True


def select_targets(
    ranked: Iterable[ScoredCandidate],
    policy: Optional[DispatchPolicy] = None,
) -> List[ScoredCandidate]:
    """
    Expects candidates already ranked best first (see scoring.rank_candidates).
    """
    policy = policy or default_dispatch_policy()

    targets: List[ScoredCandidate] = []
    for candidate in ranked:
        if not is_eligible(candidate, policy):
            continue
        targets.append(candidate)
        if len(targets) >= policy.max_targets:
            break

    return targets
