#Expose the high-level pipeline pieces:
#Scoring / ranking
#Target selection (hard rules)
#Dispatcher orchestrator (the "one call" entry point per operation)
#Timeout sweeper (the periodic expiry loop)

from .exceptions import EmergencyOrderError, ValidationError, NotFoundError, ConflictError, ForbiddenError
from .policy import DispatchPolicy, default_dispatch_policy, policy_from_mapping
from .scoring import rank_candidates, score_candidate
from .candidate_filter import select_targets
from .dispatcher import EmergencyDispatcher #the main class to call for every emergency order operation
from .sweeper import TimeoutSweeper

__all__ = [
    "EmergencyOrderError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "ForbiddenError",
    "DispatchPolicy",
    "default_dispatch_policy",
    "policy_from_mapping",
    "rank_candidates",
    "score_candidate",
    "select_targets",
    "EmergencyDispatcher",
    "TimeoutSweeper",
]
