"""Data models for pull requests, reviews, status checks and merge results (Pydantic)."""

from mergegate.models.merge import GateOutcome, MergeMethod, MergeResult
from mergegate.models.pr import LifecycleState, MergeableState, PullRequest
from mergegate.models.review import Review, ReviewVerdict
from mergegate.models.status import CheckVerdict, CombinedStatus, StatusCheck

__all__ = [
    "CheckVerdict",
    "CombinedStatus",
    "GateOutcome",
    "LifecycleState",
    "MergeMethod",
    "MergeResult",
    "MergeableState",
    "PullRequest",
    "Review",
    "ReviewVerdict",
    "StatusCheck",
]
