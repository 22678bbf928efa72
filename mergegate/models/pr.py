"""Pull request model."""

from enum import Enum

from pydantic import BaseModel, Field


class LifecycleState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"


class MergeableState(str, Enum):
    """Platform verdict on mergeability; UNKNOWN while it is still being computed."""

    UNKNOWN = "unknown"
    MERGEABLE = "mergeable"
    CONFLICTING = "conflicting"
    BLOCKED = "blocked"


class PullRequest(BaseModel):
    """Snapshot of a pull request as returned by one fetch."""

    number: int = Field(gt=0)
    head_sha: str
    state: LifecycleState
    draft: bool = False
    mergeable_state: MergeableState = MergeableState.UNKNOWN
    title: str = ""
    html_url: str | None = None
