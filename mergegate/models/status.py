"""Commit status models."""

from enum import Enum
from typing import List

from pydantic import BaseModel, Field


class CheckVerdict(str, Enum):
    SUCCESS = "success"
    PENDING = "pending"
    FAILURE = "failure"
    ERROR = "error"


class StatusCheck(BaseModel):
    """One status context reported against a commit."""

    context: str
    verdict: CheckVerdict


class CombinedStatus(BaseModel):
    """Aggregate verdict for a commit plus the individual checks."""

    sha: str
    verdict: CheckVerdict
    checks: List[StatusCheck] = Field(default_factory=list)

    def has_success(self, context: str) -> bool:
        """True if any check for ``context`` reports success."""
        return any(c.context == context and c.verdict == CheckVerdict.SUCCESS for c in self.checks)
