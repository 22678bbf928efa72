"""Merge request options and result."""

from enum import Enum

from pydantic import BaseModel


class MergeMethod(str, Enum):
    MERGE = "merge"
    SQUASH = "squash"
    REBASE = "rebase"


class GateOutcome(str, Enum):
    """Terminal outcome of a run that got as far as the merge call."""

    MERGED = "merged"
    NOT_MERGED = "not_merged"

    @property
    def exit_code(self) -> int:
        return 0 if self is GateOutcome.MERGED else 2


class MergeResult(BaseModel):
    """Response of the merge call. ``merged`` is True only when the platform confirms it."""

    merged: bool
    message: str = ""
    sha: str | None = None

    @property
    def outcome(self) -> GateOutcome:
        return GateOutcome.MERGED if self.merged else GateOutcome.NOT_MERGED
