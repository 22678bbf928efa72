"""Pull request review model."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class ReviewVerdict(str, Enum):
    APPROVED = "approved"
    CHANGES_REQUESTED = "changes_requested"
    COMMENTED = "commented"
    DISMISSED = "dismissed"


class Review(BaseModel):
    """Submitted review. Only the latest review of an author counts."""

    author: str
    verdict: ReviewVerdict
    submitted_at: datetime
