"""Abstract interfaces the merge gate depends on."""

from abc import ABC, abstractmethod
from typing import List

from mergegate.models import CombinedStatus, MergeMethod, MergeResult, PullRequest, Review


class ApiClient(ABC):
    """Capabilities of a Git hosting platform needed to gate and merge a pull request."""

    @abstractmethod
    def get_pull_request(self, repo: str, pr_number: int) -> PullRequest:
        """Fetch the current state of a pull request."""
        ...

    @abstractmethod
    def list_reviews(self, repo: str, pr_number: int) -> List[Review]:
        """List submitted reviews in the order the platform returns them."""
        ...

    @abstractmethod
    def get_combined_status(self, repo: str, ref: str) -> CombinedStatus:
        """Fetch the combined status for a commit."""
        ...

    @abstractmethod
    def merge_pull_request(self, repo: str, pr_number: int, method: MergeMethod) -> MergeResult:
        """Merge a pull request.

        A call the platform rejects as "not mergeable" returns
        ``MergeResult(merged=False)`` instead of raising.
        """
        ...


class TokenBroker(ABC):
    """Exchanges application credentials for a repository-scoped bearer token."""

    @abstractmethod
    def get_token(self, repo: str) -> str:
        """Return a bearer token for ``repo`` (owner/name). Raises AuthError on failure."""
        ...
