"""Shared fakes: scripted API client, token broker and clock."""

from datetime import UTC, datetime, timedelta
from typing import Dict, List

import pytest

from mergegate.adapters.base import ApiClient, TokenBroker
from mergegate.errors import AuthError
from mergegate.models import (
    CheckVerdict,
    CombinedStatus,
    LifecycleState,
    MergeableState,
    MergeMethod,
    MergeResult,
    PullRequest,
    Review,
    ReviewVerdict,
    StatusCheck,
)

T0 = datetime(2024, 1, 15, 10, 0, 0, tzinfo=UTC)


def make_pr(
    number: int = 42,
    mergeable_state: MergeableState = MergeableState.MERGEABLE,
    state: LifecycleState = LifecycleState.OPEN,
    draft: bool = False,
    head_sha: str = "abc123def4567890",
) -> PullRequest:
    return PullRequest(
        number=number,
        head_sha=head_sha,
        state=state,
        draft=draft,
        mergeable_state=mergeable_state,
    )


def make_review(author: str, verdict: ReviewVerdict, minutes: int = 0) -> Review:
    return Review(author=author, verdict=verdict, submitted_at=T0 + timedelta(minutes=minutes))


def make_status(verdict: CheckVerdict, checks: Dict[str, CheckVerdict] | None = None) -> CombinedStatus:
    return CombinedStatus(
        sha="abc123def4567890",
        verdict=verdict,
        checks=[StatusCheck(context=ctx, verdict=v) for ctx, v in (checks or {}).items()],
    )


class FakeClock:
    """Clock whose sleep only advances the time."""

    def __init__(self) -> None:
        self.time = 0.0
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self.time

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.time += seconds


class FakeApiClient(ApiClient):
    """ApiClient driven by scripted responses.

    ``prs`` is consumed one per get_pull_request call; the last entry repeats.
    ``statuses`` works the same way for get_combined_status.
    """

    def __init__(
        self,
        prs: List[PullRequest] | None = None,
        statuses: List[CombinedStatus] | None = None,
        reviews: List[Review] | None = None,
        merge_result: MergeResult | None = None,
    ) -> None:
        self.prs = list(prs or [make_pr()])
        self.statuses = list(statuses or [make_status(CheckVerdict.SUCCESS)])
        self.reviews = list(reviews or [])
        self.merge_result = merge_result or MergeResult(merged=True, message="Pull Request successfully merged", sha="m1")
        self.pr_calls = 0
        self.status_calls = 0
        self.status_refs: List[str] = []
        self.merge_calls: List[MergeMethod] = []

    def get_pull_request(self, repo: str, pr_number: int) -> PullRequest:
        pr = self.prs[min(self.pr_calls, len(self.prs) - 1)]
        self.pr_calls += 1
        return pr

    def list_reviews(self, repo: str, pr_number: int) -> List[Review]:
        return list(self.reviews)

    def get_combined_status(self, repo: str, ref: str) -> CombinedStatus:
        status = self.statuses[min(self.status_calls, len(self.statuses) - 1)]
        self.status_calls += 1
        self.status_refs.append(ref)
        return status

    def merge_pull_request(self, repo: str, pr_number: int, method: MergeMethod) -> MergeResult:
        self.merge_calls.append(method)
        return self.merge_result


class FakeTokenBroker(TokenBroker):
    def __init__(self, token: str = "ghs_test", fail: bool = False) -> None:
        self.token = token
        self.fail = fail
        self.repos: List[str] = []

    def get_token(self, repo: str) -> str:
        self.repos.append(repo)
        if self.fail:
            raise AuthError(f"Installation could not be resolved for {repo}")
        return self.token


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
