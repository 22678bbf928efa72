"""
Merge gate: decide whether a pull request is ready and merge it.

Phases run in order and the first failure aborts the run:

1. draft/state check (single fetch, no retries)
2. mergeability resolution (poll until the platform computes it)
3. required checks resolution (poll the combined status of the head commit)
4. approval aggregation (latest review per author, single fetch)
5. merge (exactly one call)

The merge call is attempted only when every earlier phase passed.
"""

import logging
from contextlib import contextmanager
from typing import Callable, Dict, Iterable, Iterator, List, Sequence

from mergegate.adapters.base import ApiClient, TokenBroker
from mergegate.config import GateConfig, PollConfig, parse_repository
from mergegate.errors import MergeGateError, StateError
from mergegate.models import (
    CheckVerdict,
    CombinedStatus,
    LifecycleState,
    MergeableState,
    MergeResult,
    PullRequest,
    Review,
    ReviewVerdict,
)
from mergegate.poller import PENDING, Clock, Poller

PHASE_AUTH = "auth"
PHASE_STATE = "draft-and-state"
PHASE_MERGEABILITY = "mergeability"
PHASE_CHECKS = "required-checks"
PHASE_APPROVALS = "approvals"
PHASE_MERGE = "merge"


def latest_reviews_by_author(reviews: Iterable[Review]) -> Dict[str, Review]:
    """Keep the chronologically latest review of each author.

    Reviews with equal ``submitted_at`` resolve to the one listed later.
    """
    latest: Dict[str, Review] = {}
    for review in sorted(reviews, key=lambda r: r.submitted_at):
        latest[review.author] = review
    return latest


def count_approvals(reviews: Iterable[Review]) -> int:
    """Number of distinct authors whose latest review approves."""
    return sum(
        1 for review in latest_reviews_by_author(reviews).values() if review.verdict == ReviewVerdict.APPROVED
    )


def required_checks_passed(status: CombinedStatus, required_contexts: Sequence[str]) -> bool:
    """True when the commit satisfies the required checks.

    Without required contexts the aggregate verdict decides. Otherwise every
    named context must report success; unlisted contexts are ignored and
    missing ones count as not yet passed.
    """
    if not required_contexts:
        return status.verdict == CheckVerdict.SUCCESS
    return all(status.has_success(context) for context in required_contexts)


class MergeGate:
    """Runs the readiness state machine for one pull request."""

    def __init__(
        self,
        token_broker: TokenBroker,
        client_factory: Callable[[str], ApiClient],
        config: GateConfig,
        log: logging.Logger | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._token_broker = token_broker
        self._client_factory = client_factory
        self.config = config
        self._log = log or logging.getLogger("mergegate.gate")
        self._clock = clock

    @contextmanager
    def _phase(self, name: str, target: str) -> Iterator[None]:
        self._log.debug("%s: phase %s started", target, name)
        try:
            yield
        except MergeGateError as e:
            e.phase = e.phase or name
            e.target = e.target or target
            raise
        self._log.debug("%s: phase %s passed", target, name)

    def _poller(self, poll: PollConfig) -> Poller:
        return Poller(
            interval=poll.interval_seconds,
            timeout=poll.timeout_seconds,
            max_attempts=poll.max_attempts,
            clock=self._clock,
            log=self._log,
        )

    def run(self, repo: str, pr_number: int) -> MergeResult:
        """Run every phase and return the merge result.

        Raises a MergeGateError subclass for the first failing phase.
        ``MergeResult.merged`` False means all checks passed but the
        platform did not merge.
        """
        parse_repository(repo)
        target = f"{repo}#{pr_number}"
        self._log.info("%s: gating merge (method=%s)", target, self.config.merge_method.value)

        with self._phase(PHASE_AUTH, target):
            token = self._token_broker.get_token(repo)
        client = self._client_factory(token)

        self.check_draft_and_state(client, repo, pr_number)
        pr = self.resolve_mergeability(client, repo, pr_number)
        self.resolve_required_checks(client, repo, pr)
        self.check_approvals(client, repo, pr_number)
        return self.merge(client, repo, pr_number)

    def check_draft_and_state(self, client: ApiClient, repo: str, pr_number: int) -> PullRequest:
        target = f"{repo}#{pr_number}"
        with self._phase(PHASE_STATE, target):
            pr = client.get_pull_request(repo, pr_number)
            if pr.draft:
                raise StateError("pull request is a draft")
            if pr.state != LifecycleState.OPEN:
                raise StateError(f"pull request is not open (state: {pr.state.value})")
        self._log.info("%s: open and ready for review", target)
        return pr

    def resolve_mergeability(self, client: ApiClient, repo: str, pr_number: int) -> PullRequest:
        """Poll until mergeability is computed; fails on conflicting or blocked."""
        target = f"{repo}#{pr_number}"

        def attempt() -> PullRequest | object:
            pr = client.get_pull_request(repo, pr_number)
            if pr.mergeable_state == MergeableState.UNKNOWN:
                return PENDING
            return pr

        with self._phase(PHASE_MERGEABILITY, target):
            pr = self._poller(self.config.mergeability).run(attempt, f"{target} mergeability")
            if pr.mergeable_state != MergeableState.MERGEABLE:
                raise StateError(f"pull request is not mergeable ({pr.mergeable_state.value})")
        self._log.info("%s: mergeable at %s", target, pr.head_sha[:12])
        return pr

    def resolve_required_checks(self, client: ApiClient, repo: str, pr: PullRequest) -> CombinedStatus:
        """Poll the head commit's combined status until the required checks pass."""
        target = f"{repo}#{pr.number}"
        contexts: List[str] = list(self.config.required_contexts)

        def attempt() -> CombinedStatus | object:
            status = client.get_combined_status(repo, pr.head_sha)
            if required_checks_passed(status, contexts):
                return status
            return PENDING

        what = ", ".join(contexts) if contexts else "combined status"
        with self._phase(PHASE_CHECKS, target):
            status = self._poller(self.config.checks).run(attempt, f"{target} checks ({what})")
        self._log.info("%s: required checks passed (%s)", target, what)
        return status

    def check_approvals(self, client: ApiClient, repo: str, pr_number: int) -> int:
        target = f"{repo}#{pr_number}"
        required = self.config.required_approvals
        with self._phase(PHASE_APPROVALS, target):
            approvals = count_approvals(client.list_reviews(repo, pr_number))
            if approvals < required:
                raise StateError(f"insufficient approvals: {approvals} of {required} required")
        self._log.info("%s: %d approval(s), %d required", target, approvals, required)
        return approvals

    def merge(self, client: ApiClient, repo: str, pr_number: int) -> MergeResult:
        """Attempt the merge once. A "not merged" response is returned, not raised."""
        target = f"{repo}#{pr_number}"
        method = self.config.merge_method
        with self._phase(PHASE_MERGE, target):
            result = client.merge_pull_request(repo, pr_number, method)
        if result.merged:
            self._log.info("%s: merged with %s (%s)", target, method.value, result.sha or "no sha")
        else:
            self._log.warning("%s: merge did not complete: %s", target, result.message or "no reason given")
        return result
