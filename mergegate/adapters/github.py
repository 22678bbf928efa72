"""GitHub REST API adapter."""

from datetime import datetime
from typing import Any, Dict, List

import requests

from mergegate.adapters.base import ApiClient
from mergegate.errors import ApiError, NotFoundError
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

DEFAULT_API_URL = "https://api.github.com"

# 405: not mergeable (already merged, conflicts, protections); 409: head moved
MERGE_REJECTED_STATUSES = (405, 409)

_REVIEW_VERDICTS = {
    "APPROVED": ReviewVerdict.APPROVED,
    "CHANGES_REQUESTED": ReviewVerdict.CHANGES_REQUESTED,
    "COMMENTED": ReviewVerdict.COMMENTED,
    "DISMISSED": ReviewVerdict.DISMISSED,
}


def _parse_iso(s: str) -> datetime:
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def _error_message(resp: requests.Response) -> str:
    msg = resp.text or resp.reason or str(resp.status_code)
    try:
        data = resp.json()
    except ValueError:
        return msg
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return msg


def _pr_from_api(data: Dict[str, Any]) -> PullRequest:
    if data.get("merged"):
        state = LifecycleState.MERGED
    else:
        state = LifecycleState(data["state"])

    mergeable = data.get("mergeable")
    if mergeable is None:
        mergeable_state = MergeableState.UNKNOWN
    elif mergeable:
        mergeable_state = MergeableState.MERGEABLE
    elif data.get("mergeable_state") == "blocked":
        mergeable_state = MergeableState.BLOCKED
    else:
        mergeable_state = MergeableState.CONFLICTING

    head = data.get("head") or {}
    return PullRequest(
        number=data["number"],
        head_sha=head["sha"],
        state=state,
        draft=bool(data.get("draft")),
        mergeable_state=mergeable_state,
        title=data.get("title") or "",
        html_url=data.get("html_url"),
    )


def _review_from_api(data: Dict[str, Any]) -> Review | None:
    """Build Review; returns None for unsubmitted (PENDING) reviews and
    reviews without an author (deleted accounts)."""
    state = data.get("state")
    if state == "PENDING":
        return None
    if state not in _REVIEW_VERDICTS:
        raise ValueError(f"unknown review state {state!r}")
    login = (data.get("user") or {}).get("login")
    if not login:
        return None
    return Review(
        author=login,
        verdict=_REVIEW_VERDICTS[state],
        submitted_at=_parse_iso(data["submitted_at"]),
    )


def _status_from_api(data: Dict[str, Any]) -> CombinedStatus:
    checks = [
        StatusCheck(context=s["context"], verdict=CheckVerdict(s["state"]))
        for s in (data.get("statuses") or [])
    ]
    return CombinedStatus(sha=data["sha"], verdict=CheckVerdict(data["state"]), checks=checks)


class GitHubAdapter(ApiClient):
    """GitHub API implementation of ApiClient."""

    def __init__(self, token: str, api_url: str = DEFAULT_API_URL) -> None:
        self.api_url = api_url.rstrip("/")
        self._session = requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "Authorization": f"Bearer {token}",
            }
        )

    def _request(
        self,
        method: str,
        path: str,
        allow: tuple[int, ...] = (),
        **kwargs: Any,
    ) -> requests.Response:
        url = path if path.startswith("http") else f"{self.api_url}{path}"
        try:
            resp = self._session.request(method, url, timeout=30, **kwargs)
        except requests.RequestException as e:
            raise ApiError(f"{method} {path} failed: {e}") from e
        if resp.status_code in allow:
            return resp
        if resp.status_code == 404:
            raise NotFoundError(f"Not found: {path}")
        if resp.status_code in (403, 429) and resp.headers.get("X-RateLimit-Remaining") == "0":
            raise ApiError(f"GitHub API rate limit exceeded ({resp.status_code}) on {path}")
        if resp.status_code >= 400:
            raise ApiError(f"GitHub API error {resp.status_code} on {path}: {_error_message(resp)}")
        return resp

    @staticmethod
    def _json(resp: requests.Response, path: str) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise ApiError(f"Malformed JSON from {path}") from e

    def get_pull_request(self, repo: str, pr_number: int) -> PullRequest:
        path = f"/repos/{repo}/pulls/{pr_number}"
        data = self._json(self._request("GET", path), path)
        try:
            return _pr_from_api(data)
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Malformed pull request payload from {path}: {e}") from e

    def list_reviews(self, repo: str, pr_number: int) -> List[Review]:
        """List submitted reviews, following pagination (oldest first)."""
        path = f"/repos/{repo}/pulls/{pr_number}/reviews"
        reviews: List[Review] = []
        url: str | None = path
        params: Dict[str, Any] | None = {"per_page": 100}
        while url:
            resp = self._request("GET", url, params=params)
            data = self._json(resp, path)
            try:
                for item in data:
                    review = _review_from_api(item)
                    if review is not None:
                        reviews.append(review)
            except (KeyError, TypeError, ValueError) as e:
                raise ApiError(f"Malformed review payload from {path}: {e}") from e
            url = (resp.links.get("next") or {}).get("url")
            # next link already carries the query string
            params = None
        return reviews

    def get_combined_status(self, repo: str, ref: str) -> CombinedStatus:
        """Combined status for ``ref``; statuses from every page are merged.

        The aggregate verdict comes from the first page.
        """
        path = f"/repos/{repo}/commits/{ref}/status"
        resp = self._request("GET", path, params={"per_page": 100})
        status = self._status_page(resp, path)
        url = (resp.links.get("next") or {}).get("url")
        while url:
            resp = self._request("GET", url)
            status.checks.extend(self._status_page(resp, path).checks)
            url = (resp.links.get("next") or {}).get("url")
        return status

    def _status_page(self, resp: requests.Response, path: str) -> CombinedStatus:
        data = self._json(resp, path)
        try:
            return _status_from_api(data)
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Malformed combined status payload from {path}: {e}") from e

    def merge_pull_request(self, repo: str, pr_number: int, method: MergeMethod) -> MergeResult:
        path = f"/repos/{repo}/pulls/{pr_number}/merge"
        resp = self._request(
            "PUT",
            path,
            allow=MERGE_REJECTED_STATUSES,
            json={"merge_method": MergeMethod(method).value},
        )
        if resp.status_code in MERGE_REJECTED_STATUSES:
            return MergeResult(merged=False, message=_error_message(resp))
        data = self._json(resp, path)
        if not isinstance(data, dict):
            raise ApiError(f"Malformed merge payload from {path}")
        return MergeResult(
            merged=data.get("merged") is True,
            message=data.get("message") or "",
            sha=data.get("sha"),
        )
