"""GitHub App authentication: app JWT -> installation access token.

The private key and the resulting token are never logged or put into
error messages.
"""

import logging
import time
from typing import Any, Dict

import jwt
import requests

from mergegate.adapters.base import TokenBroker
from mergegate.adapters.github import DEFAULT_API_URL
from mergegate.errors import AuthError

LOG = logging.getLogger("mergegate.adapters.app_auth")

# GitHub rejects app JWTs valid for more than 10 minutes
JWT_TTL_SECONDS = 9 * 60
JWT_CLOCK_SKEW_SECONDS = 60


def normalize_private_key(private_key: str) -> str:
    """Turn literal ``\\n`` sequences (key pasted into a one-line secret) into newlines."""
    key = private_key.strip()
    if "\\n" in key:
        key = key.replace("\\n", "\n")
    return key


class GitHubAppTokenBroker(TokenBroker):
    """Issues installation tokens for a GitHub App."""

    def __init__(self, app_id: str, private_key: str, api_url: str = DEFAULT_API_URL) -> None:
        self.app_id = str(app_id)
        self._private_key = normalize_private_key(private_key)
        self.api_url = api_url.rstrip("/")
        self._session = requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            }
        )

    def __repr__(self) -> str:
        return f"GitHubAppTokenBroker(app_id={self.app_id!r}, api_url={self.api_url!r})"

    def create_app_jwt(self, now: float | None = None) -> str:
        """Sign a short-lived RS256 JWT identifying the app."""
        issued = int(now if now is not None else time.time())
        payload = {
            "iat": issued - JWT_CLOCK_SKEW_SECONDS,
            "exp": issued + JWT_TTL_SECONDS,
            "iss": self.app_id,
        }
        try:
            return jwt.encode(payload, self._private_key, algorithm="RS256")
        except (ValueError, TypeError, jwt.PyJWTError) as e:
            # the key material itself must not leak into the message
            raise AuthError(f"Could not sign app JWT for app {self.app_id}: {type(e).__name__}") from None

    def _post_or_get(self, method: str, path: str, app_jwt: str) -> Dict[str, Any]:
        url = f"{self.api_url}{path}"
        try:
            resp = self._session.request(
                method,
                url,
                headers={"Authorization": f"Bearer {app_jwt}"},
                timeout=30,
            )
        except requests.RequestException as e:
            raise AuthError(f"{method} {path} failed: {type(e).__name__}") from e
        if resp.status_code >= 400:
            raise AuthError(f"{method} {path} returned {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise AuthError(f"Malformed JSON from {path}") from e
        if not isinstance(data, dict):
            raise AuthError(f"Malformed payload from {path}")
        return data

    def get_installation_id(self, repo: str, app_jwt: str) -> int:
        try:
            data = self._post_or_get("GET", f"/repos/{repo}/installation", app_jwt)
        except AuthError as e:
            raise AuthError(f"Installation could not be resolved for {repo}: {e.message}") from e
        installation_id = data.get("id")
        if not installation_id:
            raise AuthError(f"Installation could not be resolved for {repo}")
        return int(installation_id)

    def get_token(self, repo: str) -> str:
        app_jwt = self.create_app_jwt()
        installation_id = self.get_installation_id(repo, app_jwt)
        LOG.debug("Resolved installation %s for %s", installation_id, repo)
        data = self._post_or_get("POST", f"/app/installations/{installation_id}/access_tokens", app_jwt)
        token = data.get("token")
        if not token:
            raise AuthError(f"Failed to obtain installation access token for {repo}")
        LOG.info("Obtained installation token for %s", repo)
        return str(token)
