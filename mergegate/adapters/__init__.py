"""Git platform adapters and token brokers."""

from mergegate.adapters.app_auth import GitHubAppTokenBroker
from mergegate.adapters.base import ApiClient, TokenBroker
from mergegate.adapters.github import GitHubAdapter

__all__ = ["ApiClient", "GitHubAdapter", "GitHubAppTokenBroker", "TokenBroker"]
