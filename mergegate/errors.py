"""Error taxonomy.

Every error aborts the run. Messages carry the phase and the pull request
identity when known, and never include credentials.
"""


class MergeGateError(Exception):
    """Base class for all gate failures."""

    def __init__(self, message: str, phase: str | None = None, target: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.phase = phase
        self.target = target

    def __str__(self) -> str:
        prefix = ""
        if self.phase:
            prefix += f"[{self.phase}] "
        if self.target:
            prefix += f"{self.target}: "
        return f"{prefix}{self.message}"


class ConfigError(MergeGateError):
    """Missing or malformed configuration."""


class AuthError(MergeGateError):
    """Token could not be obtained or the installation could not be resolved."""


class NotFoundError(MergeGateError):
    """Pull request (or other resource) does not exist or is inaccessible."""


class StateError(MergeGateError):
    """Pull request is not in a mergeable state (draft, closed, conflicting, blocked, unapproved)."""


class PollTimeoutError(MergeGateError, TimeoutError):
    """A polling phase ran out of attempts or time."""


class ApiError(MergeGateError):
    """Any other failure of the remote API (HTTP error, network, malformed response)."""
