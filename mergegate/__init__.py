"""Merge gate: checks a pull request is ready and merges it."""

from mergegate.errors import (
    ApiError,
    AuthError,
    ConfigError,
    MergeGateError,
    NotFoundError,
    PollTimeoutError,
    StateError,
)
from mergegate.gate import MergeGate

__all__ = [
    "ApiError",
    "AuthError",
    "ConfigError",
    "MergeGate",
    "MergeGateError",
    "NotFoundError",
    "PollTimeoutError",
    "StateError",
]
