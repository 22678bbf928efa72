"""Logging from config and env.

Levels: ERROR (run failed), WARNING (merge reported not merged), INFO
(phase progress), DEBUG (poll attempts). Configure via config.yaml
(logging.level, logging.format) or env (LOGGING_LEVEL, LOGGING_FORMAT).

Every handler on the root logger gets a RedactSecretsFilter, so a token or
key that slips into a message or an exception text is masked.
"""

import logging
import re

from mergegate.config import LoggingConfig

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

DEFAULT_LEVEL = "INFO"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
REDACTED = "[REDACTED]"

_SECRET_PATTERNS = [
    # PEM private keys, with real or escaped newlines
    re.compile(r"-----BEGIN [A-Z ]*PRIVATE KEY-----.*?-----END [A-Z ]*PRIVATE KEY-----", re.DOTALL),
    # GitHub tokens: installation (ghs_), user-to-server (ghu_), PAT (ghp_, github_pat_)
    re.compile(r"\b(?:gh[psuor]_[A-Za-z0-9]{16,}|github_pat_[A-Za-z0-9_]{20,})\b"),
    # JWTs (the app token)
    re.compile(r"\beyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+"),
    re.compile(r"(?i)(bearer|token)\s+[A-Za-z0-9_.-]{16,}"),
]


def _resolve_level(level: str) -> int:
    """Map level name to logging constant.

    Falls back to INFO if unknown.
    """
    return LEVELS.get(level.upper().strip(), logging.INFO)


def redact(text: str) -> str:
    """Mask tokens, JWTs and private keys in ``text``."""
    for pattern in _SECRET_PATTERNS:
        if pattern.groups:
            text = pattern.sub(lambda m: f"{m.group(1)} {REDACTED}", text)
        else:
            text = pattern.sub(REDACTED, text)
    return text


class RedactSecretsFilter(logging.Filter):
    """Rewrites the formatted message of each record with secrets masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        if record.exc_info and record.exc_info[1] is not None:
            exc_text = str(record.exc_info[1])
            if redact(exc_text) != exc_text:
                # drop the traceback rather than print the secret
                record.msg = f"{record.msg} ({type(record.exc_info[1]).__name__}: {redact(exc_text)})"
                record.exc_info = None
                record.exc_text = None
        return True


class MergeGateLogging:
    """Configures root logger from LoggingConfig (YAML + env LOGGING_*)."""

    def __init__(self, config: LoggingConfig) -> None:
        self._level = _resolve_level(config.level)
        self._format = config.format or DEFAULT_FORMAT

    def setup(self) -> None:
        """Apply level and format to the root logger and install the redaction filter."""
        logging.basicConfig(
            level=self._level,
            format=self._format,
            force=True,
        )
        for handler in logging.root.handlers:
            if not any(isinstance(f, RedactSecretsFilter) for f in handler.filters):
                handler.addFilter(RedactSecretsFilter())
