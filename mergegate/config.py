"""Configuration loading from YAML and environment.

Credentials (app id, private key) are taken from environment variables or
from files (Docker secrets). Never put a real private key in config files
committed to the repo, and never log it.
"""

import json
import os
from pathlib import Path
from typing import Annotated, Any, List

import yaml
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict, SettingsError

from mergegate.errors import ConfigError
from mergegate.models import MergeMethod

# Injected by load_config so properties can read env/file
_current_env: dict[str, str] = {}


def _read_secret(env_key: str, file_env_key: str) -> str | None:
    """Read secret from env var or from file path in env (e.g. Docker
    secrets)."""
    value = _current_env.get(env_key)
    if value:
        return value.strip()
    file_path = _current_env.get(file_env_key)
    if file_path:
        try:
            return Path(file_path).read_text().strip()
        except OSError as e:
            raise ConfigError(f"Cannot read {file_env_key} file: {e.strerror}") from None
    return None


def _is_placeholder(value: str | None) -> bool:
    return not value or value.startswith("${")


def parse_repository(repository: str) -> tuple[str, str]:
    """Split "owner/name"; raises ConfigError when malformed."""
    parts = repository.strip().split("/")
    if len(parts) != 2 or not all(parts):
        raise ConfigError(f'repository must be in the form "owner/name", got "{repository}"')
    return parts[0], parts[1]


class GitHubAppConfig(BaseSettings):
    """GitHub App credentials and API endpoint."""

    model_config = SettingsConfigDict(extra="ignore")

    app_id: str | None = Field(default=None, description="GitHub App id (env APP_ID)")
    private_key: SecretStr | None = Field(default=None, description="App private key PEM; prefer env or secret file")
    api_url: str = Field(default="https://api.github.com", description="API base URL")

    @field_validator("app_id", mode="before")
    @classmethod
    def _app_id_to_str(cls, v: Any) -> Any:
        # YAML reads a bare app id as int
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class TargetConfig(BaseSettings):
    """Repository and pull request to gate."""

    model_config = SettingsConfigDict(env_prefix="TARGET_", extra="ignore")

    repository: str | None = Field(default=None, description='Target repo "owner/name"')
    pull_number: int | None = Field(default=None, gt=0, description="Pull request number")

    @field_validator("repository")
    @classmethod
    def _check_repository(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            parse_repository(v)
        except ConfigError as e:
            raise ValueError(e.message) from None
        return v.strip()


class PollConfig(BaseModel):
    """Delay and deadline for one polling phase."""

    interval_seconds: float = Field(default=2.0, ge=0, description="Delay between attempts")
    timeout_seconds: float | None = Field(default=60.0, gt=0, description="Elapsed-time budget")
    max_attempts: int | None = Field(default=None, ge=1, description="Attempt budget")

    @model_validator(mode="after")
    def _check_deadline(self) -> "PollConfig":
        if self.timeout_seconds is None and self.max_attempts is None:
            raise ValueError("set timeout_seconds or max_attempts")
        return self


class GateConfig(BaseSettings):
    """Merge readiness rules and polling budgets."""

    model_config = SettingsConfigDict(env_prefix="GATE_", env_nested_delimiter="__", extra="ignore")

    merge_method: MergeMethod = Field(default=MergeMethod.SQUASH, description="merge, squash or rebase")
    required_approvals: int = Field(default=1, ge=0, description="Distinct approving reviewers needed")
    required_contexts: Annotated[List[str], NoDecode] = Field(
        default_factory=list,
        description="Status contexts that must succeed; empty defers to the aggregate verdict",
    )
    mergeability: PollConfig = Field(
        default_factory=lambda: PollConfig(interval_seconds=2.0, timeout_seconds=20.0, max_attempts=10)
    )
    checks: PollConfig = Field(
        default_factory=lambda: PollConfig(interval_seconds=5.0, timeout_seconds=300.0)
    )

    @field_validator("required_contexts", mode="before")
    @classmethod
    def _split_contexts(cls, v: Any) -> Any:
        """Accept a JSON list or a comma-separated string (GATE_REQUIRED_CONTEXTS)."""
        if isinstance(v, str):
            if v.strip().startswith("["):
                return json.loads(v)
            return [c for c in (part.strip() for part in v.split(",")) if c]
        return v

    @field_validator("required_contexts")
    @classmethod
    def _dedupe_contexts(cls, v: List[str]) -> List[str]:
        return list(dict.fromkeys(c.strip() for c in v if c.strip()))


class LoggingConfig(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(env_prefix="LOGGING_", extra="ignore")

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )


class AppConfig(BaseSettings):
    """Root application config from YAML + env."""

    model_config = SettingsConfigDict(extra="ignore")

    app: GitHubAppConfig = Field(default_factory=GitHubAppConfig)
    target: TargetConfig = Field(default_factory=TargetConfig)
    gate: GateConfig = Field(default_factory=GateConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def app_id_resolved(self) -> str | None:
        """Resolve app id from config or env."""
        if not _is_placeholder(self.app.app_id):
            return str(self.app.app_id).strip()
        value = _current_env.get("APP_ID")
        return value.strip() if value else None

    @property
    def private_key_resolved(self) -> str | None:
        """Resolve private key from config, env or Docker secret file."""
        k = self.app.private_key.get_secret_value() if self.app.private_key else None
        if not _is_placeholder(k):
            return k
        return _read_secret("PRIVATE_KEY", "PRIVATE_KEY_FILE")

    def require_runnable(self) -> None:
        """Raise ConfigError unless everything needed for a run is present."""
        missing = []
        if not self.app_id_resolved:
            missing.append("app id (APP_ID)")
        if not self.private_key_resolved:
            missing.append("private key (PRIVATE_KEY or PRIVATE_KEY_FILE)")
        if not self.target.repository:
            missing.append("repository (GITHUB_REPOSITORY)")
        if self.target.pull_number is None:
            missing.append("pull request number (PULL_NUMBER)")
        if missing:
            raise ConfigError("Missing configuration: " + ", ".join(missing))


def _substitute_env(value: Any) -> Any:
    """Replace ${VAR} and $VAR in strings with os.environ."""
    if isinstance(value, str):
        if value.startswith("${") and value.endswith("}"):
            key = value[2:-1].strip()
            return _current_env.get(key, value)
        if value.startswith("$") and not value.startswith("${"):
            key = value[1:].strip()
            return _current_env.get(key, value)
        return value
    if isinstance(value, dict):
        return {k: _substitute_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute_env(v) for v in value]
    return value


def _validation_message(e: ValidationError) -> str:
    # input values are left out: they may hold the private key
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load config from YAML file and environment.

    Credentials: APP_ID, PRIVATE_KEY or PRIVATE_KEY_FILE. Target:
    GITHUB_REPOSITORY and PULL_NUMBER override the YAML ``target`` section.
    Raises ConfigError for unreadable YAML or invalid values.
    """
    global _current_env
    _current_env = dict(os.environ)

    path = config_path or Path("config.yaml")
    raw: dict[str, Any] = {}
    if path.is_file():
        try:
            raw = yaml.safe_load(path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from None
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        raw = _substitute_env(raw)

    target_raw = dict(raw.get("target") or {})
    if _current_env.get("GITHUB_REPOSITORY"):
        target_raw["repository"] = _current_env["GITHUB_REPOSITORY"]
    if _current_env.get("PULL_NUMBER"):
        target_raw["pull_number"] = _current_env["PULL_NUMBER"]

    try:
        return AppConfig(
            app=GitHubAppConfig(**(raw.get("app") or {})),
            target=TargetConfig(**target_raw),
            gate=GateConfig(**(raw.get("gate") or {})),
            logging=LoggingConfig(**(raw.get("logging") or {})),
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {_validation_message(e)}") from None
    except SettingsError as e:
        raise ConfigError(f"Invalid configuration in environment: {e}") from None
