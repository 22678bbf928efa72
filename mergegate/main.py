"""mergegate entry point.

Checks that a pull request is ready (not a draft, open, mergeable, required
checks green, enough approvals) and merges it as a GitHub App.

Exit codes: 0 merged, 2 every check passed but the merge call reported not
merged, 1 any error.

Usage: mergegate [--config config.yaml] [--repository owner/name] [--pull-number N]
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import NoReturn

from mergegate.adapters import GitHubAdapter, GitHubAppTokenBroker
from mergegate.config import AppConfig, GateConfig, LoggingConfig, TargetConfig, load_config
from mergegate.errors import ConfigError, MergeGateError
from mergegate.gate import MergeGate
from mergegate.logging import MergeGateLogging
from mergegate.models import GateOutcome, MergeMethod

EXIT_MERGED = GateOutcome.MERGED.exit_code
EXIT_FAILED = 1
EXIT_NOT_MERGED = GateOutcome.NOT_MERGED.exit_code


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises ConfigError instead of exiting with status 2."""

    def error(self, message: str) -> NoReturn:
        raise ConfigError(f"Invalid command line: {message}")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments; flags override config and env.

    Raises ConfigError on unknown flags or bad values.
    """
    parser = _ArgumentParser(
        prog="mergegate",
        description="Merge a pull request once it is open, mergeable, green and approved",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path("config.yaml"),
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only load and validate config, then exit",
    )
    parser.add_argument("--repository", "-r", help='Target repository "owner/name"')
    parser.add_argument("--pull-number", "-n", help="Pull request number")
    parser.add_argument(
        "--merge-method",
        choices=[m.value for m in MergeMethod],
        help="Merge method (default from config: squash)",
    )
    parser.add_argument(
        "--required-context",
        action="append",
        dest="required_contexts",
        metavar="CONTEXT",
        help="Status context that must succeed (repeatable)",
    )
    parser.add_argument(
        "--required-approvals",
        type=int,
        help="Number of distinct approving reviewers required",
    )
    return parser.parse_args(argv)


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Return a config with CLI flags applied on top. Raises ConfigError on bad values."""
    target = config.target.model_dump()
    gate = config.gate.model_dump()
    if args.repository:
        target["repository"] = args.repository
    if args.pull_number is not None:
        target["pull_number"] = args.pull_number
    if args.merge_method:
        gate["merge_method"] = args.merge_method
    if args.required_contexts:
        gate["required_contexts"] = args.required_contexts
    if args.required_approvals is not None:
        gate["required_approvals"] = args.required_approvals
    try:
        return config.model_copy(
            update={
                "target": TargetConfig.model_validate(target),
                "gate": GateConfig.model_validate(gate),
            }
        )
    except ValueError as e:
        raise ConfigError(f"Invalid command line value: {e}") from None


def build_gate(config: AppConfig, log: logging.Logger | None = None) -> MergeGate:
    """Wire the GitHub App token broker and REST client into a MergeGate."""
    api_url = config.app.api_url
    broker = GitHubAppTokenBroker(
        app_id=config.app_id_resolved or "",
        private_key=config.private_key_resolved or "",
        api_url=api_url,
    )
    return MergeGate(
        token_broker=broker,
        client_factory=lambda token: GitHubAdapter(token=token, api_url=api_url),
        config=config.gate,
        log=log,
    )


def run(config: AppConfig) -> int:
    """Run the gate for the configured pull request and return the exit code."""
    log = logging.getLogger("mergegate.gate")
    config.require_runnable()
    repo = config.target.repository or ""
    pr_number = config.target.pull_number or 0
    result = build_gate(config, log=log).run(repo, pr_number)
    return result.outcome.exit_code


def main(argv: list[str] | None = None) -> int:
    """Entry point for mergegate."""
    log = logging.getLogger("mergegate")
    # defaults until the config (and its logging section) is loaded
    MergeGateLogging(LoggingConfig()).setup()
    try:
        args = parse_args(argv)
        config = apply_overrides(load_config(args.config), args)
        MergeGateLogging(config.logging).setup()
        if args.check:
            config.require_runnable()
            print("Config OK:", config.target.repository, f"#{config.target.pull_number}")
            return EXIT_MERGED
        return run(config)
    except MergeGateError as e:
        log.error("%s", e)
        return EXIT_FAILED
    except KeyboardInterrupt:
        log.warning("Interrupted")
        return EXIT_FAILED
    except Exception as e:
        log.exception("Fatal error: %s", e)
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
