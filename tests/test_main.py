"""Tests for the CLI entry point (exit codes, overrides); the gate is patched."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from conftest import FakeApiClient, FakeTokenBroker, make_pr, make_review
from mergegate.errors import AuthError, ConfigError, StateError
from mergegate.gate import MergeGate
from mergegate.main import EXIT_FAILED, EXIT_MERGED, EXIT_NOT_MERGED, apply_overrides, build_gate, main, parse_args
from mergegate.models import LifecycleState, MergeMethod, MergeResult, ReviewVerdict

ENV = {
    "APP_ID": "12345",
    "PRIVATE_KEY": "dummy-key",
    "GITHUB_REPOSITORY": "owner/repo",
    "PULL_NUMBER": "42",
}


@pytest.fixture
def env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("PRIVATE_KEY_FILE", "GATE_REQUIRED_CONTEXTS", "GATE_MERGE_METHOD", "GATE_REQUIRED_APPROVALS"):
        monkeypatch.delenv(key, raising=False)
    for key, value in ENV.items():
        monkeypatch.setenv(key, value)


def _config_arg(tmp_path: Path) -> list[str]:
    return ["--config", str(tmp_path / "missing.yaml")]


def test_exit_code_constants() -> None:
    assert (EXIT_MERGED, EXIT_FAILED, EXIT_NOT_MERGED) == (0, 1, 2)


def test_merged_exits_zero(env: None, tmp_path: Path) -> None:
    gate = MagicMock()
    gate.run.return_value = MergeResult(merged=True, sha="m1")
    with patch("mergegate.main.build_gate", return_value=gate):
        assert main(_config_arg(tmp_path)) == EXIT_MERGED
    gate.run.assert_called_once_with("owner/repo", 42)


def test_not_merged_exits_two(env: None, tmp_path: Path) -> None:
    gate = MagicMock()
    gate.run.return_value = MergeResult(merged=False, message="Pull Request is not mergeable")
    with patch("mergegate.main.build_gate", return_value=gate):
        assert main(_config_arg(tmp_path)) == EXIT_NOT_MERGED


@pytest.mark.parametrize("error", [StateError("pull request is a draft"), AuthError("no installation")])
def test_gate_errors_exit_one(env: None, tmp_path: Path, error: Exception) -> None:
    gate = MagicMock()
    gate.run.side_effect = error
    with patch("mergegate.main.build_gate", return_value=gate):
        assert main(_config_arg(tmp_path)) == EXIT_FAILED


def test_unexpected_error_exits_one(env: None, tmp_path: Path) -> None:
    gate = MagicMock()
    gate.run.side_effect = RuntimeError("boom")
    with patch("mergegate.main.build_gate", return_value=gate):
        assert main(_config_arg(tmp_path)) == EXIT_FAILED


def test_missing_credentials_fail_before_network(env: None, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("APP_ID")
    with patch("mergegate.main.build_gate") as build:
        assert main(_config_arg(tmp_path)) == EXIT_FAILED
    build.assert_not_called()


def test_non_numeric_pull_number_flag(env: None, tmp_path: Path) -> None:
    with patch("mergegate.main.build_gate") as build:
        assert main(_config_arg(tmp_path) + ["--pull-number", "abc"]) == EXIT_FAILED
    build.assert_not_called()


@pytest.mark.parametrize(
    "flags",
    [["--required-approvals", "abc"], ["--merge-method", "foo"], ["--no-such-flag"]],
)
def test_bad_command_line_exits_one(env: None, tmp_path: Path, flags: list[str]) -> None:
    with patch("mergegate.main.build_gate") as build:
        assert main(_config_arg(tmp_path) + flags) == EXIT_FAILED
    build.assert_not_called()


def test_parse_args_raises_config_error() -> None:
    with pytest.raises(ConfigError, match="--required-approvals"):
        parse_args(["--required-approvals", "abc"])


def test_check_validates_without_running(env: None, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with patch("mergegate.main.build_gate") as build:
        assert main(_config_arg(tmp_path) + ["--check"]) == EXIT_MERGED
    build.assert_not_called()
    assert "Config OK: owner/repo #42" in capsys.readouterr().out


def test_flags_override_config(env: None, tmp_path: Path) -> None:
    from mergegate.config import load_config

    args = parse_args(
        _config_arg(tmp_path)
        + [
            "--repository",
            "octo/other",
            "--pull-number",
            "7",
            "--merge-method",
            "rebase",
            "--required-context",
            "ci/build",
            "--required-context",
            "lint",
            "--required-approvals",
            "2",
        ]
    )
    config = apply_overrides(load_config(args.config), args)

    assert config.target.repository == "octo/other"
    assert config.target.pull_number == 7
    assert config.gate.merge_method == MergeMethod.REBASE
    assert config.gate.required_contexts == ["ci/build", "lint"]
    assert config.gate.required_approvals == 2


def test_build_gate_wires_github(env: None, tmp_path: Path) -> None:
    from mergegate.config import load_config

    gate = build_gate(load_config(tmp_path / "missing.yaml"))
    assert isinstance(gate, MergeGate)
    assert gate.config.merge_method == MergeMethod.SQUASH


def test_end_to_end_with_fakes(env: None, tmp_path: Path) -> None:
    """main wires a real MergeGate; only the token broker and client are faked."""
    client = FakeApiClient(
        prs=[make_pr(state=LifecycleState.OPEN)],
        reviews=[make_review("alice", ReviewVerdict.APPROVED)],
    )

    def fake_build_gate(config, log=None):  # type: ignore[no-untyped-def]
        return MergeGate(FakeTokenBroker(), lambda token: client, config.gate, log=log)

    with patch("mergegate.main.build_gate", side_effect=fake_build_gate):
        assert main(_config_arg(tmp_path)) == EXIT_MERGED
    assert client.merge_calls == [MergeMethod.SQUASH]
