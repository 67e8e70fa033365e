"""Tests for the CLI entry point."""

import subprocess
from unittest.mock import MagicMock, patch

from click.testing import CliRunner

from formatbot_cli.cli import main
from formatbot_core.config import BotConfig


def _make_config(**overrides):
    values = {"repo": "acme/widgets", "approvals_until_format": 2, "log_dir": "./log"}
    values.update(overrides)
    return BotConfig(**values)


def _patch_common(mocker, config=None, token="tok"):
    """Patch config loading, token resolution, logging and the daemon itself."""
    cfg = config or _make_config()
    load = mocker.patch("formatbot_core.config.load_config", return_value=cfg)
    mocker.patch("formatbot_cli.auth.resolve_github_token", return_value=token)
    logging_setup = mocker.patch("formatbot_core.logging_setup.configure_logging")
    run_bot = mocker.patch("formatbot_core.app.run_bot", new=mocker.AsyncMock())
    return load, logging_setup, run_bot


class TestCLIValidation:
    def test_missing_github_token(self, mocker):
        _, _, run_bot = _patch_common(mocker, token=None)

        result = CliRunner().invoke(main, ["run"])

        assert result.exit_code != 0
        assert "GITHUB_TOKEN" in result.output
        run_bot.assert_not_called()

    def test_invalid_config_is_usage_error(self, mocker):
        _patch_common(mocker)
        mocker.patch("formatbot_core.config.load_config", side_effect=ValueError("'repo' must be set"))

        result = CliRunner().invoke(main, ["run"])

        assert result.exit_code == 2
        assert "'repo' must be set" in result.output

    def test_threshold_must_be_positive(self, mocker):
        _patch_common(mocker)
        result = CliRunner().invoke(main, ["run", "--threshold", "0"])
        assert result.exit_code != 0


class TestCLIRun:
    def test_starts_daemon_with_resolved_token(self, mocker):
        _, _, run_bot = _patch_common(mocker, token="resolved")

        result = CliRunner().invoke(main, ["run"])

        assert result.exit_code == 0, result.output
        config = run_bot.call_args.args[0]
        assert config.github_token == "resolved"
        assert config.repo == "acme/widgets"

    def test_overrides_passed_to_config(self, mocker):
        load, _, _ = _patch_common(mocker)

        CliRunner().invoke(main, ["--config", "custom.yml", "run", "--repo", "acme/other", "--threshold", "3"])

        assert load.call_args.args[0] == "custom.yml"
        assert load.call_args.kwargs["overrides"] == {"repo": "acme/other", "approvals_until_format": 3}

    def test_logging_configured_from_options(self, mocker):
        cfg = _make_config(webhook_url="https://hooks.example/x", webhook_pings=("1",), log_dir="/var/log/fb")
        _, logging_setup, _ = _patch_common(mocker, config=cfg)

        CliRunner().invoke(main, ["--log-level", "debug", "run"])

        logging_setup.assert_called_once_with("DEBUG", "/var/log/fb", "https://hooks.example/x", ("1",))

    def test_log_level_from_env(self, mocker):
        _, logging_setup, _ = _patch_common(mocker)

        CliRunner().invoke(main, ["run"], env={"FORMATBOT_LOGLEVEL": "WARNING"})

        assert logging_setup.call_args.args[0] == "WARNING"

    def test_unhandled_fault_exits_nonzero(self, mocker):
        _, _, run_bot = _patch_common(mocker)
        run_bot.side_effect = RuntimeError("event loop exploded")

        result = CliRunner().invoke(main, ["run"])

        assert result.exit_code == 1


class TestResolveGithubToken:
    def test_returns_env_var_when_set(self, monkeypatch):
        from formatbot_cli.auth import resolve_github_token

        monkeypatch.setenv("GITHUB_TOKEN", "env-token\n")
        assert resolve_github_token() == "env-token"

    def test_falls_back_to_gh_cli(self, monkeypatch):
        from formatbot_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="gh-token\n")
            result = resolve_github_token()
        assert result == "gh-token"

    def test_returns_none_when_gh_not_installed(self, monkeypatch):
        from formatbot_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run", side_effect=FileNotFoundError):
            assert resolve_github_token() is None

    def test_returns_none_when_gh_times_out(self, monkeypatch):
        from formatbot_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="gh", timeout=5)):
            assert resolve_github_token() is None

    def test_returns_none_when_gh_returns_error(self, monkeypatch):
        from formatbot_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=1, stdout="")
            assert resolve_github_token() is None

    def test_enterprise_host_passed_to_gh(self, monkeypatch):
        from formatbot_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="ghe-token\n")
            assert resolve_github_token("https://github.acme.corp/api/v3") == "ghe-token"
        assert mock_run.call_args.args[0] == ["gh", "auth", "token", "--hostname", "github.acme.corp"]


class TestGhHostname:
    def test_public_github_has_no_hostname(self):
        from formatbot_cli.auth import gh_hostname

        assert gh_hostname("https://api.github.com") is None
        assert gh_hostname(None) is None

    def test_enterprise_hostname(self):
        from formatbot_cli.auth import gh_hostname

        assert gh_hostname("https://github.acme.corp/api/v3") == "github.acme.corp"
