"""run command: start the long-lived bot."""

from __future__ import annotations

import asyncio
import dataclasses
import logging

import click
from rich.console import Console

console = Console()
logger = logging.getLogger(__name__)


@click.command("run")
@click.option("--repo", default=None, help="GitHub repository in owner/name format. Overrides config file.")
@click.option(
    "--threshold",
    "approvals",
    type=click.IntRange(min=1),
    default=None,
    help="Approvals needed before formatting. Overrides config file.",
)
@click.pass_context
def run_cmd(ctx, repo: str | None, approvals: int | None):
    """Watch pull requests until the process is stopped.

    \b
    Required environment variables:
      GITHUB_TOKEN           GitHub token with repo scope (or use gh CLI)
    Optional:
      FORMATBOT_WEBHOOK_URL  Webhook that receives error alerts
    """
    from formatbot_cli.auth import resolve_github_token
    from formatbot_core.app import run_bot
    from formatbot_core.config import load_config
    from formatbot_core.logging_setup import configure_logging

    obj = ctx.obj or {}
    try:
        config = load_config(
            obj.get("config_path", ".formatbot.yml"),
            overrides={"repo": repo, "approvals_until_format": approvals},
        )
    except ValueError as e:
        raise click.UsageError(str(e))

    token = resolve_github_token(config.api_url)
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )
    config = dataclasses.replace(config, github_token=token)

    configure_logging(obj.get("log_level", "INFO"), config.log_dir, config.webhook_url, config.webhook_pings)
    console.print(
        f"[bold]formatbot[/bold] watching [cyan]{config.repo}[/cyan] "
        f"(formats after {config.approvals_until_format} approval(s))"
    )

    try:
        asyncio.run(run_bot(config))
    except KeyboardInterrupt:
        console.print("[yellow]Stopped.[/yellow]")
    except Exception:
        logger.exception("formatbot stopped on an unhandled fault")
        ctx.exit(1)
