"""CLI entry point for formatbot.

Commands:
  run   start the daemon: poll pull requests, style-check new ones and
          auto-format them once they reach the approval quorum
"""

from __future__ import annotations

import importlib.metadata

import click

from formatbot_cli.commands.run import run_cmd


@click.group()
@click.version_option(
    version=importlib.metadata.version("formatbot"),
    prog_name="formatbot",
)
@click.option(
    "--config",
    "config_path",
    default=".formatbot.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="FORMATBOT_CONFIG",
)
@click.option(
    "--log-level",
    default="INFO",
    show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Console log level. Log files always receive everything.",
    envvar="FORMATBOT_LOGLEVEL",
)
@click.pass_context
def main(ctx: click.Context, config_path: str, log_level: str):
    """Pull request bot that style-checks and auto-formats a repository's PRs."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["log_level"] = log_level.upper()


main.add_command(run_cmd)
