"""Logging configuration for the daemon.

Console output goes through rich. Files in ``log_dir`` keep everything
(all.log), the operational summary (info.log) and errors only (error.log).
Errors are additionally forwarded to a chat webhook so someone notices a
failing bot without tailing its logs.
"""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

import httpx
from rich.logging import RichHandler

FILE_FORMAT = "%(asctime)s [%(process)d] %(levelname)7s - %(name)s - %(message)s"
_MAX_BYTES = 5 * 1024 * 1024
_BACKUPS = 3
# Discord rejects message content longer than this.
_WEBHOOK_LIMIT = 2000


class WebhookAlertHandler(logging.Handler):
    """Posts log records to a Discord-compatible webhook."""

    def __init__(self, url: str, pings=(), level: int = logging.ERROR, timeout: float = 10.0):
        super().__init__(level)
        self.url = url
        self.pings = tuple(pings)
        self.timeout = timeout

    def build_payload(self, record: logging.LogRecord) -> dict:
        mentions = " ".join(f"<@{p}>" for p in self.pings)
        text = f"**{record.levelname}** `{record.name}`\n```\n{self.format(record)}\n```"
        content = f"{mentions}\n{text}" if mentions else text
        return {"content": content[:_WEBHOOK_LIMIT]}

    def emit(self, record: logging.LogRecord) -> None:
        try:
            response = httpx.post(self.url, json=self.build_payload(record), timeout=self.timeout)
            response.raise_for_status()
        except Exception:
            self.handleError(record)


def configure_logging(
    level: str = "INFO",
    log_dir: str | None = "./log",
    webhook_url: str | None = None,
    pings=(),
) -> logging.Logger:
    """Install console, file and alert handlers on the root logger and return it."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.DEBUG)

    console = RichHandler(rich_tracebacks=True, show_path=False)
    console.setLevel(level.upper())
    root.addHandler(console)

    if log_dir:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        formatter = logging.Formatter(FILE_FORMAT)
        for filename, file_level in (
            ("all.log", logging.DEBUG),
            ("info.log", logging.INFO),
            ("error.log", logging.ERROR),
        ):
            handler = logging.handlers.RotatingFileHandler(
                directory / filename, maxBytes=_MAX_BYTES, backupCount=_BACKUPS, encoding="utf-8"
            )
            handler.setLevel(file_level)
            handler.setFormatter(formatter)
            root.addHandler(handler)

    if webhook_url:
        alert = WebhookAlertHandler(webhook_url, pings)
        alert.setFormatter(logging.Formatter("%(asctime)s %(message)s"))
        root.addHandler(alert)

    # PyGithub and httpx are chatty at DEBUG; the alert handler must not log its own requests.
    for noisy in ("github", "urllib3", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return root
