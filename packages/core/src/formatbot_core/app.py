"""Wiring: build every component from a BotConfig and run the daemon."""

from __future__ import annotations

import asyncio
import logging

from formatbot_core.config import BotConfig
from formatbot_core.events import EventSource
from formatbot_core.gh.client import HostingClient
from formatbot_core.git.working_tree import WorkingTree
from formatbot_core.orchestrator import Orchestrator
from formatbot_core.publisher import CommentPublisher
from formatbot_core.tools.formatter import IntelliJFormatter
from formatbot_core.tools.maven import MavenExecutor
from formatbot_core.tools.style_checker import StyleChecker

logger = logging.getLogger(__name__)


async def build_orchestrator(config: BotConfig, client: HostingClient) -> Orchestrator:
    clone_url = await client.fetch_repository()
    tree = WorkingTree(
        config.working_dir,
        clone_url,
        config.github_token,
        config.committer_name,
        config.committer_email,
    )
    await asyncio.to_thread(tree.ensure_clone)

    return Orchestrator(
        config=config,
        client=client,
        tree=tree,
        style_checker=StyleChecker(
            config.checkstyle_cmd, config.style_extensions, config.style_timeout, cwd=str(tree.path)
        ),
        formatter=IntelliJFormatter(config.idea_path, config.formatter_timeout),
        builder=MavenExecutor(config.build_cmd, str(tree.path), config.build_timeout),
        publisher=CommentPublisher(client, max_retries=config.comment_retries, root=str(tree.path)),
    )


async def run_bot(config: BotConfig) -> None:
    """Run the poller and the orchestrator until an unhandled fault stops either."""
    client = HostingClient(config.repo, config.github_token, config.api_url)
    orchestrator = await build_orchestrator(config, client)

    events: asyncio.Queue = asyncio.Queue()
    source = EventSource(client, events, config.poll_interval, config.skip_existing_on_startup)

    logger.info("Will start with the heartbeat now!")
    await asyncio.gather(source.run(), orchestrator.run(events))
