#!/usr/bin/env python3
"""
Restart Announcer - standalone runner

Loads a JSON/YAML config, connects to NATS and runs the restart announcer
plugin until interrupted. Sending !restart reload re-reads the config file.

Usage:
    python announcer.py config.yaml
"""

import asyncio
import logging
import signal
import sys
from typing import Optional

from nats.aio.client import Client as NATS

from common.config import configure_logging, load_config
from plugins.restart_announcer import RestartAnnouncerPlugin


logger = logging.getLogger(__name__)


class Announcer:
    """
    Restart announcer orchestrator.

    Responsibilities:
    1. Connect to NATS
    2. Start the restart announcer plugin
    3. Coordinate graceful shutdown
    """

    def __init__(self, config_path: str):
        self.config_path = config_path
        self.config = load_config(config_path)
        self.nats: Optional[NATS] = None
        self.plugin: Optional[RestartAnnouncerPlugin] = None

    def _load_plugin_config(self) -> dict:
        self.config = load_config(self.config_path)
        return self.config

    async def start(self) -> None:
        """Connect to NATS and initialize the plugin"""
        nats_config = self.config.get('nats', {})
        nats_url = nats_config.get('url', 'nats://localhost:4222')

        logger.info(f"Connecting to NATS: {nats_url}")
        self.nats = NATS()
        await self.nats.connect(
            servers=[nats_url],
            max_reconnect_attempts=nats_config.get('max_reconnect_attempts', -1),
            reconnect_time_wait=nats_config.get('reconnect_delay', 2),
            connect_timeout=nats_config.get('connection_timeout', 5)
        )

        self.plugin = RestartAnnouncerPlugin(
            self.nats,
            self.config,
            config_loader=self._load_plugin_config,
        )
        await self.plugin.initialize()
        logger.info("Restart announcer started")

    async def stop(self) -> None:
        """Stop the plugin and close the NATS connection"""
        logger.info("Shutting down restart announcer...")
        if self.plugin:
            await self.plugin.shutdown()
        if self.nats and self.nats.is_connected:
            await self.nats.drain()
        logger.info("Restart announcer stopped")


async def main(config_path: str) -> None:
    """Entry point"""
    announcer = Announcer(config_path)
    configure_logging(announcer.config)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass

    try:
        await announcer.start()
        await stop_event.wait()
        logger.info("Received shutdown signal")
    finally:
        await announcer.stop()


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print('usage: %s <config file>' % sys.argv[0], file=sys.stderr)
        sys.exit(1)
    try:
        asyncio.run(main(sys.argv[1]))
    except KeyboardInterrupt:
        pass
