"""
plugins/restart_announcer/adapters.py

NATS implementations of the announcer collaborators.

NATS Subjects:
    Display (published):
        rosey.chat.{channel}.send - Chat broadcast
        rosey.display.{channel}.progress - Show/replace progress bar
        rosey.display.{channel}.progress.clear - Remove progress bar
        rosey.display.{channel}.title - Full-screen title

    Backup (request/reply):
        <backup.status_subject> - Reply {"running": bool}

    Shutdown (published):
        rosey.server.shutdown | rosey.server.stop | rosey.server.restart
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from nats.aio.client import Client as NATS

from .collaborators import BackupSignal, DisplaySink, NullBackupSignal, ShutdownAction
from .session import ShutdownMethod


DEFAULT_BACKUP_TIMEOUT = 2.0


class NatsDisplaySink(DisplaySink):
    """
    Publishes announcements for a channel.

    The platform connector fans each message out to whoever is connected
    when it arrives, so no viewer list is kept here.
    """

    def __init__(self, nats_client: NATS, channel: str):
        self.nats = nats_client
        self.channel = channel

    @property
    def chat_subject(self) -> str:
        return f"rosey.chat.{self.channel}.send"

    @property
    def display_subject(self) -> str:
        return f"rosey.display.{self.channel}"

    async def _publish(self, subject: str, payload: Dict[str, Any]) -> None:
        await self.nats.publish(subject, json.dumps(payload).encode())

    async def broadcast_text(self, text: str) -> None:
        await self._publish(self.chat_subject, {
            "channel": self.channel,
            "message": text,
            "type": "restart_announcement",
        })

    async def show_progress(self, text: str, fraction: float) -> None:
        await self._publish(f"{self.display_subject}.progress", {
            "channel": self.channel,
            "message": text,
            "progress": max(0.0, min(1.0, fraction)),
            "replace": True,
        })

    async def clear_progress(self) -> None:
        await self._publish(f"{self.display_subject}.progress.clear", {
            "channel": self.channel,
        })

    async def show_title(self, text: str) -> None:
        await self._publish(f"{self.display_subject}.title", {
            "channel": self.channel,
            "title": text,
            "subtitle": "",
        })


class NatsBackupSignal(BackupSignal):
    """
    Asks a backup service whether a backup is running.

    Timeouts, missing responders and malformed replies all read as
    "not running".
    """

    def __init__(
        self,
        nats_client: NATS,
        subject: str,
        timeout: float = DEFAULT_BACKUP_TIMEOUT,
    ):
        self.nats = nats_client
        self.subject = subject
        self.timeout = timeout
        self.logger = logging.getLogger(f"{__name__}.NatsBackupSignal")

    async def is_backup_running(self) -> bool:
        try:
            response = await self.nats.request(self.subject, b"{}", timeout=self.timeout)
            result = json.loads(response.data.decode())
            return bool(result.get("running", False))
        except Exception as e:
            self.logger.debug(f"Backup status unavailable on {self.subject}: {e}")
            return False


def create_backup_signal(nats_client: NATS, config: Optional[Dict[str, Any]]) -> BackupSignal:
    """
    Pick the backup signal for a plugin config.

    A configured backup.status_subject enables the NATS signal; without
    it no backup is ever reported.
    """
    backup = (config or {}).get("backup") or {}
    subject = backup.get("status_subject")
    if not subject:
        return NullBackupSignal()
    return NatsBackupSignal(
        nats_client,
        subject,
        timeout=float(backup.get("timeout", DEFAULT_BACKUP_TIMEOUT)),
    )


class NatsShutdownAction(ShutdownAction):
    """Asks the host to go down by publishing rosey.server.{method}."""

    def __init__(self, nats_client: NATS, reason: str = "restart_announcer"):
        self.nats = nats_client
        self.reason = reason
        self.logger = logging.getLogger(f"{__name__}.NatsShutdownAction")

    async def execute(self, method: ShutdownMethod) -> None:
        subject = f"rosey.server.{method.value}"
        await self.nats.publish(subject, json.dumps({
            "method": method.value,
            "reason": self.reason,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }).encode())
        # Make sure the request leaves before the host goes away
        await self.nats.flush()
        self.logger.info(f"Published {subject}")
