"""
plugins/restart_announcer/plugin.py

Restart announcer plugin using NATS-based architecture.

NATS Subjects:
    Command Handlers:
        rosey.command.restart.start - Start a restart countdown
        rosey.command.restart.stop - Cancel the countdown (or a pending shutdown)
        rosey.command.restart.status - Report remaining time
        rosey.command.restart.reload - Re-apply configuration
        rosey.command.restart.toggle - Flip execute-shutdown
        rosey.command.restart.set - Replace the restart message template

    Events (Published):
        rosey.event.restart.started - Countdown started
        rosey.event.restart.stopped - Countdown cancelled
        rosey.event.restart.completed - Countdown reached zero
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from nats.aio.client import Client as NATS

from .adapters import NatsDisplaySink, NatsShutdownAction, create_backup_signal
from .daemon import ScheduledRestartDaemon
from .engine import RestartEngine
from .messages import MessageCatalog
from .session import DisplayMode, InvalidDisplayMode, RestartSession
from .settings import AnnouncerConfig
from .timers import TimerService
from .timespec import InvalidTimeFormat, format_duration, parse_time_spec


class RestartAnnouncerPlugin:
    """
    Restart announcer plugin.

    Commands:
        !restart start <time> [interval] [display] - Start a countdown
        !restart stop - Cancel the countdown
        !restart status - Show remaining time
        !restart reload - Reload configuration
        !restart toggle - Turn the shutdown after a countdown on or off
        !restart set message <text> - Change the countdown announcement

    Features:
        - Adaptive announcement cadence (every second in the final 10s)
        - Chat, progress bar or title announcements
        - Daily scheduled restart with reminders
        - Optional hold while a backup is running

    Args:
        nats_client: Connected NATS client for messaging.
        config: Optional configuration dictionary.
        config_loader: Optional callable returning a fresh config on reload.
        timers: Timer service (default: real asyncio timers).
    """

    # Plugin metadata
    NAMESPACE = "restart"
    VERSION = "1.0.0"
    DESCRIPTION = "Announce server restarts with adaptive countdowns"

    # NATS subjects - Commands
    SUBJECT_START = "rosey.command.restart.start"
    SUBJECT_STOP = "rosey.command.restart.stop"
    SUBJECT_STATUS = "rosey.command.restart.status"
    SUBJECT_RELOAD = "rosey.command.restart.reload"
    SUBJECT_TOGGLE = "rosey.command.restart.toggle"
    SUBJECT_SET = "rosey.command.restart.set"

    # NATS subjects - Events
    EVENT_STARTED = "rosey.event.restart.started"
    EVENT_STOPPED = "rosey.event.restart.stopped"
    EVENT_COMPLETED = "rosey.event.restart.completed"

    def __init__(
        self,
        nats_client: NATS,
        config: Optional[Dict[str, Any]] = None,
        config_loader: Optional[Callable[[], Dict[str, Any]]] = None,
        timers: Optional[TimerService] = None,
    ):
        self.nats = nats_client
        self.config = config or {}
        self.config_loader = config_loader
        self.timers = timers or TimerService()
        self.logger = logging.getLogger(f"plugin.{self.NAMESPACE}")

        self.channel = self.config.get("channel", "default")
        self.emit_events = self.config.get("emit_events", True)
        self.settings = AnnouncerConfig(self.config)
        self.messages = MessageCatalog(self.settings.message_overrides())

        self.display = NatsDisplaySink(self.nats, self.channel)
        self.engine = RestartEngine(
            display=self.display,
            messages=self.messages,
            settings=self.settings,
            shutdown=NatsShutdownAction(self.nats),
            backup=create_backup_signal(self.nats, self.config),
            timers=self.timers,
            on_complete=self._on_countdown_complete,
        )
        self.daemon = ScheduledRestartDaemon(
            engine=self.engine,
            display=self.display,
            messages=self.messages,
            settings=self.settings,
            timers=self.timers,
        )

        self._subscriptions = []
        self._initialized = False

    async def initialize(self) -> None:
        """
        Initialize the plugin.

        - Subscribes to NATS command subjects
        - Starts the scheduled restart daemon if enabled
        """
        self.logger.info(f"Initializing {self.NAMESPACE} plugin v{self.VERSION}")

        handlers = [
            (self.SUBJECT_START, self._handle_start),
            (self.SUBJECT_STOP, self._handle_stop),
            (self.SUBJECT_STATUS, self._handle_status),
            (self.SUBJECT_RELOAD, self._handle_reload),
            (self.SUBJECT_TOGGLE, self._handle_toggle),
            (self.SUBJECT_SET, self._handle_set),
        ]
        for subject, handler in handlers:
            sub = await self.nats.subscribe(subject, cb=handler)
            self._subscriptions.append(sub)

        self.daemon.start()

        self._initialized = True
        self.logger.info(
            f"{self.NAMESPACE} plugin loaded (scheduled restart: "
            f"{self.daemon.phase.value})"
        )

    async def shutdown(self) -> None:
        """
        Shutdown the plugin.

        - Stops the scheduled restart daemon
        - Stops any running countdown
        - Unsubscribes from NATS subjects
        """
        self.daemon.stop()
        await self.engine.stop()

        for sub in self._subscriptions:
            await sub.unsubscribe()
        self._subscriptions.clear()

        self._initialized = False
        self.logger.info(f"{self.NAMESPACE} plugin unloaded")

    async def reload(self) -> None:
        """
        Re-apply configuration.

        Reloads the config (when a loader was given), refreshes the channel,
        settings and messages, and restarts the scheduled restart daemon.
        A running countdown is left alone; its announcements move to the new
        channel.
        """
        if self.config_loader:
            self.config = self.config_loader() or {}

        self.channel = self.config.get("channel", "default")
        self.emit_events = self.config.get("emit_events", True)
        self.display.channel = self.channel

        self.settings = AnnouncerConfig(self.config)
        self.messages.load(self.settings.message_overrides())
        self.engine.settings = self.settings
        self.engine.backup = create_backup_signal(self.nats, self.config)
        self.daemon.settings = self.settings

        self.daemon.stop()
        self.daemon.start()
        self.logger.info(
            f"Configuration reloaded (scheduled restart: {self.daemon.phase.value})"
        )

    # =========================================================================
    # Command Handlers
    # =========================================================================

    async def _handle_start(self, msg) -> None:
        """
        Handle !restart start <time> [interval] [display].

        Message format:
        {
            "channel": "string",
            "user": "string",
            "args": "10m 1m bossbar",
            "reply_to": "rosey.reply.xyz"
        }
        """
        reply_to = None
        try:
            data = json.loads(msg.data.decode())
            reply_to = data.get("reply_to")
            user = data.get("user", "anonymous")
            args = data.get("args", "").split()

            if args:
                try:
                    restart_seconds = parse_time_spec(args[0])
                except InvalidTimeFormat:
                    await self._reply_error(reply_to, "commands.start.invalid-time")
                    return
            else:
                restart_seconds = self.settings.default_restart_time() * 60

            interval_seconds = self.settings.default_announcement_interval()
            if len(args) >= 2:
                try:
                    interval_seconds = parse_time_spec(args[1])
                except InvalidTimeFormat:
                    await self._reply_error(reply_to, "commands.start.invalid-interval")
                    return

            display_mode = DisplayMode.CHAT
            if len(args) >= 3:
                try:
                    display_mode = DisplayMode.parse(args[2])
                except InvalidDisplayMode:
                    await self._reply_error(reply_to, "commands.start.invalid-display")
                    return

            started = await self.engine.start(restart_seconds, interval_seconds, display_mode)
            if not started:
                await self._reply_error(reply_to, "commands.start.already-running")
                return

            message = self.messages.render_fixed_message(
                "commands.start.success",
                time=format_duration(restart_seconds),
                interval=format_duration(interval_seconds),
                display=display_mode.value,
            )
            await self._send_reply(reply_to, {
                "success": True,
                "result": {
                    "total_seconds": restart_seconds,
                    "interval_seconds": interval_seconds,
                    "display": display_mode.value,
                    "message": message,
                }
            })

            if self.emit_events:
                await self._emit_event(self.EVENT_STARTED, {
                    "channel": self.channel,
                    "user": user,
                    "total_seconds": restart_seconds,
                    "interval_seconds": interval_seconds,
                    "display": display_mode.value,
                })

            self.logger.info(
                f"{user} started a restart countdown: {format_duration(restart_seconds)}"
            )

        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in start request: {e}")
        except Exception as e:
            self.logger.exception(f"Error handling start: {e}")
            await self._send_reply(reply_to, {
                "success": False,
                "error": "⏰ An error occurred starting the restart countdown."
            })

    async def _handle_stop(self, msg) -> None:
        """Handle !restart stop."""
        reply_to = None
        try:
            data = json.loads(msg.data.decode())
            reply_to = data.get("reply_to")
            user = data.get("user", "anonymous")

            if not (self.engine.is_running() or self.engine.is_shutdown_pending()):
                await self._reply_error(reply_to, "commands.stop.not-running")
                return

            remaining = self.engine.get_remaining_seconds()
            await self.engine.stop()

            await self._send_reply(reply_to, {
                "success": True,
                "result": {
                    "message": self.messages.render_fixed_message("commands.stop.success")
                }
            })

            if self.emit_events:
                await self._emit_event(self.EVENT_STOPPED, {
                    "channel": self.channel,
                    "user": user,
                    "remaining_seconds": remaining,
                })

            self.logger.info(f"{user} stopped the restart countdown")

        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in stop request: {e}")
        except Exception as e:
            self.logger.exception(f"Error handling stop: {e}")
            await self._send_reply(reply_to, {
                "success": False,
                "error": "⏰ An error occurred stopping the restart countdown."
            })

    async def _handle_status(self, msg) -> None:
        """Handle !restart status."""
        reply_to = None
        try:
            data = json.loads(msg.data.decode())
            reply_to = data.get("reply_to")

            running = self.engine.is_running()
            if running:
                message = self.messages.render_fixed_message(
                    "commands.status.running", time=self.engine.remaining_formatted()
                )
            else:
                message = self.messages.render_fixed_message("commands.status.not-running")

            await self._send_reply(reply_to, {
                "success": True,
                "result": {
                    "running": running,
                    "remaining_seconds": self.engine.get_remaining_seconds() if running else 0,
                    "shutdown_pending": self.engine.is_shutdown_pending(),
                    "scheduled": self.daemon.phase.value,
                    "message": message,
                }
            })

        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in status request: {e}")
        except Exception as e:
            self.logger.exception(f"Error handling status: {e}")
            await self._send_reply(reply_to, {
                "success": False,
                "error": "⏰ An error occurred checking the restart countdown."
            })

    async def _handle_reload(self, msg) -> None:
        """Handle !restart reload."""
        reply_to = None
        try:
            data = json.loads(msg.data.decode())
            reply_to = data.get("reply_to")

            await self.reload()

            await self._send_reply(reply_to, {
                "success": True,
                "result": {
                    "scheduled": self.daemon.phase.value,
                    "message": self.messages.render_fixed_message("commands.reload.success"),
                }
            })

        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in reload request: {e}")
        except Exception as e:
            self.logger.exception(f"Error handling reload: {e}")
            await self._send_reply(reply_to, {
                "success": False,
                "error": "⏰ An error occurred reloading the configuration."
            })

    async def _handle_toggle(self, msg) -> None:
        """
        Handle !restart toggle.

        Flips execute-shutdown for this process. Countdowns that expire from
        now on use the new setting; a reload from file restores the file value.
        """
        reply_to = None
        try:
            data = json.loads(msg.data.decode())
            reply_to = data.get("reply_to")
            user = data.get("user", "anonymous")

            execute = not self.settings.should_execute_shutdown()
            self.settings.config["execute-shutdown"] = execute
            status = "enabled" if execute else "disabled"

            await self._send_reply(reply_to, {
                "success": True,
                "result": {
                    "execute_shutdown": execute,
                    "message": self.messages.render_fixed_message(
                        "commands.toggle.success", status=status
                    ),
                }
            })
            self.logger.info(f"{user} {status} server shutdown after countdowns")

        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in toggle request: {e}")
        except Exception as e:
            self.logger.exception(f"Error handling toggle: {e}")
            await self._send_reply(reply_to, {
                "success": False,
                "error": "⏰ An error occurred toggling the server shutdown."
            })

    async def _handle_set(self, msg) -> None:
        """
        Handle !restart set message <text>.

        Replaces the countdown announcement template. %time% is replaced
        with the remaining time. A running countdown picks it up from its
        next announcement.
        """
        reply_to = None
        try:
            data = json.loads(msg.data.decode())
            reply_to = data.get("reply_to")
            user = data.get("user", "anonymous")
            parts = data.get("args", "").strip().split(None, 1)

            if not parts or parts[0].lower() != "message":
                await self._reply_error(reply_to, "commands.set.usage")
                return

            template = parts[1].strip() if len(parts) > 1 else ""
            try:
                self.messages.set_restart_message(template)
            except ValueError:
                await self._reply_error(reply_to, "commands.set.empty")
                return

            # Kept in the config so a reload without a loader preserves it
            overrides = self.config.get("messages")
            if not isinstance(overrides, dict):
                overrides = self.config["messages"] = {}
            overrides["restart-message"] = template

            await self._send_reply(reply_to, {
                "success": True,
                "result": {
                    "restart_message": template,
                    "message": self.messages.render_fixed_message(
                        "commands.set.success", message=template
                    ),
                }
            })
            self.logger.info(f"{user} changed the restart message")

        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in set request: {e}")
        except Exception as e:
            self.logger.exception(f"Error handling set: {e}")
            await self._send_reply(reply_to, {
                "success": False,
                "error": "⏰ An error occurred updating the restart message."
            })

    # =========================================================================
    # Engine Callbacks
    # =========================================================================

    async def _on_countdown_complete(self, session: RestartSession) -> None:
        if self.emit_events:
            await self._emit_event(self.EVENT_COMPLETED, {
                "channel": self.channel,
                "total_seconds": session.total_seconds,
                "execute_shutdown": self.settings.should_execute_shutdown(),
                "shutdown_method": self.settings.shutdown_method().value,
            })

    # =========================================================================
    # Utility Methods
    # =========================================================================

    async def _reply_error(self, reply_to: Optional[str], key: str) -> None:
        await self._send_reply(reply_to, {
            "success": False,
            "error": self.messages.render_fixed_message(key),
        })

    async def _send_reply(self, reply_to: Optional[str], response: dict) -> None:
        """
        Send a reply to a command.

        Args:
            reply_to: NATS subject to reply to.
            response: Response dictionary.
        """
        if reply_to:
            await self.nats.publish(reply_to, json.dumps(response).encode())

    async def _emit_event(self, event_type: str, data: dict) -> None:
        """
        Emit an event via NATS.

        Args:
            event_type: The event subject.
            data: Event data.
        """
        event = {
            "event": event_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **data
        }
        await self.nats.publish(event_type, json.dumps(event).encode())
