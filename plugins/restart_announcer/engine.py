"""
plugins/restart_announcer/engine.py

Restart countdown engine.

Owns at most one RestartSession at a time. Two independent timers drive a
session:

- a 1-second tick that counts down and triggers the restart at zero
- an announcement timer, re-armed after every announcement from the time
  left at that moment (see cadence.next_announcement_interval)

When the countdown expires the engine broadcasts a final message, waits a
fixed grace second, optionally holds while a backup is running, and then
runs the shutdown action.
"""

import logging
from typing import Awaitable, Callable, Optional

from .cadence import next_announcement_interval
from .collaborators import BackupSignal, DisplaySink, NullBackupSignal, ShutdownAction
from .messages import MessageCatalog
from .session import DisplayMode, RestartSession
from .settings import AnnouncerConfig
from .timers import TimerHandle, TimerService
from .timespec import format_duration


TICK_SECONDS = 1

# Lets the "restarting now" broadcast go out before the host goes down
GRACE_DELAY_SECONDS = 1

DEFAULT_BACKUP_WAIT_DELAY = 60


class RestartEngine:
    """
    Runs restart countdowns.

    Args:
        display: Where announcements are rendered.
        messages: Message templates.
        settings: Announcer configuration.
        shutdown: Action run when the countdown completes.
        backup: Backup signal consulted before shutdown (default: none).
        timers: Timer service (default: real asyncio timers).
        on_complete: Async callback called with the session when it expires.
    """

    def __init__(
        self,
        display: DisplaySink,
        messages: MessageCatalog,
        settings: AnnouncerConfig,
        shutdown: ShutdownAction,
        backup: Optional[BackupSignal] = None,
        timers: Optional[TimerService] = None,
        on_complete: Optional[Callable[[RestartSession], Awaitable[None]]] = None,
    ):
        self.display = display
        self.messages = messages
        self.settings = settings
        self.shutdown = shutdown
        self.backup = backup or NullBackupSignal()
        self.timers = timers or TimerService()
        self.on_complete = on_complete

        self.session: Optional[RestartSession] = None
        self._tick_timer: Optional[TimerHandle] = None
        self._announce_timer: Optional[TimerHandle] = None
        self._shutdown_timer: Optional[TimerHandle] = None
        self._shutdown_session: Optional[RestartSession] = None
        self.logger = logging.getLogger(f"{__name__}.RestartEngine")

    # =========================================================================
    # Public API
    # =========================================================================

    async def start(
        self,
        total_seconds: int,
        interval_seconds: int,
        display_mode: DisplayMode = DisplayMode.CHAT,
        wait_for_backup: bool = False,
        backup_wait_delay: int = DEFAULT_BACKUP_WAIT_DELAY,
    ) -> bool:
        """
        Start a restart countdown.

        Sends the first announcement right away, then starts the tick and
        the announcement timer.

        Args:
            total_seconds: Countdown length.
            interval_seconds: Announcement interval while over a minute remains.
            display_mode: Presentation for announcements.
            wait_for_backup: Hold the shutdown while a backup is running.
            backup_wait_delay: Seconds between backup checks.

        Returns:
            False if a countdown is already running, True otherwise.
        """
        if self.is_running():
            self.logger.info("Restart countdown already running, not starting another")
            return False

        # A new countdown replaces a shutdown still in its grace delay or
        # waiting on a backup
        if self._cancel_shutdown():
            self.logger.info("Pending shutdown replaced by a new countdown")

        session = RestartSession(
            total_seconds=total_seconds,
            base_interval_seconds=interval_seconds,
            display_mode=display_mode,
            wait_for_backup=wait_for_backup,
            backup_wait_delay_seconds=max(1, backup_wait_delay),
        )
        self.session = session
        self.logger.info(
            f"Restart countdown started: {format_duration(total_seconds)} "
            f"(interval: {interval_seconds}s, display: {display_mode.value}, "
            f"wait for backup: {wait_for_backup})"
        )

        await self._send_announcement(session)

        # Stopped while the first announcement was going out
        if not self._is_current(session):
            return True

        self._tick_timer = self.timers.call_every(
            TICK_SECONDS, lambda: self._on_tick(session), name="restart-tick"
        )
        self._schedule_next_announcement(session)
        return True

    async def stop(self) -> None:
        """
        Stop the running countdown.

        Cancels the tick and the pending announcement, and clears the
        progress bar. Also cancels a shutdown still waiting on its grace
        delay or on a backup. Does nothing when idle.
        """
        if self._cancel_shutdown():
            self.logger.info("Pending shutdown cancelled")

        session = self.session
        if session is None or not session.active:
            return

        await self._end_session(session)
        self.logger.info(
            f"Restart countdown stopped with {session.remaining_seconds}s remaining"
        )

    def is_running(self) -> bool:
        return self.session is not None and self.session.active

    def get_remaining_seconds(self) -> int:
        """Seconds left, or the last known value once stopped."""
        if self.session is None:
            return 0
        return max(0, self.session.remaining_seconds)

    def remaining_formatted(self) -> str:
        return format_duration(self.get_remaining_seconds())

    def is_shutdown_pending(self) -> bool:
        """True between expiry and the shutdown action."""
        return self._shutdown_session is not None

    # =========================================================================
    # Countdown
    # =========================================================================

    def _is_current(self, session: RestartSession) -> bool:
        return session is self.session and session.active

    async def _on_tick(self, session: RestartSession) -> None:
        if not self._is_current(session):
            return

        session.remaining_seconds -= 1
        if session.remaining_seconds > 0:
            return

        # Nothing may be announced after the restart-now broadcast
        self._cancel_session_timers(session)

        # The final message is always plain chat
        try:
            await self.display.broadcast_text(
                self.messages.render_fixed_message("restart-now")
            )
        except Exception as e:
            self.logger.exception(f"Error broadcasting restart message: {e}")

        if session is not self.session:
            self.logger.info("Restart countdown superseded before shutdown")
            return

        self._begin_shutdown(session)
        await self._clear_display(session)
        self.logger.info("Restart countdown completed")

        if self.on_complete:
            try:
                await self.on_complete(session)
            except Exception as e:
                self.logger.exception(f"Error in completion callback: {e}")

    async def _end_session(self, session: RestartSession) -> None:
        self._cancel_session_timers(session)
        await self._clear_display(session)

    def _cancel_session_timers(self, session: RestartSession) -> None:
        session.active = False

        if self._tick_timer is not None:
            self._tick_timer.cancel()
            self._tick_timer = None

        if self._announce_timer is not None:
            self._announce_timer.cancel()
            self._announce_timer = None

    async def _clear_display(self, session: RestartSession) -> None:
        if session.display_mode == DisplayMode.PROGRESS_BAR:
            try:
                await self.display.clear_progress()
            except Exception as e:
                self.logger.exception(f"Error clearing progress bar: {e}")

    # =========================================================================
    # Announcements
    # =========================================================================

    def _schedule_next_announcement(self, session: RestartSession) -> None:
        if not self._is_current(session):
            return

        interval = next_announcement_interval(
            session.remaining_seconds, session.base_interval_seconds
        )
        self.logger.debug(
            f"Scheduling next announcement in {interval}s "
            f"(time remaining: {session.remaining_seconds}s)"
        )
        self._announce_timer = self.timers.call_later(
            interval, lambda: self._on_announcement(session), name="restart-announce"
        )

    async def _on_announcement(self, session: RestartSession) -> None:
        if not self._is_current(session):
            return

        await self._send_announcement(session)
        self._schedule_next_announcement(session)

    async def _send_announcement(self, session: RestartSession) -> None:
        text = self.messages.render_restart_message(
            format_duration(max(0, session.remaining_seconds))
        )

        try:
            if session.display_mode == DisplayMode.PROGRESS_BAR:
                await self.display.show_progress(text, session.progress)
            elif session.display_mode == DisplayMode.TITLE:
                await self.display.show_title(text)
            else:
                await self.display.broadcast_text(text)
        except Exception as e:
            self.logger.exception(f"Error sending restart announcement: {e}")

    # =========================================================================
    # Shutdown gate
    # =========================================================================

    def _begin_shutdown(self, session: RestartSession) -> None:
        if not self.settings.should_execute_shutdown():
            self.logger.info(
                "Restart countdown completed. Server shutdown was disabled in config."
            )
            return

        # Only one gate at a time
        self._cancel_shutdown()
        self._shutdown_session = session
        self._shutdown_timer = self.timers.call_later(
            GRACE_DELAY_SECONDS,
            lambda: self._on_shutdown_due(session),
            name="restart-shutdown",
        )

    def _cancel_shutdown(self) -> bool:
        """Cancel a pending shutdown gate. Returns True if one was pending."""
        pending = self._shutdown_session is not None
        if self._shutdown_timer is not None:
            self._shutdown_timer.cancel()
            self._shutdown_timer = None
        self._shutdown_session = None
        return pending

    async def _on_shutdown_due(self, session: RestartSession) -> None:
        if self._shutdown_session is not session:
            return

        if session.wait_for_backup and await self._backup_running():
            # Cancelled or replaced while the backup check was in flight
            if self._shutdown_session is not session:
                return
            delay = session.backup_wait_delay_seconds
            self.logger.info(f"Backup in progress, delaying shutdown (next check in {delay}s)")
            self._shutdown_timer = self.timers.call_later(
                delay, lambda: self._on_shutdown_due(session), name="restart-backup-wait"
            )
            return

        if self._shutdown_session is not session:
            return
        self._shutdown_timer = None
        self._shutdown_session = None
        method = self.settings.shutdown_method()
        self.logger.info(f"Executing server {method.value}")
        await self.shutdown.execute(method)

    async def _backup_running(self) -> bool:
        try:
            return bool(await self.backup.is_backup_running())
        except Exception as e:
            self.logger.debug(f"Backup signal unavailable, assuming no backup: {e}")
            return False
