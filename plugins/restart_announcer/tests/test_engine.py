"""
tests/test_engine.py

Unit tests for the RestartEngine.

Tests cover:
- Session admission (one countdown at a time)
- Announcement cadence over a whole countdown
- Display modes and progress fraction
- Stop/cancel behaviour
- Shutdown gate with and without backup waits
- Expiry ordering under concurrent timers
"""

import asyncio
import pytest

from plugins.restart_announcer.collaborators import BackupSignal, DisplaySink
from plugins.restart_announcer.engine import RestartEngine
from plugins.restart_announcer.messages import MessageCatalog
from plugins.restart_announcer.session import DisplayMode, ShutdownMethod
from plugins.restart_announcer.settings import AnnouncerConfig
from plugins.restart_announcer.timers import TimerService


RESTART_NOW = "🔄 Server is restarting now!"


def announcement_times(display, total):
    """Remaining seconds at each countdown announcement."""
    return [
        total - at
        for kind, text, _, at in display.calls
        if kind in ("chat", "progress", "title") and text != RESTART_NOW
    ]


# =============================================================================
# Admission
# =============================================================================

class TestStart:
    """Tests for starting a countdown."""

    @pytest.mark.asyncio
    async def test_start_announces_immediately(self, make_engine, display):
        """start() sends the first announcement at the full time."""
        engine = make_engine()

        result = await engine.start(3700, 300, DisplayMode.CHAT)

        assert result is True
        assert engine.is_running() is True
        assert display.calls[0][:2] == ("chat", "⚠️ Server restarting in 1 hour 1 minute!")
        assert engine.get_remaining_seconds() == 3700

    @pytest.mark.asyncio
    async def test_start_while_running_is_rejected(self, make_engine, timers):
        """A second start() returns False and leaves the session alone."""
        engine = make_engine()
        await engine.start(600, 60)
        await timers.advance(10)
        session = engine.session

        result = await engine.start(30, 5, DisplayMode.TITLE)

        assert result is False
        assert engine.session is session
        assert engine.get_remaining_seconds() == 590
        assert session.display_mode == DisplayMode.CHAT

    @pytest.mark.asyncio
    async def test_tick_counts_down(self, make_engine, timers):
        """Remaining time drops by one each second."""
        engine = make_engine()
        await engine.start(120, 60)

        await timers.advance(7)

        assert engine.get_remaining_seconds() == 113


# =============================================================================
# Cadence
# =============================================================================

class TestAnnouncementCadence:
    """Tests for the announcement schedule over a whole countdown."""

    @pytest.mark.asyncio
    async def test_full_countdown_schedule(self, make_engine, display, timers):
        """Base interval, then shortened to the minute mark, then tiers."""
        engine = make_engine()
        await engine.start(3700, 300, DisplayMode.CHAT)

        await timers.advance(3700)

        expected = list(range(3700, 99, -300))     # 3700, 3400, ..., 100
        expected += [60, 50, 40, 30]                # 10s tier
        expected += [25, 20, 15, 10]                # 5s tier
        expected += list(range(9, 0, -1))           # 1s tier
        assert announcement_times(display, 3700) == expected

    @pytest.mark.asyncio
    async def test_user_interval_wins_when_more_frequent(self, make_engine, display, timers):
        """A short interval is kept inside the emergency minute."""
        engine = make_engine()
        await engine.start(20, 3)

        await timers.advance(20)

        assert announcement_times(display, 20) == [20, 17, 14, 11, 8, 7, 6, 5, 4, 3, 2, 1]

    @pytest.mark.asyncio
    async def test_interval_shortened_to_reach_minute_mark(self, make_engine, display, timers):
        """An interval overshooting the final minute is cut short."""
        engine = make_engine()
        await engine.start(90, 600)

        await timers.advance(30)

        assert announcement_times(display, 90) == [90, 60]

    @pytest.mark.asyncio
    async def test_final_message_is_plain_chat(self, make_engine, display, timers):
        """The restart-now message is chat even in title mode."""
        engine = make_engine()
        await engine.start(5, 60, DisplayMode.TITLE)

        await timers.advance(5)

        assert display.calls[-1][:2] == ("chat", RESTART_NOW)
        assert all(kind == "title" for kind, *_ in display.calls[:-1])


# =============================================================================
# Display modes
# =============================================================================

class TestDisplayModes:
    """Tests for progress bar and title announcements."""

    @pytest.mark.asyncio
    async def test_progress_fraction(self, make_engine, display, timers):
        """Progress starts at 1.0, never increases, stays within [0, 1]."""
        engine = make_engine()
        await engine.start(100, 30, DisplayMode.PROGRESS_BAR)

        await timers.advance(100)

        fractions = [fraction for _, _, fraction, _ in display.of_kind("progress")]
        assert fractions[0] == 1.0
        assert all(0.0 <= f <= 1.0 for f in fractions)
        assert fractions == sorted(fractions, reverse=True)
        assert fractions[-1] == pytest.approx(0.01)

    @pytest.mark.asyncio
    async def test_progress_cleared_on_expiry(self, make_engine, display, timers):
        """The progress bar is removed when the countdown ends."""
        engine = make_engine()
        await engine.start(10, 5, DisplayMode.PROGRESS_BAR)

        await timers.advance(10)

        assert display.of_kind("clear")
        assert display.of_kind("chat") == [("chat", RESTART_NOW, None, 10)]

    @pytest.mark.asyncio
    async def test_title_resent_each_announcement(self, make_engine, display, timers):
        """Title mode sends a fresh title every time."""
        engine = make_engine()
        await engine.start(120, 30, DisplayMode.TITLE)

        await timers.advance(60)

        titles = display.of_kind("title")
        assert [text for _, text, _, _ in titles] == [
            "⚠️ Server restarting in 2 minutes!",
            "⚠️ Server restarting in 1 minute 30 seconds!",
            "⚠️ Server restarting in 1 minute!",
        ]

    @pytest.mark.asyncio
    async def test_chat_mode_does_not_clear_progress(self, make_engine, display, timers):
        engine = make_engine()
        await engine.start(30, 10)

        await engine.stop()

        assert display.of_kind("clear") == []


# =============================================================================
# Stop
# =============================================================================

class TestStop:
    """Tests for stopping a countdown."""

    @pytest.mark.asyncio
    async def test_stop_cancels_all_timers(self, make_engine, display, timers):
        """No announcement or tick fires after stop()."""
        engine = make_engine()
        await engine.start(300, 30)
        await timers.advance(45)
        calls_before = len(display.calls)

        await engine.stop()
        await timers.advance(600)

        assert engine.is_running() is False
        assert len(display.calls) == calls_before
        assert timers.pending() == []

    @pytest.mark.asyncio
    async def test_stop_keeps_last_remaining(self, make_engine, timers):
        engine = make_engine()
        await engine.start(300, 30)
        await timers.advance(45)

        await engine.stop()

        assert engine.get_remaining_seconds() == 255

    @pytest.mark.asyncio
    async def test_stop_when_idle_is_noop(self, make_engine, display):
        """stop() without a session does nothing."""
        engine = make_engine()

        await engine.stop()
        await engine.stop()

        assert engine.is_running() is False
        assert display.calls == []

    @pytest.mark.asyncio
    async def test_stop_then_start(self, make_engine, display, timers, shutdown_action):
        """A new session starts cleanly after stop()."""
        engine = make_engine()
        await engine.start(100, 7)
        await timers.advance(3)
        await engine.stop()

        result = await engine.start(50, 20)
        start_index = len(display.calls) - 1
        await timers.advance(20)

        assert result is True
        assert engine.get_remaining_seconds() == 30
        new_calls = display.calls[start_index:]
        # Old 7s cadence would have fired at t=7; the new session uses the 10s tier
        assert [at for _, _, _, at in new_calls] == [3, 13, 23]
        assert shutdown_action.calls == []

    @pytest.mark.asyncio
    async def test_stop_clears_progress_bar(self, make_engine, display):
        engine = make_engine()
        await engine.start(100, 10, DisplayMode.PROGRESS_BAR)

        await engine.stop()

        assert display.calls[-1][0] == "clear"


# =============================================================================
# Shutdown gate
# =============================================================================

class TestShutdown:
    """Tests for the expiry sequence."""

    @pytest.mark.asyncio
    async def test_shutdown_after_grace_delay(self, make_engine, shutdown_action, timers):
        """Shutdown runs one second after the countdown ends."""
        engine = make_engine({"shutdown-method": "restart"})
        await engine.start(5, 60)

        await timers.advance(5)
        assert engine.is_running() is False
        assert engine.is_shutdown_pending() is True
        assert shutdown_action.calls == []

        await timers.advance(1)
        assert shutdown_action.calls == [(ShutdownMethod.RESTART, 6)]
        assert engine.is_shutdown_pending() is False

    @pytest.mark.asyncio
    async def test_shutdown_disabled(self, make_engine, shutdown_action, display, timers):
        """execute-shutdown: false only broadcasts the final message."""
        engine = make_engine({"execute-shutdown": False})
        await engine.start(3, 60)

        await timers.advance(30)

        assert shutdown_action.calls == []
        assert display.calls[-1][:2] == ("chat", RESTART_NOW)
        assert engine.is_shutdown_pending() is False

    @pytest.mark.asyncio
    async def test_waits_for_backup(self, make_engine, scripted_backup, shutdown_action, timers):
        """Backup running three times then done: shutdown after the 4th poll."""
        backup = scripted_backup([True, True, True, False])
        engine = make_engine(backup=backup)
        await engine.start(5, 60, wait_for_backup=True, backup_wait_delay=30)

        await timers.advance(200)

        assert backup.poll_times == [6, 36, 66, 96]
        assert shutdown_action.calls == [(ShutdownMethod.SHUTDOWN, 96)]

    @pytest.mark.asyncio
    async def test_backup_not_consulted_without_wait(self, make_engine, scripted_backup, shutdown_action, timers):
        backup = scripted_backup([True])
        engine = make_engine(backup=backup)
        await engine.start(5, 60)

        await timers.advance(10)

        assert backup.poll_times == []
        assert shutdown_action.calls == [(ShutdownMethod.SHUTDOWN, 6)]

    @pytest.mark.asyncio
    async def test_backup_signal_error_fails_open(self, make_engine, shutdown_action, timers):
        """A failing backup signal reads as no backup."""

        class BrokenBackup:
            async def is_backup_running(self):
                raise ConnectionError("backup service gone")

        engine = make_engine(backup=BrokenBackup())
        await engine.start(5, 60, wait_for_backup=True, backup_wait_delay=30)

        await timers.advance(6)

        assert shutdown_action.calls == [(ShutdownMethod.SHUTDOWN, 6)]

    @pytest.mark.asyncio
    async def test_stop_cancels_backup_wait(self, make_engine, scripted_backup, shutdown_action, timers):
        """stop() while waiting on a backup aborts the shutdown."""
        backup = scripted_backup([True])
        engine = make_engine(backup=backup)
        await engine.start(5, 60, wait_for_backup=True, backup_wait_delay=30)
        await timers.advance(40)
        assert engine.is_shutdown_pending() is True

        await engine.stop()
        await timers.advance(600)

        assert shutdown_action.calls == []
        assert backup.poll_times == [6, 36]

    @pytest.mark.asyncio
    async def test_on_complete_called(self, make_engine, timers):
        completed = []

        async def on_complete(session):
            completed.append(session.total_seconds)

        engine = make_engine(on_complete=on_complete)
        await engine.start(4, 60)

        await timers.advance(4)

        assert completed == [4]

    @pytest.mark.asyncio
    async def test_display_failure_does_not_block_shutdown(self, make_engine, display, shutdown_action, timers):
        """Broadcast errors are logged and the restart still happens."""
        async def broken(text):
            raise RuntimeError("chat down")

        display.broadcast_text = broken
        engine = make_engine()
        await engine.start(3, 60)

        await timers.advance(4)

        assert shutdown_action.calls == [(ShutdownMethod.SHUTDOWN, 4)]

    @pytest.mark.asyncio
    async def test_new_countdown_replaces_backup_wait(self, make_engine, scripted_backup, shutdown_action, timers):
        """Only the latest countdown's shutdown gate survives, and stop() reaches it."""
        backup = scripted_backup([True])
        engine = make_engine(backup=backup)
        await engine.start(5, 60, wait_for_backup=True, backup_wait_delay=60)
        await timers.advance(10)
        assert engine.is_shutdown_pending() is True

        assert await engine.start(5, 60, wait_for_backup=True, backup_wait_delay=60) is True
        await timers.advance(10)
        await engine.stop()
        await timers.advance(300)

        assert backup.poll_times == [6, 16]
        assert shutdown_action.calls == []
        assert timers.pending() == []
        assert engine.is_shutdown_pending() is False

    @pytest.mark.asyncio
    async def test_second_expiry_keeps_one_gate(self, make_engine, scripted_backup, shutdown_action, timers):
        backup = scripted_backup([True, False])
        engine = make_engine(backup=backup)
        await engine.start(5, 60, wait_for_backup=True, backup_wait_delay=60)
        await timers.advance(10)

        await engine.start(5, 60, wait_for_backup=True, backup_wait_delay=60)
        await timers.advance(200)

        assert backup.poll_times == [6, 16]
        assert shutdown_action.calls == [(ShutdownMethod.SHUTDOWN, 16)]
        assert timers.pending() == []


# =============================================================================
# Real timers with slow collaborators
# =============================================================================

class SlowChatDisplay(DisplaySink):
    """Display whose chat broadcast takes a while to go out."""

    def __init__(self, delay):
        self.delay = delay
        self.calls = []

    async def broadcast_text(self, text):
        await asyncio.sleep(self.delay)
        self.calls.append(("chat", text))

    async def show_progress(self, text, fraction):
        self.calls.append(("progress", text))

    async def clear_progress(self):
        self.calls.append(("clear", None))

    async def show_title(self, text):
        self.calls.append(("title", text))


class GatedBackup(BackupSignal):
    """Backup check that blocks until released, then reports a backup."""

    def __init__(self):
        self.polls = 0
        self.in_flight = asyncio.Event()
        self.release = asyncio.Event()

    async def is_backup_running(self):
        self.polls += 1
        self.in_flight.set()
        await self.release.wait()
        return True


def real_engine(display, shutdown, backup=None):
    return RestartEngine(
        display=display,
        messages=MessageCatalog(),
        settings=AnnouncerConfig({}),
        shutdown=shutdown,
        backup=backup,
        timers=TimerService(time_scale=0.01),
    )


class TestExpiryOrdering:
    """Ordering guarantees that only show up with concurrent timers."""

    @pytest.mark.asyncio
    async def test_no_announcement_after_restart_now(self, shutdown_action):
        """A slow final broadcast does not let announcements slip in."""
        display = SlowChatDisplay(delay=0.05)
        engine = real_engine(display, shutdown_action)

        await engine.start(3, 1, DisplayMode.TITLE)
        for _ in range(200):
            if shutdown_action.calls:
                break
            await asyncio.sleep(0.01)

        assert shutdown_action.calls
        assert display.calls[-1] == ("chat", RESTART_NOW)
        assert all(kind == "title" for kind, _ in display.calls[:-1])
        assert not any("0 seconds" in text for _, text in display.calls)

    @pytest.mark.asyncio
    async def test_stop_during_backup_check(self, shutdown_action):
        """A backup check in flight when stop() runs does not re-arm the gate."""
        backup = GatedBackup()
        engine = real_engine(SlowChatDisplay(delay=0), shutdown_action, backup)

        await engine.start(1, 1, wait_for_backup=True, backup_wait_delay=1)
        await asyncio.wait_for(backup.in_flight.wait(), timeout=1)

        await engine.stop()
        backup.release.set()
        await asyncio.sleep(0.1)

        assert engine.is_shutdown_pending() is False
        assert backup.polls == 1
        assert shutdown_action.calls == []
