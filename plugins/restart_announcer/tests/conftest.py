"""
tests/conftest.py

Shared fixtures for restart announcer tests.
"""

import json
import pytest
from unittest.mock import AsyncMock, MagicMock

from plugins.restart_announcer.collaborators import BackupSignal, DisplaySink, ShutdownAction
from plugins.restart_announcer.engine import RestartEngine
from plugins.restart_announcer.messages import MessageCatalog
from plugins.restart_announcer.settings import AnnouncerConfig
from plugins.restart_announcer.timers import TimerHandle


# =============================================================================
# Manual timers
# =============================================================================

class ManualTimer(TimerHandle):
    """Timer driven by ManualTimerService.advance()."""

    def __init__(self, name, due, interval, callback, seq):
        super().__init__(name)
        self.due = due
        self.interval = interval
        self.callback = callback
        self.seq = seq
        self.fired = False

    @property
    def done(self) -> bool:
        return self.cancelled or self.fired


class ManualTimerService:
    """
    Deterministic stand-in for TimerService.

    Time only moves on advance(). Timers due at the same moment fire in
    creation order.
    """

    def __init__(self):
        self.now = 0
        self.timers = []

    def call_later(self, delay, callback, name="timer"):
        timer = ManualTimer(name, self.now + delay, None, callback, len(self.timers))
        self.timers.append(timer)
        return timer

    def call_every(self, interval, callback, name="ticker"):
        timer = ManualTimer(name, self.now + interval, interval, callback, len(self.timers))
        self.timers.append(timer)
        return timer

    def pending(self, name=None):
        return [
            t for t in self.timers
            if not t.done and (name is None or t.name == name)
        ]

    async def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = [t for t in self.pending() if t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due, t.seq))
            self.now = timer.due
            if timer.interval is None:
                timer.fired = True
            else:
                timer.due += timer.interval
            await timer.callback()
        self.now = target


# =============================================================================
# Recording collaborators
# =============================================================================

class RecordingDisplay(DisplaySink):
    """Records every display call with the manual clock time."""

    def __init__(self, clock=None):
        self.clock = clock or (lambda: 0)
        self.calls = []

    async def broadcast_text(self, text):
        self.calls.append(("chat", text, None, self.clock()))

    async def show_progress(self, text, fraction):
        self.calls.append(("progress", text, fraction, self.clock()))

    async def clear_progress(self):
        self.calls.append(("clear", None, None, self.clock()))

    async def show_title(self, text):
        self.calls.append(("title", text, None, self.clock()))

    def of_kind(self, kind):
        return [call for call in self.calls if call[0] == kind]


class ScriptedBackup(BackupSignal):
    """Answers backup polls from a script; the last answer repeats."""

    def __init__(self, answers, clock=None):
        self.answers = list(answers)
        self.clock = clock or (lambda: 0)
        self.poll_times = []

    async def is_backup_running(self):
        self.poll_times.append(self.clock())
        if len(self.answers) > 1:
            return self.answers.pop(0)
        return self.answers[0] if self.answers else False


class RecordingShutdown(ShutdownAction):
    def __init__(self, clock=None):
        self.clock = clock or (lambda: 0)
        self.calls = []

    async def execute(self, method):
        self.calls.append((method, self.clock()))


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def timers():
    return ManualTimerService()


@pytest.fixture
def display(timers):
    return RecordingDisplay(clock=lambda: timers.now)


@pytest.fixture
def shutdown_action(timers):
    return RecordingShutdown(clock=lambda: timers.now)


@pytest.fixture
def scripted_backup(timers):
    """Factory for backup signals answering from a script."""
    def _make(answers):
        return ScriptedBackup(answers, clock=lambda: timers.now)
    return _make


@pytest.fixture
def messages():
    return MessageCatalog()


@pytest.fixture
def make_engine(timers, display, shutdown_action, messages):
    """Factory for engines wired to the manual timers and recorders."""
    def _make(config=None, backup=None, on_complete=None):
        return RestartEngine(
            display=display,
            messages=messages,
            settings=AnnouncerConfig(config or {}),
            shutdown=shutdown_action,
            backup=backup,
            timers=timers,
            on_complete=on_complete,
        )
    return _make


@pytest.fixture
def mock_nats():
    """Create a mock NATS client for testing."""
    nats = AsyncMock()
    nats.publish = AsyncMock()
    nats.flush = AsyncMock()

    # Track subscriptions
    nats._subscriptions = []

    async def mock_subscribe(subject, cb=None):
        sub = MagicMock()
        sub.subject = subject
        sub.callback = cb
        sub.unsubscribe = AsyncMock()
        nats._subscriptions.append(sub)
        return sub

    nats.subscribe = mock_subscribe

    async def mock_request(subject, data, timeout=2.0):
        response = MagicMock()
        response.data = json.dumps({"running": False}).encode()
        return response

    nats.request = mock_request

    return nats


@pytest.fixture
def mock_message():
    """Factory for creating mock NATS messages."""
    def _make_message(data: dict, reply_to: str = None):
        msg = MagicMock()
        msg.data = json.dumps(data).encode()
        msg.reply = reply_to
        return msg
    return _make_message


def published(nats, subject):
    """Decoded payloads published to a subject on a mock NATS client."""
    return [
        json.loads(call.args[1].decode())
        for call in nats.publish.call_args_list
        if call.args[0] == subject
    ]


@pytest.fixture
def get_published():
    return published
