"""
Collaborator interfaces used by the countdown engine and scheduler daemon.

The engine never talks to chat, backups or the host process directly.
It is constructed with implementations of these interfaces instead.
"""

from abc import ABC, abstractmethod

from .session import ShutdownMethod


class DisplaySink(ABC):
    """
    Renders restart announcements to everyone currently watching.

    Every call fans out to the viewers present at call time.
    """

    @abstractmethod
    async def broadcast_text(self, text: str) -> None:
        """Send a plain chat broadcast."""
        ...

    @abstractmethod
    async def show_progress(self, text: str, fraction: float) -> None:
        """
        Show a progress bar, replacing any bar shown before.

        Args:
            text: Bar label.
            fraction: Time left as a value in [0, 1].
        """
        ...

    @abstractmethod
    async def clear_progress(self) -> None:
        """Remove the progress bar, if one is shown."""
        ...

    @abstractmethod
    async def show_title(self, text: str) -> None:
        """Send a transient full-screen title."""
        ...


class BackupSignal(ABC):
    """
    Reports whether an external backup job is running.

    Implementations must not raise: an unreachable signal source reads as
    "not running" so restarts are only ever held by a detected backup.
    """

    @abstractmethod
    async def is_backup_running(self) -> bool:
        ...


class NullBackupSignal(BackupSignal):
    """Used when no backup integration is configured."""

    async def is_backup_running(self) -> bool:
        return False


class ShutdownAction(ABC):
    """Terminal action run once a countdown completes."""

    @abstractmethod
    async def execute(self, method: ShutdownMethod) -> None:
        ...
