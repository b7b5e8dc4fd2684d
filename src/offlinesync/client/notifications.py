"""User-facing sync notifications.

This module provides:
- Notification / NotificationType: What to show the user
- Notifier: Fans notifications out to registered sinks (toasts, banners...)
- Log sink used when no sink is registered
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class NotificationType(Enum):
    """Type of notification."""

    INFO = auto()
    WARNING = auto()
    ERROR = auto()
    CONFLICT = auto()


@dataclass
class Notification:
    """Represents a notification to display."""

    title: str
    message: str
    type: NotificationType = NotificationType.INFO


def log_notification(notification: Notification) -> None:
    """Default sink: write the notification to the log."""
    level = {
        NotificationType.INFO: logging.INFO,
        NotificationType.WARNING: logging.WARNING,
        NotificationType.ERROR: logging.ERROR,
        NotificationType.CONFLICT: logging.WARNING,
    }.get(notification.type, logging.INFO)
    logger.log(level, "%s: %s", notification.title, notification.message)


class Notifier:
    """Delivers notifications to every registered sink.

    Sink failures are logged and never reach the caller.
    """

    def __init__(self) -> None:
        self._sinks: list[Callable[[Notification], None]] = []

    @property
    def has_sinks(self) -> bool:
        """Check if any sink besides the log fallback is registered."""
        return bool(self._sinks)

    def add_sink(self, sink: Callable[[Notification], None]) -> Callable[[], None]:
        """Register a sink.

        Returns:
            A function that unregisters the sink.
        """
        self._sinks.append(sink)

        def remove() -> None:
            if sink in self._sinks:
                self._sinks.remove(sink)

        return remove

    def send(self, notification: Notification) -> bool:
        """Send a notification.

        Returns:
            True if at least one registered sink accepted it.
        """
        if not self._sinks:
            log_notification(notification)
            return False

        delivered = False
        for sink in list(self._sinks):
            try:
                sink(notification)
                delivered = True
            except Exception:
                logger.exception("Notification sink %r failed", sink)
        return delivered

    def notify_sync_complete(self, count: int) -> bool:
        """Notify that queued actions reached the server.

        Args:
            count: Number of actions applied.

        Returns:
            True if notification was sent.
        """
        if count == 0:
            return False  # Don't notify if nothing happened

        noun = "change" if count == 1 else "changes"
        return self.send(Notification(
            title="Sync Complete",
            message=f"{count} {noun} synced",
            type=NotificationType.INFO,
        ))

    def notify_sync_error(self, message: str) -> bool:
        """Send an error notification."""
        return self.send(Notification(
            title="Sync Error",
            message=message,
            type=NotificationType.ERROR,
        ))

    def notify_gave_up(self, count: int) -> bool:
        """Notify that actions ran out of retries."""
        if count == 0:
            return False
        noun = "change" if count == 1 else "changes"
        return self.send(Notification(
            title="Sync Problem",
            message=f"{count} {noun} could not be synced and need attention",
            type=NotificationType.WARNING,
        ))
