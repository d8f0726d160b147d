"""Concrete implementations for user notifications (toasts)."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List

from .enums import Severity
from .models import Notification

log = logging.getLogger(__name__)

REQUEST_FAILED_NOTICE = Notification(
    title="Error",
    description="Failed to get a response from the agent. Please try again.",
    severity=Severity.DESTRUCTIVE,
)


def session_refreshed_notice(session_id: str) -> Notification:
    return Notification(
        title="Session Refreshed",
        description=f"New session started with ID: {session_id}",
    )


class Notifier(ABC):
    """Interface for showing notifications; display and dismissal timing are its business."""

    @abstractmethod
    def notify(self, notification: Notification) -> None:
        pass


class LoggingNotifier(Notifier):
    """Default notifier: notifications only go to the log."""

    def notify(self, notification: Notification) -> None:
        level = logging.WARNING if notification.severity == Severity.DESTRUCTIVE else logging.INFO
        log.log(level, f"NOTIFY | title={notification.title} | description={notification.description}")


class CollectingNotifier(Notifier):
    """Keeps every notification in order; handy for renderers that poll."""

    def __init__(self) -> None:
        self.notifications: List[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    def drain(self) -> List[Notification]:
        out, self.notifications = self.notifications, []
        return out
