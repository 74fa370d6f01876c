"""Notifier implementations."""

from __future__ import annotations

import logging
from collections.abc import Callable

from syllabus_client.core.exceptions import error_message
from syllabus_client.notifications.contracts import Notification, Notifier

logger = logging.getLogger(__name__)


class LoggingNotifier:
  """Writes notifications to the log; the default when no UI is attached."""

  def __init__(self, log: logging.Logger | None = None) -> None:
    self._logger = log or logging.getLogger("syllabus_client.notifications")

  def notify(self, notification: Notification) -> None:
    level = logging.WARNING if notification.is_error else logging.INFO
    self._logger.log(level, "%s: %s", notification.title, notification.description)


class RecordingNotifier:
  """Keeps every notification in order, optionally forwarding to a callback."""

  def __init__(self, forward: Callable[[Notification], None] | None = None) -> None:
    self.notifications: list[Notification] = []
    self._forward = forward

  def notify(self, notification: Notification) -> None:
    self.notifications.append(notification)
    if self._forward is None:
      return
    try:
      self._forward(notification)
    except Exception:  # noqa: BLE001
      logger.warning("Notification callback failed for %r", notification.title, exc_info=True)

  @property
  def titles(self) -> list[str]:
    return [item.title for item in self.notifications]

  @property
  def errors(self) -> list[Notification]:
    return [item for item in self.notifications if item.is_error]

  def clear(self) -> None:
    self.notifications.clear()


def notify_success(notifier: Notifier, title: str, description: str) -> None:
  notifier.notify(Notification(title=title, description=description))


def notify_error(notifier: Notifier, exc: BaseException, *, fallback: str, title: str = "Error") -> str:
  """Show a destructive notification for ``exc`` and return the message used."""
  message = error_message(exc, fallback)
  notifier.notify(Notification(title=title, description=message, variant="destructive"))
  return message
