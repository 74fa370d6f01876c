"""Contracts for user-facing notifications."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol

NotificationVariant = Literal["default", "destructive"]


@dataclass(frozen=True)
class Notification:
  """Represents a short user-facing message, the equivalent of a toast."""

  title: str
  description: str
  variant: NotificationVariant = "default"

  @property
  def is_error(self) -> bool:
    return self.variant == "destructive"


class Notifier(Protocol):
  """Delivery contract for showing notifications to the user."""

  def notify(self, notification: Notification) -> None:
    """Show a notification; must not raise."""
