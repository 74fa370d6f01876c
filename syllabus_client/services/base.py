"""Shared loading and error bookkeeping for the view services."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from syllabus_client.api.client import ApiClient
from syllabus_client.core.exceptions import ApiError
from syllabus_client.notifications.contracts import Notifier
from syllabus_client.notifications.service import LoggingNotifier, notify_error

logger = logging.getLogger(__name__)


class ViewService:
  """Base for services that back a view: tracks ``loading`` and ``error`` like the view hooks did."""

  def __init__(self, client: ApiClient, *, notifier: Notifier | None = None) -> None:
    self._client = client
    self._notifier = notifier or LoggingNotifier()
    self.loading = False
    self.error: str | None = None

  async def _fetch[T](self, load: Callable[[], Awaitable[T]], *, fallback: str) -> T | None:
    """Run a read; on failure record the error, notify, and return None."""
    self.loading = True
    try:
      result = await load()
    except ApiError as exc:
      self.error = notify_error(self._notifier, exc, fallback=fallback)
      logger.warning("%s: %s", fallback, self.error)
      return None
    finally:
      self.loading = False
    self.error = None
    return result

  async def _mutate[T](self, action: Callable[[], Awaitable[T]], *, fallback: str, error_title: str = "Error") -> T:
    """Run a write; on failure notify and re-raise so the caller can react."""
    try:
      return await action()
    except ApiError as exc:
      message = notify_error(self._notifier, exc, fallback=fallback, title=error_title)
      logger.error("%s: %s", fallback, message)
      raise
