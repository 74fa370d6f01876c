"""Lifecycle of the embedded tutor widget."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from syllabus_client.tutor.prompt import TutorWidgetConfig

logger = logging.getLogger(__name__)


class TutorEmbed:
  """Loads the widget runtime once and tracks the single mounted widget.

  One instance is shared by every view that shows the tutor; pass it around instead of
  consulting a module-level flag. ``loader`` performs the one-time runtime load.
  """

  def __init__(self, loader: Callable[[], Awaitable[None]] | None = None) -> None:
    self._loader = loader
    self._lock = asyncio.Lock()
    self._ready = False
    self._mounted: TutorWidgetConfig | None = None

  @property
  def ready(self) -> bool:
    return self._ready

  @property
  def mounted(self) -> TutorWidgetConfig | None:
    return self._mounted

  async def initialize(self) -> None:
    """Load the widget runtime; concurrent and repeated calls load it only once."""
    async with self._lock:
      if self._ready:
        return
      if self._loader is not None:
        try:
          await self._loader()
        except Exception:
          logger.error("Failed to load the tutor widget runtime", exc_info=True)
          raise
      self._ready = True
      logger.debug("Tutor widget runtime ready")

  async def mount(self, config: TutorWidgetConfig) -> dict[str, str]:
    """Replace any mounted widget with one for ``config`` and return its attributes."""
    await self.initialize()
    if self._mounted is not None:
      self.unmount()
    self._mounted = config
    return config.attributes()

  def unmount(self) -> None:
    self._mounted = None

  def teardown(self) -> None:
    """Unmount and forget the loaded runtime; the next mount loads it again."""
    self.unmount()
    self._ready = False
