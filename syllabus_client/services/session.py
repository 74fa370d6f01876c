"""State of the syllabus detail view: chapters, the selected lesson and live video progress."""

from __future__ import annotations

import logging

from syllabus_client.api.client import ApiClient
from syllabus_client.api.models import Chapter, ChapterOpenResult, Subchapter, VideoGenerationAck, VideoGenerationRequest
from syllabus_client.core.exceptions import ApiError
from syllabus_client.jobs.cache import EntityCache
from syllabus_client.jobs.gate import LifecycleGate, needs_video_generation
from syllabus_client.jobs.poller import StatusPoller
from syllabus_client.jobs.trigger import JobTrigger
from syllabus_client.notifications.contracts import Notifier
from syllabus_client.notifications.service import LoggingNotifier
from syllabus_client.services.chapters import ChapterService
from syllabus_client.services.subchapters import SubchapterService

logger = logging.getLogger(__name__)


class LearningSession:
  """Wires the cache, trigger, gate and poller together for one open syllabus.

  Opening a chapter starts polling its video status; selecting a lesson that has no video
  starts generation for it. ``close()`` is the unmount: it stops polling and drops any
  response still in flight.
  """

  def __init__(self, client: ApiClient, *, cache: EntityCache | None = None, notifier: Notifier | None = None, poll_interval: float = 15.0, request_timeout: float | None = None) -> None:
    self._client = client
    self.notifier = notifier or LoggingNotifier()
    self.cache = cache or EntityCache()
    self.gate = LifecycleGate(self.cache)
    self.trigger = JobTrigger(client, self.cache, gate=self.gate, notifier=self.notifier)
    self.poller = StatusPoller(client, self.cache, self.gate, interval=poll_interval, timeout=request_timeout)
    self.chapters = ChapterService(client, self.cache, notifier=self.notifier)
    self.subchapters = SubchapterService(client, self.cache, self.trigger, notifier=self.notifier)
    self.syllabus_id: str | None = None
    self.expanded: set[str] = set()
    self.selected_chapter_id: str | None = None
    self.selected_subchapter_id: str | None = None
    self._closed = False

  async def __aenter__(self) -> LearningSession:
    return self

  async def __aexit__(self, *exc_info: object) -> None:
    await self.close()

  async def load(self, syllabus_id: str) -> list[Chapter]:
    self.syllabus_id = syllabus_id
    return await self.chapters.load_for_syllabus(syllabus_id)

  async def toggle_chapter(self, chapter_id: str) -> bool:
    """Expand or collapse a chapter; expanding fetches its lessons and selects the first one."""
    if chapter_id in self.expanded:
      self.expanded.discard(chapter_id)
      return False

    self.expanded.add(chapter_id)
    chapter = await self.chapters.load_details(chapter_id)
    if chapter is not None and chapter.subchapters:
      self.selected_chapter_id = chapter_id
      self.selected_subchapter_id = chapter.subchapters[0].id
    return True

  async def open_chapter(self, chapter_id: str) -> ChapterOpenResult:
    """Open a chapter on the backend and start polling its video status."""
    self._ensure_open()
    result = await self.chapters.open_chapter(chapter_id)
    cached = self.cache.chapter(chapter_id)
    # Opening may have queued jobs the cached lessons do not show yet.
    if result.video_generation_started or cached is None or not cached.subchapters:
      await self.chapters.load_details(chapter_id)
    self.selected_chapter_id = chapter_id
    self.poller.start(chapter_id)
    return result

  async def select_subchapter(self, subchapter_id: str) -> Subchapter | None:
    """Show a lesson, starting video generation for it when it has none yet."""
    self._ensure_open()
    self.selected_subchapter_id = subchapter_id
    subchapter = await self.subchapters.load(subchapter_id)
    if subchapter is None:
      return None
    self.selected_chapter_id = subchapter.chapter_id

    if needs_video_generation(subchapter) and not self.gate.is_retry_pending(subchapter_id):
      try:
        await self.trigger.trigger(subchapter_id)
      except ApiError:
        # Already marked failed and notified; the lesson stays selectable.
        logger.info("Automatic video generation for subchapter %s did not start", subchapter_id)
      self._watch(subchapter.chapter_id)
    return self.cache.subchapter(subchapter_id)

  async def regenerate_video(self, subchapter_id: str) -> VideoGenerationAck:
    self._ensure_open()
    ack = await self.trigger.trigger(subchapter_id, VideoGenerationRequest(force_regenerate=True))
    chapter = self.cache.find_chapter_for(subchapter_id)
    if chapter is not None:
      self._watch(chapter.id)
    return ack

  def current_chapter(self) -> Chapter | None:
    if self.selected_chapter_id is None:
      return None
    return self.cache.chapter(self.selected_chapter_id)

  def current_subchapter(self) -> Subchapter | None:
    if self.selected_subchapter_id is None:
      return None
    return self.cache.subchapter(self.selected_subchapter_id)

  def overall_progress(self) -> int:
    """Percentage of lessons marked complete across every loaded chapter."""
    subchapters = [sub for chapter in self.cache.chapters() for sub in chapter.subchapters or []]
    if not subchapters:
      return 0
    completed = sum(1 for sub in subchapters if sub.is_completed)
    return round(completed / len(subchapters) * 100)

  def chapter_progress(self, chapter_id: str) -> int:
    chapter = self.cache.chapter(chapter_id)
    if chapter is None:
      return 0
    return round(chapter.completion_percentage)

  async def close(self) -> None:
    if self._closed:
      return
    self._closed = True
    await self.poller.stop()
    logger.debug("Learning session for syllabus %s closed", self.syllabus_id)

  def _watch(self, chapter_id: str) -> None:
    # A new job may have unsettled a chapter whose polling already stopped.
    if self.poller.target == chapter_id and self.poller.running:
      return
    self.poller.start(chapter_id)

  def _ensure_open(self) -> None:
    if self._closed:
      raise RuntimeError("The learning session is closed.")
