"""Decide when chapter status polling should run."""

from __future__ import annotations

import logging

from syllabus_client.api.models import Subchapter
from syllabus_client.jobs.cache import EntityCache
from syllabus_client.jobs.models import IN_PROGRESS_STATUSES, VideoStatus

logger = logging.getLogger(__name__)


def is_terminal(subchapter: Subchapter, *, retry_pending: bool = False) -> bool:
  """Return True when no further status change is expected for the subchapter's video."""

  if subchapter.video_status is VideoStatus.COMPLETED:
    return subchapter.video_progress >= 100
  if subchapter.video_status is VideoStatus.FAILED:
    return not retry_pending
  return False


def _settled(status: VideoStatus, progress: float, *, retry_pending: bool) -> bool:
  if retry_pending or status in IN_PROGRESS_STATUSES:
    return False
  if status is VideoStatus.COMPLETED:
    return progress >= 100
  return True


def is_settled(subchapter: Subchapter, *, retry_pending: bool = False) -> bool:
  """Return True when the subchapter's video will not change unless a new job is started.

  Lessons without a job count as settled next to terminal ones; a request still in flight
  or a running job keeps the lesson open.
  """
  return _settled(subchapter.video_status, subchapter.video_progress, retry_pending=retry_pending)


def needs_video_generation(subchapter: Subchapter) -> bool:
  """Return True when a subchapter has no video and no job is running or done."""

  if subchapter.video_file_path:
    return False
  if subchapter.video_status is VideoStatus.COMPLETED:
    return False
  return subchapter.video_status not in IN_PROGRESS_STATUSES


class LifecycleGate:
  """Derive ``should_poll`` from the tracking flag and the cached job states.

  Nothing is stored for the decision itself: each call reads the current flag and cache,
  so a terminal state observed by any writer turns polling off.
  """

  def __init__(self, cache: EntityCache) -> None:
    self._cache = cache
    self._tracking: set[str] = set()
    self._retry_pending: set[str] = set()

  def enable(self, chapter_id: str) -> None:
    self._tracking.add(chapter_id)

  def disable(self, chapter_id: str) -> None:
    self._tracking.discard(chapter_id)

  def is_tracking(self, chapter_id: str) -> bool:
    return chapter_id in self._tracking

  def mark_retry_pending(self, subchapter_id: str) -> None:
    self._retry_pending.add(subchapter_id)

  def clear_retry_pending(self, subchapter_id: str) -> None:
    self._retry_pending.discard(subchapter_id)

  def is_retry_pending(self, subchapter_id: str) -> bool:
    return subchapter_id in self._retry_pending

  def is_settled(self, chapter_id: str) -> bool:
    """Return True when no known subchapter of the chapter has a job that can still change."""
    chapter = self._cache.chapter(chapter_id)
    if chapter is not None and chapter.subchapters:
      return all(is_settled(sub, retry_pending=sub.id in self._retry_pending) for sub in chapter.subchapters)

    # Subchapters not fetched yet: fall back to what the last snapshot reported.
    snapshot = self._cache.last_snapshot(chapter_id)
    if snapshot is None or not snapshot.jobs:
      return False
    return all(_settled(job.status, job.progress, retry_pending=job.subchapter_id in self._retry_pending) for job in snapshot.jobs)

  def should_poll(self, chapter_id: str | None) -> bool:
    if not chapter_id or chapter_id not in self._tracking:
      return False
    if self.is_settled(chapter_id):
      logger.debug("Chapter %s settled; polling no longer needed", chapter_id)
      return False
    return True
