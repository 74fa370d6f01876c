"""Start video generation jobs with optimistic local state."""

from __future__ import annotations

import logging

from syllabus_client.api.client import ApiClient
from syllabus_client.api.models import ChapterVideosAck, Subchapter, VideoGenerationAck, VideoGenerationRequest
from syllabus_client.core.exceptions import error_message
from syllabus_client.core.speculative import speculative_update
from syllabus_client.jobs.cache import EntityCache
from syllabus_client.jobs.gate import LifecycleGate, needs_video_generation
from syllabus_client.jobs.models import VideoStatus
from syllabus_client.notifications.contracts import Notifier
from syllabus_client.notifications.service import LoggingNotifier, notify_error, notify_success

logger = logging.getLogger(__name__)

_QUEUED_MESSAGE = "Waiting for the video job to start."


class JobTrigger:
  """Ask the backend to start a video job and reflect it in the cache before it answers.

  The request returns once the backend acknowledged the job; progress arrives through the
  status poller.
  """

  def __init__(self, client: ApiClient, cache: EntityCache, *, gate: LifecycleGate | None = None, notifier: Notifier | None = None) -> None:
    self._client = client
    self._cache = cache
    self._gate = gate
    self._notifier = notifier or LoggingNotifier()

  async def trigger(self, subchapter_id: str, request: VideoGenerationRequest | None = None) -> VideoGenerationAck:
    """Start generation for one subchapter; raises the client error after marking it failed."""
    previous: dict[str, Subchapter] = {}

    def apply() -> None:
      if self._gate is not None:
        self._gate.mark_retry_pending(subchapter_id)
      self._queue(subchapter_id, previous)

    def reconcile(ack: VideoGenerationAck) -> None:
      self._clear_retry(subchapter_id)
      if self._cache.subchapter(subchapter_id) is not None:
        if ack.status is not VideoStatus.QUEUED:
          self._cache.patch_subchapter(subchapter_id, video_status=ack.status)
        # The estimate is client-held, so the acknowledgement never races with status snapshots.
        self._cache.update_local(subchapter_id, estimated_duration=ack.estimated_duration)
      notify_success(self._notifier, "Video Generation Started", f"Estimated duration: {ack.estimated_duration or 'unknown'}")

    def rollback(exc: Exception) -> None:
      self._clear_retry(subchapter_id)
      message = notify_error(self._notifier, exc, fallback="Failed to generate video")
      logger.error("Video generation request failed for subchapter %s: %s", subchapter_id, message)
      self._mark_failed(subchapter_id, previous, message)

    logger.info("Requesting video generation for subchapter %s", subchapter_id)
    return await speculative_update(apply=apply, request=lambda: self._client.generate_subchapter_video(subchapter_id, request), reconcile=reconcile, rollback=rollback)

  async def trigger_chapter(self, chapter_id: str, request: VideoGenerationRequest | None = None) -> ChapterVideosAck:
    """Start generation for every subchapter of a chapter that still needs a video."""
    chapter = self._cache.chapter(chapter_id)
    force = bool(request is not None and request.force_regenerate)
    subchapters = (chapter.subchapters or []) if chapter is not None else []
    targets = [sub.id for sub in subchapters if force or needs_video_generation(sub)]
    previous: dict[str, Subchapter] = {}

    def apply() -> None:
      for subchapter_id in targets:
        if self._gate is not None:
          self._gate.mark_retry_pending(subchapter_id)
        self._queue(subchapter_id, previous)

    def reconcile(ack: ChapterVideosAck) -> None:
      for subchapter_id in targets:
        self._clear_retry(subchapter_id)
      notify_success(self._notifier, "Video Generation Started", f"{ack.subchapters_to_process} lesson(s) queued. Estimated time: {ack.estimated_total_time or 'unknown'}")

    def rollback(exc: Exception) -> None:
      message = error_message(exc, "Failed to generate chapter videos")
      for subchapter_id in targets:
        self._clear_retry(subchapter_id)
        self._mark_failed(subchapter_id, previous, message)
      notify_error(self._notifier, exc, fallback="Failed to generate chapter videos")
      logger.error("Chapter video generation failed for chapter %s: %s", chapter_id, message)

    logger.info("Requesting video generation for %d subchapter(s) of chapter %s", len(targets), chapter_id)
    return await speculative_update(apply=apply, request=lambda: self._client.generate_chapter_videos(chapter_id, request), reconcile=reconcile, rollback=rollback)

  def _clear_retry(self, subchapter_id: str) -> None:
    if self._gate is not None:
      self._gate.clear_retry_pending(subchapter_id)

  def _queue(self, subchapter_id: str, previous: dict[str, Subchapter]) -> None:
    # Triggers for subchapters the view never loaded still go out; there is just nothing to patch.
    if self._cache.subchapter(subchapter_id) is None:
      logger.debug("Subchapter %s not cached; skipping local status update", subchapter_id)
      return
    previous[subchapter_id] = self._cache.patch_subchapter(subchapter_id, video_status=VideoStatus.QUEUED, video_progress=0.0, video_message=_QUEUED_MESSAGE)

  def _mark_failed(self, subchapter_id: str, previous: dict[str, Subchapter], message: str) -> None:
    """Set the failed marker; progress goes back to what it was before the request."""
    before = previous.get(subchapter_id)
    if before is None or self._cache.subchapter(subchapter_id) is None:
      return
    self._cache.patch_subchapter(subchapter_id, video_status=VideoStatus.FAILED, video_progress=before.video_progress, video_message=message)
