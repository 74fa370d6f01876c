"""Subchapter reads and the completion toggle."""

from __future__ import annotations

import logging

from syllabus_client.api.client import ApiClient
from syllabus_client.api.models import CompletionResult, DetailedVideoStatus, RagContentResponse, Subchapter, SubtitlesResponse, VideoGenerationAck, VideoGenerationRequest
from syllabus_client.core.speculative import speculative_update
from syllabus_client.jobs.cache import EntityCache
from syllabus_client.jobs.trigger import JobTrigger
from syllabus_client.notifications.contracts import Notifier
from syllabus_client.notifications.service import notify_error, notify_success
from syllabus_client.services.base import ViewService

logger = logging.getLogger(__name__)


class SubchapterService(ViewService):
  """Lesson-level operations backed by the shared entity cache."""

  def __init__(self, client: ApiClient, cache: EntityCache, trigger: JobTrigger, *, notifier: Notifier | None = None) -> None:
    super().__init__(client, notifier=notifier)
    self._cache = cache
    self._trigger = trigger

  async def load(self, subchapter_id: str) -> Subchapter | None:
    subchapter = await self._fetch(lambda: self._client.get_subchapter(subchapter_id), fallback="Failed to load subchapter")
    if subchapter is None:
      return self._cache.subchapter(subchapter_id)
    return self._cache.put_subchapter(subchapter)

  async def mark_complete(self, subchapter_id: str, completed: bool) -> CompletionResult:
    """Flip the completion flag locally, then confirm it with the backend."""
    previous: list[bool] = []

    def apply() -> None:
      current = self._cache.subchapter(subchapter_id)
      if current is not None:
        previous.append(current.is_completed)
        self._cache.update_local(subchapter_id, is_completed=completed)

    def reconcile(result: CompletionResult) -> None:
      if self._cache.subchapter(subchapter_id) is not None:
        self._cache.update_local(subchapter_id, is_completed=result.is_completed)
      notify_success(self._notifier, "Progress Updated", result.message or ("Lesson marked as complete" if result.is_completed else "Lesson marked as incomplete"))

    def rollback(exc: Exception) -> None:
      if previous and self._cache.subchapter(subchapter_id) is not None:
        self._cache.update_local(subchapter_id, is_completed=previous[0])
      message = notify_error(self._notifier, exc, fallback="Failed to update progress")
      logger.error("Completion update failed for subchapter %s: %s", subchapter_id, message)

    return await speculative_update(apply=apply, request=lambda: self._client.mark_subchapter_complete(subchapter_id, completed), reconcile=reconcile, rollback=rollback)

  async def generate_video(self, subchapter_id: str, request: VideoGenerationRequest | None = None) -> VideoGenerationAck:
    return await self._trigger.trigger(subchapter_id, request)

  async def subtitles(self, subchapter_id: str) -> SubtitlesResponse | None:
    return await self._fetch(lambda: self._client.get_subtitles(subchapter_id), fallback="Failed to load subtitles")

  async def rag_content(self, subchapter_id: str) -> RagContentResponse | None:
    return await self._fetch(lambda: self._client.get_rag_content(subchapter_id), fallback="Failed to load lesson content")

  async def detailed_status(self, subchapter_id: str) -> DetailedVideoStatus | None:
    return await self._fetch(lambda: self._client.get_detailed_video_status(subchapter_id), fallback="Failed to load video status")

  async def delete_video(self, subchapter_id: str) -> None:
    """Delete the generated video; the next status poll reports the reset job."""
    await self._mutate(lambda: self._client.delete_subchapter_video(subchapter_id), fallback="Failed to delete video")
    notify_success(self._notifier, "Success", "Video deleted successfully")
