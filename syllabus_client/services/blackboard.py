"""Blackboard drawing state, drawing analysis and explainer videos for a lesson."""

from __future__ import annotations

import logging

from syllabus_client.api.client import ApiClient
from syllabus_client.core.exceptions import ApiResponseError
from syllabus_client.jobs.cache import EntityCache
from syllabus_client.notifications.contracts import Notifier
from syllabus_client.services.base import ViewService

logger = logging.getLogger(__name__)


class BlackboardService(ViewService):
  """Everything here is stored as client-owned subchapter fields, so status polls never erase it."""

  def __init__(self, client: ApiClient, cache: EntityCache, *, notifier: Notifier | None = None) -> None:
    super().__init__(client, notifier=notifier)
    self._cache = cache

  def save_canvas(self, subchapter_id: str, canvas_data: str | None) -> None:
    self._cache.update_local(subchapter_id, canvas_data=canvas_data or None)

  async def analyze(self, subchapter_id: str, image_data: str) -> str:
    if not image_data:
      raise ValueError("Nothing drawn to analyze.")
    result = await self._mutate(lambda: self._client.analyze_drawing(image_data), fallback="Failed to analyze drawing")
    self._cache.update_local(subchapter_id, canvas_data=image_data, blackboard_analysis=result.analysis)
    return result.analysis

  async def generate_video(self, subchapter_id: str, prompt: str, *, duration_limit: int = 400) -> str:
    """Request an explainer video for ``prompt`` and return where it can be fetched."""
    if not prompt.strip():
      raise ValueError("A prompt is required to generate a blackboard video.")

    async def request() -> str:
      video = await self._client.generate_blackboard_video(subchapter_id, prompt, duration_limit=duration_limit)
      if not video.location:
        raise ApiResponseError(None, "No video URL returned from API", endpoint="/api/v1/video/videos")
      return video.location

    location = await self._mutate(request, fallback="Failed to generate video")
    self._cache.update_local(subchapter_id, blackboard_video_url=location)
    logger.info("Blackboard video ready for subchapter %s", subchapter_id)
    return location

  def clear(self, subchapter_id: str) -> None:
    self._cache.update_local(subchapter_id, canvas_data=None, blackboard_analysis=None, blackboard_video_url=None)
