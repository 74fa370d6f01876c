"""Chapter fetching and opening."""

from __future__ import annotations

from syllabus_client.api.client import ApiClient
from syllabus_client.api.models import Chapter, ChapterOpenResult
from syllabus_client.jobs.cache import EntityCache
from syllabus_client.notifications.contracts import Notifier
from syllabus_client.notifications.service import notify_success
from syllabus_client.services.base import ViewService


class ChapterService(ViewService):
  def __init__(self, client: ApiClient, cache: EntityCache, *, notifier: Notifier | None = None) -> None:
    super().__init__(client, notifier=notifier)
    self._cache = cache

  async def load_for_syllabus(self, syllabus_id: str) -> list[Chapter]:
    chapters = await self._fetch(lambda: self._client.list_syllabus_chapters(syllabus_id), fallback="Failed to fetch chapters")
    if chapters is None:
      return self._cache.chapters()
    return self._cache.load_chapters(chapters)

  async def load_details(self, chapter_id: str) -> Chapter | None:
    """Fetch a chapter with its subchapters and store it in the cache."""
    chapter = await self._fetch(lambda: self._client.get_chapter(chapter_id), fallback="Failed to load chapter details")
    if chapter is None:
      return self._cache.chapter(chapter_id)
    return self._cache.put_chapter(chapter)

  async def open_chapter(self, chapter_id: str, *, auto_generate_videos: bool = True) -> ChapterOpenResult:
    """Open a chapter, which by default starts video generation for its lessons."""
    result = await self._mutate(lambda: self._client.open_chapter(chapter_id, auto_generate_videos), fallback="Failed to open chapter")
    if result.video_generation_started:
      description = f"Video generation started for {result.subchapters_found} lessons. Estimated time: {result.estimated_completion or 'unknown'}"
    else:
      description = "Chapter opened successfully"
    notify_success(self._notifier, "Chapter Opened", description)
    return result
