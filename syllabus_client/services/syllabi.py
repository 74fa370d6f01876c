"""Syllabus listing, creation and chapter structure generation."""

from __future__ import annotations

from syllabus_client.api.client import ApiClient
from syllabus_client.api.models import Chapter, ChapterGenerationOptions, Syllabus
from syllabus_client.jobs.cache import EntityCache
from syllabus_client.notifications.contracts import Notifier
from syllabus_client.notifications.service import notify_success
from syllabus_client.services.base import ViewService


class SyllabusService(ViewService):
  """Keeps the dashboard's syllabus list in sync with create and delete calls."""

  def __init__(self, client: ApiClient, *, cache: EntityCache | None = None, notifier: Notifier | None = None) -> None:
    super().__init__(client, notifier=notifier)
    self._cache = cache
    self.syllabi: list[Syllabus] = []

  async def refresh(self, skip: int = 0, limit: int = 20) -> list[Syllabus]:
    result = await self._fetch(lambda: self._client.list_syllabi(skip=skip, limit=limit), fallback="Failed to fetch syllabi")
    if result is not None:
      self.syllabi = result
    return self.syllabi

  async def get(self, syllabus_id: str) -> Syllabus | None:
    return await self._fetch(lambda: self._client.get_syllabus(syllabus_id), fallback="Failed to fetch syllabus")

  async def create(self, name: str, description: str) -> Syllabus:
    syllabus = await self._mutate(lambda: self._client.create_syllabus(name, description), fallback="Failed to create syllabus")
    self.syllabi = [syllabus, *self.syllabi]
    return syllabus

  async def delete(self, syllabus_id: str) -> None:
    await self._mutate(lambda: self._client.delete_syllabus(syllabus_id), fallback="Failed to delete syllabus")
    self.syllabi = [item for item in self.syllabi if item.id != syllabus_id]
    notify_success(self._notifier, "Success", "Syllabus deleted successfully")

  async def generate_chapters(self, syllabus_id: str, *, max_items: int | None = 8, depth_level: int | None = 2, focus_area: str | None = None) -> list[Chapter]:
    """Ask the backend to derive chapters from the uploaded materials."""
    options = ChapterGenerationOptions(max_items=max_items, depth_level=depth_level, focus_area=focus_area)
    chapters = await self._mutate(lambda: self._client.generate_chapters(syllabus_id, options), fallback="Failed to generate syllabus structure", error_title="Generation Failed")
    if self._cache is not None:
      self._cache.load_chapters(chapters)
    notify_success(self._notifier, "Syllabus Structure Generated!", f"Created {len(chapters)} chapters from your uploaded materials.")
    return chapters
