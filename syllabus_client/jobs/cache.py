"""In-memory entity cache shared by the trigger, the poller and the views."""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterable
from dataclasses import replace
from typing import Any

from syllabus_client.api.models import Chapter, Subchapter
from syllabus_client.jobs.models import StatusSnapshot
from syllabus_client.jobs.reconciler import SNAPSHOT_FIELDS, merge_snapshot

logger = logging.getLogger(__name__)


class EntityCache:
  """Chapters and subchapters held for the lifetime of a view.

  Every speculative write and every status request draws a number from the same clock.
  A snapshot only lands on a subchapter when it was requested after the subchapter's last
  write, and a whole snapshot is dropped when a newer one for the same chapter was already
  applied.
  """

  def __init__(self) -> None:
    self._clock = itertools.count(1)
    self._chapters: dict[str, Chapter] = {}
    self._order: list[str] = []
    self._versions: dict[str, int] = {}
    self._applied: dict[str, int] = {}
    self._snapshots: dict[str, StatusSnapshot] = {}

  def next_sequence(self) -> int:
    return next(self._clock)

  # Reads

  def chapters(self) -> list[Chapter]:
    return [self._chapters[chapter_id] for chapter_id in self._order]

  def chapter(self, chapter_id: str) -> Chapter | None:
    return self._chapters.get(chapter_id)

  def subchapter(self, subchapter_id: str) -> Subchapter | None:
    chapter = self.find_chapter_for(subchapter_id)
    if chapter is None or not chapter.subchapters:
      return None
    for subchapter in chapter.subchapters:
      if subchapter.id == subchapter_id:
        return subchapter
    return None

  def find_chapter_for(self, subchapter_id: str) -> Chapter | None:
    for chapter_id in self._order:
      chapter = self._chapters[chapter_id]
      if chapter.subchapters and any(sub.id == subchapter_id for sub in chapter.subchapters):
        return chapter
    return None

  def last_snapshot(self, chapter_id: str) -> StatusSnapshot | None:
    return self._snapshots.get(chapter_id)

  def version(self, subchapter_id: str) -> int:
    return self._versions.get(subchapter_id, 0)

  # Server fetches

  def load_chapters(self, chapters: Iterable[Chapter]) -> list[Chapter]:
    """Replace the chapter list, keeping subchapters already fetched for known chapters."""
    previous = self._chapters
    self._chapters = {}
    self._order = []
    for chapter in chapters:
      known = previous.get(chapter.id)
      if chapter.subchapters is None and known is not None and known.subchapters is not None:
        chapter = chapter.model_copy(update={"subchapters": known.subchapters})
      self._store_chapter(chapter, previous=known)
    return self.chapters()

  def put_chapter(self, chapter: Chapter) -> Chapter:
    """Store a fetched chapter, preserving client-owned fields of its known subchapters."""
    known = self._chapters.get(chapter.id)
    if chapter.subchapters is None and known is not None:
      chapter = chapter.model_copy(update={"subchapters": known.subchapters})
    return self._store_chapter(chapter, previous=known)

  def put_subchapter(self, subchapter: Subchapter) -> Subchapter:
    """Store a fetched subchapter inside its chapter."""
    existing = self.subchapter(subchapter.id)
    if existing is not None:
      subchapter = _with_client_fields(subchapter, existing)

    chapter = self._chapters.get(subchapter.chapter_id)
    if chapter is None:
      # The chapter list has not been fetched yet; hold the subchapter under a stub.
      chapter = Chapter(id=subchapter.chapter_id, syllabus_id="", title="", subchapters=[])
      self._order.append(chapter.id)

    subchapters = list(chapter.subchapters or [])
    for index, current in enumerate(subchapters):
      if current.id == subchapter.id:
        subchapters[index] = subchapter
        break
    else:
      subchapters.append(subchapter)
      subchapters.sort(key=lambda item: item.order_index)
    self._chapters[chapter.id] = chapter.model_copy(update={"subchapters": subchapters})
    return subchapter

  def _store_chapter(self, chapter: Chapter, *, previous: Chapter | None) -> Chapter:
    if previous is not None and previous.subchapters and chapter.subchapters:
      known = {sub.id: sub for sub in previous.subchapters}
      chapter = chapter.model_copy(update={"subchapters": [_with_client_fields(sub, known[sub.id]) if sub.id in known else sub for sub in chapter.subchapters]})
    if chapter.id not in self._chapters:
      self._order.append(chapter.id)
    self._chapters[chapter.id] = chapter
    return chapter

  # Local writes

  def patch_subchapter(self, subchapter_id: str, **fields: Any) -> Subchapter:
    """Apply a speculative write and return the value it replaced.

    The write is stamped with a fresh sequence, so status snapshots requested before it
    cannot overwrite it.
    """
    previous = self._require_subchapter(subchapter_id)
    self._replace_subchapter(previous.model_copy(update=fields))
    self._versions[subchapter_id] = self.next_sequence()
    return previous

  def update_local(self, subchapter_id: str, **fields: Any) -> Subchapter:
    """Write fields status snapshots never carry, such as client-owned fields or the completion flag.

    No stamp is taken, so a snapshot already in flight still lands on the job fields.
    """
    job_fields = set(fields) & set(SNAPSHOT_FIELDS)
    if job_fields:
      raise ValueError(f"Job fields must go through patch_subchapter: {', '.join(sorted(job_fields))}")
    updated = self._require_subchapter(subchapter_id).model_copy(update=fields)
    self._replace_subchapter(updated)
    return updated

  def _require_subchapter(self, subchapter_id: str) -> Subchapter:
    subchapter = self.subchapter(subchapter_id)
    if subchapter is None:
      raise KeyError(f"Subchapter {subchapter_id} is not cached.")
    return subchapter

  def _replace_subchapter(self, subchapter: Subchapter) -> None:
    chapter = self.find_chapter_for(subchapter.id)
    if chapter is None or chapter.subchapters is None:
      raise KeyError(f"Subchapter {subchapter.id} is not cached.")
    subchapters = [subchapter if sub.id == subchapter.id else sub for sub in chapter.subchapters]
    self._chapters[chapter.id] = chapter.model_copy(update={"subchapters": subchapters})

  # Snapshots

  def apply_snapshot(self, snapshot: StatusSnapshot) -> bool:
    """Merge a polled snapshot; return False when it was discarded as stale or untracked."""
    chapter = self._chapters.get(snapshot.chapter_id)
    if chapter is None:
      logger.debug("Ignoring status snapshot for uncached chapter %s", snapshot.chapter_id)
      return False

    last_applied = self._applied.get(snapshot.chapter_id, 0)
    if snapshot.sequence < last_applied:
      logger.debug("Discarding stale snapshot seq=%s for chapter %s (applied seq=%s)", snapshot.sequence, snapshot.chapter_id, last_applied)
      return False

    # Leave subchapters alone when they were written after this snapshot was requested.
    fresh_jobs = tuple(job for job in snapshot.jobs if self._versions.get(job.subchapter_id, 0) <= snapshot.sequence)
    if len(fresh_jobs) != len(snapshot.jobs):
      logger.debug("Snapshot seq=%s skipped %d subchapter(s) with newer local writes", snapshot.sequence, len(snapshot.jobs) - len(fresh_jobs))

    self._chapters[snapshot.chapter_id] = merge_snapshot(chapter, replace(snapshot, jobs=fresh_jobs))
    for job in fresh_jobs:
      self._versions[job.subchapter_id] = snapshot.sequence
    self._applied[snapshot.chapter_id] = snapshot.sequence
    self._snapshots[snapshot.chapter_id] = snapshot
    return True

  def forget_snapshot(self, chapter_id: str) -> None:
    self._snapshots.pop(chapter_id, None)


def _with_client_fields(incoming: Subchapter, existing: Subchapter) -> Subchapter:
  """Carry client-owned fields from ``existing`` onto a freshly fetched subchapter."""
  owned = {name: value for name, value in existing.client_owned().items() if getattr(incoming, name) is None}
  if not owned:
    return incoming
  return incoming.model_copy(update=owned)

