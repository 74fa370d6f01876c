"""Pure merge of polled job status into locally held chapter state."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from syllabus_client.api.models import Chapter, Subchapter
from syllabus_client.jobs.models import JobState, StatusSnapshot

# The only subchapter fields a status snapshot is allowed to write.
SNAPSHOT_FIELDS = ("video_status", "video_progress", "video_message", "video_file_path")


def job_fields(job: JobState) -> dict[str, Any]:
  """Map a job state onto the subchapter fields it owns."""

  return {"video_status": job.status, "video_progress": job.progress, "video_message": job.message, "video_file_path": job.artifact_path}


def merge_job_state(subchapter: Subchapter, job: JobState) -> Subchapter:
  """Return ``subchapter`` with its job fields taken from ``job``; everything else is kept."""

  update = job_fields(job)
  # Skip the copy when nothing changes so repeated merges keep the same objects.
  if all(getattr(subchapter, name) == value for name, value in update.items()):
    return subchapter
  return subchapter.model_copy(update=update)


def _jobs_by_subchapter(jobs: Iterable[JobState]) -> Mapping[str, JobState]:
  # A later entry for the same subchapter wins, matching how the payload would be read top-down.
  return {job.subchapter_id: job for job in jobs}


def merge_snapshot(chapter: Chapter, snapshot: StatusSnapshot) -> Chapter:
  """Merge ``snapshot`` into ``chapter`` without mutating either input.

  Subchapters missing from the snapshot are returned untouched, and an empty snapshot
  returns ``chapter`` itself.
  """

  if not snapshot.jobs or not chapter.subchapters:
    return chapter

  by_id = _jobs_by_subchapter(snapshot.jobs)
  merged: list[Subchapter] = []
  changed = False
  for subchapter in chapter.subchapters:
    job = by_id.get(subchapter.id)
    if job is None:
      merged.append(subchapter)
      continue
    updated = merge_job_state(subchapter, job)
    changed = changed or updated is not subchapter
    merged.append(updated)

  if not changed:
    return chapter
  return chapter.model_copy(update={"subchapters": merged})


def merge_snapshot_into_chapters(chapters: list[Chapter], snapshot: StatusSnapshot) -> list[Chapter]:
  """Apply a snapshot to the chapter it describes inside a chapter list."""

  return [merge_snapshot(chapter, snapshot) if chapter.id == snapshot.chapter_id else chapter for chapter in chapters]
