"""Domain models for asynchronous video generation jobs."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
  from syllabus_client.api.wire import ChapterVideoStatus


class VideoStatus(str, Enum):
  """Canonical status values for a subchapter video job."""

  NOT_STARTED = "not_started"
  QUEUED = "queued"
  GENERATING_SCRIPT = "generating_script"
  RENDERING_VIDEO = "rendering_video"
  RUNNING = "running"
  COMPLETED = "completed"
  FAILED = "failed"


TERMINAL_STATUSES = frozenset({VideoStatus.COMPLETED, VideoStatus.FAILED})
IN_PROGRESS_STATUSES = frozenset({VideoStatus.QUEUED, VideoStatus.GENERATING_SCRIPT, VideoStatus.RENDERING_VIDEO, VideoStatus.RUNNING})

_STATUS_ALIASES = {
  "": VideoStatus.NOT_STARTED,
  "none": VideoStatus.NOT_STARTED,
  "not_started": VideoStatus.NOT_STARTED,
  "pending": VideoStatus.NOT_STARTED,
  "queued": VideoStatus.QUEUED,
  "generating_script": VideoStatus.GENERATING_SCRIPT,
  "rendering_video": VideoStatus.RENDERING_VIDEO,
  "running": VideoStatus.RUNNING,
  "generating": VideoStatus.RUNNING,
  "completed": VideoStatus.COMPLETED,
  "complete": VideoStatus.COMPLETED,
  "done": VideoStatus.COMPLETED,
  "failed": VideoStatus.FAILED,
  "error": VideoStatus.FAILED,
}


def normalize_video_status(raw: Any) -> VideoStatus:
  """Map any backend casing or legacy label onto the canonical enum.

  Empty values mean no job was ever started. Unknown non-empty labels are treated as an
  in-progress stage the client does not know about yet.
  """

  if isinstance(raw, VideoStatus):
    return raw
  if raw is None:
    return VideoStatus.NOT_STARTED
  normalized = str(raw).strip().lower().replace("-", "_").replace(" ", "_")
  return _STATUS_ALIASES.get(normalized, VideoStatus.RUNNING)


def clamp_progress(raw: Any) -> float:
  """Coerce a progress value into the inclusive range [0, 100]."""

  try:
    value = float(raw)
  except (TypeError, ValueError):
    return 0.0
  if value != value:  # NaN
    return 0.0
  return max(0.0, min(value, 100.0))


@dataclass(frozen=True)
class JobState:
  """Server-reported state of the video job for one subchapter."""

  subchapter_id: str
  title: str
  status: VideoStatus
  progress: float
  message: str | None = None
  artifact_path: str | None = None

  @property
  def is_terminal(self) -> bool:
    if self.status is VideoStatus.COMPLETED:
      return self.progress >= 100
    return self.status is VideoStatus.FAILED


@dataclass(frozen=True)
class StatusSnapshot:
  """Point-in-time job states for every subchapter of one chapter.

  ``sequence`` is taken from the cache clock when the request was sent, so responses that
  arrive out of order can be ranked by when they were asked for.
  """

  chapter_id: str
  sequence: int
  jobs: tuple[JobState, ...] = ()
  chapter_title: str | None = None
  overall_status: str | None = None
  progress_summary: Mapping[str, float] = field(default_factory=dict)

  def job(self, subchapter_id: str) -> JobState | None:
    for job in self.jobs:
      if job.subchapter_id == subchapter_id:
        return job
    return None

  @property
  def overall_progress(self) -> float:
    return clamp_progress(self.progress_summary.get("overall_progress", 0))


def snapshot_from_wire(payload: ChapterVideoStatus, *, sequence: int) -> StatusSnapshot:
  """Convert a decoded status response into a sequence-tagged snapshot."""

  jobs = tuple(
    JobState(
      subchapter_id=item.subchapter_id,
      title=item.title,
      status=normalize_video_status(item.video_status),
      progress=clamp_progress(item.video_progress),
      message=item.video_message,
      artifact_path=item.video_file_path,
    )
    for item in payload.subchapters
  )
  summary = payload.progress_summary
  progress_summary = {
    "completed": summary.completed,
    "generating": summary.generating,
    "queued": summary.queued,
    "failed": summary.failed,
    "overall_progress": summary.overall_progress,
  }
  return StatusSnapshot(chapter_id=payload.chapter_id, sequence=sequence, jobs=jobs, chapter_title=payload.chapter_title, overall_status=(payload.overall_status or "").lower() or None, progress_summary=progress_summary)
