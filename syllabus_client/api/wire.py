"""msgspec structs for the chapter status payload decoded on every poll tick."""

from __future__ import annotations

import msgspec


class SubchapterVideoState(msgspec.Struct, forbid_unknown_fields=False):
  """Per-subchapter entry of the chapter video status response."""

  subchapter_id: str
  title: str = ""
  video_status: str | None = None
  video_progress: float | None = 0.0
  video_message: str | None = None
  video_file_path: str | None = None


class ProgressSummary(msgspec.Struct, forbid_unknown_fields=False):
  """Counts of subchapters per status plus the overall percentage."""

  completed: int = 0
  generating: int = 0
  queued: int = 0
  failed: int = 0
  overall_progress: float = 0.0


class ChapterVideoStatus(msgspec.Struct, forbid_unknown_fields=False):
  """Aggregate status snapshot returned for a chapter."""

  chapter_id: str
  chapter_title: str | None = None
  overall_status: str | None = None
  subchapters: list[SubchapterVideoState] = msgspec.field(default_factory=list)
  progress_summary: ProgressSummary = msgspec.field(default_factory=ProgressSummary)


def decode_chapter_status(payload: bytes) -> ChapterVideoStatus:
  """Decode a chapter status response body."""
  return msgspec.json.decode(payload, type=ChapterVideoStatus)
