"""Helpers for lesson media players."""

from __future__ import annotations

import math

from syllabus_client.jobs.models import IN_PROGRESS_STATUSES, VideoStatus, normalize_video_status


def format_time(seconds: float) -> str:
  """Format a playback position as ``m:ss``; invalid positions show as ``0:00``."""
  if seconds is None or math.isnan(seconds) or seconds < 0:
    return "0:00"
  minutes, remainder = divmod(int(seconds), 60)
  return f"{minutes}:{remainder:02d}"


def is_generating(status: VideoStatus | str | None) -> bool:
  """Return True while a video job is still producing the lesson video."""
  return normalize_video_status(status) in IN_PROGRESS_STATUSES
