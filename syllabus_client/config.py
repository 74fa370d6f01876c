"""Client configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from urllib.parse import urlparse

from syllabus_client.utils.env import default_env_path, load_env_file

DEFAULT_API_BASE_URL = "http://localhost:8000"
DEFAULT_TUTOR_AGENT_ID = "agent_9001k5yjxp03ftet5snkt5rh2e71"


@dataclass(frozen=True)
class Settings:
  """Typed settings for the syllabus client."""

  api_base_url: str
  poll_interval_seconds: float
  request_timeout_seconds: float
  upload_timeout_seconds: float
  tutor_agent_id: str
  debug: bool
  log_dir: Path | None
  log_max_bytes: int
  log_backup_count: int


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  stripped = raw.strip()
  return stripped or None


def _positive_float(name: str, default: str) -> float:
  raw = os.getenv(name, default)
  try:
    value = float(raw)
  except ValueError as exc:
    raise ValueError(f"{name} must be a number, got {raw!r}.") from exc
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


def _parse_base_url(raw: str | None) -> str:
  """Validate the backend base URL and drop trailing slashes."""

  value = (raw or DEFAULT_API_BASE_URL).strip().rstrip("/")
  parsed = urlparse(value)
  if parsed.scheme not in {"http", "https"} or not parsed.netloc:
    raise ValueError("SYLLABUS_API_BASE_URL must be an absolute http(s) URL.")
  return value


def load_settings() -> Settings:
  """Build settings from the current environment without caching."""

  api_base_url = _parse_base_url(os.getenv("SYLLABUS_API_BASE_URL"))

  # Polling cadence matches the 15 second refresh the detail view used.
  poll_interval_seconds = _positive_float("SYLLABUS_POLL_INTERVAL_SECONDS", "15")
  request_timeout_seconds = _positive_float("SYLLABUS_REQUEST_TIMEOUT_SECONDS", "30")
  upload_timeout_seconds = _positive_float("SYLLABUS_UPLOAD_TIMEOUT_SECONDS", "300")

  tutor_agent_id = _optional_str(os.getenv("SYLLABUS_TUTOR_AGENT_ID")) or DEFAULT_TUTOR_AGENT_ID
  debug = _parse_bool(os.getenv("SYLLABUS_DEBUG"))

  raw_log_dir = _optional_str(os.getenv("SYLLABUS_LOG_DIR"))
  log_dir = Path(raw_log_dir).expanduser() if raw_log_dir else None

  log_max_bytes = int(os.getenv("SYLLABUS_LOG_MAX_BYTES", "5242880"))  # 5MB default
  if log_max_bytes <= 0:
    raise ValueError("SYLLABUS_LOG_MAX_BYTES must be a positive integer.")

  log_backup_count = int(os.getenv("SYLLABUS_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("SYLLABUS_LOG_BACKUP_COUNT must be zero or a positive integer.")

  return Settings(
    api_base_url=api_base_url,
    poll_interval_seconds=poll_interval_seconds,
    request_timeout_seconds=request_timeout_seconds,
    upload_timeout_seconds=upload_timeout_seconds,
    tutor_agent_id=tutor_agent_id,
    debug=debug,
    log_dir=log_dir,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
  )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  load_env_file(default_env_path(), override=False)
  return load_settings()
