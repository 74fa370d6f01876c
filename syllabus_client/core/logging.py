import logging
import logging.handlers
import sys
import time
import traceback
from pathlib import Path
from types import TracebackType

from syllabus_client.config import Settings

LOG_LINE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"
LOG_FORMATTER = logging.Formatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT)

# Marker attribute so repeated setup calls can find handlers they installed earlier.
_HANDLER_MARKER = "_syllabus_client_handler"


class TruncatedFormatter(logging.Formatter):
  """Formatter that truncates the stack trace to the last few lines."""

  # ruff: noqa: N802
  def formatException(self, ei: tuple[type[BaseException] | None, BaseException | None, TracebackType | None]) -> str:
    lines = traceback.format_exception(*ei)
    # Keep header + last 5 lines of traceback
    if len(lines) > 6:
      return "".join(lines[:1] + ["    ...\n"] + lines[-5:])
    return "".join(lines)


def rotated_name(default_name: str) -> str:
  """Format backup files as name.log-1 instead of name.log.1."""
  parts = default_name.rsplit(".", 1)
  if len(parts) == 2 and parts[1].isdigit():
    return f"{parts[0]}-{parts[1]}"
  return default_name


def _build_handlers(settings: Settings) -> tuple[list[logging.Handler], Path | None]:
  """Create the stream handler and, when a log directory is configured, a rotating file handler."""
  stream = logging.StreamHandler(sys.stdout)
  stream.setFormatter(TruncatedFormatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT))
  handlers: list[logging.Handler] = [stream]

  if settings.log_dir is None:
    return handlers, None

  log_dir = settings.log_dir
  try:
    log_dir.mkdir(parents=True, exist_ok=True)
  except OSError as exc:
    raise RuntimeError(f"Failed to create log directory at {log_dir}: {exc}") from exc

  log_path = log_dir / f"syllabus_client_{time.strftime('%Y%m%d_%H%M%S')}.log"
  file_handler = logging.handlers.RotatingFileHandler(log_path, encoding="utf-8", maxBytes=settings.log_max_bytes, backupCount=settings.log_backup_count)
  file_handler.namer = rotated_name
  file_handler.setFormatter(LOG_FORMATTER)
  handlers.append(file_handler)
  return handlers, log_path


def setup_logging(settings: Settings) -> Path | None:
  """Attach client handlers to the root logger once and return the log file path, if any."""
  root = logging.getLogger()
  root.setLevel(logging.DEBUG if settings.debug else logging.INFO)

  # Reuse handlers from an earlier call instead of stacking duplicates.
  existing = [handler for handler in root.handlers if getattr(handler, _HANDLER_MARKER, False)]
  if existing:
    for handler in existing:
      if isinstance(handler, logging.FileHandler):
        return Path(handler.baseFilename)
    return None

  handlers, log_path = _build_handlers(settings)
  for handler in handlers:
    setattr(handler, _HANDLER_MARKER, True)
    root.addHandler(handler)

  # httpx logs every request at INFO; keep it quiet unless debugging.
  logging.getLogger("httpx").setLevel(logging.DEBUG if settings.debug else logging.WARNING)

  logging.getLogger("syllabus_client.core.logging").info("Logging initialized%s.", f". Writing to {log_path}" if log_path else "")
  return log_path


def teardown_logging() -> None:
  """Remove and close handlers installed by setup_logging."""
  root = logging.getLogger()
  for handler in list(root.handlers):
    if getattr(handler, _HANDLER_MARKER, False):
      root.removeHandler(handler)
      handler.close()
