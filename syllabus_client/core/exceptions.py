"""Errors raised by the syllabus client."""

from __future__ import annotations

from typing import Any

MAX_DETAIL_CHARS = 500


def summarize_detail(value: Any, *, limit: int = MAX_DETAIL_CHARS) -> str:
  """Render an error body or exception as a single trimmed line for logs and notifications."""
  if isinstance(value, BaseException):
    message = str(value)
    text = f"{type(value).__name__}: {message}" if message else type(value).__name__
  else:
    text = "" if value is None else str(value)
  collapsed = " ".join(text.split())
  if len(collapsed) > limit:
    return collapsed[:limit] + "…"
  return collapsed


class ApiError(RuntimeError):
  """Raised when the backend rejects a request or cannot be reached."""

  prefix = "API Error"

  def __init__(self, status_code: int | None, detail: str, *, endpoint: str | None = None) -> None:
    self.status_code = status_code
    self.detail = summarize_detail(detail)
    self.endpoint = endpoint
    label = f"{self.prefix} {status_code}" if status_code is not None else self.prefix
    super().__init__(f"{label}: {self.detail}")


class ApiTransportError(ApiError):
  """Raised for network failures and timeouts before any HTTP status was received."""

  prefix = "Network Error"

  def __init__(self, detail: str, *, endpoint: str | None = None) -> None:
    super().__init__(None, detail, endpoint=endpoint)


class ApiResponseError(ApiError):
  """Raised when a successful response body does not have the expected shape."""

  prefix = "Invalid Response"


class UploadError(ApiError):
  """Raised when a document upload is rejected."""

  prefix = "Upload Error"


class WizardStateError(RuntimeError):
  """Raised when a wizard step is invoked out of order."""


def error_message(exc: BaseException, fallback: str) -> str:
  """Return the user-facing message for an error, mirroring how the views surfaced failures."""
  message = str(exc).strip()
  return message or fallback
