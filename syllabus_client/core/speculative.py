"""Local speculative patch followed by server reconciliation."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


async def speculative_update[T](*, apply: Callable[[], Any], request: Callable[[], Awaitable[T]], rollback: Callable[[Exception], Any], reconcile: Callable[[T], Any] | None = None) -> T:
  """Apply a local patch, send the request, then reconcile on success or roll back on error.

  The error is re-raised after ``rollback`` so callers still see the failure. A rollback
  that fails itself is logged and the original error wins.
  """
  apply()
  try:
    result = await request()
  except Exception as exc:
    try:
      rollback(exc)
    except Exception:  # noqa: BLE001
      logger.error("Rollback after failed request raised; local state may be stale.", exc_info=True)
    raise
  if reconcile is not None:
    reconcile(result)
  return result
