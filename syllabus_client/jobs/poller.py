"""Timer-driven polling of chapter video status."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator

from syllabus_client.api.client import ApiClient
from syllabus_client.core.exceptions import ApiError, error_message
from syllabus_client.jobs.cache import EntityCache
from syllabus_client.jobs.gate import LifecycleGate
from syllabus_client.jobs.models import StatusSnapshot, snapshot_from_wire

logger = logging.getLogger(__name__)


class StatusPoller:
  """Poll the status endpoint of one chapter and merge each answer into the cache.

  A request goes out as soon as polling starts and then on every interval. Each tick runs
  as its own task, so a slow response never delays the next tick; each request is capped
  at one interval. Responses are tagged with the sequence taken when they were sent and
  the cache drops the ones that lost the race. Polling ends on ``stop()``, on a new
  target, or when the lifecycle gate reports the chapter settled.
  """

  def __init__(self, client: ApiClient, cache: EntityCache, gate: LifecycleGate, *, interval: float = 15.0, timeout: float | None = None) -> None:
    if interval <= 0:
      raise ValueError("Polling interval must be positive.")
    self._client = client
    self._cache = cache
    self._gate = gate
    self._interval = interval
    self._request_timeout = min(timeout, interval) if timeout is not None else interval
    self._target: str | None = None
    self._generation = 0
    self._timer: asyncio.Task[None] | None = None
    self._ticks: set[asyncio.Task[StatusSnapshot | None]] = set()
    self._status: StatusSnapshot | None = None
    self._error: str | None = None
    self._subscribers: list[asyncio.Queue[StatusSnapshot | None]] = []

  @property
  def target(self) -> str | None:
    return self._target

  @property
  def status(self) -> StatusSnapshot | None:
    """Last snapshot this poller applied to the cache."""
    return self._status

  @property
  def error(self) -> str | None:
    """Message of the last failed poll, cleared by the next successful one."""
    return self._error

  @property
  def loading(self) -> bool:
    return bool(self._ticks)

  @property
  def running(self) -> bool:
    return self._timer is not None and not self._timer.done()

  async def __aenter__(self) -> StatusPoller:
    return self

  async def __aexit__(self, *exc_info: object) -> None:
    await self.stop()

  def start(self, chapter_id: str) -> None:
    """Begin polling ``chapter_id``; calling it again for a running target is a no-op."""
    if not chapter_id:
      raise ValueError("A chapter id is required to poll video status.")
    if chapter_id == self._target and self.running:
      return

    if chapter_id != self._target:
      self._cancel_tasks()
      if self._target is not None:
        self._gate.disable(self._target)
        self._close_subscribers()
      self._status = None
      self._error = None

    self._target = chapter_id
    self._generation += 1
    self._gate.enable(chapter_id)
    logger.info("Polling video status for chapter %s every %.1fs", chapter_id, self._interval)
    self._timer = asyncio.create_task(self._run(chapter_id, self._generation), name=f"status-poller:{chapter_id}")

  async def stop(self) -> None:
    """Stop polling, drop in-flight requests and clear the held snapshot."""
    target = self._target
    pending = self._cancel_tasks()
    if target is not None:
      self._gate.disable(target)
      self._cache.forget_snapshot(target)
      logger.info("Stopped polling video status for chapter %s", target)
    self._target = None
    self._status = None
    self._error = None
    self._close_subscribers()
    if pending:
      await asyncio.gather(*pending, return_exceptions=True)

  async def refetch(self) -> StatusSnapshot | None:
    """Poll once right now for the current target."""
    target = self._target
    if target is None or not self._gate.is_tracking(target):
      return None
    return await self._tick(target, self._generation, self._cache.next_sequence())

  async def stream(self) -> AsyncIterator[StatusSnapshot]:
    """Yield every snapshot applied from now on until polling ends."""
    queue: asyncio.Queue[StatusSnapshot | None] = asyncio.Queue()
    self._subscribers.append(queue)
    try:
      if not self.running:
        return
      while True:
        snapshot = await queue.get()
        if snapshot is None:
          return
        yield snapshot
    finally:
      with contextlib.suppress(ValueError):
        self._subscribers.remove(queue)

  def _is_current(self, target: str, generation: int) -> bool:
    return self._target == target and self._generation == generation

  async def _run(self, target: str, generation: int) -> None:
    try:
      # The first request always goes out; the cache may not know about jobs the backend started.
      first = True
      while self._is_current(target, generation):
        if not first and not self._gate.should_poll(target):
          logger.info("Chapter %s settled; polling stopped", target)
          break
        first = False
        self._spawn_tick(target, generation)
        await asyncio.sleep(self._interval)
    finally:
      if self._is_current(target, generation):
        self._close_subscribers()

  def _spawn_tick(self, target: str, generation: int) -> None:
    # The sequence is taken at send time, before any later request or local write.
    sequence = self._cache.next_sequence()
    task = asyncio.create_task(self._tick(target, generation, sequence), name=f"status-tick:{target}:{sequence}")
    self._ticks.add(task)
    task.add_done_callback(self._ticks.discard)

  async def _tick(self, target: str, generation: int, sequence: int) -> StatusSnapshot | None:
    try:
      payload = await asyncio.wait_for(self._client.get_chapter_video_status(target, timeout=self._request_timeout), timeout=self._request_timeout)
    except (ApiError, TimeoutError) as exc:
      if self._is_current(target, generation):
        self._error = error_message(exc, "Failed to fetch video status")
        logger.warning("Video status polling error for chapter %s: %s", target, self._error)
      return None

    if not self._is_current(target, generation):
      logger.debug("Dropping status response seq=%s for chapter %s; no longer tracked", sequence, target)
      return None

    snapshot = snapshot_from_wire(payload, sequence=sequence)
    if not self._cache.apply_snapshot(snapshot):
      return None

    self._status = snapshot
    self._error = None
    for queue in list(self._subscribers):
      queue.put_nowait(snapshot)
    return snapshot

  def _cancel_tasks(self) -> list[asyncio.Task]:
    self._generation += 1
    pending: list[asyncio.Task] = []
    if self._timer is not None and not self._timer.done():
      self._timer.cancel()
      pending.append(self._timer)
    self._timer = None
    for task in list(self._ticks):
      if not task.done():
        task.cancel()
        pending.append(task)
    self._ticks.clear()
    return pending

  def _close_subscribers(self) -> None:
    for queue in list(self._subscribers):
      queue.put_nowait(None)
