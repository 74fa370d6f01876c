"""Command line entrypoint for checking the backend and following video generation."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from dataclasses import replace

import httpx

from syllabus_client.api.client import ApiClient
from syllabus_client.config import Settings, get_settings
from syllabus_client.core.exceptions import ApiError
from syllabus_client.core.logging import setup_logging
from syllabus_client.jobs.models import StatusSnapshot, VideoStatus, snapshot_from_wire
from syllabus_client.services.session import LearningSession

logger = logging.getLogger(__name__)


def _format_snapshot(snapshot: StatusSnapshot) -> list[str]:
  lines = [f"{snapshot.chapter_title or snapshot.chapter_id}: {snapshot.overall_status or 'unknown'} ({snapshot.overall_progress:.0f}%)"]
  for job in snapshot.jobs:
    suffix = f" - {job.message}" if job.message else ""
    lines.append(f"  {job.title or job.subchapter_id}: {job.status.value} {job.progress:.0f}%{suffix}")
  return lines


async def _health(client: ApiClient) -> int:
  health = await client.get_health()
  print(f"{health.status} {health.service or ''} {health.version or ''}".strip())
  return 0 if health.status == "healthy" else 1


async def _status(client: ApiClient, chapter_id: str) -> int:
  payload = await client.get_chapter_video_status(chapter_id)
  for line in _format_snapshot(snapshot_from_wire(payload, sequence=0)):
    print(line)
  return 0


async def _generate(client: ApiClient, subchapter_id: str) -> int:
  ack = await client.generate_subchapter_video(subchapter_id)
  print(f"{ack.status.value}: {ack.message or 'Video generation started'} (estimated {ack.estimated_duration or 'unknown'})")
  return 0


async def _watch(client: ApiClient, chapter_id: str, *, interval: float, timeout: float) -> int:
  async with LearningSession(client, poll_interval=interval, request_timeout=timeout) as session:
    await session.open_chapter(chapter_id)
    async for snapshot in session.poller.stream():
      for line in _format_snapshot(snapshot):
        print(line)
    chapter = session.current_chapter()
    failed = [sub for sub in (chapter.subchapters or []) if sub.video_status is VideoStatus.FAILED] if chapter is not None else []
  return 1 if failed else 0


async def _run(args: argparse.Namespace, settings: Settings, transport: httpx.AsyncBaseTransport | None) -> int:
  logger.debug("Running %s against %s", args.command, settings.api_base_url)
  async with ApiClient.from_settings(settings, transport=transport) as client:
    if args.command == "health":
      return await _health(client)
    if args.command == "status":
      return await _status(client, args.chapter_id)
    if args.command == "generate":
      return await _generate(client, args.subchapter_id)
    if args.command == "watch":
      interval = args.interval or settings.poll_interval_seconds
      return await _watch(client, args.chapter_id, interval=interval, timeout=settings.request_timeout_seconds)
  raise ValueError(f"Unknown command: {args.command}")


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(prog="syllabus-client", description="Talk to the syllabus learning backend.")
  parser.add_argument("--base-url", type=str, default=None, help="Backend base URL; overrides SYLLABUS_API_BASE_URL.")
  parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
  commands = parser.add_subparsers(dest="command", required=True)
  commands.add_parser("health", help="Show backend health.")
  status = commands.add_parser("status", help="Print the video status of every lesson in a chapter.")
  status.add_argument("chapter_id")
  generate = commands.add_parser("generate", help="Start video generation for a lesson.")
  generate.add_argument("subchapter_id")
  watch = commands.add_parser("watch", help="Open a chapter and follow its video generation until it settles.")
  watch.add_argument("chapter_id")
  watch.add_argument("--interval", type=float, default=None, help="Seconds between status polls.")
  return parser


def main(argv: Sequence[str] | None = None, *, transport: httpx.AsyncBaseTransport | None = None) -> int:
  """CLI entrypoint; returns the process exit code."""
  args = build_parser().parse_args(argv)
  settings = get_settings()
  overrides: dict[str, object] = {}
  if args.base_url:
    overrides["api_base_url"] = args.base_url.rstrip("/")
  if args.debug:
    overrides["debug"] = True
  if overrides:
    settings = replace(settings, **overrides)
  if args.command == "watch" and args.interval is not None and args.interval <= 0:
    print("ERROR: --interval must be positive.", file=sys.stderr)
    return 2

  setup_logging(settings)
  try:
    return asyncio.run(_run(args, settings, transport))
  except ApiError as exc:
    print(f"ERROR: {exc}", file=sys.stderr)
    return 1
  except KeyboardInterrupt:
    return 130


if __name__ == "__main__":
  sys.exit(main())
