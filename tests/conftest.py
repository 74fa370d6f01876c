"""Shared fixtures: an in-memory FastAPI backend mounted through httpx.ASGITransport."""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable
from typing import Any

import httpx
import pytest
from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import Response
from httpx import ASGITransport

from syllabus_client.api.client import ApiClient

BASE_URL = "http://test"


class FlakyTransport(ASGITransport):
  """ASGI transport that can simulate the backend being unreachable."""

  def __init__(self, app: FastAPI) -> None:
    super().__init__(app=app)
    self.offline = False
    self.attempts = 0

  async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
    self.attempts += 1
    if self.offline:
      raise httpx.ConnectError("connection refused", request=request)
    return await super().handle_async_request(request)


class Hold:
  """Parks a request inside the backend until the test releases it."""

  def __init__(self) -> None:
    self.entered = asyncio.Event()
    self.release = asyncio.Event()


class FakeBackend:
  """In-memory stand-in for the learning platform API."""

  def __init__(self) -> None:
    self.syllabi: dict[str, dict[str, Any]] = {}
    self.chapters: dict[str, dict[str, Any]] = {}
    self.subchapters: dict[str, dict[str, Any]] = {}
    self.documents: dict[str, dict[str, Any]] = {}
    self.calls: list[tuple[str, str]] = []
    self.status_payloads: dict[str, list[dict[str, Any]]] = {}
    self.video_ack_status = "queued"
    self._failures: dict[str, tuple[int, str]] = {}
    self._holds: dict[str, Hold] = {}
    self.app = self._build_app()

  # Seeding

  def add_syllabus(self, syllabus_id: str = "syl1", name: str = "Physics") -> dict[str, Any]:
    self.syllabi[syllabus_id] = {"id": syllabus_id, "name": name, "description": None, "processing_status": "ready", "document_count": 0, "chapter_count": 0}
    return self.syllabi[syllabus_id]

  def add_chapter(self, chapter_id: str = "ch1", syllabus_id: str = "syl1", *, title: str = "Mechanics", order_index: int = 0, completion_percentage: float = 0.0) -> dict[str, Any]:
    self.chapters[chapter_id] = {"id": chapter_id, "syllabus_id": syllabus_id, "title": title, "order_index": order_index, "is_generated": True, "completion_percentage": completion_percentage}
    return self.chapters[chapter_id]

  def add_subchapter(self, subchapter_id: str, chapter_id: str = "ch1", *, title: str | None = None, order_index: int = 0, **fields: Any) -> dict[str, Any]:
    record = {"id": subchapter_id, "chapter_id": chapter_id, "title": title or subchapter_id.title(), "order_index": order_index, "video_status": "not_started", "video_progress": 0, "video_message": None, "video_file_path": None, "is_completed": False}
    record.update(fields)
    self.subchapters[subchapter_id] = record
    return record

  def queue_status(self, chapter_id: str, subchapters: list[dict[str, Any]], *, overall_status: str = "processing") -> None:
    """Serve ``subchapters`` verbatim on the next status poll instead of the seeded state."""
    self.status_payloads.setdefault(chapter_id, []).append({"chapter_id": chapter_id, "chapter_title": self.chapters.get(chapter_id, {}).get("title", ""), "overall_status": overall_status, "subchapters": subchapters, "progress_summary": _summary(subchapters)})

  # Behaviour switches

  def fail(self, route: str, status: int = 500, detail: str = "Internal error") -> None:
    self._failures[route] = (status, detail)

  def recover(self, route: str) -> None:
    self._failures.pop(route, None)

  def hold(self, route: str) -> Hold:
    hold = Hold()
    self._holds[route] = hold
    return hold

  def count(self, method: str, path: str) -> int:
    return sum(1 for call in self.calls if call == (method, path))

  async def _gate(self, route: str, request: Request) -> None:
    self.calls.append((request.method, request.url.path))
    hold = self._holds.pop(route, None)
    if hold is not None:
      hold.entered.set()
      await hold.release.wait()
    failure = self._failures.get(route)
    if failure is not None:
      raise HTTPException(status_code=failure[0], detail=failure[1])

  def _chapter_with_subchapters(self, chapter_id: str) -> dict[str, Any]:
    chapter = self.chapters.get(chapter_id)
    if chapter is None:
      raise HTTPException(status_code=404, detail="Chapter not found")
    subs = sorted((sub for sub in self.subchapters.values() if sub["chapter_id"] == chapter_id), key=lambda item: item["order_index"])
    return {**chapter, "subchapters": subs}

  def _subchapter(self, subchapter_id: str) -> dict[str, Any]:
    subchapter = self.subchapters.get(subchapter_id)
    if subchapter is None:
      raise HTTPException(status_code=404, detail="Subchapter not found")
    return subchapter

  def _build_app(self) -> FastAPI:
    app = FastAPI()
    backend = self

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
      await backend._gate("health", request)
      return {"status": "healthy", "service": "fake-backend", "version": "1.0.0"}

    @app.post("/api/v1/syllabi/")
    async def create_syllabus(request: Request) -> dict[str, Any]:
      await backend._gate("create_syllabus", request)
      body = await request.json()
      syllabus_id = f"syl-{uuid.uuid4().hex[:8]}"
      backend.syllabi[syllabus_id] = {"id": syllabus_id, "name": body["name"], "description": body.get("description"), "processing_status": "created"}
      return backend.syllabi[syllabus_id]

    @app.get("/api/v1/syllabi/")
    async def list_syllabi(request: Request, skip: int = 0, limit: int = 20) -> list[dict[str, Any]]:
      await backend._gate("list_syllabi", request)
      return list(backend.syllabi.values())[skip : skip + limit]

    @app.get("/api/v1/syllabi/{syllabus_id}")
    async def get_syllabus(syllabus_id: str, request: Request) -> dict[str, Any]:
      await backend._gate("get_syllabus", request)
      if syllabus_id not in backend.syllabi:
        raise HTTPException(status_code=404, detail="Syllabus not found")
      return backend.syllabi[syllabus_id]

    @app.delete("/api/v1/syllabi/{syllabus_id}")
    async def delete_syllabus(syllabus_id: str, request: Request) -> Response:
      await backend._gate("delete_syllabus", request)
      backend.syllabi.pop(syllabus_id, None)
      return Response(status_code=204)

    @app.post("/api/v1/syllabi/{syllabus_id}/generate-chapters")
    async def generate_chapters(syllabus_id: str, request: Request) -> list[dict[str, Any]]:
      await backend._gate("generate_chapters", request)
      body = await request.json()
      for index in range(body.get("max_items", 3)):
        backend.add_chapter(f"{syllabus_id}-ch{index}", syllabus_id, title=f"Chapter {index + 1}", order_index=index)
      return [chapter for chapter in backend.chapters.values() if chapter["syllabus_id"] == syllabus_id]

    @app.get("/api/v1/syllabi/{syllabus_id}/chapters")
    async def list_chapters(syllabus_id: str, request: Request) -> list[dict[str, Any]]:
      await backend._gate("list_chapters", request)
      return sorted((chapter for chapter in backend.chapters.values() if chapter["syllabus_id"] == syllabus_id), key=lambda item: item["order_index"])

    @app.post("/api/v1/syllabi/{syllabus_id}/documents")
    async def upload_document(syllabus_id: str, request: Request, file: UploadFile = File(...)) -> dict[str, Any]:
      await backend._gate("upload_document", request)
      content = await file.read()
      document_id = f"doc-{uuid.uuid4().hex[:8]}"
      backend.documents[document_id] = {"id": document_id, "syllabus_id": syllabus_id, "filename": file.filename, "original_filename": file.filename, "file_size": len(content), "status": "uploaded"}
      return backend.documents[document_id]

    @app.get("/api/v1/syllabi/{syllabus_id}/documents")
    async def list_documents(syllabus_id: str, request: Request) -> list[dict[str, Any]]:
      await backend._gate("list_documents", request)
      return [doc for doc in backend.documents.values() if doc["syllabus_id"] == syllabus_id]

    @app.post("/api/v1/syllabi/{syllabus_id}/search")
    async def search(syllabus_id: str, request: Request) -> dict[str, Any]:
      await backend._gate("search", request)
      body = await request.json()
      return {"query": body["query"], "results": [{"id": "hit-1", "text": f"About {body['query']}", "relevance_score": 0.9}], "total_results": 1, "search_time_ms": 1.5}

    @app.get("/api/v1/documents/{document_id}")
    async def get_document(document_id: str, request: Request) -> dict[str, Any]:
      await backend._gate("get_document", request)
      if document_id not in backend.documents:
        raise HTTPException(status_code=404, detail="Document not found")
      return backend.documents[document_id]

    @app.delete("/api/v1/documents/{document_id}")
    async def delete_document(document_id: str, request: Request) -> Response:
      await backend._gate("delete_document", request)
      backend.documents.pop(document_id, None)
      return Response(status_code=204)

    @app.get("/api/v1/chapters/{chapter_id}")
    async def get_chapter(chapter_id: str, request: Request) -> dict[str, Any]:
      await backend._gate("get_chapter", request)
      return backend._chapter_with_subchapters(chapter_id)

    @app.post("/api/v1/chapters/{chapter_id}/open")
    async def open_chapter(chapter_id: str, request: Request, auto_generate_videos: bool = True) -> dict[str, Any]:
      await backend._gate("open_chapter", request)
      subs = backend._chapter_with_subchapters(chapter_id)["subchapters"]
      started = bool(auto_generate_videos and subs)
      if started:
        for sub in subs:
          if sub["video_status"] == "not_started":
            sub["video_status"] = "queued"
      return {"message": "Chapter opened", "chapter_id": chapter_id, "subchapters_found": len(subs), "video_generation_started": started, "estimated_completion": "5 minutes" if started else None}

    @app.post("/api/v1/video/subchapters/{subchapter_id}/generate-video")
    async def generate_video(subchapter_id: str, request: Request) -> dict[str, Any]:
      await backend._gate("generate_video", request)
      sub = backend._subchapter(subchapter_id)
      sub.update(video_status=backend.video_ack_status, video_progress=0, video_message="Queued")
      return {"message": "Video generation started", "subchapter_id": subchapter_id, "estimated_duration": "2-3 minutes", "status": backend.video_ack_status}

    @app.post("/api/v1/video/chapters/{chapter_id}/generate-videos")
    async def generate_videos(chapter_id: str, request: Request) -> dict[str, Any]:
      await backend._gate("generate_videos", request)
      subs = backend._chapter_with_subchapters(chapter_id)["subchapters"]
      for sub in subs:
        sub.update(video_status="queued", video_progress=0)
      return {"message": "Started", "chapter_id": chapter_id, "subchapters_to_process": len(subs), "estimated_total_time": "10 minutes"}

    @app.get("/api/v1/video/subchapters/{subchapter_id}/video-status")
    async def subchapter_video_status(subchapter_id: str, request: Request) -> dict[str, Any]:
      await backend._gate("subchapter_status", request)
      return backend._subchapter(subchapter_id)

    @app.get("/api/v1/video/subchapters/{subchapter_id}/detailed-status")
    async def detailed_status(subchapter_id: str, request: Request) -> dict[str, Any]:
      await backend._gate("detailed_status", request)
      sub = backend._subchapter(subchapter_id)
      return {"subchapter_id": subchapter_id, "subchapter_title": sub["title"], "video_status": sub["video_status"], "video_progress": sub["video_progress"], "current_stage": "rendering", "stage_progress": 50, "stages_completed": ["script"], "stages_remaining": ["render"]}

    @app.get("/api/v1/video/chapters/{chapter_id}/video-status")
    async def chapter_video_status(chapter_id: str, request: Request) -> dict[str, Any]:
      await backend._gate("chapter_status", request)
      queued = backend.status_payloads.get(chapter_id)
      if queued:
        return queued.pop(0)
      chapter = backend._chapter_with_subchapters(chapter_id)
      subs = [
        {"subchapter_id": sub["id"], "title": sub["title"], "video_status": sub["video_status"], "video_progress": sub["video_progress"], "video_message": sub["video_message"], "video_file_path": sub["video_file_path"]}
        for sub in chapter["subchapters"]
      ]
      return {"chapter_id": chapter_id, "chapter_title": chapter["title"], "overall_status": "processing", "subchapters": subs, "progress_summary": _summary(subs)}

    @app.delete("/api/v1/video/subchapters/{subchapter_id}/video")
    async def delete_video(subchapter_id: str, request: Request) -> Response:
      await backend._gate("delete_video", request)
      backend._subchapter(subchapter_id).update(video_status="not_started", video_progress=0, video_file_path=None)
      return Response(status_code=204)

    @app.get("/api/v1/subchapters/{subchapter_id}")
    async def get_subchapter(subchapter_id: str, request: Request) -> dict[str, Any]:
      await backend._gate("get_subchapter", request)
      return backend._subchapter(subchapter_id)

    @app.post("/api/v1/subchapters/{subchapter_id}/complete")
    async def complete(subchapter_id: str, request: Request) -> dict[str, Any]:
      await backend._gate("complete", request)
      body = await request.json()
      backend._subchapter(subchapter_id)["is_completed"] = body["completed"]
      return {"subchapter_id": subchapter_id, "is_completed": body["completed"], "message": "Subchapter marked as complete" if body["completed"] else "Subchapter marked as incomplete"}

    @app.get("/api/v1/subchapters/{subchapter_id}/subtitles")
    async def subtitles(subchapter_id: str, request: Request) -> dict[str, Any]:
      await backend._gate("subtitles", request)
      sub = backend._subchapter(subchapter_id)
      return {"subchapter_id": subchapter_id, "title": sub["title"], "subtitles": "Hello class", "has_subtitles": True, "word_count": 2}

    @app.get("/api/v1/subchapters/{subchapter_id}/rag-content")
    async def rag_content(subchapter_id: str, request: Request) -> dict[str, Any]:
      await backend._gate("rag_content", request)
      sub = backend._subchapter(subchapter_id)
      return {"subchapter_id": subchapter_id, "title": sub["title"], "rag_content": "Newton's laws", "has_rag_content": True, "source_documents": ["notes.pdf"], "relevance_scores": [0.8]}

    @app.post("/api/v1/analyze")
    async def analyze(request: Request) -> dict[str, Any]:
      await backend._gate("analyze", request)
      body = await request.json()
      return {"analysis": f"Drawing of {len(body['image_data'])} bytes"}

    @app.post("/api/v1/video/videos")
    async def blackboard_video(request: Request) -> dict[str, Any]:
      await backend._gate("blackboard_video", request)
      body = await request.json()
      return {"video_path": f"/media/{body['subchapter_id']}/explainer.mp4"}

    return app


def _summary(subchapters: list[dict[str, Any]]) -> dict[str, Any]:
  def count(*statuses: str) -> int:
    return sum(1 for sub in subchapters if (sub.get("video_status") or "").lower() in statuses)

  completed = count("completed")
  overall = round(completed / len(subchapters) * 100, 1) if subchapters else 0
  return {"completed": completed, "generating": count("generating_script", "rendering_video", "running"), "queued": count("queued"), "failed": count("failed"), "overall_progress": overall}


async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
  async with asyncio.timeout(timeout):
    while not predicate():
      await asyncio.sleep(0.005)


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
def backend() -> FakeBackend:
  return FakeBackend()


@pytest.fixture
def transport(backend: FakeBackend) -> FlakyTransport:
  return FlakyTransport(backend.app)


@pytest.fixture
async def api_client(transport: FlakyTransport):
  client = ApiClient(BASE_URL, transport=transport)
  yield client
  await client.aclose()


@pytest.fixture
def seeded(backend: FakeBackend) -> FakeBackend:
  """One syllabus with chapter ch1 holding lessons sub9 and sub10."""
  backend.add_syllabus("syl1")
  backend.add_chapter("ch1", "syl1", completion_percentage=33.4)
  backend.add_subchapter("sub9", "ch1", title="Forces", order_index=0)
  backend.add_subchapter("sub10", "ch1", title="Momentum", order_index=1, video_status="completed", video_progress=100, video_file_path="/videos/sub10.mp4", video_message="Done")
  return backend


@pytest.fixture
def wait_until() -> Callable[..., Any]:
  """Return a coroutine function that yields to the loop until a predicate holds."""
  return _wait_until
