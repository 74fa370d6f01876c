"""Async HTTP client for the learning platform backend."""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import Any, TypeVar

import httpx
import msgspec
from pydantic import BaseModel, TypeAdapter, ValidationError

from syllabus_client.api.models import (
  BlackboardAnalysis,
  BlackboardVideo,
  Chapter,
  ChapterGenerationOptions,
  ChapterOpenResult,
  ChapterVideosAck,
  CompletionResult,
  DetailedVideoStatus,
  Document,
  HealthStatus,
  RagContentResponse,
  SearchResponse,
  Subchapter,
  SubtitlesResponse,
  Syllabus,
  VideoGenerationAck,
  VideoGenerationRequest,
)
from syllabus_client.api.wire import ChapterVideoStatus, decode_chapter_status
from syllabus_client.config import Settings
from syllabus_client.core.exceptions import ApiError, ApiResponseError, ApiTransportError, UploadError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_SYLLABUS_LIST = TypeAdapter(list[Syllabus])
_CHAPTER_LIST = TypeAdapter(list[Chapter])
_DOCUMENT_LIST = TypeAdapter(list[Document])


class ApiClient:
  """Thin wrapper over ``httpx.AsyncClient`` returning typed models."""

  def __init__(self, base_url: str, *, timeout: float = 30.0, upload_timeout: float = 300.0, transport: httpx.AsyncBaseTransport | None = None, headers: dict[str, str] | None = None) -> None:
    self.base_url = base_url.rstrip("/")
    self._upload_timeout = upload_timeout
    # Proxy settings from the environment are ignored.
    self._http = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport, headers=headers, trust_env=False)

  @classmethod
  def from_settings(cls, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None) -> ApiClient:
    return cls(settings.api_base_url, timeout=settings.request_timeout_seconds, upload_timeout=settings.upload_timeout_seconds, transport=transport)

  async def __aenter__(self) -> ApiClient:
    return self

  async def __aexit__(self, *exc_info: object) -> None:
    await self.aclose()

  async def aclose(self) -> None:
    await self._http.aclose()

  async def _send(self, method: str, endpoint: str, *, error_cls: type[ApiError] = ApiError, timeout: float | None = None, **kwargs: Any) -> httpx.Response:
    """Send a request and translate transport and status failures into client errors."""
    request_kwargs = dict(kwargs)
    if timeout is not None:
      request_kwargs["timeout"] = timeout
    try:
      response = await self._http.request(method, endpoint, **request_kwargs)
    except httpx.TimeoutException as exc:
      raise ApiTransportError(f"Request to {endpoint} timed out: {exc}", endpoint=endpoint) from exc
    except httpx.RequestError as exc:
      raise ApiTransportError(f"Request to {endpoint} failed: {exc}", endpoint=endpoint) from exc

    if response.is_error:
      logger.debug("%s %s returned %s", method, endpoint, response.status_code)
      raise error_cls(response.status_code, response.text, endpoint=endpoint)
    return response

  async def _json(self, method: str, endpoint: str, **kwargs: Any) -> Any:
    response = await self._send(method, endpoint, **kwargs)
    # DELETE endpoints answer with an empty body.
    if response.status_code == 204 or not response.content:
      return None
    try:
      return response.json()
    except ValueError as exc:
      raise ApiResponseError(response.status_code, f"Response from {endpoint} is not JSON.", endpoint=endpoint) from exc

  async def _model(self, model: type[ModelT], method: str, endpoint: str, **kwargs: Any) -> ModelT:
    payload = await self._json(method, endpoint, **kwargs)
    try:
      return model.model_validate(payload)
    except ValidationError as exc:
      raise ApiResponseError(None, f"Unexpected {model.__name__} payload from {endpoint}: {exc.error_count()} validation error(s).", endpoint=endpoint) from exc

  async def _list(self, adapter: TypeAdapter[Any], endpoint: str, **kwargs: Any) -> Any:
    payload = await self._json("GET", endpoint, **kwargs)
    try:
      return adapter.validate_python(payload or [])
    except ValidationError as exc:
      raise ApiResponseError(None, f"Unexpected list payload from {endpoint}: {exc.error_count()} validation error(s).", endpoint=endpoint) from exc

  # Syllabus management

  async def create_syllabus(self, name: str, description: str) -> Syllabus:
    return await self._model(Syllabus, "POST", "/api/v1/syllabi/", json={"name": name, "description": description})

  async def list_syllabi(self, skip: int = 0, limit: int = 20) -> list[Syllabus]:
    return await self._list(_SYLLABUS_LIST, "/api/v1/syllabi/", params={"skip": skip, "limit": limit})

  async def get_syllabus(self, syllabus_id: str) -> Syllabus:
    return await self._model(Syllabus, "GET", f"/api/v1/syllabi/{syllabus_id}")

  async def delete_syllabus(self, syllabus_id: str) -> None:
    await self._json("DELETE", f"/api/v1/syllabi/{syllabus_id}")

  async def generate_chapters(self, syllabus_id: str, options: ChapterGenerationOptions | None = None) -> list[Chapter]:
    payload = (options or ChapterGenerationOptions()).payload()
    response = await self._json("POST", f"/api/v1/syllabi/{syllabus_id}/generate-chapters", json=payload)
    try:
      return _CHAPTER_LIST.validate_python(response or [])
    except ValidationError as exc:
      raise ApiResponseError(None, f"Unexpected chapter list from generate-chapters: {exc.error_count()} validation error(s).") from exc

  # Chapters

  async def list_syllabus_chapters(self, syllabus_id: str) -> list[Chapter]:
    return await self._list(_CHAPTER_LIST, f"/api/v1/syllabi/{syllabus_id}/chapters")

  async def get_chapter(self, chapter_id: str) -> Chapter:
    return await self._model(Chapter, "GET", f"/api/v1/chapters/{chapter_id}")

  async def open_chapter(self, chapter_id: str, auto_generate_videos: bool = True) -> ChapterOpenResult:
    params = {"auto_generate_videos": "true" if auto_generate_videos else "false"}
    return await self._model(ChapterOpenResult, "POST", f"/api/v1/chapters/{chapter_id}/open", params=params)

  # Documents

  async def upload_document(self, syllabus_id: str, path: Path | str) -> Document:
    """Upload one file as multipart form data."""
    file_path = Path(path)
    content_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
    endpoint = f"/api/v1/syllabi/{syllabus_id}/documents"
    with file_path.open("rb") as handle:
      files = {"file": (file_path.name, handle, content_type)}
      response = await self._send("POST", endpoint, files=files, error_cls=UploadError, timeout=self._upload_timeout)
    try:
      return Document.model_validate(response.json())
    except (ValueError, ValidationError) as exc:
      raise ApiResponseError(response.status_code, f"Unexpected upload response for {file_path.name}.", endpoint=endpoint) from exc

  async def list_syllabus_documents(self, syllabus_id: str, skip: int = 0, limit: int = 10) -> list[Document]:
    return await self._list(_DOCUMENT_LIST, f"/api/v1/syllabi/{syllabus_id}/documents", params={"skip": skip, "limit": limit})

  async def get_document(self, document_id: str) -> Document:
    return await self._model(Document, "GET", f"/api/v1/documents/{document_id}")

  async def delete_document(self, document_id: str) -> None:
    await self._json("DELETE", f"/api/v1/documents/{document_id}")

  # Video generation

  async def generate_subchapter_video(self, subchapter_id: str, request: VideoGenerationRequest | None = None) -> VideoGenerationAck:
    payload = (request or VideoGenerationRequest()).payload()
    return await self._model(VideoGenerationAck, "POST", f"/api/v1/video/subchapters/{subchapter_id}/generate-video", json=payload)

  async def generate_chapter_videos(self, chapter_id: str, request: VideoGenerationRequest | None = None) -> ChapterVideosAck:
    payload = (request or VideoGenerationRequest()).payload()
    return await self._model(ChapterVideosAck, "POST", f"/api/v1/video/chapters/{chapter_id}/generate-videos", json=payload)

  async def get_subchapter_video_status(self, subchapter_id: str) -> Subchapter:
    return await self._model(Subchapter, "GET", f"/api/v1/video/subchapters/{subchapter_id}/video-status")

  async def get_detailed_video_status(self, subchapter_id: str) -> DetailedVideoStatus:
    return await self._model(DetailedVideoStatus, "GET", f"/api/v1/video/subchapters/{subchapter_id}/detailed-status")

  async def get_chapter_video_status(self, chapter_id: str, *, timeout: float | None = None) -> ChapterVideoStatus:
    """Fetch the aggregate status snapshot for a chapter."""
    endpoint = f"/api/v1/video/chapters/{chapter_id}/video-status"
    response = await self._send("GET", endpoint, timeout=timeout)
    try:
      return decode_chapter_status(response.content)
    except msgspec.DecodeError as exc:
      raise ApiResponseError(response.status_code, f"Unexpected chapter status payload: {exc}", endpoint=endpoint) from exc

  async def delete_subchapter_video(self, subchapter_id: str) -> None:
    await self._json("DELETE", f"/api/v1/video/subchapters/{subchapter_id}/video")

  # Subchapters

  async def get_subchapter(self, subchapter_id: str) -> Subchapter:
    return await self._model(Subchapter, "GET", f"/api/v1/subchapters/{subchapter_id}")

  async def mark_subchapter_complete(self, subchapter_id: str, completed: bool) -> CompletionResult:
    return await self._model(CompletionResult, "POST", f"/api/v1/subchapters/{subchapter_id}/complete", json={"completed": completed})

  def video_url(self, subchapter_id: str) -> str:
    return f"{self.base_url}/api/v1/subchapters/{subchapter_id}/video"

  def audio_url(self, subchapter_id: str) -> str:
    return f"{self.base_url}/api/v1/subchapters/{subchapter_id}/audio"

  async def get_subtitles(self, subchapter_id: str) -> SubtitlesResponse:
    return await self._model(SubtitlesResponse, "GET", f"/api/v1/subchapters/{subchapter_id}/subtitles")

  async def get_rag_content(self, subchapter_id: str) -> RagContentResponse:
    return await self._model(RagContentResponse, "GET", f"/api/v1/subchapters/{subchapter_id}/rag-content")

  # Blackboard

  async def analyze_drawing(self, image_data: str) -> BlackboardAnalysis:
    return await self._model(BlackboardAnalysis, "POST", "/api/v1/analyze", json={"image_data": image_data})

  async def generate_blackboard_video(self, subchapter_id: str, prompt: str, *, duration_limit: int = 400) -> BlackboardVideo:
    payload = {"prompt": prompt, "subchapter_id": subchapter_id, "duration_limit": duration_limit}
    return await self._model(BlackboardVideo, "POST", "/api/v1/video/videos", json=payload, timeout=self._upload_timeout)

  # Misc

  async def get_health(self) -> HealthStatus:
    return await self._model(HealthStatus, "GET", "/health")

  async def search_syllabus(self, syllabus_id: str, query: str, max_results: int = 10) -> SearchResponse:
    return await self._model(SearchResponse, "POST", f"/api/v1/syllabi/{syllabus_id}/search", json={"query": query, "max_results": max_results})
