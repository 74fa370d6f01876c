from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from syllabus_client.api.client import ApiClient
from syllabus_client.api.models import ChapterGenerationOptions, VideoGenerationRequest
from syllabus_client.core.exceptions import ApiError, ApiResponseError, ApiTransportError, UploadError
from syllabus_client.jobs.models import VideoStatus


@pytest.mark.anyio
async def test_syllabus_round_trip(api_client: ApiClient, backend) -> None:
  created = await api_client.create_syllabus("Physics", "Mechanics and waves")
  listed = await api_client.list_syllabi()
  fetched = await api_client.get_syllabus(created.id)

  assert [item.id for item in listed] == [created.id]
  assert fetched.name == "Physics"

  await api_client.delete_syllabus(created.id)
  assert backend.syllabi == {}


@pytest.mark.anyio
async def test_generate_chapters_sends_options(api_client: ApiClient, backend) -> None:
  backend.add_syllabus("syl1")
  chapters = await api_client.generate_chapters("syl1", ChapterGenerationOptions(max_items=2, depth_level=2))
  assert [chapter.title for chapter in chapters] == ["Chapter 1", "Chapter 2"]


@pytest.mark.anyio
async def test_chapter_and_subchapter_reads(api_client: ApiClient, seeded) -> None:
  chapters = await api_client.list_syllabus_chapters("syl1")
  chapter = await api_client.get_chapter("ch1")
  subchapter = await api_client.get_subchapter("sub10")

  assert [item.id for item in chapters] == ["ch1"]
  assert chapters[0].subchapters is None
  assert [sub.id for sub in chapter.subchapters] == ["sub9", "sub10"]
  assert subchapter.video_status is VideoStatus.COMPLETED


@pytest.mark.anyio
async def test_open_chapter_passes_flag(api_client: ApiClient, seeded) -> None:
  result = await api_client.open_chapter("ch1", auto_generate_videos=False)
  assert result.video_generation_started is False
  assert seeded.subchapters["sub9"]["video_status"] == "not_started"

  result = await api_client.open_chapter("ch1")
  assert result.video_generation_started is True
  assert result.subchapters_found == 2


@pytest.mark.anyio
async def test_video_endpoints(api_client: ApiClient, seeded) -> None:
  ack = await api_client.generate_subchapter_video("sub9", VideoGenerationRequest(force_regenerate=True))
  batch = await api_client.generate_chapter_videos("ch1")
  detailed = await api_client.get_detailed_video_status("sub9")
  status = await api_client.get_chapter_video_status("ch1")
  single = await api_client.get_subchapter_video_status("sub9")

  assert ack.status is VideoStatus.QUEUED
  assert ack.estimated_duration == "2-3 minutes"
  assert batch.subchapters_to_process == 2
  assert detailed.stages_remaining == ["render"]
  assert {item.subchapter_id for item in status.subchapters} == {"sub9", "sub10"}
  assert single.video_status is VideoStatus.QUEUED

  await api_client.delete_subchapter_video("sub10")
  assert seeded.subchapters["sub10"]["video_file_path"] is None


@pytest.mark.anyio
async def test_lesson_content_endpoints(api_client: ApiClient, seeded) -> None:
  completion = await api_client.mark_subchapter_complete("sub9", True)
  subtitles = await api_client.get_subtitles("sub9")
  rag = await api_client.get_rag_content("sub9")
  hits = await api_client.search_syllabus("syl1", "inertia")

  assert completion.is_completed is True
  assert subtitles.has_subtitles is True
  assert rag.source_documents == ["notes.pdf"]
  assert hits.results[0].text == "About inertia"
  assert api_client.video_url("sub9") == "http://test/api/v1/subchapters/sub9/video"
  assert api_client.audio_url("sub9").endswith("/sub9/audio")


@pytest.mark.anyio
async def test_document_upload_and_delete(api_client: ApiClient, seeded, tmp_path: Path) -> None:
  path = tmp_path / "notes.pdf"
  path.write_bytes(b"%PDF-1.4 test")

  document = await api_client.upload_document("syl1", path)
  listed = await api_client.list_syllabus_documents("syl1")
  fetched = await api_client.get_document(document.id)

  assert document.original_filename == "notes.pdf"
  assert document.file_size == len(b"%PDF-1.4 test")
  assert [item.id for item in listed] == [document.id]
  assert fetched.id == document.id

  await api_client.delete_document(document.id)
  assert seeded.documents == {}


@pytest.mark.anyio
async def test_upload_rejection_raises_upload_error(api_client: ApiClient, seeded, tmp_path: Path) -> None:
  path = tmp_path / "notes.txt"
  path.write_text("notes", encoding="utf-8")
  seeded.fail("upload_document", status=413, detail="File too large")

  with pytest.raises(UploadError) as excinfo:
    await api_client.upload_document("syl1", path)
  assert excinfo.value.status_code == 413
  assert "File too large" in str(excinfo.value)


@pytest.mark.anyio
async def test_blackboard_endpoints(api_client: ApiClient, seeded) -> None:
  analysis = await api_client.analyze_drawing("data:image/png;base64,AAAA")
  video = await api_client.generate_blackboard_video("sub9", "Explain inertia")

  assert analysis.analysis.startswith("Drawing of")
  assert video.location == "/media/sub9/explainer.mp4"


@pytest.mark.anyio
async def test_http_error_maps_to_api_error(api_client: ApiClient, backend) -> None:
  with pytest.raises(ApiError) as excinfo:
    await api_client.get_chapter("missing")
  assert excinfo.value.status_code == 404
  assert excinfo.value.endpoint == "/api/v1/chapters/missing"
  assert "Chapter not found" in excinfo.value.detail


@pytest.mark.anyio
async def test_unreachable_backend_maps_to_transport_error(api_client: ApiClient, transport) -> None:
  transport.offline = True
  with pytest.raises(ApiTransportError) as excinfo:
    await api_client.get_health()
  assert excinfo.value.status_code is None


@pytest.mark.anyio
async def test_unexpected_payload_maps_to_response_error() -> None:
  transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"unexpected": True}))
  async with ApiClient("http://test", transport=transport) as client:
    with pytest.raises(ApiResponseError):
      await client.get_syllabus("syl1")
    with pytest.raises(ApiResponseError):
      await client.get_chapter_video_status("ch1")
    with pytest.raises(ApiResponseError):
      await client.analyze_drawing("img")


@pytest.mark.anyio
async def test_health(api_client: ApiClient) -> None:
  health = await api_client.get_health()
  assert health.status == "healthy"
