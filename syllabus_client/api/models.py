from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from syllabus_client.jobs.models import VideoStatus, clamp_progress, normalize_video_status

SyllabusProcessingStatus = Literal["created", "processing", "ready", "error"]
DocumentStatus = Literal["uploaded", "extracting", "chunking", "processing", "completed", "failed"]

# Fields that only ever live on the client; snapshot merges and refetches never overwrite them.
CLIENT_OWNED_SUBCHAPTER_FIELDS = ("canvas_data", "blackboard_analysis", "blackboard_video_url", "estimated_duration")


class ApiModel(BaseModel):
  """Base model tolerating fields added by newer backend versions."""

  model_config = ConfigDict(extra="ignore")


class Syllabus(ApiModel):
  """A collection of uploaded course materials."""

  id: str
  name: str
  description: str | None = None
  processing_status: SyllabusProcessingStatus = "created"
  document_count: int = 0
  chapter_count: int = 0
  chunk_count: int = 0
  toc_item_count: int = 0
  last_processed_at: str | None = None
  created_at: str | None = None


class Subchapter(ApiModel):
  """A lesson inside a chapter, with its video job state and client-side study material."""

  id: str
  chapter_id: str
  title: str
  order_index: int = 0
  text_description: str | None = None
  rag_content: str | None = None
  subtitles: str | None = None
  video_file_path: str | None = None
  audio_file_path: str | None = None
  video_status: VideoStatus = VideoStatus.NOT_STARTED
  video_progress: float = 0.0
  video_message: str | None = None
  is_completed: bool = False
  created_at: str | None = None
  canvas_data: str | None = Field(default=None, description="Serialized blackboard drawing kept on the client.")
  blackboard_analysis: str | None = Field(default=None, description="Last drawing analysis kept on the client.")
  blackboard_video_url: str | None = Field(default=None, description="Last blackboard explainer video kept on the client.")
  estimated_duration: str | None = Field(default=None, description="Estimate returned when video generation was accepted.")

  @field_validator("video_status", mode="before")
  @classmethod
  def _normalize_status(cls, value: Any) -> VideoStatus:
    return normalize_video_status(value)

  @field_validator("video_progress", mode="before")
  @classmethod
  def _clamp_progress(cls, value: Any) -> float:
    return clamp_progress(value)

  def client_owned(self) -> dict[str, Any]:
    """Return client-owned fields that are set."""
    return {name: getattr(self, name) for name in CLIENT_OWNED_SUBCHAPTER_FIELDS if getattr(self, name) is not None}


class Chapter(ApiModel):
  id: str
  syllabus_id: str
  title: str
  order_index: int = 0
  is_generated: bool = False
  created_at: str | None = None
  completion_percentage: float = 0.0
  subchapters: list[Subchapter] | None = None


class Document(ApiModel):
  id: str
  filename: str
  original_filename: str
  file_size: int = 0
  status: DocumentStatus = "uploaded"
  chunk_count: int = 0
  processing_stage: str | None = None
  progress_percentage: float | None = None
  estimated_completion: str | None = None
  processing_completed_at: str | None = None
  created_at: str | None = None


class DetailedVideoStatus(ApiModel):
  subchapter_id: str
  subchapter_title: str
  video_status: VideoStatus
  video_progress: float = 0.0
  video_message: str | None = None
  video_file_path: str | None = None
  current_stage: str = ""
  stage_progress: float = 0.0
  stages_completed: list[str] = Field(default_factory=list)
  stages_remaining: list[str] = Field(default_factory=list)
  error_details: str | None = None
  started_at: str | None = None
  estimated_completion: str | None = None
  total_duration_estimate: float | None = None

  @field_validator("video_status", mode="before")
  @classmethod
  def _normalize_status(cls, value: Any) -> VideoStatus:
    return normalize_video_status(value)


class VideoGenerationRequest(BaseModel):
  """Optional parameters for a video generation job."""

  subchapter_id: str | None = None
  model: str | None = None
  voice: str | None = None
  force_regenerate: bool | None = None
  model_config = ConfigDict(extra="forbid")

  def payload(self) -> dict[str, Any]:
    return self.model_dump(exclude_none=True)


class VideoGenerationAck(ApiModel):
  """Acknowledgement that a subchapter video job was accepted (not its result)."""

  message: str = ""
  subchapter_id: str
  estimated_duration: str | None = None
  status: VideoStatus = VideoStatus.QUEUED

  @field_validator("status", mode="before")
  @classmethod
  def _normalize_status(cls, value: Any) -> VideoStatus:
    return normalize_video_status(value)


class ChapterVideosAck(ApiModel):
  message: str = ""
  chapter_id: str
  subchapters_to_process: int = 0
  estimated_total_time: str | None = None


class ChapterOpenResult(ApiModel):
  message: str = ""
  chapter_id: str
  subchapters_found: int = 0
  video_generation_started: bool = False
  estimated_completion: str | None = None


class CompletionResult(ApiModel):
  subchapter_id: str
  is_completed: bool
  message: str = ""


class ChapterGenerationOptions(BaseModel):
  """Knobs for deriving the chapter structure from uploaded materials."""

  max_items: int | None = Field(default=None, ge=1)
  focus_area: str | None = None
  depth_level: int | None = Field(default=None, ge=1)
  model_config = ConfigDict(extra="forbid")

  def payload(self) -> dict[str, Any]:
    return self.model_dump(exclude_none=True)


class SubtitlesResponse(ApiModel):
  subchapter_id: str
  title: str = ""
  subtitles: str = ""
  has_subtitles: bool = False
  word_count: int = 0
  estimated_reading_time: str | None = None


class RagContentResponse(ApiModel):
  subchapter_id: str
  title: str = ""
  rag_content: str = ""
  has_rag_content: bool = False
  source_documents: list[str] = Field(default_factory=list)
  relevance_scores: list[float] = Field(default_factory=list)
  retrieval_method: str | None = None


class SearchHit(ApiModel):
  id: str
  text: str
  source_document: str | None = None
  relevance_score: float = 0.0
  page_reference: str | None = None
  section: str | None = None


class SearchResponse(ApiModel):
  query: str
  results: list[SearchHit] = Field(default_factory=list)
  total_results: int = 0
  search_time_ms: float = 0.0


class HealthStatus(ApiModel):
  """Backend health report; component fields vary between deployments."""

  status: str
  service: str | None = None
  version: str | None = None
  database: str | None = None
  chromadb: str | None = None
  claude_api: str | None = None
  elevenlabs_api: str | None = None
  embedding_model: str | None = None
  bm25_search: str | None = None
  reranker: str | None = None
  rag_pipeline: str | None = None
  video_generation: str | None = None
  timestamp: str | None = None


class BlackboardAnalysis(ApiModel):
  analysis: str = Field(min_length=1)


class BlackboardVideo(ApiModel):
  video_url: str | None = None
  video_path: str | None = None

  @property
  def location(self) -> str | None:
    return self.video_url or self.video_path
