"""Prompt and widget configuration for the voice tutor."""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from syllabus_client.config import DEFAULT_TUTOR_AGENT_ID

_PROMPT_DIR = Path(__file__).parent / "prompts"
_PLACEHOLDER_RE = re.compile(r"\{\{\s*([a-zA-Z0-9_]+)\s*\}\}")

TUTOR_WIDGET_TAG = "elevenlabs-convai"
TUTOR_SCRIPT_URL = "https://unpkg.com/@elevenlabs/convai-widget-embed"


@lru_cache(maxsize=4)
def _load_prompt(name: str) -> str:
  try:
    return (_PROMPT_DIR / name).read_text(encoding="utf-8").strip()
  except (FileNotFoundError, PermissionError, UnicodeDecodeError) as exc:
    raise RuntimeError(f"Failed to load prompt '{name}': {exc}") from exc


def build_tutor_prompt(topic: str, rag_context: str = "") -> str:
  """Render the tutor system prompt for ``topic``, appending retrieved context when present."""
  prompt = _PLACEHOLDER_RE.sub(lambda match: topic if match.group(1) == "topic" else "", _load_prompt("tutor_system.md"))
  if rag_context:
    prompt = f"{prompt}\n\n\n# Available RAG Context:\n{rag_context}"
  return prompt


def build_first_message(topic: str) -> str:
  return f"Hi — I'm Aula, your virtual tutor — to get started, what do you already think you know about {topic}?"


@dataclass(frozen=True)
class TutorWidgetConfig:
  agent_id: str
  prompt: str
  first_message: str

  @classmethod
  def for_topic(cls, topic: str, *, rag_context: str = "", agent_id: str | None = None) -> TutorWidgetConfig:
    if not topic.strip():
      raise ValueError("A topic is required to configure the tutor.")
    return cls(agent_id=agent_id or DEFAULT_TUTOR_AGENT_ID, prompt=build_tutor_prompt(topic, rag_context), first_message=build_first_message(topic))

  def attributes(self) -> dict[str, str]:
    """Attributes to set on the embedded widget element."""
    return {"agent-id": self.agent_id, "override-prompt": self.prompt, "override-first-message": self.first_message}
