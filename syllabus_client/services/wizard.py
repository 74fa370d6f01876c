"""Two-step syllabus creation: name the syllabus, then upload its reference materials."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from enum import Enum
from pathlib import Path

from syllabus_client.api.client import ApiClient
from syllabus_client.api.models import Document, Syllabus
from syllabus_client.core.exceptions import ApiError, WizardStateError
from syllabus_client.notifications.contracts import Notification, Notifier
from syllabus_client.notifications.service import LoggingNotifier, notify_error, notify_success

logger = logging.getLogger(__name__)

DESCRIPTION_TEMPLATE = (
  "A syllabus for studying {name} materials, where Claude helps create personalized learning resources, "
  "visualize key concepts, and build comprehensive study strategies tailored to your learning needs."
)


class WizardStep(int, Enum):
  NAME = 1
  MATERIALS = 2


class SyllabusCreationWizard:
  def __init__(self, client: ApiClient, *, notifier: Notifier | None = None, on_progress: Callable[[float], None] | None = None) -> None:
    self._client = client
    self._notifier = notifier or LoggingNotifier()
    self._on_progress = on_progress
    self.reset()

  def reset(self) -> None:
    self.step = WizardStep.NAME
    self.syllabus: Syllabus | None = None
    self.files: list[Path] = []
    self.uploading = False
    self.progress = 0.0

  async def create_syllabus(self, name: str) -> Syllabus:
    """Step 1: create the syllabus and move on to the materials step."""
    if self.step is not WizardStep.NAME:
      raise WizardStateError("The syllabus was already created; add materials or reset the wizard.")
    name = name.strip()
    if not name:
      raise ValueError("A syllabus name is required.")

    try:
      syllabus = await self._client.create_syllabus(name, DESCRIPTION_TEMPLATE.format(name=name))
    except ApiError as exc:
      logger.error("Syllabus creation failed: %s", exc)
      notify_error(self._notifier, exc, fallback="Failed to create syllabus. Please try again.")
      raise

    self.syllabus = syllabus
    self.step = WizardStep.MATERIALS
    notify_success(self._notifier, "Syllabus Created", "Now add reference materials to generate your personalized curriculum.")
    return syllabus

  def add_files(self, paths: Iterable[Path | str]) -> None:
    self._require_materials_step()
    self.files.extend(Path(path) for path in paths)

  def remove_file(self, index: int) -> None:
    self._require_materials_step()
    del self.files[index]

  async def finish(self) -> list[Document]:
    """Step 2: upload every selected file in order, then reset.

    A failed upload does not stop the rest; the wizard reports it once and still completes.
    """
    syllabus = self._require_materials_step()
    uploaded: list[Document] = []
    failures = 0
    if self.files:
      self.uploading = True
      try:
        total = len(self.files)
        for index, path in enumerate(self.files):
          try:
            uploaded.append(await self._client.upload_document(syllabus.id, path))
          except ApiError as exc:
            failures += 1
            logger.warning("Upload of %s failed: %s", path.name, exc)
          self._set_progress((index + 1) / total * 100)
      finally:
        self.uploading = False

      if failures:
        self._notifier.notify(Notification("Upload Error", "Some files failed to upload. You can try again later.", variant="destructive"))
      else:
        notify_success(self._notifier, "Upload Complete", "All materials uploaded. You can now generate your syllabus structure!")

    self.reset()
    return uploaded

  def _require_materials_step(self) -> Syllabus:
    if self.step is not WizardStep.MATERIALS or self.syllabus is None:
      raise WizardStateError("Create the syllabus before adding materials.")
    return self.syllabus

  def _set_progress(self, value: float) -> None:
    self.progress = value
    if self._on_progress is not None:
      self._on_progress(value)
