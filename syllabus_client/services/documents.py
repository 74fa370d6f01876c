from __future__ import annotations

from pathlib import Path

from syllabus_client.api.client import ApiClient
from syllabus_client.api.models import Document
from syllabus_client.notifications.contracts import Notifier
from syllabus_client.notifications.service import notify_success
from syllabus_client.services.base import ViewService


class DocumentService(ViewService):
  """Reference materials of one syllabus."""

  def __init__(self, client: ApiClient, syllabus_id: str, *, notifier: Notifier | None = None) -> None:
    super().__init__(client, notifier=notifier)
    self.syllabus_id = syllabus_id
    self.documents: list[Document] = []

  async def refresh(self) -> list[Document]:
    result = await self._fetch(lambda: self._client.list_syllabus_documents(self.syllabus_id), fallback="Failed to fetch documents")
    if result is not None:
      self.documents = result
    return self.documents

  async def upload(self, path: Path | str) -> Document:
    path = Path(path)
    document = await self._mutate(lambda: self._client.upload_document(self.syllabus_id, path), fallback="Failed to upload document", error_title="Upload Error")
    self.documents = [document, *self.documents]
    notify_success(self._notifier, "Upload Started", f"{path.name} is being processed. This may take a few minutes.")
    return document

  async def delete(self, document_id: str) -> None:
    await self._mutate(lambda: self._client.delete_document(document_id), fallback="Failed to delete document")
    self.documents = [item for item in self.documents if item.id != document_id]
    notify_success(self._notifier, "Success", "Document deleted successfully")
