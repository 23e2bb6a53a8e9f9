"""Reference document models."""

from pathlib import Path

from pydantic import BaseModel

from orchestrator.constants import DOCUMENT_TYPE_MAP


class DocumentReference(BaseModel):
    """Canonical reference to a stored document."""

    id: int
    name: str
    type: str = "file"


class UploadFile(BaseModel):
    """File selected by the user for upload."""

    name: str
    content: bytes
    description: str | None = None

    @property
    def type_tag(self) -> str:
        """Document type derived from the file extension."""
        suffix = Path(self.name).suffix.lstrip(".").lower() or "file"
        return DOCUMENT_TYPE_MAP.get(suffix, suffix)


class PendingUpload(BaseModel):
    """Upload started from the hero/shortcut flow, not yet resolved to an id."""

    name: str
    uploading: bool = True
