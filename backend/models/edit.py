from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional, List, Dict

from models.provider import Provider


class ImagePart(BaseModel):
    """A file part decoded from a multipart body"""
    field_name: str
    filename: str
    mime_type: str = "application/octet-stream"
    data: bytes = b""


class MultipartForm(BaseModel):
    """Text fields and file parts of one multipart/form-data body"""
    fields: Dict[str, str] = Field(default_factory=dict)
    files: List[ImagePart] = Field(default_factory=list)

    def files_named(self, field_name: str) -> List[ImagePart]:
        return [f for f in self.files if f.field_name == field_name]


class EditRequest(BaseModel):
    """A validated /api/edit request"""
    prompt: str
    text_only: bool = False
    images: List[ImagePart] = Field(default_factory=list)
    results_count: int = Field(1, ge=1, le=4)


class ImageResult(BaseModel):
    """One normalized image returned to the browser.

    Exactly one of `b64` (inline bytes) or `imageURL` (remote file) is set;
    which one depends on the provider.
    """
    mimeType: str
    filename: str
    b64: Optional[str] = None
    imageURL: Optional[str] = None

    # Runware metadata
    cost: Optional[float] = None
    seed: Optional[int] = None
    id: Optional[str] = None

    @property
    def payload(self) -> str:
        return self.b64 if self.b64 is not None else (self.imageURL or "")


class EditResponse(BaseModel):
    results: List[ImageResult]


class OutcomeKind(str, Enum):
    """Why an attempt produced no images"""
    EMPTY = "empty"  # valid response, nothing extractable
    ERROR = "error"  # adapter raised after its retries


class AttemptDescriptor(BaseModel):
    """One step of the dispatch plan for an edit request.

    `triggers` lists the outcome kinds of the previous step that allow this
    step to run; the first step of a plan always runs.
    """
    provider: Provider
    model: str
    include_images: bool = True
    max_retries: int = 0
    caption: Optional[str] = None
    triggers: List[OutcomeKind] = Field(default_factory=list)

    @property
    def label(self) -> str:
        suffix = "" if self.include_images else ", text-only"
        return f"{self.provider.value} ({self.model}{suffix})"
