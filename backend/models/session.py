from pydantic import BaseModel
from typing import List

class StoredFile(BaseModel):
    originalName: str
    savedName: str
    mimeType: str
    size: int

class UploadResponse(BaseModel):
    sessionId: str
    files: List[StoredFile] = []
    message: str

class SessionFile(BaseModel):
    name: str
    mimeType: str
    size: int
    url: str

class SessionListResponse(BaseModel):
    sessionId: str
    files: List[SessionFile] = []

class DeleteFileResponse(BaseModel):
    ok: bool
    deleted: str
