"""
Disk-backed session store.

A session is a directory under SESSIONS_DIR named by its id. Uploaded images
are written there under generated names; nothing expires them. Concurrent
writers to one session are not coordinated.
"""
import asyncio
import re
import time
import uuid
from pathlib import Path
from typing import List, Optional, Tuple

from models.edit import ImagePart
from models.session import SessionFile, StoredFile

SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
SAFE_EXTENSION_RE = re.compile(r"^\.[a-z0-9]{1,10}$")
DEFAULT_UPLOAD_TYPE = "application/octet-stream"

EXTENSION_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
    ".svg": "image/svg+xml",
}

MIME_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/bmp": ".bmp",
    "image/svg+xml": ".svg",
}


class InvalidSessionId(ValueError):
    """Raised for client-supplied session ids that are not safe directory names"""
    pass


def mime_type_for(name: str) -> str:
    return EXTENSION_MIME_TYPES.get(Path(name).suffix.lower(), "application/octet-stream")


def is_safe_name(name: str) -> bool:
    return bool(name) and name not in (".", "..") and "/" not in name and "\\" not in name and "\x00" not in name


def generate_stored_name(original_name: str, mime_type: str) -> str:
    """`{unix-millis}_{8 hex}{ext}`.

    The extension comes from the original name when it is a recognised image
    extension, else from an image MIME type. Non-image uploads keep their own
    extension (or `.bin`) so they are never listed or served as images;
    untyped blobs default to `.png`.
    """
    ext = Path(original_name or "").suffix.lower()
    mime_type = (mime_type or "").lower()
    if ext not in EXTENSION_MIME_TYPES:
        if mime_type in MIME_EXTENSIONS:
            ext = MIME_EXTENSIONS[mime_type]
        elif not SAFE_EXTENSION_RE.match(ext):
            untyped = mime_type in ("", DEFAULT_UPLOAD_TYPE) or mime_type.startswith("image/")
            ext = ".png" if untyped else ".bin"
    return f"{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}{ext}"


class SessionService:
    def __init__(self, base_dir: str):
        self.base_dir = Path(base_dir)

    def _session_dir(self, session_id: str) -> Path:
        if not SESSION_ID_RE.match(session_id or ""):
            raise InvalidSessionId(f"Invalid session id: {session_id!r}")
        return self.base_dir / session_id

    async def save_files(
        self,
        session_id: Optional[str],
        files: List[ImagePart]
    ) -> Tuple[str, List[StoredFile]]:
        """Write files into a session, creating it when no id is given.

        Returns:
            (session_id, stored_files)
        """
        session_id = session_id or uuid.uuid4().hex
        session_dir = self._session_dir(session_id)

        def write() -> List[StoredFile]:
            session_dir.mkdir(parents=True, exist_ok=True)
            stored = []
            for part in files:
                saved_name = generate_stored_name(part.filename, part.mime_type)
                (session_dir / saved_name).write_bytes(part.data)
                stored.append(StoredFile(
                    originalName=part.filename,
                    savedName=saved_name,
                    mimeType=part.mime_type,
                    size=len(part.data)
                ))
            return stored

        stored_files = await asyncio.to_thread(write)
        print(f"[SESSION] Saved {len(stored_files)} file(s) to session {session_id}")
        return session_id, stored_files

    async def list_files(self, session_id: str) -> Optional[List[SessionFile]]:
        """List stored images of a session, or None if the session does not exist"""
        session_dir = self._session_dir(session_id)

        def scan() -> Optional[List[SessionFile]]:
            if not session_dir.is_dir():
                return None
            entries = []
            for path in sorted(session_dir.iterdir(), key=lambda p: p.name):
                if not path.is_file() or path.suffix.lower() not in EXTENSION_MIME_TYPES:
                    continue
                entries.append(SessionFile(
                    name=path.name,
                    mimeType=mime_type_for(path.name),
                    size=path.stat().st_size,
                    url=f"/api/session/{session_id}/file/{path.name}"
                ))
            return entries

        return await asyncio.to_thread(scan)

    async def get_file_path(self, session_id: str, name: str) -> Optional[Path]:
        """Path of a stored file, or None when the session or file is missing"""
        if not is_safe_name(name):
            return None
        path = self._session_dir(session_id) / name
        exists = await asyncio.to_thread(path.is_file)
        return path if exists else None

    async def delete_file(self, session_id: str, name: str) -> bool:
        """Remove one stored file; False when it was not there"""
        path = await self.get_file_path(session_id, name)
        if path is None:
            return False

        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False

        print(f"[SESSION] Deleted {name} from session {session_id}")
        return True
