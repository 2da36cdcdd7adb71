from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse, JSONResponse

from api.edit import error_response
from config.settings import Settings, get_settings
from core.body import BodyTooLarge, read_body
from core.multipart import MalformedRequest, decode
from models.session import DeleteFileResponse, SessionListResponse, UploadResponse
from services.edit_service import IMAGE_FIELD
from services.session_service import InvalidSessionId, SessionService, mime_type_for

router = APIRouter(tags=["session"])

def get_session_service(settings: Settings = Depends(get_settings)) -> SessionService:
    return SessionService(settings.SESSIONS_DIR)

@router.post("/upload", response_model=UploadResponse)
async def upload_files(
    request: Request,
    settings: Settings = Depends(get_settings),
    session_service: SessionService = Depends(get_session_service)
):
    """Store uploaded images in a session (created when no sessionId is sent)"""
    try:
        body = await read_body(request, settings.MAX_BODY_BYTES)
        form = decode(request.headers.get("content-type"), body)
    except BodyTooLarge as e:
        return error_response(413, str(e))
    except MalformedRequest as e:
        return error_response(400, str(e))

    files = form.files_named(IMAGE_FIELD)
    if not files:
        return error_response(400, "no files uploaded")

    try:
        session_id, stored = await session_service.save_files(
            (form.fields.get("sessionId") or "").strip() or None,
            files
        )
    except InvalidSessionId as e:
        return error_response(400, str(e))

    return UploadResponse(
        sessionId=session_id,
        files=stored,
        message=f"Uploaded {len(stored)} file(s)"
    )

@router.get("/session/{session_id}", response_model=SessionListResponse)
async def get_session(
    session_id: str,
    session_service: SessionService = Depends(get_session_service)
):
    """List the stored images of a session"""
    try:
        files = await session_service.list_files(session_id)
    except InvalidSessionId:
        files = None

    if files is None:
        return error_response(404, "session not found")

    return SessionListResponse(sessionId=session_id, files=files)

@router.get("/session/{session_id}/file/{name}")
async def get_session_file(
    session_id: str,
    name: str,
    session_service: SessionService = Depends(get_session_service)
):
    """Stream one stored file back with a content type inferred from its extension"""
    try:
        path = await session_service.get_file_path(session_id, name)
    except InvalidSessionId:
        path = None

    if path is None:
        return error_response(404, "file not found")

    return FileResponse(path, media_type=mime_type_for(name))

@router.delete("/session/{session_id}/file/{name}", response_model=DeleteFileResponse)
async def delete_session_file(
    session_id: str,
    name: str,
    session_service: SessionService = Depends(get_session_service)
):
    """Delete one stored file"""
    try:
        deleted = await session_service.delete_file(session_id, name)
    except InvalidSessionId:
        deleted = False

    if not deleted:
        return error_response(404, "file not found")

    return DeleteFileResponse(ok=True, deleted=name)
