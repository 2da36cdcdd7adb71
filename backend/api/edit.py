from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from config.settings import Settings, get_settings
from core.body import BodyTooLarge, read_body
from core.multipart import MalformedRequest, decode
from models.edit import EditResponse
from services.edit_service import EditError, EditService

router = APIRouter(tags=["edit"])

def get_edit_service(settings: Settings = Depends(get_settings)) -> EditService:
    return EditService(settings)

def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})

@router.post("/edit", response_model=EditResponse, response_model_exclude_none=True)
async def edit_image(
    request: Request,
    settings: Settings = Depends(get_settings),
    edit_service: EditService = Depends(get_edit_service)
):
    """Edit the uploaded images (or generate from text) with the active provider

    Multipart fields: `prompt`, `textOnly` ("0"/"1"), `resultsCount` (1-4) and
    zero or more `images` file parts.
    """
    try:
        body = await read_body(request, settings.MAX_BODY_BYTES)
        form = decode(request.headers.get("content-type"), body)
        edit_request = edit_service.validate(form)
        results = await edit_service.run(edit_request)

    except BodyTooLarge as e:
        return error_response(413, str(e))
    except MalformedRequest as e:
        return error_response(400, str(e))
    except EditError as e:
        return JSONResponse(status_code=e.status_code, content=e.body)

    return EditResponse(results=results)
