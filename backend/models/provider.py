from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class Provider(str, Enum):
    """Upstream image services the relay can dispatch to"""
    GEMINI = "gemini"
    OPENROUTER = "openrouter"
    RUNWARE = "runware"


class InlineImage(BaseModel):
    """An input image as forwarded upstream (MIME type plus base64 bytes)"""
    mime_type: str
    data: str

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


class ProviderResponse(BaseModel):
    """Parsed JSON body of one upstream call, tagged with its HTTP status"""
    status_code: int
    body: Any = None

    @property
    def error_code(self) -> Optional[int]:
        """Numeric `error.code` embedded in the body, if any"""
        if not isinstance(self.body, dict):
            return None
        error = self.body.get("error")
        if not isinstance(error, dict):
            return None
        try:
            return int(error.get("code"))
        except (TypeError, ValueError):
            return None
