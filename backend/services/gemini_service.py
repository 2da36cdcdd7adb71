from typing import List, Optional
from urllib.parse import quote

from models.provider import InlineImage, ProviderResponse
from services.base_provider import BaseProviderService

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"

class GeminiService(BaseProviderService):
    """Gemini generateContent adapter.

    The prompt and every input image go into a single user turn: one text part
    followed by one inline-data part per image.
    """

    name = "Gemini"

    def __init__(self, api_key: str, model: str, timeout_ms: int = 15000, transport=None):
        super().__init__(api_key, model, timeout=timeout_ms / 1000.0, transport=transport)

    def build_payload(self, prompt: str, images: List[InlineImage]) -> dict:
        parts = [{"text": prompt}]
        for image in images:
            parts.append({
                "inline_data": {
                    "mime_type": image.mime_type,
                    "data": image.data
                }
            })
        return {"contents": [{"role": "user", "parts": parts}]}

    def endpoint(self, model: str) -> str:
        return (
            f"{GEMINI_API_BASE}/models/{quote(model, safe='')}:generateContent"
            f"?key={quote(self.api_key, safe='')}"
        )

    async def generate(
        self,
        prompt: str,
        images: List[InlineImage],
        model: Optional[str] = None,
        results_count: int = 1,
    ) -> ProviderResponse:
        """Call generateContent once; raises on timeout or a non-JSON body"""
        model = model or self.model
        print(f"[GEMINI] POST model={model} images={len(images)} timeout={self.timeout}s")
        return await self._post_json(self.endpoint(model), self.build_payload(prompt, images))
