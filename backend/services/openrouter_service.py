from typing import List, Optional

from models.provider import InlineImage, ProviderResponse
from services.base_provider import BaseProviderService

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"

SYSTEM_PROMPT = (
    "You are an image generation and editing assistant. "
    "If the user provides input images, edit them as requested. "
    "If not, generate a brand new image. "
    "Always include the result as a single data URL (data:image/png;base64,...) "
    "in your final message and nothing else."
)

class OpenRouterService(BaseProviderService):
    """OpenAI-style chat completion against OpenRouter, images sent as data URLs"""

    name = "OpenRouter"

    def __init__(self, api_key: str, model: str, transport=None):
        # OpenRouter calls run without a client-side timeout
        super().__init__(api_key, model, timeout=None, transport=transport)

    def build_payload(self, prompt: str, images: List[InlineImage], model: Optional[str] = None) -> dict:
        user_content = [{"type": "text", "text": prompt}]
        for image in images:
            user_content.append({
                "type": "image_url",
                "image_url": {"url": image.to_data_url()}
            })

        return {
            "model": model or self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_content}
            ]
        }

    async def generate(
        self,
        prompt: str,
        images: List[InlineImage],
        model: Optional[str] = None,
        results_count: int = 1,
    ) -> ProviderResponse:
        """Send one chat completion request to OpenRouter"""
        payload = self.build_payload(prompt, images, model)
        print(f"[OPENROUTER] POST model={payload['model']} images={len(images)}")

        headers = {"Authorization": f"Bearer {self.api_key}"}
        return await self._post_json(OPENROUTER_URL, payload, headers)
