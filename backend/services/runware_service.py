import uuid
from typing import List, Optional

from models.provider import InlineImage, ProviderResponse
from services.base_provider import BaseProviderService, ProviderError

RUNWARE_API_BASE = "https://api.runware.ai/v1"

class RunwareService(BaseProviderService):
    """Runware imageInference adapter (results come back as hosted JPEG URLs)"""

    name = "Runware"

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout_ms: int = 60000,
        width: int = 1024,
        height: int = 1024,
        transport=None,
    ):
        super().__init__(api_key, model, timeout=timeout_ms / 1000.0, transport=transport)
        self.width = width
        self.height = height

    def build_payload(
        self,
        prompt: str,
        images: List[InlineImage],
        model: Optional[str] = None,
        results_count: int = 1,
    ) -> list:
        task = {
            "taskType": "imageInference",
            "taskUUID": str(uuid.uuid4()),
            "positivePrompt": prompt,
            "model": model or self.model,
            "width": self.width,
            "height": self.height,
            "numberResults": results_count,
            "outputType": "URL",
            "outputFormat": "JPEG",
        }
        # Absent for text-to-image; an empty list is not equivalent upstream
        if images:
            task["referenceImages"] = [image.to_data_url() for image in images]
        return [task]

    async def generate(
        self,
        prompt: str,
        images: List[InlineImage],
        model: Optional[str] = None,
        results_count: int = 1,
    ) -> ProviderResponse:
        """Submit one inference task; an `errors` array in the reply raises ProviderError"""
        payload = self.build_payload(prompt, images, model, results_count)
        print(f"[RUNWARE] POST model={payload[0]['model']} results={results_count} images={len(images)}")

        headers = {"Authorization": f"Bearer {self.api_key}"}
        response = await self._post_json(RUNWARE_API_BASE, payload, headers)

        errors = response.body.get("errors") if isinstance(response.body, dict) else None
        if errors:
            raise ProviderError(
                f"Runware error: {describe_errors(errors)}",
                status_code=response.status_code,
                body=response.body,
            )
        return response


def describe_errors(errors) -> str:
    """Join the messages of a Runware `errors` array"""
    messages = []
    for error in errors if isinstance(errors, list) else [errors]:
        if isinstance(error, dict):
            messages.append(str(error.get("message") or error.get("code") or error))
        else:
            messages.append(str(error))
    return "; ".join(messages)
