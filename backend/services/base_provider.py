import httpx
from typing import Any, Dict, List, Optional, Union

from models.provider import InlineImage, ProviderResponse


class ProviderError(Exception):
    """Adapter-level failure of a single upstream call"""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class BaseProviderService:
    """Shared transport for provider adapters.

    Each `generate` call issues exactly one POST and returns the parsed JSON
    body tagged with its status code. A body that is not JSON raises
    ProviderError; transport errors (timeouts, refused connections) propagate
    as httpx exceptions.
    """

    name = "provider"

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        # Injected in tests to replace the network
        self.transport = transport

    async def generate(
        self,
        prompt: str,
        images: List[InlineImage],
        model: Optional[str] = None,
        results_count: int = 1,
    ) -> ProviderResponse:
        raise NotImplementedError

    async def _post_json(
        self,
        url: str,
        payload: Union[Dict[str, Any], List[Any]],
        headers: Optional[Dict[str, str]] = None,
    ) -> ProviderResponse:
        request_headers = {
            "Content-Type": "application/json; charset=utf-8",
            "Accept": "application/json",
        }
        request_headers.update(headers or {})

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(url, json=payload, headers=request_headers)

        try:
            body = response.json()
        except ValueError:
            raise ProviderError(
                f"Bad JSON from {self.name} (HTTP {response.status_code})",
                status_code=response.status_code,
            )

        return ProviderResponse(status_code=response.status_code, body=body)
