"""
Shared pytest fixtures and configuration for all tests
"""
import pytest
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

# Add backend to Python path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from config.settings import Settings
from models.provider import ProviderResponse

BOUNDARY = "----relaytestboundary7MA4YWxkTrZu0gW"

PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"
    b"\x08\x06\x00\x00\x00\x1f\x15\xc4\x89\r\n--not-a-boundary\r\n\x00IEND\xaeB`\x82"
)


def encode_multipart(
    fields: Optional[Dict[str, str]] = None,
    files: Optional[List[Tuple[str, str, str, bytes]]] = None,
    boundary: str = BOUNDARY
) -> Tuple[str, bytes]:
    """Build a multipart/form-data body; files are (field, filename, mime, data)"""
    chunks = [b"preamble to be ignored\r\n"]
    for name, value in (fields or {}).items():
        chunks.append(f"--{boundary}\r\n".encode())
        chunks.append(f'Content-Disposition: form-data; name="{name}"\r\n\r\n'.encode())
        chunks.append(value.encode("utf-8") + b"\r\n")
    for field, filename, mime, data in files or []:
        chunks.append(f"--{boundary}\r\n".encode())
        chunks.append(
            f'Content-Disposition: form-data; name="{field}"; filename="{filename}"\r\n'
            f"Content-Type: {mime}\r\n\r\n".encode()
        )
        chunks.append(data + b"\r\n")
    chunks.append(f"--{boundary}--\r\n".encode())
    return f"multipart/form-data; boundary={boundary}", b"".join(chunks)


class FakeAdapter:
    """Provider adapter double that replays scripted outcomes and records calls"""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def generate(self, prompt, images, model=None, results_count=1):
        self.calls.append({
            "prompt": prompt,
            "images": images,
            "model": model,
            "results_count": results_count
        })
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


async def no_sleep(seconds):
    return None


def gemini_image_response(mime_type="image/png", data="aGVsbG8="):
    return ProviderResponse(status_code=200, body={
        "candidates": [{"content": {"parts": [{"inlineData": {"mimeType": mime_type, "data": data}}]}}]
    })


def empty_gemini_response():
    return ProviderResponse(status_code=200, body={"candidates": []})


@pytest.fixture
def make_settings(tmp_path):
    """Build Settings without reading the environment or .env"""
    def _make(**overrides):
        values = {
            "PROVIDER": "gemini",
            "GEMINI_API_KEY": "gemini-test-key",
            "GEMINI_MODEL": "gemini-primary",
            "GEMINI_FALLBACK_MODEL": "",
            "OPENROUTER_API_KEY": "",
            "RUNWARE_API_KEY": "",
            "RETRY_BASE_DELAY_MS": 0,
            "RETRY_MAX_DELAY_MS": 0,
            "SESSIONS_DIR": str(tmp_path / "sessions"),
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)
    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()
