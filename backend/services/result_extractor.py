"""
Normalizes provider responses into ImageResult lists.

Each provider has its own extraction rules, selected by the Provider tag.
Extraction never raises: an unexpected shape yields an empty list, which the
edit service treats as "no usable image".
"""
import re
from typing import Any, Callable, Dict, List, Optional

from models.edit import ImageResult
from models.provider import Provider

DATA_URL_RE = re.compile(r"data:(image/(?:png|jpeg|jpg));base64,([A-Za-z0-9+/=]+)")

INLINE_RESULT_FILENAME = "result.png"


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


# Malformed optional values are dropped, not the image that carries them
def _number_or_none(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _int_or_none(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def extract_gemini(raw: Any) -> List[ImageResult]:
    """Inline-data parts from every candidate, plus data URLs embedded in text parts"""
    results = []
    for candidate in _as_list(_as_dict(raw).get("candidates")):
        parts = _as_list(_as_dict(_as_dict(candidate).get("content")).get("parts"))
        for part in parts:
            part = _as_dict(part)
            inline = part.get("inline_data") or part.get("inlineData")
            if isinstance(inline, dict):
                data = _str_or_none(inline.get("data")) or _str_or_none(inline.get("bytesBase64"))
                mime_type = _str_or_none(inline.get("mime_type")) or _str_or_none(inline.get("mimeType"))
                if data:
                    results.append(ImageResult(
                        mimeType=mime_type or "image/png",
                        b64=data,
                        filename=INLINE_RESULT_FILENAME,
                    ))
                continue

            text = part.get("text") or part.get("rawText")
            if isinstance(text, str):
                for match in DATA_URL_RE.finditer(text):
                    results.append(ImageResult(
                        mimeType=match.group(1),
                        b64=match.group(2),
                        filename=INLINE_RESULT_FILENAME,
                    ))
    return results


def extract_openrouter(raw: Any) -> List[ImageResult]:
    """First data URL in the assistant message, at most one result"""
    choices = _as_list(_as_dict(raw).get("choices"))
    if not choices:
        return []
    content = _as_dict(_as_dict(choices[0]).get("message")).get("content")
    if not isinstance(content, str):
        return []
    match = DATA_URL_RE.search(content)
    if not match:
        return []
    return [ImageResult(mimeType=match.group(1), b64=match.group(2), filename=INLINE_RESULT_FILENAME)]


def extract_runware(raw: Any) -> List[ImageResult]:
    """One URL result per `data` entry carrying an imageURL"""
    results = []
    for item in _as_list(_as_dict(raw).get("data")):
        item = _as_dict(item)
        url = item.get("imageURL")
        if not isinstance(url, str) or not url:
            continue
        results.append(ImageResult(
            mimeType="image/jpeg",
            imageURL=url,
            filename=f"result_{len(results) + 1}.jpg",
            cost=_number_or_none(item.get("cost")),
            seed=_int_or_none(item.get("seed")),
            id=_str_or_none(item.get("imageUUID") or item.get("taskUUID")),
        ))
    return results


EXTRACTORS: Dict[Provider, Callable[[Any], List[ImageResult]]] = {
    Provider.GEMINI: extract_gemini,
    Provider.OPENROUTER: extract_openrouter,
    Provider.RUNWARE: extract_runware,
}


def extract(provider: Provider, raw: Any) -> List[ImageResult]:
    """Extract normalized results for `provider`; never raises"""
    try:
        return EXTRACTORS[Provider(provider)](raw)
    except Exception as error:
        print(f"[EDIT] Could not extract {provider} results: {error!r}")
        return []
