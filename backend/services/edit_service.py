import asyncio
import base64
from typing import Any, Dict, List, Optional

from config.settings import Settings
from core.retry import Sleep, should_retry, with_retries
from models.edit import (
    AttemptDescriptor,
    EditRequest,
    ImagePart,
    ImageResult,
    MultipartForm,
    OutcomeKind,
)
from models.provider import InlineImage, Provider, ProviderResponse
from services.base_provider import BaseProviderService
from services.gemini_service import GeminiService
from services.openrouter_service import OpenRouterService
from services.result_extractor import extract
from services.runware_service import RunwareService

IMAGE_FIELD = "images"
TEXT_ONLY_CAPTION = "based on the uploaded image"
MIN_RESULTS = 1
MAX_RESULTS = 4


class EditError(Exception):
    """An edit request that ends in a structured non-200 response"""

    def __init__(self, status_code: int, body: Dict[str, Any]):
        super().__init__(body.get("error", "edit failed"))
        self.status_code = status_code
        self.body = body


class AttemptOutcome:
    """What one step of the plan produced"""

    def __init__(
        self,
        attempt: AttemptDescriptor,
        results: Optional[List[ImageResult]] = None,
        response: Optional[ProviderResponse] = None,
        error: Optional[str] = None,
    ):
        self.attempt = attempt
        self.results = results or []
        self.response = response
        self.error = error

    @property
    def kind(self) -> Optional[OutcomeKind]:
        if self.results:
            return None
        return OutcomeKind.ERROR if self.error is not None else OutcomeKind.EMPTY


def build_adapters(settings: Settings) -> Dict[Provider, BaseProviderService]:
    """Instantiate one adapter per provider that has a credential"""
    adapters: Dict[Provider, BaseProviderService] = {}
    if settings.GEMINI_API_KEY:
        adapters[Provider.GEMINI] = GeminiService(
            settings.GEMINI_API_KEY,
            settings.GEMINI_MODEL,
            timeout_ms=settings.GEMINI_TIMEOUT_MS,
        )
    if settings.OPENROUTER_API_KEY:
        adapters[Provider.OPENROUTER] = OpenRouterService(
            settings.OPENROUTER_API_KEY,
            settings.OPENROUTER_MODEL,
        )
    if settings.RUNWARE_API_KEY:
        adapters[Provider.RUNWARE] = RunwareService(
            settings.RUNWARE_API_KEY,
            settings.RUNWARE_MODEL,
            timeout_ms=settings.RUNWARE_TIMEOUT_MS,
            width=settings.RUNWARE_WIDTH,
            height=settings.RUNWARE_HEIGHT,
        )
    return adapters


def clamp_results_count(value: Optional[str], default: int) -> int:
    try:
        count = int(str(value).strip())
    except (TypeError, ValueError):
        count = default
    return max(MIN_RESULTS, min(MAX_RESULTS, count))


def to_inline_images(images: List[ImagePart]) -> List[InlineImage]:
    """Base64-encode uploaded parts; non-image MIME types are sent as image/png"""
    return [
        InlineImage(
            mime_type=image.mime_type if image.mime_type.startswith("image/") else "image/png",
            data=base64.b64encode(image.data).decode("ascii"),
        )
        for image in images
    ]


class EditService:
    """Validates edit requests and walks the provider attempt plan.

    The first attempt always targets the configured provider. Later attempts
    run only when the previous outcome kind is listed in their `triggers`, so
    "returned nothing" and "raised" can lead to different fallbacks.
    """

    def __init__(
        self,
        settings: Settings,
        adapters: Optional[Dict[Provider, BaseProviderService]] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.settings = settings
        self.adapters = adapters if adapters is not None else build_adapters(settings)
        self.sleep = sleep

    def validate(self, form: MultipartForm) -> EditRequest:
        """Turn a decoded form into an EditRequest, raising EditError(400) on bad input"""
        prompt = (form.fields.get("prompt") or "").strip()
        text_only = (form.fields.get("textOnly") or "0").strip() == "1"
        images = form.files_named(IMAGE_FIELD)

        if not prompt:
            raise EditError(400, {"error": "prompt is required"})
        if not text_only and not images:
            raise EditError(400, {"error": "at least one image is required unless textOnly is enabled"})

        provider = self.settings.active_provider
        if not self.settings.credential_for(provider) or provider not in self.adapters:
            key_name = f"{provider.value.upper()}_API_KEY"
            raise EditError(400, {"error": f"{key_name} is not configured"})

        return EditRequest(
            prompt=prompt,
            text_only=text_only,
            images=[] if text_only else images,
            results_count=clamp_results_count(
                form.fields.get("resultsCount"), self.settings.default_results_count
            ),
        )

    def build_plan(self, request: EditRequest) -> List[AttemptDescriptor]:
        """Ordered attempts for the active provider"""
        settings = self.settings
        provider = settings.active_provider
        retries = settings.RETRY_MAX_RETRIES

        if provider is Provider.OPENROUTER:
            return [AttemptDescriptor(
                provider=Provider.OPENROUTER, model=settings.OPENROUTER_MODEL, max_retries=retries,
            )]

        if provider is Provider.RUNWARE:
            plan = [AttemptDescriptor(
                provider=Provider.RUNWARE, model=settings.RUNWARE_MODEL, max_retries=retries,
            )]
            if request.images:
                plan.append(AttemptDescriptor(
                    provider=Provider.RUNWARE,
                    model=settings.RUNWARE_MODEL,
                    include_images=False,
                    caption=TEXT_ONLY_CAPTION,
                    triggers=[OutcomeKind.ERROR],
                ))
            if Provider.GEMINI in self.adapters:
                plan.append(AttemptDescriptor(
                    provider=Provider.GEMINI,
                    model=settings.GEMINI_MODEL,
                    max_retries=retries,
                    triggers=[OutcomeKind.ERROR],
                ))
            return plan

        plan = [AttemptDescriptor(
            provider=Provider.GEMINI, model=settings.GEMINI_MODEL, max_retries=retries,
        )]
        if settings.gemini_fallback_model:
            plan.append(AttemptDescriptor(
                provider=Provider.GEMINI,
                model=settings.gemini_fallback_model,
                triggers=[OutcomeKind.EMPTY, OutcomeKind.ERROR],
            ))
        return plan

    async def run(self, request: EditRequest) -> List[ImageResult]:
        """Dispatch the request, falling back per plan; raises EditError(502) when exhausted"""
        outcomes: List[AttemptOutcome] = []
        for index, attempt in enumerate(self.build_plan(request)):
            if index > 0:
                previous = outcomes[-1].kind
                if previous not in attempt.triggers:
                    break
                print(f"[EDIT] {outcomes[-1].attempt.label} gave {previous.value}, falling back to {attempt.label}")

            outcome = await self._run_attempt(attempt, request)
            outcomes.append(outcome)
            if outcome.results:
                print(f"[EDIT] {attempt.label} returned {len(outcome.results)} image(s)")
                return outcome.results

        raise EditError(502, self._exhausted_body(outcomes))

    async def _run_attempt(self, attempt: AttemptDescriptor, request: EditRequest) -> AttemptOutcome:
        adapter = self.adapters[attempt.provider]
        images = to_inline_images(request.images) if attempt.include_images else []
        prompt = request.prompt
        if attempt.caption:
            prompt = f"{prompt} ({attempt.caption})"

        async def call() -> ProviderResponse:
            return await adapter.generate(
                prompt, images, model=attempt.model, results_count=request.results_count
            )

        try:
            response = await with_retries(
                call,
                max_retries=attempt.max_retries,
                base_delay=self.settings.RETRY_BASE_DELAY_MS / 1000.0,
                max_delay=self.settings.RETRY_MAX_DELAY_MS / 1000.0,
                sleep=self.sleep,
                label=attempt.label,
            )
        except Exception as error:
            reason = str(error) or error.__class__.__name__
            print(f"[EDIT] {attempt.label} failed: {reason}")
            return AttemptOutcome(attempt, error=reason)

        # Still 429/5xx after the last retry: a failure, not an empty answer
        if should_retry(response):
            reason = f"HTTP {response.status_code}"
            print(f"[EDIT] {attempt.label} failed: {reason}")
            return AttemptOutcome(attempt, response=response, error=reason)

        return AttemptOutcome(
            attempt,
            results=extract(attempt.provider, response.body),
            response=response,
        )

    def _exhausted_body(self, outcomes: List[AttemptOutcome]) -> Dict[str, Any]:
        last = outcomes[-1]
        failures = [o for o in outcomes if o.error is not None]

        if last.response is not None:
            raw = last.response.body
            upstream_error = raw.get("error") if isinstance(raw, dict) else None
            if upstream_error:
                body: Dict[str, Any] = {"error": "Provider returned an error", "upstream": upstream_error, "raw": raw}
            else:
                body = {"error": "Model returned no image", "raw": raw}
        elif len(outcomes) > 1:
            body = {"error": "All providers failed"}
        else:
            body = {"error": f"{last.attempt.label} request failed"}

        if failures:
            body["details"] = "; ".join(
                f"{o.attempt.label}: {o.error if o.error is not None else 'no image returned'}"
                for o in outcomes
            )
        if len(outcomes) > 1:
            body["modelTried"] = [o.attempt.model for o in outcomes]
        return body
