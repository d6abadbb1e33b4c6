from __future__ import annotations
from typing import Any, Dict, List, Optional
import time
from os import getenv

import httpx
from google import genai
from google.genai import errors, types
from pydantic import ValidationError
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential_jitter, retry_if_exception

from .base import (
    GOOGLE_SEARCH, ModelProvider, ContentRequest, ImageRequest, ModelResponse, ImageResponse,
    ModelError, ModelRetryable, ModelTimeout, MissingCredential, TransportFailure,
)

RETRYABLE_STATUS = {408, 409, 429, 500, 502, 503, 504}

def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, (httpx.TimeoutException, httpx.ConnectError, httpx.RemoteProtocolError)):
        return True
    if isinstance(exc, errors.APIError):
        return getattr(exc, "code", None) in RETRYABLE_STATUS
    return isinstance(exc, (ModelRetryable, ModelTimeout))


class GeminiProvider(ModelProvider):
    def __init__(self, api_key: Optional[str] = None, api_key_env: str = "GEMINI_API_KEY", timeout: float = 120.0, retry_attempts: int = 1):
        api_key = api_key or getenv(api_key_env)
        if not api_key:
            raise MissingCredential(f"Gemini API key missing: set {api_key_env}")
        self.client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(timeout * 1000)), #milliseconds
        )
        self.timeout = timeout
        self.retry_attempts = max(1, int(retry_attempts))

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            wait=wait_exponential_jitter(initial=0.5, max=4),
            stop=stop_after_attempt(self.retry_attempts),
            retry=retry_if_exception(_is_retryable),
        )

    def _build_contents(self, req: ContentRequest) -> List[types.Content]:
        """Binary parts first, then the rendered user text, as one user turn."""
        parts = [types.Part.from_bytes(data=p.data, mime_type=p.mime_type) for p in req.parts]
        for msg in req.messages:
            if msg.get("role") == "user" and msg.get("content"):
                parts.append(types.Part.from_text(text=msg["content"]))
        if not parts:
            raise ModelError("Gemini request has no content parts")
        return [types.Content(role="user", parts=parts)]

    def _build_config(self, req: ContentRequest) -> types.GenerateContentConfig:
        config_params: Dict[str, Any] = dict(req.params or {})

        system = [m["content"] for m in req.messages if m.get("role") == "system" and m.get("content")]
        if system:
            config_params["system_instruction"] = "\n\n".join(system)

        if req.schema is not None:
            config_params["response_mime_type"] = "application/json"
            config_params["response_json_schema"] = req.schema.model_json_schema()

        tools = []
        for tool in req.tools:
            if tool == GOOGLE_SEARCH:
                tools.append(types.Tool(google_search=types.GoogleSearch()))
            else:
                raise ModelError(f"Unsupported Gemini tool: {tool}")
        if tools:
            config_params["tools"] = tools

        return types.GenerateContentConfig(**config_params)

    async def generate(self, req: ContentRequest) -> ModelResponse:
        return await self._retrying()(self._generate_once, req)

    async def _generate_once(self, req: ContentRequest) -> ModelResponse:
        contents = self._build_contents(req)
        config = self._build_config(req)

        t0 = time.perf_counter()
        try:
            response = await self.client.aio.models.generate_content(
                model=req.model,
                contents=contents,
                config=config,
            )
        except httpx.TimeoutException as e:
            raise ModelTimeout(f"Gemini timeout after {self.timeout}s: {e}") from e
        except httpx.TransportError as e:
            raise ModelRetryable(f"Gemini connection error: {e}") from e
        except errors.APIError as e:
            msg = f"Gemini API error: {e}"
            if _is_retryable(e):
                raise ModelRetryable(msg) from e
            raise TransportFailure(msg) from e
        except Exception as e:
            raise ModelError(f"Gemini provider error: {e}") from e
        dt = time.perf_counter() - t0

        content = response.text or ""

        meta: Dict[str, Any] = {
            "provider": "gemini",
            "model": getattr(response, "model_version", None) or req.model,
            "latency": dt,
            "capability": req.capability.value,
        }
        usage = getattr(response, "usage_metadata", None)
        if usage is not None:
            meta["usage"] = usage.model_dump(exclude_none=True)

        grounding = None
        candidates = getattr(response, "candidates", None) or []
        if candidates:
            meta["finish_reason"] = getattr(candidates[0], "finish_reason", None)
            metadata = getattr(candidates[0], "grounding_metadata", None)
            if metadata is not None:
                grounding = metadata.model_dump(exclude_none=True)

        parsed = None
        if req.schema is not None and content:
            try:
                parsed = req.schema.model_validate_json(content)
            except ValidationError as ve:
                meta["validation_error"] = str(ve)

        return ModelResponse(content=content, raw=response, meta=meta, parsed=parsed, grounding=grounding)

    async def generate_image(self, req: ImageRequest) -> ImageResponse:
        return await self._retrying()(self._generate_image_once, req)

    async def _generate_image_once(self, req: ImageRequest) -> ImageResponse:
        t0 = time.perf_counter()
        try:
            response = await self.client.aio.models.generate_images(
                model=req.model,
                prompt=req.prompt,
                config=types.GenerateImagesConfig(
                    number_of_images=req.number_of_images,
                    output_mime_type=req.output_mime_type,
                    aspect_ratio=req.aspect_ratio,
                ),
            )
        except httpx.TimeoutException as e:
            raise ModelTimeout(f"Imagen timeout after {self.timeout}s: {e}") from e
        except httpx.TransportError as e:
            raise ModelRetryable(f"Imagen connection error: {e}") from e
        except errors.APIError as e:
            msg = f"Imagen API error: {e}"
            if _is_retryable(e):
                raise ModelRetryable(msg) from e
            raise TransportFailure(msg) from e
        except Exception as e:
            raise ModelError(f"Imagen provider error: {e}") from e

        image_bytes = None
        generated = getattr(response, "generated_images", None) or []
        if generated and generated[0].image is not None:
            image_bytes = generated[0].image.image_bytes or None

        meta = {
            "provider": "gemini",
            "model": req.model,
            "latency": time.perf_counter() - t0,
        }
        if generated and getattr(generated[0], "rai_filtered_reason", None):
            meta["filtered_reason"] = generated[0].rai_filtered_reason

        return ImageResponse(image_bytes=image_bytes, mime_type=req.output_mime_type, raw=response, meta=meta)

    async def health_check(self) -> bool:
        try:
            await self.client.aio.models.list()
            return True
        except Exception:
            return False

    async def aclose(self):
        await self.client.aio.aclose()
