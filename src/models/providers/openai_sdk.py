from __future__ import annotations
from typing import Dict, Any, Optional, List
import base64
import time
from os import getenv
from pydantic import ValidationError

from openai import AsyncOpenAI
from openai import APIError, APITimeoutError, APIConnectionError
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential_jitter, retry_if_exception

from .base import (
    ModelProvider, ContentRequest, ImageRequest, ModelResponse, ImageResponse,
    ModelError, ModelRetryable, ModelTimeout, MissingCredential, TransportFailure,
)
from ...utils.encoding import to_base64, to_data_uri

AUDIO_FORMATS = {"audio/wav": "wav", "audio/x-wav": "wav", "audio/mpeg": "mp3", "audio/mp3": "mp3"}

# Define retryable OpenAI exceptions
def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, (APITimeoutError, APIConnectionError)):
        return True
    if isinstance(exc, APIError):
        # Retry on 408, 409, 429, 5xx status codes
        if getattr(exc, 'status_code', None) in {408, 409, 429, 500, 502, 503, 504}:
            return True
    if isinstance(exc, (ModelRetryable, ModelTimeout)):
        return True
    return False

class OpenAIProvider(ModelProvider):
    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None, api_key_env: str = "OPENAI_API_KEY", default_headers: Optional[Dict[str, str]] = None, timeout: float = 60.0, retry_attempts: int = 1, **kwargs):
        api_key = api_key or getenv(api_key_env)
        if not api_key:
            raise MissingCredential(f"OpenAI API key missing: set {api_key_env}")
        self.client = AsyncOpenAI(
            base_url=base_url,
            api_key=api_key,
            default_headers=default_headers or {},
            timeout=timeout,
            max_retries=0, #retries are handled by tenacity below
            **kwargs
        )
        self.base_url = base_url
        self.timeout = timeout
        self.retry_attempts = max(1, int(retry_attempts))

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            wait=wait_exponential_jitter(initial=0.5, max=4),
            stop=stop_after_attempt(self.retry_attempts),
            retry=retry_if_exception(_is_retryable),
        )

    def _format_part(self, part) -> Dict[str, Any]:
        if part.mime_type.startswith("image/"):
            return {
                "type": "image_url",
                "image_url": {"url": to_data_uri(part.data, part.mime_type), "detail": "high"},
            }
        if part.mime_type in AUDIO_FORMATS:
            return {
                "type": "input_audio",
                "input_audio": {"data": to_base64(part.data), "format": AUDIO_FORMATS[part.mime_type]},
            }
        raise ModelError(f"OpenAI provider cannot send inline {part.mime_type} content")

    def _format_messages(self, req: ContentRequest) -> List[Dict[str, Any]]:
        """Format messages with inline parts - converts first user message to content array format"""
        if not req.parts:
            return req.messages

        part_contents = [self._format_part(p) for p in req.parts]

        processed_messages = []
        parts_added = False
        for msg in req.messages:
            if msg.get("role") == "user" and not parts_added:
                processed_msg = msg.copy()
                processed_msg["content"] = part_contents + [{"type": "text", "text": msg.get("content", "")}]
                processed_messages.append(processed_msg)
                parts_added = True
            else:
                processed_messages.append(msg)

        return processed_messages

    async def generate(self, req: ContentRequest) -> ModelResponse:
        return await self._retrying()(self._generate_once, req)

    async def _generate_once(self, req: ContentRequest) -> ModelResponse:
        if req.tools:
            raise ModelError(f"OpenAI provider does not support grounding tools: {req.tools}")

        completion_params = {
            "model": req.model,
            "messages": self._format_messages(req),
            **dict(req.params or {}),
        }
        if req.schema is not None:
            completion_params["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": "response_schema",
                    "schema": req.schema.model_json_schema()
                }
            }

        t0 = time.perf_counter()
        try:
            response = await self.client.chat.completions.create(**completion_params)
        except APITimeoutError as e:
            raise ModelTimeout(f"OpenAI timeout: {e}") from e
        except (APIConnectionError, APIError) as e:
            msg = f"OpenAI API error: {e}"
            if _is_retryable(e):
                raise ModelRetryable(msg) from e
            raise TransportFailure(msg) from e
        except Exception as e:
            raise ModelError(f"OpenAI provider error: {e}") from e
        dt = time.perf_counter() - t0

        try:
            content = response.choices[0].message.content or ""
        except (IndexError, AttributeError):
            content = ""

        meta = {
            "provider": "openai",
            "model": getattr(response, 'model', req.model),
            "latency": dt,
            "base_url": self.base_url or "https://api.openai.com/v1",
            "capability": req.capability.value,
        }
        if getattr(response, 'usage', None):
            meta["usage"] = response.usage.model_dump()
        if getattr(response, 'choices', None):
            meta["finish_reason"] = getattr(response.choices[0], 'finish_reason', None)

        parsed = None
        if req.schema is not None and content:
            try:
                parsed = req.schema.model_validate_json(content)
            except ValidationError as ve:
                meta["validation_error"] = str(ve)

        return ModelResponse(content=content, raw=response, meta=meta, parsed=parsed)

    async def generate_image(self, req: ImageRequest) -> ImageResponse:
        return await self._retrying()(self._generate_image_once, req)

    async def _generate_image_once(self, req: ImageRequest) -> ImageResponse:
        t0 = time.perf_counter()
        try:
            response = await self.client.images.generate(
                model=req.model,
                prompt=req.prompt,
                n=req.number_of_images,
                response_format="b64_json",
            )
        except APITimeoutError as e:
            raise ModelTimeout(f"OpenAI image timeout: {e}") from e
        except (APIConnectionError, APIError) as e:
            msg = f"OpenAI image API error: {e}"
            if _is_retryable(e):
                raise ModelRetryable(msg) from e
            raise TransportFailure(msg) from e
        except Exception as e:
            raise ModelError(f"OpenAI image provider error: {e}") from e

        image_bytes = None
        data = getattr(response, "data", None) or []
        if data and getattr(data[0], "b64_json", None):
            image_bytes = base64.b64decode(data[0].b64_json)

        meta = {"provider": "openai", "model": req.model, "latency": time.perf_counter() - t0}
        # OpenAI returns PNG regardless of the requested encoding
        return ImageResponse(image_bytes=image_bytes, mime_type="image/png", raw=response, meta=meta)

    async def health_check(self) -> bool:
        try:
            await self.client.models.list()
            return True
        except Exception:
            return False

    async def aclose(self):
        await self.client.close()
