import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Union

import pytest
from pydantic import ValidationError

from src.models.manager import ModelManager, DEFAULT_CONFIG_PATH
from src.models.providers.base import (
    ModelProvider, ContentRequest, ImageRequest, ModelResponse, ImageResponse,
)
from src.pipeline.generation.generation import GenerationPipeline


class FakeProvider(ModelProvider):
    """In-memory provider that records requests and replays scripted results.

    `responses` items are either exceptions (raised), plain strings (content),
    or `(content, grounding)` tuples. Schema parsing mirrors the real providers.
    """

    def __init__(self):
        self.responses: List[Union[str, tuple, Exception]] = []
        self.requests: List[ContentRequest] = []
        self.image_requests: List[ImageRequest] = []
        self.image_handler: Optional[Callable[[ImageRequest], Any]] = None

    async def generate(self, req: ContentRequest) -> ModelResponse:
        self.requests.append(req)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        content, grounding = item if isinstance(item, tuple) else (item, None)

        meta: Dict[str, Any] = {"provider": "fake", "capability": req.capability.value}
        parsed = None
        if req.schema is not None and content:
            try:
                parsed = req.schema.model_validate_json(content)
            except ValidationError as ve:
                meta["validation_error"] = str(ve)
        return ModelResponse(content=content, raw=None, meta=meta, parsed=parsed, grounding=grounding)

    async def generate_image(self, req: ImageRequest) -> ImageResponse:
        self.image_requests.append(req)
        if self.image_handler is not None:
            return await self.image_handler(req)
        return ImageResponse(image_bytes=req.prompt.encode(), mime_type=req.output_mime_type, raw=None, meta={})

    async def health_check(self) -> bool:
        return True


def structured(summary: Any = "A summary.", prompts: Any = ("one", "two", "three")) -> str:
    payload = {}
    if summary is not None:
        payload["summary"] = summary
    if prompts is not None:
        payload["imagePrompts"] = list(prompts)
    return json.dumps(payload)


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def manager(fake_provider):
    """ModelManager over the shipped config and prompt cards, backed by the fake provider."""
    return ModelManager(DEFAULT_CONFIG_PATH, providers={"gemini": fake_provider})


@pytest.fixture
def pipeline(manager):
    return GenerationPipeline(manager)


@pytest.fixture
def run():
    return asyncio.run
