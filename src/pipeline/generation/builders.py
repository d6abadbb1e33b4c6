"""
Request builders: one function per remote capability.

Each builder maps a semantic intent ("summarize this text", "describe this
image") onto a provider-neutral request. Builders never call the network; the
model name, prompt card and generation params come from the task entries in
`config.yaml`.
"""
from typing import List

from src.models.manager import ModelManager
from src.models.providers.base import ContentRequest, ImageRequest, InlinePart, GOOGLE_SEARCH
from .types import StructuredSummaryResult, IMAGE_PROMPT_COUNT

TEXT_TASK = "summarize_text"
AUDIO_TASK = "summarize_audio"
IMAGE_SUMMARY_TASK = "describe_image"
WEB_SEARCH_TASK = "web_search"
IMAGE_GENERATION_TASK = "image_generation"


class RequestBuilders:
    def __init__(self, manager: ModelManager):
        self.model_manager = manager

    def text(self, text: str) -> ContentRequest:
        return self.model_manager.build_request(
            TEXT_TASK,
            variables={"text": text, "prompt_count": IMAGE_PROMPT_COUNT},
            schema=StructuredSummaryResult,
        )

    def audio(self, mime_type: str, data: bytes) -> ContentRequest:
        return self.model_manager.build_request(
            AUDIO_TASK,
            variables={"prompt_count": IMAGE_PROMPT_COUNT},
            parts=[InlinePart(mime_type=mime_type, data=data)],
            schema=StructuredSummaryResult,
        )

    def image_summary(self, mime_type: str, data: bytes) -> ContentRequest:
        # bare descriptive string, no schema
        return self.model_manager.build_request(
            IMAGE_SUMMARY_TASK,
            variables={},
            parts=[InlinePart(mime_type=mime_type, data=data)],
        )

    def web_search(self, query: str) -> ContentRequest:
        return self.model_manager.build_request(
            WEB_SEARCH_TASK,
            variables={"query": query},
            tools=[GOOGLE_SEARCH],
        )

    def image_generation(self, prompts: List[str]) -> List[ImageRequest]:
        """One request per prompt, never batched, so each can fail on its own."""
        return [self.model_manager.build_image_request(IMAGE_GENERATION_TASK, prompt) for prompt in prompts]
