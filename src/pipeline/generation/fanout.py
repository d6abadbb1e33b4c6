import asyncio
import logging
from typing import List, Sequence

from src.models.manager import ModelManager
from src.models.providers.base import ImageResponse
from src.utils.encoding import to_data_uri
from .builders import RequestBuilders, IMAGE_GENERATION_TASK
from .types import NO_IMAGE

logger = logging.getLogger(__name__)


class ImageFanout:
    """Generates one image per prompt concurrently.

    The result always has one entry per prompt, in prompt order. A call that
    raises or comes back without image bytes leaves `NO_IMAGE` at its index
    while the other entries are kept.
    """

    def __init__(self, manager: ModelManager, builders: RequestBuilders = None):
        self.model_manager = manager
        self.builders = builders or RequestBuilders(manager)

    async def generate_images(self, prompts: Sequence[str]) -> List[str]:
        if not prompts:
            return []

        requests = self.builders.image_generation(list(prompts))
        results = await asyncio.gather(
            *(self.model_manager.generate_image(IMAGE_GENERATION_TASK, req) for req in requests),
            return_exceptions=True,
        )

        images = [self._to_reference(index, result) for index, result in enumerate(results)]
        failed = images.count(NO_IMAGE)
        if failed:
            logger.warning(f"Image generation: {failed} of {len(images)} prompts produced no image")
        return images

    @staticmethod
    def _to_reference(index: int, result) -> str:
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result #cancellation and interpreter exits are not per-prompt failures
            logger.warning(f"Image prompt {index} failed: {result}")
            return NO_IMAGE
        if not isinstance(result, ImageResponse) or not result.image_bytes:
            logger.warning(f"Image prompt {index} returned no image bytes")
            return NO_IMAGE
        return to_data_uri(result.image_bytes, result.mime_type)
