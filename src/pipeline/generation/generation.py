import asyncio
import logging
from typing import List, Optional, Sequence, Union

from src.models.manager import ModelManager
from src.models.providers.base import ModelResponse
from src.models.services.pdf_text import PdfTextExtractor
from src.utils.encoding import from_base64
from . import normalizer
from .assembler import assemble
from .builders import (
    RequestBuilders, TEXT_TASK, AUDIO_TASK, IMAGE_SUMMARY_TASK, WEB_SEARCH_TASK,
)
from .fanout import ImageFanout
from .types import (
    AppOutput, GenerationRequest, Modality, StructuredSummaryResult, UnsupportedInputKind,
    WebSearchResult, NO_RESPONSE,
)

logger = logging.getLogger(__name__)


class GenerationPipeline:
    def __init__(self, manager: ModelManager, pdf_extractor: Optional[PdfTextExtractor] = None):
        self.model_manager = manager
        self.builders = RequestBuilders(manager)
        self.fanout = ImageFanout(manager, self.builders)
        self.pdf_extractor = pdf_extractor or PdfTextExtractor()

    async def process_text(self, text: str) -> StructuredSummaryResult:
        response = await self.model_manager.generate(TEXT_TASK, self.builders.text(text))
        return self._structured(TEXT_TASK, response)

    async def process_pdf_text(self, extracted_text: str) -> StructuredSummaryResult:
        return await self.process_text(extracted_text)

    async def process_audio(self, mime_type: str, data: Union[bytes, str]) -> StructuredSummaryResult:
        request = self.builders.audio(mime_type, self._as_bytes(data))
        response = await self.model_manager.generate(AUDIO_TASK, request)
        return self._structured(AUDIO_TASK, response)

    async def process_image(self, mime_type: str, data: Union[bytes, str]) -> str:
        request = self.builders.image_summary(mime_type, self._as_bytes(data))
        response = await self.model_manager.generate(IMAGE_SUMMARY_TASK, request)
        if not response.content.strip():
            logger.warning(f"{IMAGE_SUMMARY_TASK}: empty provider response")
            return NO_RESPONSE
        return response.content

    async def generate_images(self, prompts: Sequence[str]) -> List[str]:
        return await self.fanout.generate_images(prompts)

    async def perform_web_search(self, query: str) -> WebSearchResult:
        response = await self.model_manager.generate(WEB_SEARCH_TASK, self.builders.web_search(query))
        queries, sources = normalizer.extract_sources(response.grounding)

        clean_text = normalizer.clean(response.content)
        if not clean_text:
            logger.warning(f"{WEB_SEARCH_TASK}: empty provider response")
            clean_text = NO_RESPONSE

        return WebSearchResult(raw_text=response.content, clean_text=clean_text, queries=queries, sources=sources)

    async def run(self, request: GenerationRequest) -> AppOutput:
        """Run the one pipeline selected for `request` and assemble its output."""
        logger.info(f"Running {request.modality.value} pipeline ({request.declared_mime_type})")

        if request.modality is Modality.IMAGE:
            summary = await self.process_image(request.declared_mime_type, request.payload)
            return assemble(summary=summary)

        if request.modality is Modality.WEB_SEARCH:
            result = await self.perform_web_search(request.payload)
            return assemble(summary=result.clean_text, web_search=result)

        if request.modality is Modality.PDF:
            text = await asyncio.to_thread(self.pdf_extractor.extract_text, self._as_bytes(request.payload))
            if not text.strip():
                raise UnsupportedInputKind("The PDF contains no extractable text. Please use an image, PDF, or audio file.")
            structured = await self.process_pdf_text(text)
        elif request.modality is Modality.AUDIO:
            structured = await self.process_audio(request.declared_mime_type, request.payload)
        elif request.modality is Modality.TEXT:
            structured = await self.process_text(request.payload)
        else:
            raise UnsupportedInputKind()

        images = await self.generate_images(structured.image_prompts)
        return assemble(summary=structured.summary, images=images)

    def _structured(self, task: str, response: ModelResponse) -> StructuredSummaryResult:
        """Trust the schema response fully or not at all."""
        if isinstance(response.parsed, StructuredSummaryResult):
            return response.parsed
        if not response.content:
            logger.warning(f"{task}: empty provider response")
        else:
            logger.warning(f"{task}: malformed structured response: {response.meta.get('validation_error', 'unparsed')}")
        return StructuredSummaryResult.sentinel()

    @staticmethod
    def _as_bytes(data: Union[bytes, str]) -> bytes:
        return from_base64(data) if isinstance(data, str) else data
