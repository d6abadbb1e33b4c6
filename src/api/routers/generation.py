"""
Generation pipeline API endpoints.

`/` and `/search` run a whole user action (router -> pipeline -> assembled
output) and record the result against the caller's session. The remaining
endpoints expose the individual pipeline operations one-to-one.
"""
import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from ..models.generation import (
    TextRequest, MediaRequest, PdfTextRequest, ImagesRequest, WebSearchRequest,
    StructuredSummaryData, StructuredSummaryResponse, ImageSummaryData, ImageSummaryResponse,
    ImagesData, ImagesResponse, WebSearchData, WebSearchResponse, AppOutputData, GenerateResponse,
)
from ..dependencies.session import get_output_store, get_pipeline, OutputStore
from src.pipeline.generation.generation import GenerationPipeline
from src.pipeline.generation.router import ModalityRouter
from src.pipeline.generation.types import GenerationRequest, Modality, UnsupportedInputKind
from src.utils.encoding import from_base64

logger = logging.getLogger(__name__)

router = APIRouter()


def _decode(data: str) -> bytes:
    try:
        return from_base64(data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _require_modality(mime_type: str, expected: Modality):
    if ModalityRouter.select(mime_type) is not expected:
        raise UnsupportedInputKind(f"Expected {expected.value} content, got {mime_type}.")


async def _run_action(build_request, session_id: Optional[str], pipeline: GenerationPipeline, store: OutputStore) -> GenerateResponse:
    start_time = time.time()
    # the previous output is gone as soon as a new action starts, even if this one fails
    session_id, action_id = store.begin_action(session_id)
    request: GenerationRequest = build_request()
    output = await pipeline.run(request)
    is_current = store.complete(session_id, action_id, output)
    return GenerateResponse(
        success=True,
        message=f"{request.modality.value} content processed successfully",
        data=AppOutputData.from_output(
            output,
            session_id=session_id,
            is_current=is_current,
            processing_time=time.time() - start_time,
        ),
    )


@router.post("/", response_model=GenerateResponse, response_model_exclude_none=True)
async def generate(
    file: Optional[UploadFile] = File(None),
    text: Optional[str] = Form(None),
    session_id: Optional[str] = Form(None),
    pipeline: GenerationPipeline = Depends(get_pipeline),
    store: OutputStore = Depends(get_output_store),
):
    """Run one user action from an uploaded file or pasted text; a file wins when both are sent."""
    data = await file.read() if file is not None else None
    mime_type = file.content_type if file is not None else None
    return await _run_action(lambda: ModalityRouter.route(mime_type=mime_type, data=data, text=text), session_id, pipeline, store)


@router.post("/search", response_model=GenerateResponse, response_model_exclude_none=True)
async def generate_search(
    request: WebSearchRequest,
    pipeline: GenerationPipeline = Depends(get_pipeline),
    store: OutputStore = Depends(get_output_store),
):
    return await _run_action(lambda: ModalityRouter.from_query(request.query), request.session_id, pipeline, store)


@router.get("/sessions/{session_id}", response_model=GenerateResponse, response_model_exclude_none=True)
async def get_latest_output(session_id: str, store: OutputStore = Depends(get_output_store)):
    output = store.get_output(session_id)
    if output is None:
        raise HTTPException(status_code=404, detail="No output for this session")
    return GenerateResponse(success=True, data=AppOutputData.from_output(output, session_id=session_id))


@router.delete("/sessions/{session_id}")
async def reset_session(session_id: str, store: OutputStore = Depends(get_output_store)):
    removed = store.reset(session_id)
    return {"success": removed, "message": "Session reset" if removed else "Session not found"}


@router.post("/text", response_model=StructuredSummaryResponse)
async def process_text(request: TextRequest, pipeline: GenerationPipeline = Depends(get_pipeline)):
    result = await pipeline.process_text(request.text)
    return StructuredSummaryResponse(success=True, data=StructuredSummaryData.from_result(result))


@router.post("/pdf-text", response_model=StructuredSummaryResponse)
async def process_pdf_text(request: PdfTextRequest, pipeline: GenerationPipeline = Depends(get_pipeline)):
    result = await pipeline.process_pdf_text(request.extracted_text)
    return StructuredSummaryResponse(success=True, data=StructuredSummaryData.from_result(result))


@router.post("/audio", response_model=StructuredSummaryResponse)
async def process_audio(request: MediaRequest, pipeline: GenerationPipeline = Depends(get_pipeline)):
    _require_modality(request.mime_type, Modality.AUDIO)
    result = await pipeline.process_audio(request.mime_type, _decode(request.data))
    return StructuredSummaryResponse(success=True, data=StructuredSummaryData.from_result(result))


@router.post("/image", response_model=ImageSummaryResponse)
async def process_image(request: MediaRequest, pipeline: GenerationPipeline = Depends(get_pipeline)):
    _require_modality(request.mime_type, Modality.IMAGE)
    summary = await pipeline.process_image(request.mime_type, _decode(request.data))
    return ImageSummaryResponse(success=True, data=ImageSummaryData(summary=summary))


@router.post("/images", response_model=ImagesResponse)
async def generate_images(request: ImagesRequest, pipeline: GenerationPipeline = Depends(get_pipeline)):
    images = await pipeline.generate_images(request.prompts)
    return ImagesResponse(success=True, data=ImagesData(images=images))


@router.post("/web-search", response_model=WebSearchResponse)
async def perform_web_search(request: WebSearchRequest, pipeline: GenerationPipeline = Depends(get_pipeline)):
    result = await pipeline.perform_web_search(request.query)
    return WebSearchResponse(success=True, data=WebSearchData.from_result(result))
