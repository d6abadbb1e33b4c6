"""
API models for the generation endpoints.

Binary payloads travel as base64 strings; a `data:<mime>;base64,` prefix as
produced by a browser FileReader is accepted as well.
"""

from pydantic import BaseModel, Field, field_validator
from typing import List, Optional

from .common import APIResponse
from src.pipeline.generation.types import AppOutput, StructuredSummaryResult, WebSearchResult


# API Request Models
class TextRequest(BaseModel):
    text: str = Field(..., description="Pasted text to summarize")

    @field_validator("text")
    @classmethod
    def validate_text(cls, v):
        if not v.strip():
            raise ValueError("Text cannot be empty")
        return v

class MediaRequest(BaseModel):
    mime_type: str = Field(..., description="Declared MIME type, e.g. image/png or audio/mpeg")
    data: str = Field(..., description="Base64 encoded file content")

    @field_validator("data")
    @classmethod
    def validate_data(cls, v):
        if not v.strip():
            raise ValueError("File data cannot be empty")
        return v

class PdfTextRequest(BaseModel):
    extracted_text: str = Field(..., description="Text already extracted from a PDF")

    @field_validator("extracted_text")
    @classmethod
    def validate_extracted_text(cls, v):
        if not v.strip():
            raise ValueError("Extracted text cannot be empty")
        return v

class ImagesRequest(BaseModel):
    prompts: List[str] = Field(default_factory=list, description="Image prompts, one image each")

class WebSearchRequest(BaseModel):
    query: str = Field(..., description="Search query")
    session_id: Optional[str] = Field(None, description="Client session whose output this replaces")

    @field_validator("query")
    @classmethod
    def validate_query(cls, v):
        if not v.strip():
            raise ValueError("Search query cannot be empty")
        return v.strip()

# API Response Models
class StructuredSummaryData(BaseModel):
    summary: str
    image_prompts: List[str]

    @classmethod
    def from_result(cls, result: StructuredSummaryResult) -> "StructuredSummaryData":
        return cls(summary=result.summary, image_prompts=list(result.image_prompts))

class StructuredSummaryResponse(APIResponse):
    data: Optional[StructuredSummaryData] = None

class ImageSummaryData(BaseModel):
    summary: str

class ImageSummaryResponse(APIResponse):
    data: Optional[ImageSummaryData] = None

class ImagesData(BaseModel):
    images: List[str] = Field(..., description="Data URIs or failure placeholders, in prompt order")

class ImagesResponse(APIResponse):
    data: Optional[ImagesData] = None

class APISource(BaseModel):
    title: str
    uri: str

class WebSearchData(BaseModel):
    raw_text: str
    clean_text: str
    queries: List[str]
    sources: List[APISource]

    @classmethod
    def from_result(cls, result: WebSearchResult) -> "WebSearchData":
        return cls(
            raw_text=result.raw_text,
            clean_text=result.clean_text,
            queries=list(result.queries),
            sources=[APISource(title=s.title, uri=s.uri) for s in result.sources],
        )

class WebSearchResponse(APIResponse):
    data: Optional[WebSearchData] = None

class AppOutputData(BaseModel):
    """Assembled output; fields a pipeline does not produce are left out."""
    summary: Optional[str] = None
    images: Optional[List[str]] = None
    web_search_results: Optional[List[str]] = None
    session_id: Optional[str] = None
    is_current: Optional[bool] = Field(None, description="False when a newer action for this session has started")
    processing_time: Optional[float] = None

    @classmethod
    def from_output(cls, output: AppOutput, **extra) -> "AppOutputData":
        return cls(**output.to_dict(), **extra)

class GenerateResponse(APIResponse):
    data: Optional[AppOutputData] = None
