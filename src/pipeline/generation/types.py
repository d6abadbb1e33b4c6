from dataclasses import dataclass, field, asdict
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Dict, Any, Optional, Tuple, Union

IMAGE_PROMPT_COUNT = 3

# Sentinels substituted for locally recoverable failures
NO_RESPONSE = "no response"
NO_IMAGE = "no image response"
UNKNOWN_SOURCE = "Unknown source"


class GenerationError(RuntimeError): ...

class UnsupportedInputKind(GenerationError):
    def __init__(self, message: str = "Unsupported input. Please use an image, PDF, or audio file, or paste some text."):
        super().__init__(message)


class Modality(Enum):
    IMAGE = "image"
    PDF = "pdf"
    AUDIO = "audio"
    TEXT = "text"
    WEB_SEARCH = "web_search"


# Input types
@dataclass(frozen=True)
class GenerationRequest:
    modality: Modality
    payload: Union[bytes, str]
    declared_mime_type: str


# Structured output schema shared by the text, PDF and audio pipelines
class StructuredSummaryResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    summary: str = Field(..., description="A concise summary of the provided content.")
    image_prompts: List[str] = Field(
        ...,
        alias="imagePrompts",
        min_length=IMAGE_PROMPT_COUNT,
        max_length=IMAGE_PROMPT_COUNT,
        description="An array of three distinct image generation prompts.",
    )

    @classmethod
    def sentinel(cls) -> "StructuredSummaryResult":
        # model_construct skips the length check; the sentinel carries no prompts
        return cls.model_construct(summary=NO_RESPONSE, image_prompts=[])

    @property
    def is_sentinel(self) -> bool:
        return self.summary == NO_RESPONSE and not self.image_prompts


@dataclass(frozen=True)
class Source:
    title: str
    uri: str

    def display(self) -> str:
        return f"{self.title}: {self.uri}"


@dataclass(frozen=True)
class WebSearchResult:
    raw_text: str
    clean_text: str
    queries: List[str] = field(default_factory=list)
    sources: List[Source] = field(default_factory=list)


# Final output handed to the presentation layer
@dataclass(frozen=True)
class AppOutput:
    summary: Optional[str] = None
    images: Optional[Tuple[str, ...]] = None
    web_search_results: Optional[Tuple[str, ...]] = None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready copy: tuples become fresh lists, absent fields are left out."""
        return {
            key: list(value) if isinstance(value, tuple) else value
            for key, value in asdict(self).items() if value is not None
        }
