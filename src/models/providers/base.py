from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Optional, List, Type
from pydantic import BaseModel

#unified model errors
class ModelError(RuntimeError): ...
class TransportFailure(ModelError): ... #network/http failure talking to a provider
class ModelTimeout(TransportFailure): ...
class ModelRetryable(TransportFailure): ...
class MissingCredential(ModelError): ...

GOOGLE_SEARCH = "google_search"


class Capability(Enum):
    PLAIN = "plain"
    STRUCTURED = "structured" #response constrained to a schema
    GROUNDED = "grounded" #live web search attached


@dataclass(frozen=True)
class InlinePart:
    mime_type: str
    data: bytes


@dataclass(frozen=True)
class ContentRequest:
    model: str
    messages: List[Dict[str, Any]] #system/user messages rendered from a prompt card
    parts: List[InlinePart] = field(default_factory=list) #binary parts placed before the user text
    params: Dict[str, Any] | None = None
    schema: Optional[Type[BaseModel]] = None #pydantic model -> json schema
    tools: List[str] = field(default_factory=list)

    def __post_init__(self):
        # grounding and structured output are never combined in one call
        if self.schema is not None and self.tools:
            raise ValueError("A request may carry a response schema or grounding tools, not both")

    @property
    def capability(self) -> Capability:
        if self.schema is not None:
            return Capability.STRUCTURED
        if self.tools:
            return Capability.GROUNDED
        return Capability.PLAIN


@dataclass(frozen=True)
class ImageRequest:
    model: str
    prompt: str
    number_of_images: int = 1
    output_mime_type: str = "image/jpeg"
    aspect_ratio: str = "16:9"


@dataclass(frozen=True)
class ModelResponse:
    content: str
    raw: Any #provider-native response obj/dict
    meta: Dict[str, Any] #timings, token counts, model, etc.
    parsed: Optional[BaseModel] = None #populated if schema was provided and validated
    grounding: Optional[Dict[str, Any]] = None #search queries + citation chunks, grounded calls only


@dataclass(frozen=True)
class ImageResponse:
    image_bytes: Optional[bytes]
    mime_type: str
    raw: Any
    meta: Dict[str, Any]


class ModelProvider(ABC):
    @abstractmethod
    async def generate(self, req: ContentRequest) -> ModelResponse:
        raise NotImplementedError

    @abstractmethod
    async def generate_image(self, req: ImageRequest) -> ImageResponse:
        raise NotImplementedError

    @abstractmethod
    async def health_check(self) -> bool:
        raise NotImplementedError

    async def aclose(self):
        """Release network resources. Providers without any keep this no-op."""
        return None
