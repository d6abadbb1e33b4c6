from typing import Optional, Union

from .types import GenerationRequest, Modality, UnsupportedInputKind

PDF_MIME_TYPE = "application/pdf"
TEXT_MIME_TYPE = "text/plain"


class ModalityRouter:
    """Maps one user input onto exactly one pipeline."""

    @staticmethod
    def select(mime_type: Optional[str]) -> Modality:
        mime_type = (mime_type or "").strip().lower()
        if mime_type.startswith("image/"):
            return Modality.IMAGE
        if mime_type == PDF_MIME_TYPE:
            return Modality.PDF
        if mime_type.startswith("audio/"):
            return Modality.AUDIO
        raise UnsupportedInputKind(
            f"Unsupported file type: {mime_type or 'unknown'}. Please use an image, PDF, or audio file."
        )

    @classmethod
    def from_upload(cls, mime_type: Optional[str], data: bytes) -> GenerationRequest:
        modality = cls.select(mime_type)
        if not data:
            raise UnsupportedInputKind("The uploaded file is empty. Please use an image, PDF, or audio file.")
        return GenerationRequest(modality=modality, payload=data, declared_mime_type=mime_type.strip().lower())

    @staticmethod
    def from_text(text: Optional[str]) -> GenerationRequest:
        if not text or not text.strip():
            raise UnsupportedInputKind("Please provide a file or paste some text to generate content.")
        return GenerationRequest(modality=Modality.TEXT, payload=text, declared_mime_type=TEXT_MIME_TYPE)

    @staticmethod
    def from_query(query: Optional[str]) -> GenerationRequest:
        if not query or not query.strip():
            raise UnsupportedInputKind("Please enter a search query.")
        return GenerationRequest(modality=Modality.WEB_SEARCH, payload=query.strip(), declared_mime_type=TEXT_MIME_TYPE)

    @classmethod
    def route(cls, mime_type: Optional[str] = None, data: Optional[Union[bytes, str]] = None, text: Optional[str] = None) -> GenerationRequest:
        """A file wins over pasted text when both are supplied."""
        if data:
            if isinstance(data, str):
                data = data.encode("utf-8")
            return cls.from_upload(mime_type, data)
        return cls.from_text(text)
