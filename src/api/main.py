"""
FastAPI application entry point.

Builds the ModelManager once at startup and maps the orchestration layer's
error taxonomy onto HTTP responses.
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .models.common import APIError
from .routers import generation, health
from src.models.manager import ModelManager, DEFAULT_CONFIG_PATH
from src.models.providers.base import ModelError, ModelTimeout, TransportFailure
from src.models.services.pdf_text import PdfTextExtractor, DocumentExtractionError
from src.pipeline.generation.types import UnsupportedInputKind

logger = logging.getLogger(__name__)

# Global application state
app_state = {}

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup builds the ModelManager and every configured provider, so a missing
    API key (MissingCredential) stops the server before it accepts requests.
    """
    load_dotenv()
    config_path = Path(os.getenv("APP_CONFIG_PATH", str(DEFAULT_CONFIG_PATH)))

    model_manager = ModelManager(config_path=config_path)
    model_manager.validate_credentials()
    app_state["model_manager"] = model_manager
    app_state["pdf_extractor"] = PdfTextExtractor()
    logger.info(f"ModelManager initialized from {config_path}")

    yield

    logger.info("Shutting down generation API server")
    await model_manager.aclose()
    app_state.clear()


def _error(status_code: int, error: str, error_code: str) -> JSONResponse:
    body = APIError(error=error, error_code=error_code)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", exclude_none=True))


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(UnsupportedInputKind)
    async def unsupported_input_handler(request: Request, exc: UnsupportedInputKind):
        return _error(415, str(exc), "unsupported_input")

    @app.exception_handler(DocumentExtractionError)
    async def extraction_handler(request: Request, exc: DocumentExtractionError):
        return _error(422, str(exc), "document_extraction_failed")

    @app.exception_handler(ModelError)
    async def model_error_handler(request: Request, exc: ModelError):
        logger.error(f"{request.url.path}: {exc}")
        if isinstance(exc, ModelTimeout):
            return _error(504, "The generation service timed out. Please try again.", "provider_timeout")
        if isinstance(exc, TransportFailure):
            return _error(502, "The generation service could not be reached. Please try again.", "provider_unavailable")
        return _error(502, f"Content generation failed: {exc}", "provider_error")


def create_app() -> FastAPI:
    """
    Factory function to create and configure the FastAPI application.
    """

    app = FastAPI(
        title="Content Digest API",
        description="Summaries, image prompts, generated images and web-search answers from uploaded content",
        version="1.0.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:5173"],  # Common frontend ports
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(health.router, prefix="/health", tags=["health"])
    app.include_router(generation.router, prefix="/api/v1/generate", tags=["generation"])

    @app.get("/")
    async def root():
        return {
            "name": "Content Digest API",
            "version": "1.0.0",
            "status": "operational",
            "endpoints": {
                "health": "/health",
                "generate": "/api/v1/generate",
                "docs": "/docs",
                "redoc": "/redoc"
            }
        }

    return app

# Create the FastAPI app instance
app = create_app()
