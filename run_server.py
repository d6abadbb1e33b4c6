#!/usr/bin/env python3
"""
Development server launcher for the Content Digest API.

Requires GEMINI_API_KEY in the environment or in a `.env` file at the project
root. For production, run the app under a proper ASGI server deployment.
"""

import logging
from pathlib import Path

import uvicorn

project_root = Path(__file__).parent
src_path = project_root / "src"

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logger = logging.getLogger("run_server")
    logger.info("Starting Content Digest API development server")
    logger.info("Server will be available at: http://localhost:8000")
    logger.info("API documentation at: http://localhost:8000/docs")

    uvicorn.run(
        "src.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,     # Auto-reload on code changes (development only)
        reload_dirs=[str(src_path), str(project_root / "prompts")],
        log_level="info"
    )
