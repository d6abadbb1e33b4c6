"""
Pydantic models for API request/response schemas.

They are kept separate from the pipeline types in `src.pipeline.generation.types`
so the HTTP contract can evolve without touching the orchestration layer.
"""
