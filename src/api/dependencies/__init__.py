"""
FastAPI dependencies: shared ModelManager, per-request pipelines and the
per-session output store.
"""
