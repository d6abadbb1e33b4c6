"""
FastAPI application layer for the content generation pipeline.

Exposes the orchestration operations over HTTP for a browser front end: upload
a file or paste text, get back a summary, generated images and, for search
queries, the cited sources.
"""
