"""
Serving — FastAPI application for extraction and search.

Run with ``uvicorn rag_ingest.serving.app:app``.
"""
