"""
Ingestion — document loading, chunking, embedding, and upload staging.

This module turns raw files (PDF, spreadsheet, text, HTML) into embedded
:class:`~rag_ingest.models.DocumentChunk` objects ready for the vector store.
"""
