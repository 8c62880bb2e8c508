"""
Pipeline — per-request orchestration of load, chunk, embed and persist.

Public API
----------
- :class:`ExtractionOrchestrator` — ``extract()`` and ``search()``.
- :class:`PipelineOutcome` — result value threaded through the steps.
"""

from rag_ingest.pipeline.orchestrator import ExtractionOrchestrator, PipelineOutcome

__all__ = ["ExtractionOrchestrator", "PipelineOutcome"]
