"""Extraction pipeline components."""

from rollscan.processors.aggregator import Aggregator
from rollscan.processors.base import BaseProcessor, DocumentToChunksProcessor
from rollscan.processors.credentials import CredentialPool
from rollscan.processors.failover import ChunkState, FailoverController
from rollscan.processors.partitioner import PdfPartitioner, plan_page_ranges
from rollscan.processors.rate_governor import RateGovernor
from rollscan.processors.recognizer import (
    OpenAIRecognizer,
    RecognitionClient,
    RecognitionResponse,
)
from rollscan.processors.scheduler import ChunkScheduler
from rollscan.processors.worker import ExtractionWorker

# Lazy import: the pipeline pulls in config.settings


def __getattr__(name: str):
    """Lazy import for the orchestrator."""
    if name in ("ExtractionPipeline", "default_output_path"):
        from rollscan.processors.pipeline import ExtractionPipeline, default_output_path
        return locals()[name]
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "Aggregator",
    "BaseProcessor",
    "DocumentToChunksProcessor",
    "CredentialPool",
    "ChunkState",
    "FailoverController",
    "PdfPartitioner",
    "plan_page_ranges",
    "RateGovernor",
    "OpenAIRecognizer",
    "RecognitionClient",
    "RecognitionResponse",
    "ChunkScheduler",
    "ExtractionWorker",
    "ExtractionPipeline",
    "default_output_path",
]
