"""Core domain models and exceptions."""

from rollscan.core.schemas import (
    AggregateResult,
    Chunk,
    ChunkResult,
    ChunkStatus,
    CredentialSlot,
    ExtractionOutcome,
    ExtractionPayload,
    OutcomeKind,
    SourceDocument,
    VoterRecord,
)
from rollscan.core.exceptions import (
    RollscanError,
    ConfigurationError,
    PartitionError,
    StorageError,
)

__all__ = [
    "AggregateResult",
    "Chunk",
    "ChunkResult",
    "ChunkStatus",
    "CredentialSlot",
    "ExtractionOutcome",
    "ExtractionPayload",
    "OutcomeKind",
    "SourceDocument",
    "VoterRecord",
    "RollscanError",
    "ConfigurationError",
    "PartitionError",
    "StorageError",
]
