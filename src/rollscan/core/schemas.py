"""
Core domain schemas for rollscan.
Every component of the extraction pipeline exchanges these models.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Timezone-aware current time, used for every recorded timestamp."""
    return datetime.now(timezone.utc)


def mask_credential(credential: str) -> str:
    """Shorten a credential so it can be logged or recorded safely."""
    if len(credential) <= 8:
        return "****"
    return f"{credential[:3]}...{credential[-4:]}"


class ChunkStatus(str, Enum):
    """Final status of a chunk once its retry loop terminates."""

    SUCCESS = "success"
    ERROR = "error"


class OutcomeKind(str, Enum):
    """Classification of a single extraction attempt."""

    SUCCESS = "success"
    SERVICE_FAILURE = "service_failure"
    FORMAT_FAILURE = "format_failure"
    TRANSPORT_FAILURE = "transport_failure"


class SourceDocument(BaseModel):
    """
    A decoded source PDF.

    The raw bytes are kept for partitioning but never serialized.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Path the document was loaded from")
    name: str = Field(..., description="Base name used to derive chunk ids")
    total_pages: int = Field(..., ge=1, description="Number of pages")
    data: bytes = Field(default=b"", exclude=True, repr=False)


class Chunk(BaseModel):
    """
    A contiguous page range of the source document.

    Created by the partitioner and never modified afterwards.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(..., description="Stable, collision-resistant id")
    page_range: tuple[int, int] = Field(
        ..., description="1-indexed inclusive (start, end)"
    )
    sequence_index: int = Field(..., ge=0, description="Aggregation order")
    page_label: str = Field(..., description="Zero-padded range for reporting")
    payload: bytes = Field(default=b"", exclude=True, repr=False)

    @property
    def start_page(self) -> int:
        return self.page_range[0]

    @property
    def end_page(self) -> int:
        return self.page_range[1]

    @property
    def page_count(self) -> int:
        return self.end_page - self.start_page + 1


class CredentialSlot(BaseModel):
    """One entry of the credential pool."""

    model_config = ConfigDict(frozen=True)

    index: int
    credential: str = Field(..., repr=False)

    @property
    def masked(self) -> str:
        return mask_credential(self.credential)


class VoterRecord(BaseModel):
    """A single voter entry as returned by the recognition service."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., description="Voter name (निर्वाचक का नाम)")
    father_husband_name: str = Field(
        ..., description="Father or husband name (पिता/पति का नाम)"
    )
    address: str = Field(..., description="House number (मकान संख्या)")
    age: str = Field(..., description="Age (उम्र)")
    gender: str = Field(..., description="Gender (लिंग)")
    voter_id: str = Field(..., description="Voter ID")


class ExtractionPayload(BaseModel):
    """Structured answer the recognition service must produce for a chunk."""

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "description": "Extracted voter information from Hindi electoral roll"
        },
    )

    total_voters: int = Field(..., description="Total number of voters extracted")
    voters: list[VoterRecord] = Field(..., description="Every voter on the pages")


class ExtractionOutcome(BaseModel):
    """
    Result of one extraction attempt.

    A closed variant: ``kind`` selects which fields are meaningful.
    Successes carry records, failures carry a reason.
    """

    kind: OutcomeKind
    records: list[VoterRecord] = Field(default_factory=list)
    reported_total: int = 0
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.SUCCESS

    @property
    def record_count(self) -> int:
        return len(self.records)

    @classmethod
    def success(
        cls, records: list[VoterRecord], reported_total: int = 0
    ) -> "ExtractionOutcome":
        return cls(
            kind=OutcomeKind.SUCCESS,
            records=records,
            reported_total=reported_total,
        )

    @classmethod
    def service_failure(cls, reason: str) -> "ExtractionOutcome":
        return cls(kind=OutcomeKind.SERVICE_FAILURE, reason=reason)

    @classmethod
    def format_failure(cls, reason: str) -> "ExtractionOutcome":
        return cls(kind=OutcomeKind.FORMAT_FAILURE, reason=reason)

    @classmethod
    def transport_failure(cls, reason: str) -> "ExtractionOutcome":
        return cls(kind=OutcomeKind.TRANSPORT_FAILURE, reason=reason)


class AttemptRecord(BaseModel):
    """Durable trace of one attempt, written whatever the outcome."""

    chunk_id: str
    attempt: int = Field(..., description="1-based attempt number")
    slot_index: int
    credential: str = Field(..., description="Masked credential")
    kind: OutcomeKind
    reason: Optional[str] = None
    record_count: int = 0
    timestamp: datetime = Field(default_factory=utc_now)


class ChunkResultRecord(BaseModel):
    """Durable record of a successfully extracted chunk."""

    chunk_id: str
    page_range: tuple[int, int]
    page_label: str
    voters: list[VoterRecord] = Field(default_factory=list)
    record_count: int = 0
    reported_total: int = 0
    slot_index: int
    credential: str = Field(..., description="Masked credential")
    attempt: int
    timestamp: datetime = Field(default_factory=utc_now)


class AttemptError(BaseModel):
    """One failed attempt inside an exhaustion record."""

    attempt: int
    slot_index: int
    credential: str
    kind: OutcomeKind
    reason: Optional[str] = None


class ChunkErrorRecord(BaseModel):
    """Durable record of a chunk whose every credential failed."""

    chunk_id: str
    page_range: tuple[int, int]
    page_label: str
    total_attempts: int
    errors: list[AttemptError] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utc_now)


class ChunkResult(BaseModel):
    """Final, in-memory result of a chunk's retry loop."""

    chunk_id: str
    sequence_index: int
    page_label: str
    status: ChunkStatus
    record_count: int = 0
    records_ref: Optional[str] = Field(
        None, description="Scratch key of the durable record"
    )


class ChunkSummary(BaseModel):
    """Per-chunk line of the consolidated result."""

    chunk_id: str
    page_label: str
    record_count: int
    status: ChunkStatus


class AggregateResult(BaseModel):
    """
    Consolidated output of a run.

    ``total_records`` always equals ``len(records)``.
    """

    source_document: str
    timestamp: datetime = Field(default_factory=utc_now)
    configuration: dict[str, Any] = Field(default_factory=dict)
    per_chunk_summary: list[ChunkSummary] = Field(default_factory=list)
    total_records: int = 0
    records: list[VoterRecord] = Field(default_factory=list)

    @property
    def failed_chunks(self) -> list[ChunkSummary]:
        return [s for s in self.per_chunk_summary if s.status == ChunkStatus.ERROR]
