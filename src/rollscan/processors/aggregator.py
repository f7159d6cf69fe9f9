"""
Aggregator: merges per-chunk durable records into the consolidated result.
"""

from typing import Any, Optional

import structlog
from pydantic import ValidationError

from rollscan.core.exceptions import StorageError
from rollscan.core.schemas import (
    AggregateResult,
    ChunkResult,
    ChunkResultRecord,
    ChunkStatus,
    ChunkSummary,
    SourceDocument,
    VoterRecord,
)
from rollscan.processors.base import BaseProcessor
from rollscan.storage.scratch import ScratchStore

logger = structlog.get_logger(__name__)


class Aggregator(BaseProcessor):
    """
    Reads each chunk's record in ``sequence_index`` order and concatenates
    the successful ones.

    A missing or unreadable record downgrades that chunk to a zero-record
    error entry; the aggregate is always produced.
    """

    def __init__(self, store: ScratchStore):
        self.store = store

    def aggregate(
        self,
        chunk_results: list[ChunkResult],
        document: SourceDocument,
        configuration: Optional[dict[str, Any]] = None,
    ) -> AggregateResult:
        logger.info("Merging all chunk results", chunk_count=len(chunk_results))

        records: list[VoterRecord] = []
        summary: list[ChunkSummary] = []

        for result in sorted(chunk_results, key=lambda r: r.sequence_index):
            chunk_records = self._read_records(result)
            if chunk_records is None:
                summary.append(
                    ChunkSummary(
                        chunk_id=result.chunk_id,
                        page_label=result.page_label,
                        record_count=0,
                        status=ChunkStatus.ERROR,
                    )
                )
                continue

            records.extend(chunk_records)
            summary.append(
                ChunkSummary(
                    chunk_id=result.chunk_id,
                    page_label=result.page_label,
                    record_count=len(chunk_records),
                    status=ChunkStatus.SUCCESS,
                )
            )

        return AggregateResult(
            source_document=document.path,
            configuration=configuration or {},
            per_chunk_summary=summary,
            total_records=len(records),
            records=records,
        )

    def _read_records(self, result: ChunkResult) -> Optional[list[VoterRecord]]:
        """Records of a successful chunk, or None if it counts as an error."""
        if result.status != ChunkStatus.SUCCESS or not result.records_ref:
            return None

        try:
            data = self.store.get(result.records_ref)
            record = ChunkResultRecord.model_validate(data)
        except (StorageError, ValidationError) as e:
            logger.warning(
                "Failed to read chunk",
                chunk_id=result.chunk_id,
                records_ref=result.records_ref,
                error=str(e),
            )
            return None

        return record.voters
