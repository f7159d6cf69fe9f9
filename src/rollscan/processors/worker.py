"""
Extraction worker: one attempt of one chunk against one credential.
"""

from typing import Any, Optional

import structlog
from pydantic import ValidationError

from rollscan.core.exceptions import StorageError
from rollscan.core.schemas import (
    AttemptRecord,
    Chunk,
    ChunkResultRecord,
    CredentialSlot,
    ExtractionOutcome,
    ExtractionPayload,
)
from rollscan.processors.base import BaseProcessor
from rollscan.processors.rate_governor import RateGovernor
from rollscan.processors.recognizer import NORMAL_COMPLETION, RecognitionClient
from rollscan.storage.scratch import ScratchStore

logger = structlog.get_logger(__name__)


EXTRACTION_INSTRUCTION = """Extract all voter information from this Hindi electoral roll PDF.
For each voter, extract: name, father/husband name, address, age, gender, and Voter ID.
Return ALL voters found in JSON format."""

VOTER_SCHEMA: dict[str, Any] = ExtractionPayload.model_json_schema()


def result_key(chunk_id: str) -> str:
    return f"result_{chunk_id}"


def error_key(chunk_id: str) -> str:
    return f"error_{chunk_id}"


def attempt_key(chunk_id: str, attempt: int) -> str:
    return f"attempt_{chunk_id}_{attempt}"


class ExtractionWorker(BaseProcessor):
    """
    Submits a chunk to the recognition service and classifies the answer.

    Outcomes:
    - success: normal completion and a payload valid against the schema
    - service_failure: the service declared an abnormal completion status
    - format_failure: the payload is not valid JSON for the schema
    - transport_failure: the call itself (or recording it) failed

    Every attempt is written to the scratch store before returning.
    """

    def __init__(
        self,
        client: RecognitionClient,
        store: ScratchStore,
        governor: RateGovernor,
        instruction: str = EXTRACTION_INSTRUCTION,
        schema: Optional[dict[str, Any]] = None,
    ):
        self.client = client
        self.store = store
        self.governor = governor
        self.instruction = instruction
        self.schema = schema or VOTER_SCHEMA

    async def extract(
        self,
        chunk: Chunk,
        slot: CredentialSlot,
        attempt: int = 1,
    ) -> ExtractionOutcome:
        """
        Run one extraction attempt.

        Args:
            chunk: Chunk to submit
            slot: Credential to use
            attempt: 1-based attempt number within the chunk's retry loop

        Returns:
            The classified outcome
        """
        await self.governor.before_each_attempt()

        if attempt == 1:
            logger.info(
                "Initializing OCR",
                chunk_id=chunk.chunk_id,
                page_label=chunk.page_label,
            )
        else:
            logger.info(
                "Retry attempt with different API key",
                chunk_id=chunk.chunk_id,
                page_label=chunk.page_label,
                attempt=attempt,
                credential=slot.masked,
            )

        outcome = await self._submit(chunk, slot)

        if outcome.ok:
            try:
                self.store.put(
                    result_key(chunk.chunk_id),
                    ChunkResultRecord(
                        chunk_id=chunk.chunk_id,
                        page_range=chunk.page_range,
                        page_label=chunk.page_label,
                        voters=outcome.records,
                        record_count=outcome.record_count,
                        reported_total=outcome.reported_total,
                        slot_index=slot.index,
                        credential=slot.masked,
                        attempt=attempt,
                    ),
                )
            except StorageError as e:
                outcome = ExtractionOutcome.transport_failure(
                    f"Result could not be recorded: {e}"
                )

        return self._record_attempt(chunk, slot, attempt, outcome)

    async def _submit(self, chunk: Chunk, slot: CredentialSlot) -> ExtractionOutcome:
        try:
            response = await self.client.recognize(
                credential=slot.credential,
                instruction=self.instruction,
                payload=chunk.payload,
                schema=self.schema,
                filename=f"{chunk.chunk_id}.pdf",
            )
        except Exception as e:
            logger.error(
                "Processing failed",
                chunk_id=chunk.chunk_id,
                page_label=chunk.page_label,
                credential=slot.masked,
                error=str(e),
            )
            return ExtractionOutcome.transport_failure(
                f"{e.__class__.__name__}: {e}"
            )

        status = response.completion_status
        if status and status != NORMAL_COMPLETION:
            reason = f"API Error - Finish Reason: {status}"
            if response.detail:
                reason = f"{reason} ({response.detail})"
            logger.error(
                reason,
                chunk_id=chunk.chunk_id,
                page_label=chunk.page_label,
                credential=slot.masked,
            )
            return ExtractionOutcome.service_failure(reason)

        try:
            parsed = ExtractionPayload.model_validate_json(response.payload or "{}")
        except ValidationError as e:
            logger.error(
                "Response does not match schema",
                chunk_id=chunk.chunk_id,
                page_label=chunk.page_label,
                credential=slot.masked,
                error_count=e.error_count(),
            )
            return ExtractionOutcome.format_failure(
                f"Schema validation error: {e.error_count()} error(s), "
                f"first: {e.errors()[0]['msg']} at {'.'.join(str(p) for p in e.errors()[0]['loc'])}"
            )

        return ExtractionOutcome.success(
            records=parsed.voters,
            reported_total=parsed.total_voters,
        )

    def _record_attempt(
        self,
        chunk: Chunk,
        slot: CredentialSlot,
        attempt: int,
        outcome: ExtractionOutcome,
    ) -> ExtractionOutcome:
        record = AttemptRecord(
            chunk_id=chunk.chunk_id,
            attempt=attempt,
            slot_index=slot.index,
            credential=slot.masked,
            kind=outcome.kind,
            reason=outcome.reason,
            record_count=outcome.record_count,
        )
        try:
            self.store.put(attempt_key(chunk.chunk_id, attempt), record)
        except StorageError as e:
            logger.error(
                "Attempt could not be recorded",
                chunk_id=chunk.chunk_id,
                attempt=attempt,
                error=str(e),
            )
            return ExtractionOutcome.transport_failure(
                f"Attempt could not be recorded: {e}"
            )

        if outcome.ok:
            logger.info(
                "Extracted voters",
                chunk_id=chunk.chunk_id,
                page_label=chunk.page_label,
                count=outcome.record_count,
            )
        return outcome
