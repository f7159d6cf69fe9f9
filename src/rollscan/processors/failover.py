"""
Retry/failover controller: drives one chunk through the credential pool.

    PENDING -> ATTEMPTING(i) -> SUCCEEDED
                             -> ATTEMPTING(next(i))   (after a cooldown)
                             -> EXHAUSTED             (after K failures)
"""

import asyncio
from enum import Enum
from typing import Optional

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

from rollscan.core.exceptions import StorageError
from rollscan.core.schemas import (
    AttemptError,
    Chunk,
    ChunkErrorRecord,
    ChunkResult,
    ChunkStatus,
    CredentialSlot,
    ExtractionOutcome,
)
from rollscan.processors.credentials import CredentialPool
from rollscan.processors.rate_governor import Sleeper
from rollscan.processors.worker import ExtractionWorker, error_key, result_key

logger = structlog.get_logger(__name__)


class ChunkState(str, Enum):
    """States of a chunk's retry loop."""

    PENDING = "pending"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


def _is_failure(outcome: ExtractionOutcome) -> bool:
    return not outcome.ok


def _last_outcome(retry_state: RetryCallState) -> ExtractionOutcome:
    return retry_state.outcome.result()


class FailoverController:
    """
    Bounded retry loop over the credential pool.

    Each credential is tried at most once per chunk, so a chunk makes at most
    ``K`` attempts. A cooldown is awaited before every retry. Failures never
    escape as exceptions: exhaustion becomes a durable error record and a
    zero-record error result.
    """

    def __init__(
        self,
        worker: ExtractionWorker,
        pool: CredentialPool,
        cooldown_ms: int = 0,
        sleep: Optional[Sleeper] = None,
    ):
        self.worker = worker
        self.pool = pool
        self.cooldown_ms = max(0, cooldown_ms)
        self._sleep = sleep or asyncio.sleep

    def _retrying(self, chunk: Chunk) -> AsyncRetrying:
        def _before_sleep(retry_state: RetryCallState) -> None:
            logger.warning(
                "Taking a break before retrying with a different API key",
                chunk_id=chunk.chunk_id,
                failed_attempt=retry_state.attempt_number,
                cooldown_seconds=self.cooldown_ms / 1000,
            )

        return AsyncRetrying(
            stop=stop_after_attempt(self.pool.size),
            wait=wait_fixed(self.cooldown_ms / 1000),
            retry=retry_if_result(_is_failure),
            retry_error_callback=_last_outcome,
            before_sleep=_before_sleep,
            sleep=self._sleep,
        )

    async def run(self, chunk: Chunk, start_index: int) -> ChunkResult:
        """
        Process a chunk until it succeeds or every credential has failed.

        Args:
            chunk: Chunk to extract
            start_index: Credential index assigned by the scheduler

        Returns:
            Final result for the chunk
        """
        rotation = self.pool.rotation(start_index % self.pool.size)
        errors: list[AttemptError] = []

        async def _attempt() -> ExtractionOutcome:
            attempt = len(errors) + 1
            slot = rotation[attempt - 1]
            outcome = await self.worker.extract(chunk, slot, attempt=attempt)
            if not outcome.ok:
                self._note_failure(chunk, slot, attempt, outcome, errors)
            return outcome

        outcome = await self._retrying(chunk)(_attempt)

        if outcome.ok:
            logger.debug(
                "Chunk state",
                chunk_id=chunk.chunk_id,
                state=ChunkState.SUCCEEDED.value,
                attempts=len(errors) + 1,
            )
            return ChunkResult(
                chunk_id=chunk.chunk_id,
                sequence_index=chunk.sequence_index,
                page_label=chunk.page_label,
                status=ChunkStatus.SUCCESS,
                record_count=outcome.record_count,
                records_ref=result_key(chunk.chunk_id),
            )

        logger.error(
            "All API keys failed for chunk",
            chunk_id=chunk.chunk_id,
            page_label=chunk.page_label,
            attempts=len(errors),
            state=ChunkState.EXHAUSTED.value,
        )
        return self._exhausted(chunk, errors)

    def _note_failure(
        self,
        chunk: Chunk,
        slot: CredentialSlot,
        attempt: int,
        outcome: ExtractionOutcome,
        errors: list[AttemptError],
    ) -> None:
        errors.append(
            AttemptError(
                attempt=attempt,
                slot_index=slot.index,
                credential=slot.masked,
                kind=outcome.kind,
                reason=outcome.reason,
            )
        )
        if attempt < self.pool.size:
            logger.warning(
                "Attempt failed, trying next key",
                chunk_id=chunk.chunk_id,
                attempt=attempt,
                credential=slot.masked,
                kind=outcome.kind.value,
                reason=outcome.reason,
            )

    def _exhausted(self, chunk: Chunk, errors: list[AttemptError]) -> ChunkResult:
        key: Optional[str] = error_key(chunk.chunk_id)
        try:
            self.worker.store.put(
                key,
                ChunkErrorRecord(
                    chunk_id=chunk.chunk_id,
                    page_range=chunk.page_range,
                    page_label=chunk.page_label,
                    total_attempts=len(errors),
                    errors=errors,
                ),
            )
        except StorageError as e:
            logger.error(
                "Error record could not be written",
                chunk_id=chunk.chunk_id,
                error=str(e),
            )
            key = None

        return ChunkResult(
            chunk_id=chunk.chunk_id,
            sequence_index=chunk.sequence_index,
            page_label=chunk.page_label,
            status=ChunkStatus.ERROR,
            record_count=0,
            records_ref=key,
        )
