"""
Chunk scheduler: bounded-concurrency dispatch of chunk retry loops.
"""

import asyncio

import structlog

from rollscan.core.schemas import Chunk, ChunkResult
from rollscan.processors.credentials import CredentialPool
from rollscan.processors.failover import FailoverController

logger = structlog.get_logger(__name__)


class ChunkScheduler:
    """
    Runs every chunk through the failover controller, at most ``K`` at a time.

    Tasks are created in chunk order and admitted first-come first-served
    by an ``asyncio.Semaphore``. Results are returned in ``sequence_index``
    order, whatever order they completed in.
    """

    def __init__(self, controller: FailoverController, pool: CredentialPool):
        self.controller = controller
        self.pool = pool

    @property
    def concurrency(self) -> int:
        return self.pool.size

    async def run(self, chunks: list[Chunk]) -> list[ChunkResult]:
        if not chunks:
            return []

        semaphore = asyncio.Semaphore(self.concurrency)
        total = len(chunks)
        completed = 0

        async def _run_one(chunk: Chunk) -> ChunkResult:
            nonlocal completed
            async with semaphore:
                result = await self.controller.run(
                    chunk, self.pool.index_for(chunk.sequence_index)
                )
            completed += 1
            logger.info(
                "Chunk finished",
                progress=f"{completed}/{total}",
                chunk_id=chunk.chunk_id,
                page_label=chunk.page_label,
                status=result.status.value,
            )
            return result

        logger.info("Dispatching chunks", chunk_count=total, concurrency=self.concurrency)
        results = await asyncio.gather(*(_run_one(chunk) for chunk in chunks))
        return sorted(results, key=lambda r: r.sequence_index)
