"""
Extraction pipeline orchestrator.
"""

from pathlib import Path
from typing import Optional, Union

import structlog

from config.settings import Settings, get_settings
from rollscan.core.exceptions import RollscanError, StorageError
from rollscan.core.schemas import AggregateResult
from rollscan.processors.aggregator import Aggregator
from rollscan.processors.credentials import CredentialPool
from rollscan.processors.failover import FailoverController
from rollscan.processors.partitioner import PdfPartitioner
from rollscan.processors.rate_governor import RateGovernor, Sleeper
from rollscan.processors.recognizer import OpenAIRecognizer, RecognitionClient
from rollscan.processors.scheduler import ChunkScheduler
from rollscan.processors.worker import ExtractionWorker
from rollscan.storage.output import write_aggregate
from rollscan.storage.scratch import ScratchStore

logger = structlog.get_logger(__name__)


def default_output_path(settings: Settings, pdf_path: Union[str, Path]) -> Path:
    """``{output_dir}/{stem}_ocr.json`` for a source PDF."""
    return Path(settings.output_dir) / f"{Path(pdf_path).stem}_ocr.json"


class ExtractionPipeline:
    """
    Orchestrates one extraction run.

    The run transforms a PDF through:
    1. Partitioning: PDF -> Chunk[]
    2. Scheduling: each chunk through the failover controller, K at a time
    3. Aggregation: ChunkResult[] -> AggregateResult, written once as JSON

    Only configuration and partitioning errors abort a run; chunk failures
    end up as error entries in the aggregate.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        recognizer: Optional[RecognitionClient] = None,
        store: Optional[ScratchStore] = None,
        sleep: Optional[Sleeper] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            settings: Run configuration (default: loaded from the environment)
            recognizer: Recognition backend (default: OpenAIRecognizer)
            store: Scratch store (default: settings.temp_dir)
            sleep: Pause function used for throttling and cooldowns

        Raises:
            ConfigurationError: If the credential list is empty or invalid
        """
        self.settings = settings or get_settings()
        self.pool = CredentialPool(self.settings.openai_api_keys)
        self.partitioner = PdfPartitioner(self.settings.max_pages_per_chunk)
        self.store = store or ScratchStore(self.settings.temp_dir)
        self.recognizer = recognizer or OpenAIRecognizer(
            model=self.settings.openai_model,
            base_url=self.settings.openai_base_url,
        )
        self.governor = RateGovernor(
            requests_before_break=self.settings.requests_before_break,
            break_duration_ms=self.settings.break_duration_ms,
            sleep=sleep,
        )
        self.worker = ExtractionWorker(self.recognizer, self.store, self.governor)
        self.controller = FailoverController(
            worker=self.worker,
            pool=self.pool,
            cooldown_ms=self.settings.cooldown_ms,
            sleep=sleep,
        )
        self.scheduler = ChunkScheduler(self.controller, self.pool)
        self.aggregator = Aggregator(self.store)

        logger.info(
            "Pipeline initialized",
            pages_per_chunk=self.settings.max_pages_per_chunk,
            threads=self.pool.size,
            recognizer=type(self.recognizer).__name__,
        )

    async def run(
        self,
        pdf_path: Union[str, Path],
        output_path: Optional[Union[str, Path]] = None,
    ) -> AggregateResult:
        """
        Run the complete extraction on one PDF.

        Args:
            pdf_path: Source document
            output_path: Destination JSON (default: derived from output_dir)

        Returns:
            The consolidated result, also written to ``output_path``
        """
        output_path = Path(output_path) if output_path else default_output_path(
            self.settings, pdf_path
        )
        logger.info("Starting extraction", source=str(pdf_path))

        try:
            self.store.prepare()
            document = self.partitioner.load(str(pdf_path))
            chunks = self.partitioner.partition(document)

            chunk_results = await self.scheduler.run(chunks)

            result = self.aggregator.aggregate(
                chunk_results,
                document,
                configuration={
                    "pages_per_chunk": self.settings.max_pages_per_chunk,
                    "credentials": self.pool.size,
                    "model": getattr(self.recognizer, "model", None),
                },
            )
            write_aggregate(result, output_path)

        except RollscanError as e:
            logger.error("Extraction failed", source=str(pdf_path), error=str(e))
            self._cleanup()
            raise
        except Exception as e:
            logger.error("Extraction failed", source=str(pdf_path), error=str(e))
            self._cleanup()
            raise RollscanError(
                message=f"Extraction failed: {str(e)}",
                details={"source": str(pdf_path)},
                cause=e,
            )

        self._cleanup()

        logger.info(
            "Extraction complete",
            total_records=result.total_records,
            failed_chunks=len(result.failed_chunks),
            output=str(output_path),
        )
        return result

    def _cleanup(self) -> None:
        """Best-effort removal of scratch records."""
        if self.settings.keep_scratch:
            logger.info("Keeping scratch records", path=str(self.store.root))
            return
        try:
            self.store.delete_all()
        except StorageError as e:
            logger.warning("Cleanup incomplete", error=str(e))

    async def close(self) -> None:
        """Release recognition client resources."""
        close = getattr(self.recognizer, "close", None)
        if close is not None:
            await close()
