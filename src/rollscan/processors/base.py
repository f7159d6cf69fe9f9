"""
Base processor types for the extraction pipeline.
"""

from abc import ABC, abstractmethod

from rollscan.core.schemas import Chunk, SourceDocument


class BaseProcessor(ABC):
    """
    Common naming for pipeline components.
    """

    @property
    def name(self) -> str:
        """Return the class name as the processor name."""
        return self.__class__.__name__

    def __repr__(self) -> str:
        return f"<{self.name}>"


class DocumentToChunksProcessor(BaseProcessor):
    """
    Abstract base class for processors that split documents into chunks.

    This is the first stage of every run.
    """

    @abstractmethod
    def load(self, path: str) -> SourceDocument:
        """
        Decode a source file.

        Raises:
            PartitionError: If the file is missing, unreadable or empty
        """
        pass

    @abstractmethod
    def partition(self, document: SourceDocument) -> list[Chunk]:
        """
        Split a document into ordered chunks.

        Args:
            document: The decoded source document

        Returns:
            Chunks in page order, covering every page exactly once
        """
        pass
