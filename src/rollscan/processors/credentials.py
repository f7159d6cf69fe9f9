"""
Credential pool: a fixed, ordered set of interchangeable API keys.

Slot ``i`` is the initial credential of every chunk whose sequence index is
``i mod K``; failover walks the pool circularly from there.
"""

from typing import Iterable

import structlog

from rollscan.core.exceptions import ConfigurationError
from rollscan.core.schemas import CredentialSlot

logger = structlog.get_logger(__name__)


class CredentialPool:
    """
    Read-only pool of ``K >= 1`` credentials.

    Shared by every concurrent chunk task without locking.
    """

    def __init__(self, credentials: Iterable[str]):
        entries = list(credentials)
        cleaned = tuple(c.strip() for c in entries if c and c.strip())
        self.dropped = len(entries) - len(cleaned)
        if not cleaned:
            raise ConfigurationError(
                message=(
                    "No valid OPENAI_API_KEYS found. Use JSON array syntax like: "
                    'OPENAI_API_KEYS=["key1","key2",...]'
                ),
            )
        self._slots = tuple(
            CredentialSlot(index=i, credential=c) for i, c in enumerate(cleaned)
        )
        if self.dropped:
            logger.warning(
                "Blank API keys ignored",
                dropped=self.dropped,
                configured=len(entries),
                count=len(self._slots),
            )
        logger.info("API keys loaded", count=len(self._slots))

    @property
    def size(self) -> int:
        return len(self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self):
        return iter(self._slots)

    def slot(self, index: int) -> CredentialSlot:
        return self._slots[index % len(self._slots)]

    def index_for(self, sequence_index: int) -> int:
        """Initial slot for a chunk: even spread by sequence index."""
        return sequence_index % len(self._slots)

    def resolve_start_index(self, preferred_credential: str) -> int:
        """Index of ``preferred_credential``, or 0 when it is not pooled."""
        for slot in self._slots:
            if slot.credential == preferred_credential:
                return slot.index
        return 0

    def next(self, index: int) -> int:
        """Circular successor of ``index``."""
        return (index + 1) % len(self._slots)

    def rotation(self, start_index: int) -> list[CredentialSlot]:
        """Every slot exactly once, in failover order from ``start_index``."""
        k = len(self._slots)
        return [self._slots[(start_index + attempt) % k] for attempt in range(k)]
