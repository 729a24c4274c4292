"""In-memory execution registry with TTL-based cleanup.

Maps execution id -> (latest StatusRecord, last-touched time). Lives in one
process and is only touched from the event loop, so there is no locking. Each
put replaces the whole record in a single assignment.
"""

import logging
import time
from typing import Callable, Dict, Optional, Tuple

from contract_analyzer.jobs.models import StatusRecord

logger = logging.getLogger(__name__)


class ExecutionRegistry:
    """Holds the latest status of every live execution."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: Dict[str, Tuple[StatusRecord, float]] = {}
        self._clock = clock

    def put(self, execution_id: str, record: StatusRecord) -> None:
        """Insert or fully overwrite the record and refresh its timestamp."""
        self._entries[execution_id] = (record, self._clock())

    def get(self, execution_id: str) -> Optional[StatusRecord]:
        entry = self._entries.get(execution_id)
        return entry[0] if entry else None

    def evict(self, execution_id: str) -> None:
        """Drop the entry. No-op if it is already gone."""
        self._entries.pop(execution_id, None)

    def touched_at(self, execution_id: str) -> Optional[float]:
        entry = self._entries.get(execution_id)
        return entry[1] if entry else None

    def sweep_expired(self, max_age_seconds: float) -> int:
        """Evict entries not touched within max_age_seconds. Returns count removed."""
        cutoff = self._clock() - max_age_seconds
        stale = [eid for eid, (_, touched) in self._entries.items() if touched < cutoff]
        for execution_id in stale:
            self.evict(execution_id)
        if stale:
            logger.info("Swept %d stale execution(s)", len(stale))
        return len(stale)

    def __contains__(self, execution_id: str) -> bool:
        return execution_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
