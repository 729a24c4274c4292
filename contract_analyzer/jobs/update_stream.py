"""Level-triggered polling of the execution registry for one live stream.

    Open --(terminal record seen)-----> Closed(final)        evicts entry, emits it once
    Open --(stream timeout)-----------> Closed(timeout)      evicts entry
    Open --(client went away)---------> Closed(disconnected) entry untouched
"""

import asyncio
import logging
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Optional

from contract_analyzer.jobs.models import StatusRecord
from contract_analyzer.storage.execution_registry import ExecutionRegistry

logger = logging.getLogger(__name__)


class CloseReason(str, Enum):
    FINAL = "final"
    TIMEOUT = "timeout"
    DISCONNECTED = "client-disconnected"


async def stream_updates(
    registry: ExecutionRegistry,
    execution_id: str,
    poll_interval: float = 0.5,
    timeout: float = 3600.0,
    is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    on_close: Optional[Callable[[CloseReason], None]] = None,
) -> AsyncIterator[StatusRecord]:
    """Yield the current record for execution_id on every poll tick.

    The same record is yielded again on each tick until it changes; consumers
    must handle repeats. A not-yet-populated id is valid and simply waits.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    reason = CloseReason.DISCONNECTED
    logger.info("Stream opened for %s", execution_id)
    try:
        while True:
            if is_disconnected is not None and await is_disconnected():
                reason = CloseReason.DISCONNECTED
                return

            record = registry.get(execution_id)
            if record is not None:
                if record.terminal:
                    # Evicted before emitting so a close right after delivery still frees it
                    registry.evict(execution_id)
                    reason = CloseReason.FINAL
                    yield record
                    return
                yield record

            remaining = deadline - loop.time()
            if remaining <= 0:
                registry.evict(execution_id)
                reason = CloseReason.TIMEOUT
                return
            await asyncio.sleep(min(poll_interval, remaining))
    finally:
        # Cancellation / aclose() from the transport lands here with the
        # default DISCONNECTED reason and leaves the registry alone.
        logger.info("Stream for %s closed (%s)", execution_id, reason.value)
        if on_close is not None:
            on_close(reason)
