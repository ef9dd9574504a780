import asyncio
import logging
from typing import Set

from medrounds.models import utcnow
from medrounds.store import RecordStore

logger = logging.getLogger(__name__)

# Stamps dispatched but not finished yet
_pending: Set[asyncio.Task] = set()


async def stamp(store: RecordStore, round_id: int) -> None:
    """
    Record who last touched a round's patient list, and when.
    Anonymous callers are skipped. Failures are logged, never raised.
    """
    try:
        identity = store.get_current_identity()
        if identity is None:
            logger.debug(f"Round {round_id}: no identity, activity stamp skipped")
            return
        await store.update_round(round_id, {
            "last_updated_by_name": identity.display_name,
            "last_updated_by_email": identity.email,
            "updated_at": utcnow(),
        })
    except Exception as e:
        logger.warning(f"Round {round_id}: activity stamp failed: {e}")


def schedule_stamp(store: RecordStore, round_id: int) -> asyncio.Task:
    """Run stamp() in the background once the main mutation has committed."""
    task = asyncio.create_task(stamp(store, round_id))
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return task


async def drain() -> None:
    """Wait for every stamp dispatched so far."""
    while _pending:
        await asyncio.gather(*list(_pending), return_exceptions=True)
