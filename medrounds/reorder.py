import logging
from typing import Sequence

from medrounds.activity import schedule_stamp
from medrounds.errors import ValidationError
from medrounds.sequencer import require_round_id, round_lock, write_positions
from medrounds.store import RecordStore

logger = logging.getLogger(__name__)


async def reorder(store: RecordStore, round_id: int, ordered_ids: Sequence[int]) -> None:
    """
    Impose a new order on a round's patients (drag-and-drop).

    ordered_ids must be the round's full, unfiltered patient list in the
    desired order; the id at index i gets position i + 1. Ownership of the
    ids is left to the store. If any write fails a PartialReorderFailure is
    raised and the writes that did land are kept.
    """
    require_round_id(round_id)
    ordered_ids = list(ordered_ids)
    if not ordered_ids:
        return
    if len(set(ordered_ids)) != len(ordered_ids):
        raise ValidationError("Reorder list contains the same patient more than once.")
    await store.get_round(round_id)

    async with round_lock(round_id):
        await write_positions(
            store,
            round_id,
            [(patient_id, index + 1) for index, patient_id in enumerate(ordered_ids)],
        )

    logger.info(f"Round {round_id}: reordered {len(ordered_ids)} patients")
    schedule_stamp(store, round_id)
