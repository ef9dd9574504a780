import asyncio
import logging
import weakref
from typing import List, Optional, Sequence, Tuple

from medrounds.errors import PartialReorderFailure, ValidationError
from medrounds.models import Patient
from medrounds.store import RecordStore

logger = logging.getLogger(__name__)

# One lock per round id, dropped once nobody holds or waits on it
_round_locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()


def round_lock(round_id: int) -> asyncio.Lock:
    """
    Lock that serializes position-changing mutations of one round inside
    this process (create, delete + resequence, reorder).
    """
    lock = _round_locks.get(round_id)
    if lock is None:
        lock = asyncio.Lock()
        _round_locks[round_id] = lock
    return lock


def require_id(record_id, kind: str = "record") -> int:
    if record_id is None or isinstance(record_id, bool) or not isinstance(record_id, int) or record_id < 1:
        raise ValidationError(f"A {kind} identifier is required.")
    return record_id


def require_round_id(round_id) -> int:
    return require_id(round_id, "round")


def require_position(position) -> int:
    if isinstance(position, bool) or not isinstance(position, int) or position < 1:
        raise ValidationError("Serial position must be a positive integer.")
    return position


async def next_position(store: RecordStore, round_id: int) -> int:
    """Position a new patient gets by default: max(existing) + 1, or 1 for an empty round."""
    current_max = await store.max_position(round_id)
    return (current_max or 0) + 1


async def assign_position(store: RecordStore, round_id: int, explicit_position: Optional[int] = None) -> int:
    """
    Position for a patient about to be created. An explicit position (bulk
    and import flows) is taken as-is, without checking it against the
    positions already in use.
    """
    if explicit_position is None:
        return await next_position(store, round_id)
    return require_position(explicit_position)


async def write_positions(store: RecordStore, round_id: int, assignments: Sequence[Tuple[int, int]]) -> None:
    """
    Fan out one independent position write per (patient_id, position) pair
    and wait for all of them. Writes that succeeded stay applied even when
    others fail; the failures are reported together.
    """
    if not assignments:
        return

    results = await asyncio.gather(
        *[store.update_patient(patient_id, {"serial_no": position}) for patient_id, position in assignments],
        return_exceptions=True,
    )

    errors = {}
    for (patient_id, _), result in zip(assignments, results):
        if isinstance(result, Exception):
            errors[patient_id] = result
    if errors:
        logger.error(f"Round {round_id}: {len(errors)}/{len(assignments)} position writes failed")
        raise PartialReorderFailure(round_id, list(errors), errors)


async def resequence(store: RecordStore, round_id: int) -> List[Patient]:
    """
    Rewrite every position in a round to its 1-based rank in the current
    order. Ties keep insertion order and unpositioned patients go last.
    Only rows whose position changes are written, so a second run is a no-op.
    """
    patients = await store.list_patients(round_id)

    assignments = []
    for rank, patient in enumerate(patients, start=1):
        if patient.serial_no != rank:
            assignments.append((patient.id, rank))
            patient.serial_no = rank

    if assignments:
        logger.info(f"Round {round_id}: resequencing {len(assignments)} of {len(patients)} patients")
    await write_positions(store, round_id, assignments)
    return patients
