import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from medrounds.activity import schedule_stamp
from medrounds.errors import ValidationError
from medrounds.models import PATIENT_FIELDS, ROUND_STATUSES, Patient, Round, utcnow
from medrounds.reorder import reorder
from medrounds.sequencer import (
    assign_position,
    require_position,
    require_id,
    require_round_id,
    resequence,
    round_lock,
)
from medrounds.store import RecordStore

logger = logging.getLogger(__name__)

# Status changes a practitioner can make on a round
ALLOWED_TRANSITIONS = {
    "active": {"completed", "archived"},
    "completed": {"active"},
    "archived": {"active"},
}


def clean_patient_fields(fields: Dict[str, Any], require_name: bool) -> Dict[str, Any]:
    """
    Keep only the clinical fields of a patient form. Identity and position
    columns (id, round_id, serial_no) are dropped, so an edit can never move
    a patient.
    """
    cleaned = {key: value for key, value in fields.items() if key in PATIENT_FIELDS}
    ignored = set(fields) - set(cleaned)
    if ignored:
        logger.debug(f"Ignoring non-clinical patient fields: {sorted(ignored)}")

    if "name" in cleaned or require_name:
        name = cleaned.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Patient name is required.")
        cleaned["name"] = name.strip()
    return cleaned


# ========================================
# Patient Operations
# ========================================

async def create_patient(
    store: RecordStore,
    round_id: int,
    fields: Dict[str, Any],
    explicit_position: Optional[int] = None,
) -> Patient:
    """
    Add a patient to a round at the next free position, or at
    explicit_position when the caller supplies one.
    """
    require_round_id(round_id)
    record = clean_patient_fields(fields, require_name=True)
    if explicit_position is not None:
        require_position(explicit_position)

    async with round_lock(round_id):
        round_ = await store.get_round(round_id)
        position = await assign_position(store, round_id, explicit_position)
        patient = await store.insert_patient({
            **record,
            "round_id": round_id,
            "user_id": round_.user_id,
            "serial_no": position,
        })

    logger.info(f"Round {round_id}: added patient {patient.id} at position {position}")
    schedule_stamp(store, round_id)
    return patient


async def edit_patient(store: RecordStore, patient_id: int, fields: Dict[str, Any]) -> Patient:
    """Update clinical fields only; the patient keeps its position."""
    require_id(patient_id, "patient")
    updates = clean_patient_fields(fields, require_name=False)
    if not updates:
        raise ValidationError("No patient fields to update.")

    patient = await store.update_patient(patient_id, updates)
    schedule_stamp(store, patient.round_id)
    return patient


async def delete_patient(store: RecordStore, patient_id: int) -> None:
    """Delete a patient and close the gap it leaves in the round's order."""
    require_id(patient_id, "patient")
    patient = await store.get_patient(patient_id)
    round_id = patient.round_id

    async with round_lock(round_id):
        await store.delete_patient(patient_id)
        await resequence(store, round_id)

    logger.info(f"Round {round_id}: deleted patient {patient_id}")
    schedule_stamp(store, round_id)


async def reorder_patients(store: RecordStore, round_id: int, ordered_ids: Sequence[int]) -> None:
    await reorder(store, round_id, ordered_ids)


async def resequence_round(store: RecordStore, round_id: int) -> List[Patient]:
    """Manual recovery after a PartialReorderFailure."""
    require_round_id(round_id)
    await store.get_round(round_id)
    async with round_lock(round_id):
        return await resequence(store, round_id)


async def list_patients(store: RecordStore, round_id: int) -> List[Patient]:
    require_round_id(round_id)
    return await store.list_patients(round_id)


async def get_patient(store: RecordStore, patient_id: int) -> Patient:
    require_id(patient_id, "patient")
    return await store.get_patient(patient_id)


async def search_patients(store: RecordStore, round_id: int, term: str) -> List[Patient]:
    """Case-insensitive match on name, diagnosis or medications."""
    require_round_id(round_id)
    term = (term or "").strip()
    if not term:
        return await store.list_patients(round_id)
    return await store.search_patients(round_id, term)


# ========================================
# Round Operations
# ========================================

async def create_round(
    store: RecordStore,
    user_id: str,
    round_number: str,
    date: Optional[datetime] = None,
    status: str = "active",
) -> Round:
    if not user_id:
        raise ValidationError("An owning user is required.")
    if not isinstance(round_number, str) or not round_number.strip():
        raise ValidationError("Round label is required.")
    if status not in ROUND_STATUSES:
        raise ValidationError(f"Unknown round status: {status}")

    round_ = await store.insert_round({
        "user_id": user_id,
        "round_number": round_number.strip(),
        "date": date or utcnow(),
        "status": status,
    })
    logger.info(f"Created round {round_.id} ({round_.round_number})")
    return round_


async def list_rounds(store: RecordStore, status: Optional[str] = None) -> List[Round]:
    if status is not None and status not in ROUND_STATUSES:
        raise ValidationError(f"Unknown round status: {status}")
    return await store.list_rounds(status)


async def get_round(store: RecordStore, round_id: int) -> Round:
    require_round_id(round_id)
    return await store.get_round(round_id)


async def get_round_with_patient_count(store: RecordStore, round_id: int) -> Dict[str, Any]:
    require_round_id(round_id)
    round_ = await store.get_round(round_id)
    count = await store.count_patients(round_id)
    return {**round_.to_dict(), "patient_count": count}


async def set_round_status(store: RecordStore, round_id: int, status: str) -> Round:
    """
    Mark a round completed or archived, or restore it to active.
    Does not touch the round's activity stamp.
    """
    require_round_id(round_id)
    if status not in ROUND_STATUSES:
        raise ValidationError(f"Unknown round status: {status}")

    round_ = await store.get_round(round_id)
    if round_.status == status:
        return round_
    if status not in ALLOWED_TRANSITIONS[round_.status]:
        raise ValidationError(f"Cannot move a round from {round_.status} to {status}.")
    return await store.update_round(round_id, {"status": status})


async def delete_round(store: RecordStore, round_id: int) -> None:
    """Delete a round and every patient under it."""
    require_round_id(round_id)
    async with round_lock(round_id):
        await store.delete_round(round_id)
    logger.info(f"Deleted round {round_id}")


async def provision_wards(store: RecordStore, user_id: str, labels: Sequence[str]) -> List[Round]:
    """Make sure a permanent round exists for each fixed ward label."""
    wards = []
    for label in labels:
        ward = await store.find_round_by_label(label)
        if ward is None:
            ward = await create_round(store, user_id, label)
            logger.info(f"Provisioned fixed ward '{label}'")
        wards.append(ward)
    return wards
