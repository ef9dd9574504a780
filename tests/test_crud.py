import pytest

from medrounds import crud
from medrounds.errors import NotFoundError, ValidationError


# --- Patients ---

async def test_create_assigns_next_position(store, ward, add_patients):
    await add_patients(ward.id, "A", "B", "C")

    patient = await crud.create_patient(store, ward.id, {"name": "D", "diagnosis": "CAP"})

    assert patient.serial_no == 4
    assert patient.round_id == ward.id
    assert patient.user_id == "user-1"
    assert patient.diagnosis == "CAP"


async def test_create_strips_name(store, ward):
    patient = await crud.create_patient(store, ward.id, {"name": "  John Smith "})
    assert patient.name == "John Smith"


@pytest.mark.parametrize("fields", [{}, {"name": ""}, {"name": "   "}, {"name": None}])
async def test_create_requires_name(store, ward, fields):
    with pytest.raises(ValidationError):
        await crud.create_patient(store, ward.id, fields)


@pytest.mark.parametrize("round_id", [None, 0])
async def test_create_requires_round_id(store, round_id):
    with pytest.raises(ValidationError):
        await crud.create_patient(store, round_id, {"name": "A"})


async def test_create_in_missing_round(store):
    with pytest.raises(NotFoundError):
        await crud.create_patient(store, 4242, {"name": "A"})


async def test_delete_resequences_remaining(store, ward, add_patients, positions):
    patients = await add_patients(ward.id, "A", "B", "C", "D")

    await crud.delete_patient(store, patients[1].id)

    assert await positions(ward.id) == [("A", 1), ("C", 2), ("D", 3)]


async def test_delete_missing_patient(store):
    with pytest.raises(NotFoundError):
        await crud.delete_patient(store, 31337)


async def test_edit_keeps_position(store, ward, add_patients):
    a, b = await add_patients(ward.id, "A", "B")

    edited = await crud.edit_patient(store, b.id, {"plan": "Discharge", "serial_no": 1, "round_id": 99})

    assert edited.plan == "Discharge"
    assert edited.serial_no == 2
    assert edited.round_id == ward.id


async def test_edit_rejects_blank_name(store, ward, add_patients):
    (a,) = await add_patients(ward.id, "A")
    with pytest.raises(ValidationError):
        await crud.edit_patient(store, a.id, {"name": " "})


async def test_edit_without_clinical_fields(store, ward, add_patients):
    (a,) = await add_patients(ward.id, "A")
    with pytest.raises(ValidationError):
        await crud.edit_patient(store, a.id, {"serial_no": 3})


async def test_edit_missing_patient(store):
    with pytest.raises(NotFoundError):
        await crud.edit_patient(store, 555, {"plan": "x"})


async def test_search_matches_name_diagnosis_and_medications(store, ward):
    await crud.create_patient(store, ward.id, {"name": "Alice Heart", "diagnosis": "Heart failure"})
    await crud.create_patient(store, ward.id, {"name": "Bob", "medications": "Furosemide"})
    await crud.create_patient(store, ward.id, {"name": "Carol", "diagnosis": "Pneumonia"})

    assert [p.name for p in await crud.search_patients(store, ward.id, "heart")] == ["Alice Heart"]
    assert [p.name for p in await crud.search_patients(store, ward.id, "FUROSEMIDE")] == ["Bob"]
    assert len(await crud.search_patients(store, ward.id, "")) == 3


# --- Rounds ---

async def test_create_round_requires_label(store):
    with pytest.raises(ValidationError):
        await crud.create_round(store, "user-1", "  ")


async def test_list_rounds_by_status(store):
    first = await crud.create_round(store, "user-1", "Round 1")
    second = await crud.create_round(store, "user-1", "Round 2")
    await crud.set_round_status(store, first.id, "completed")

    assert [r.id for r in await crud.list_rounds(store, "active")] == [second.id]
    assert [r.id for r in await crud.list_rounds(store, "completed")] == [first.id]
    assert {r.id for r in await crud.list_rounds(store)} == {first.id, second.id}


async def test_list_rounds_unknown_status(store):
    with pytest.raises(ValidationError):
        await crud.list_rounds(store, "deleted")


@pytest.mark.parametrize("path", [
    ["completed", "active"],
    ["archived", "active"],
    ["completed", "completed"],
])
async def test_allowed_status_transitions(store, ward, path):
    for status in path:
        round_ = await crud.set_round_status(store, ward.id, status)
    assert round_.status == path[-1]


async def test_disallowed_status_transition(store, ward):
    await crud.set_round_status(store, ward.id, "completed")
    with pytest.raises(ValidationError):
        await crud.set_round_status(store, ward.id, "archived")


async def test_status_change_does_not_stamp(anonymous_store, store):
    round_ = await crud.create_round(anonymous_store, "user-1", "Ward 4")

    await crud.set_round_status(store, round_.id, "archived")

    reloaded = await store.get_round(round_.id)
    assert reloaded.status == "archived"
    assert reloaded.last_updated_by_email is None


async def test_delete_round_cascades(store, ward, add_patients):
    patients = await add_patients(ward.id, "A", "B")

    await crud.delete_round(store, ward.id)

    with pytest.raises(NotFoundError):
        await store.get_round(ward.id)
    with pytest.raises(NotFoundError):
        await store.get_patient(patients[0].id)


async def test_round_with_patient_count(store, ward, add_patients):
    await add_patients(ward.id, "A", "B", "C")

    data = await crud.get_round_with_patient_count(store, ward.id)

    assert data["patient_count"] == 3
    assert data["round_number"] == "Ward 3"


async def test_provision_wards_is_idempotent(store):
    first = await crud.provision_wards(store, "system", ["Ward 3", "Ward 4", "ICU"])
    second = await crud.provision_wards(store, "system", ["Ward 3", "Ward 4", "ICU"])

    assert [r.id for r in first] == [r.id for r in second]
    assert len(await crud.list_rounds(store)) == 3


@pytest.mark.parametrize("patient_id", [None, 0, "abc", True])
async def test_patient_operations_require_integer_id(store, patient_id):
    with pytest.raises(ValidationError):
        await crud.edit_patient(store, patient_id, {"plan": "x"})
    with pytest.raises(ValidationError):
        await crud.delete_patient(store, patient_id)
    with pytest.raises(ValidationError):
        await crud.get_patient(store, patient_id)
