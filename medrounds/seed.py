import random
from typing import List

from faker import Faker

from medrounds.crud import create_patient
from medrounds.models import Patient
from medrounds.store import RecordStore

fake = Faker()

DIAGNOSES = [
    "Community-acquired pneumonia",
    "Acute decompensated heart failure",
    "Diabetic ketoacidosis",
    "Upper GI bleed",
    "Cellulitis of left leg",
    "COPD exacerbation",
    "Acute kidney injury",
    "Ischaemic stroke",
]
MEDICATIONS = [
    "IV ceftriaxone 1g OD",
    "Furosemide 40mg IV BD",
    "Insulin infusion per protocol",
    "Pantoprazole 40mg IV BD",
    "Flucloxacillin 1g QID",
    "Salbutamol nebs 4-hourly",
    "Aspirin 300mg stat",
]
PLANS = [
    "Repeat labs in the morning",
    "Chest X-ray follow-up",
    "Physio review",
    "Discharge planning",
    "Cardiology consult",
]


async def create_test_data(store: RecordStore, round_id: int, total_patients: int = 12) -> List[Patient]:
    """
    Fill a round with fake patients. Each one goes through create_patient,
    so the round keeps a dense serial order.
    """
    patients = []
    for _ in range(total_patients):
        patient = await create_patient(store, round_id, {
            "name": fake.name(),
            "bed_number": f"{random.choice('ABCD')}{random.randint(1, 30)}",
            "brief_history": fake.sentence(nb_words=12),
            "diagnosis": random.choice(DIAGNOSES),
            "physical_examination": fake.sentence(nb_words=8),
            "lab_result": f"Hb {random.randint(80, 160)} g/L, CRP {random.randint(1, 250)} mg/L",
            "medications": random.choice(MEDICATIONS),
            "plan": random.choice(PLANS),
        })
        patients.append(patient)
    return patients
