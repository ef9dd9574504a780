from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

RoundStatus = Literal["active", "completed", "archived"]


# --- Rounds ---

class RoundCreate(BaseModel):
    user_id: str = Field(..., min_length=1)
    round_number: str = Field(..., min_length=1)
    date: Optional[datetime] = None
    status: RoundStatus = "active"


class RoundStatusUpdate(BaseModel):
    status: RoundStatus


class RoundResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    round_number: Optional[str] = None
    date: datetime
    status: RoundStatus
    created_at: datetime
    updated_at: datetime
    last_updated_by_name: Optional[str] = None
    last_updated_by_email: Optional[str] = None


class RoundWithCountResponse(RoundResponse):
    patient_count: int


# --- Patients ---

class PatientFields(BaseModel):
    bed_number: Optional[str] = None
    brief_history: Optional[str] = None
    diagnosis: Optional[str] = None
    physical_examination: Optional[str] = None
    imaging: Optional[str] = None
    lab_result: Optional[str] = None
    incident: Optional[str] = None
    medications: Optional[str] = None
    plan: Optional[str] = None
    round: Optional[str] = None


class PatientCreate(PatientFields):
    name: str
    # Explicit position for bulk/import flows; next free position otherwise
    serial_no: Optional[int] = None


class PatientUpdate(PatientFields):
    name: Optional[str] = None


class PatientResponse(PatientFields):
    model_config = ConfigDict(from_attributes=True)

    id: int
    round_id: int
    user_id: Optional[str] = None
    serial_no: Optional[int] = None
    name: str
    created_at: datetime
    updated_at: datetime


class ReorderRequest(BaseModel):
    # Full, unfiltered list of the round's patient ids in the new order
    patient_ids: List[int]
