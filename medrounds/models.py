from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Lifecycle states a round can be in
ROUND_STATUSES = ("active", "completed", "archived")

# Free-text clinical fields a practitioner can fill in on a patient
PATIENT_FIELDS = (
    "name",
    "bed_number",
    "brief_history",
    "diagnosis",
    "physical_examination",
    "imaging",
    "lab_result",
    "incident",
    "medications",
    "plan",
    "round",
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Base class for all ORM models
class Base(DeclarativeBase):
    pass


class Round(Base):
    """
    ORM model for the 'rounds' table.
    A dated round or a permanent ward that owns a list of patients.
    """
    __tablename__ = "rounds"

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True)
    # Practitioner account that owns the round
    user_id: Mapped[str] = mapped_column(String(64))
    # Display label (e.g. "Ward 3" or a round number)
    round_number: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    # Date the round was opened
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    # active | completed | archived
    status: Mapped[str] = mapped_column(String(16), default="active")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    # Timestamp of the last clinical update to the patient list
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    # Who last touched the patient list
    last_updated_by_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_updated_by_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    __table_args__ = (
        Index("ix_rounds_status_date", "status", "date"),
        Index("ix_rounds_round_number", "round_number"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "round_number": self.round_number,
            "date": self.date,
            "status": self.status,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "last_updated_by_name": self.last_updated_by_name,
            "last_updated_by_email": self.last_updated_by_email,
        }


class Patient(Base):
    """
    ORM model for the 'patients' table.
    One clinical record listed under exactly one round.
    """
    __tablename__ = "patients"

    # Primary key, ascending in insertion order
    id: Mapped[int] = mapped_column(primary_key=True)
    round_id: Mapped[int] = mapped_column(ForeignKey("rounds.id", ondelete="CASCADE"))
    # Copied from the owning round on insert
    user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    # Dense 1-based position within the round
    serial_no: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    name: Mapped[str] = mapped_column(String(255))
    bed_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    brief_history: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    diagnosis: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    physical_examination: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    imaging: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    lab_result: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    incident: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    medications: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    plan: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    round: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Patient lists are always read per round in serial order
    __table_args__ = (
        Index("ix_patients_round_serial", "round_id", "serial_no"),
    )

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "round_id": self.round_id,
            "user_id": self.user_id,
            "serial_no": self.serial_no,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        for field in PATIENT_FIELDS:
            data[field] = getattr(self, field)
        return data
