import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from medrounds.errors import NotFoundError, PersistenceError
from medrounds.identity import Identity, IdentityProvider, anonymous
from medrounds.models import Patient, Round

logger = logging.getLogger(__name__)


class RecordStore:
    """
    Record store for rounds and patients.

    Every call opens its own session and commits on its own, so a batch of
    calls issued with asyncio.gather behaves like a batch of independent
    requests against a hosted backend: each write lands or fails alone.
    """

    def __init__(self, session_factory: async_sessionmaker, identity_provider: Optional[IdentityProvider] = None):
        self.session_factory = session_factory
        self.identity_provider = identity_provider or anonymous

    @asynccontextmanager
    async def _session(self):
        try:
            async with self.session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"Database error: {e}")
            raise PersistenceError(str(e)) from e

    def get_current_identity(self) -> Optional[Identity]:
        return self.identity_provider()

    # ========================================
    # Patient Operations
    # ========================================

    async def list_patients(self, round_id: int) -> List[Patient]:
        """All patients of a round in serial order; NULL positions last, ties by insertion order."""
        async with self._session() as session:
            result = await session.execute(
                select(Patient)
                .where(Patient.round_id == round_id)
                .order_by(Patient.serial_no.is_(None), Patient.serial_no, Patient.id)
            )
            return list(result.scalars().all())

    async def max_position(self, round_id: int) -> Optional[int]:
        async with self._session() as session:
            return await session.scalar(
                select(func.max(Patient.serial_no)).where(Patient.round_id == round_id)
            )

    async def get_patient(self, patient_id: int) -> Patient:
        async with self._session() as session:
            return await self._get_or_raise(session, Patient, patient_id)

    async def insert_patient(self, record: Dict[str, Any]) -> Patient:
        async with self._session() as session:
            patient = Patient(**record)
            session.add(patient)
            await session.commit()
            return patient

    async def update_patient(self, patient_id: int, fields: Dict[str, Any]) -> Patient:
        async with self._session() as session:
            patient = await self._get_or_raise(session, Patient, patient_id)
            for key, value in fields.items():
                setattr(patient, key, value)
            await session.commit()
            return patient

    async def delete_patient(self, patient_id: int) -> None:
        async with self._session() as session:
            patient = await self._get_or_raise(session, Patient, patient_id)
            await session.delete(patient)
            await session.commit()

    async def search_patients(self, round_id: int, term: str) -> List[Patient]:
        pattern = f"%{term}%"
        async with self._session() as session:
            result = await session.execute(
                select(Patient)
                .where(
                    Patient.round_id == round_id,
                    or_(
                        Patient.name.ilike(pattern),
                        Patient.diagnosis.ilike(pattern),
                        Patient.medications.ilike(pattern),
                    ),
                )
                .order_by(Patient.serial_no.is_(None), Patient.serial_no, Patient.id)
            )
            return list(result.scalars().all())

    async def count_patients(self, round_id: int) -> int:
        async with self._session() as session:
            count = await session.scalar(
                select(func.count()).select_from(Patient).where(Patient.round_id == round_id)
            )
            return count or 0

    # ========================================
    # Round Operations
    # ========================================

    async def list_rounds(self, status: Optional[str] = None) -> List[Round]:
        """Rounds newest first, optionally filtered by status."""
        stmt = select(Round)
        if status:
            stmt = stmt.where(Round.status == status)
        async with self._session() as session:
            result = await session.execute(stmt.order_by(Round.date.desc(), Round.id.desc()))
            return list(result.scalars().all())

    async def get_round(self, round_id: int) -> Round:
        async with self._session() as session:
            return await self._get_or_raise(session, Round, round_id)

    async def find_round_by_label(self, label: str) -> Optional[Round]:
        async with self._session() as session:
            result = await session.execute(
                select(Round).where(Round.round_number == label).order_by(Round.id).limit(1)
            )
            return result.scalars().first()

    async def insert_round(self, record: Dict[str, Any]) -> Round:
        async with self._session() as session:
            round_ = Round(**record)
            session.add(round_)
            await session.commit()
            return round_

    async def update_round(self, round_id: int, fields: Dict[str, Any]) -> Round:
        async with self._session() as session:
            round_ = await self._get_or_raise(session, Round, round_id)
            for key, value in fields.items():
                setattr(round_, key, value)
            await session.commit()
            return round_

    async def delete_round(self, round_id: int) -> None:
        """Delete a round together with all of its patients."""
        async with self._session() as session:
            await self._get_or_raise(session, Round, round_id)
            await session.execute(delete(Patient).where(Patient.round_id == round_id))
            await session.execute(delete(Round).where(Round.id == round_id))
            await session.commit()

    @staticmethod
    async def _get_or_raise(session: AsyncSession, model, record_id: int):
        record = await session.get(model, record_id)
        if record is None:
            raise NotFoundError(model.__name__, record_id)
        return record
