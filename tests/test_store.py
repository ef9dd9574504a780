import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from medrounds.database import build_engine, build_session_factory
from medrounds.errors import PersistenceError
from medrounds.store import RecordStore


async def test_foreign_key_violation_becomes_persistence_error(store):
    with pytest.raises(PersistenceError) as exc_info:
        await store.insert_patient({"round_id": 4242, "name": "Orphan", "serial_no": 1})

    assert isinstance(exc_info.value.__cause__, IntegrityError)


async def test_unreachable_database_becomes_persistence_error(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'rounds.db'}", echo=False)
    store = RecordStore(build_session_factory(engine))

    with pytest.raises(PersistenceError) as exc_info:
        await store.list_rounds()

    assert isinstance(exc_info.value.__cause__, OperationalError)
    await engine.dispose()
