import pytest

from medrounds import activity, crud
from medrounds.database import build_engine, build_session_factory, init_db
from medrounds.identity import Identity
from medrounds.store import RecordStore


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'rounds.db'}", echo=False)
    await init_db(engine)
    yield engine
    await activity.drain()
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def identity():
    return Identity(email="jane.doe@hospital.org", name="Dr Jane Doe")


@pytest.fixture
def store(session_factory, identity):
    return RecordStore(session_factory, identity_provider=lambda: identity)


@pytest.fixture
def anonymous_store(session_factory):
    return RecordStore(session_factory)


@pytest.fixture
async def ward(store):
    return await crud.create_round(store, "user-1", "Ward 3")


@pytest.fixture
def add_patients(store):
    """Create patients by name in the given round, in order."""
    async def _add(round_id, *names):
        return [await crud.create_patient(store, round_id, {"name": name}) for name in names]
    return _add


@pytest.fixture
def positions(store):
    """(name, serial_no) pairs of a round in serial order."""
    async def _positions(round_id):
        return [(p.name, p.serial_no) for p in await store.list_patients(round_id)]
    return _positions
