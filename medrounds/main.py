import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import async_sessionmaker

from medrounds import activity, crud
from medrounds.config import settings
from medrounds.database import AsyncSessionLocal, init_db
from medrounds.errors import NotFoundError, PartialReorderFailure, PersistenceError, ValidationError
from medrounds.identity import Identity
from medrounds.schemas import (
    PatientCreate,
    PatientResponse,
    PatientUpdate,
    ReorderRequest,
    RoundCreate,
    RoundResponse,
    RoundStatusUpdate,
    RoundWithCountResponse,
)
from medrounds.seed import create_test_data
from medrounds.store import RecordStore

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Create tables and the fixed wards on startup; let pending activity
    stamps finish on shutdown.
    """
    await init_db()
    await crud.provision_wards(RecordStore(AsyncSessionLocal), settings.ward_owner_id, settings.fixed_wards)
    yield
    await activity.drain()


# Initialize FastAPI application
app = FastAPI(title="MedRounds", lifespan=lifespan)

# Add CORS middleware to allow all origins (for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Dependencies ---

def get_session_factory() -> async_sessionmaker:
    return AsyncSessionLocal


def get_store(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    user_email: Optional[str] = Header(default=None, alias="X-User-Email"),
    user_name: Optional[str] = Header(default=None, alias="X-User-Name"),
) -> RecordStore:
    """
    Store bound to the caller. The identity comes from headers set by the
    upstream auth layer; without an email the caller is anonymous.
    """
    identity = Identity(email=user_email, name=user_name) if user_email else None
    return RecordStore(session_factory, identity_provider=lambda: identity)


# --- Error handling ---

@app.exception_handler(ValidationError)
async def handle_validation_error(request: Request, e: ValidationError):
    logger.warning(f"Validation error on {request.url.path}: {e}")
    return JSONResponse(status_code=400, content={"error": str(e)})


@app.exception_handler(NotFoundError)
async def handle_not_found_error(request: Request, e: NotFoundError):
    logger.warning(f"Not found on {request.url.path}: {e}")
    return JSONResponse(status_code=404, content={"error": str(e)})


@app.exception_handler(PartialReorderFailure)
async def handle_partial_reorder(request: Request, e: PartialReorderFailure):
    logger.error(f"Partial reorder on {request.url.path}: {e}")
    return JSONResponse(status_code=500, content={
        "error": "Some positions could not be saved. Resequence the round to recover.",
        "failed_ids": e.failed_ids,
    })


@app.exception_handler(PersistenceError)
async def handle_persistence_error(request: Request, e: PersistenceError):
    logger.error(f"Database error on {request.url.path}: {e}")
    return JSONResponse(status_code=500, content={"error": "A database error occurred."})


# --- Rounds ---

@app.get("/rounds", response_model=List[RoundResponse])
async def list_rounds(status: Optional[str] = None, store: RecordStore = Depends(get_store)):
    return await crud.list_rounds(store, status)


@app.post("/rounds", response_model=RoundResponse, status_code=201)
async def create_round(data: RoundCreate, store: RecordStore = Depends(get_store)):
    return await crud.create_round(store, data.user_id, data.round_number, data.date, data.status)


@app.get("/rounds/{round_id}", response_model=RoundWithCountResponse)
async def get_round(round_id: int, store: RecordStore = Depends(get_store)):
    return await crud.get_round_with_patient_count(store, round_id)


@app.patch("/rounds/{round_id}/status", response_model=RoundResponse)
async def set_round_status(round_id: int, data: RoundStatusUpdate, store: RecordStore = Depends(get_store)):
    return await crud.set_round_status(store, round_id, data.status)


@app.delete("/rounds/{round_id}", status_code=204)
async def delete_round(round_id: int, store: RecordStore = Depends(get_store)):
    await crud.delete_round(store, round_id)
    return Response(status_code=204)


# --- Patients ---

@app.get("/rounds/{round_id}/patients", response_model=List[PatientResponse])
async def list_patients(
    round_id: int,
    search: Optional[str] = Query(default=None),
    store: RecordStore = Depends(get_store),
):
    """
    Patients of a round in serial order.
    With ?search= only patients whose name, diagnosis or medications match.
    """
    await crud.get_round(store, round_id)
    if search:
        return await crud.search_patients(store, round_id, search)
    return await crud.list_patients(store, round_id)


@app.post("/rounds/{round_id}/patients", response_model=PatientResponse, status_code=201)
async def create_patient(round_id: int, data: PatientCreate, store: RecordStore = Depends(get_store)):
    fields = data.model_dump(exclude={"serial_no"}, exclude_none=True)
    return await crud.create_patient(store, round_id, fields, data.serial_no)


@app.put("/rounds/{round_id}/patients/order")
async def reorder_patients(round_id: int, data: ReorderRequest, store: RecordStore = Depends(get_store)):
    await crud.reorder_patients(store, round_id, data.patient_ids)
    return {"message": "Patients reordered"}


@app.post("/rounds/{round_id}/patients/resequence", response_model=List[PatientResponse])
async def resequence_patients(round_id: int, store: RecordStore = Depends(get_store)):
    return await crud.resequence_round(store, round_id)


@app.post("/rounds/{round_id}/generate-data", response_model=List[PatientResponse], status_code=201)
async def generate_data(
    round_id: int,
    count: int = Query(default=12, ge=1, le=200),
    store: RecordStore = Depends(get_store),
):
    """Fill a round with fake patients for demos."""
    return await create_test_data(store, round_id, count)


@app.get("/patients/{patient_id}", response_model=PatientResponse)
async def get_patient(patient_id: int, store: RecordStore = Depends(get_store)):
    return await crud.get_patient(store, patient_id)


@app.patch("/patients/{patient_id}", response_model=PatientResponse)
async def edit_patient(patient_id: int, data: PatientUpdate, store: RecordStore = Depends(get_store)):
    return await crud.edit_patient(store, patient_id, data.model_dump(exclude_unset=True))


@app.delete("/patients/{patient_id}", status_code=204)
async def delete_patient(patient_id: int, store: RecordStore = Depends(get_store)):
    await crud.delete_patient(store, patient_id)
    return Response(status_code=204)
