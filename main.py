import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import FastAPI, Depends, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

import config
from database import create_engine, init_db, close_db, make_session_factory
from models import AuditEntry, Reservation
from schemas import HealthStatus, ReservationIn
from store import ConflictError, NotFoundError, ReservationStore, ValidationError

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Field Reservation System")


@app.on_event("startup")
async def on_startup():
    engine = create_engine()
    await init_db(engine)
    app.state.engine = engine
    app.state.store = ReservationStore(
        make_session_factory(engine),
        serialize_admission=config.SERIALIZE_ADMISSION,
        check_update_conflicts=config.CHECK_UPDATE_CONFLICTS,
    )
    logger.info("Database ready, admission serialized: %s", config.SERIALIZE_ADMISSION)


@app.on_event("shutdown")
async def on_shutdown():
    engine = getattr(app.state, "engine", None)
    if engine is not None:
        await close_db(engine)


def get_store(request: Request) -> ReservationStore:
    return request.app.state.store


def _server_error(route: str, exc: Exception) -> HTTPException:
    # Called from inside an except block, so the traceback is attached
    logger.exception("%s error: %s", route, exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server error")


@app.get("/health", response_model=HealthStatus)
async def health():
    return HealthStatus(ok=True, time=datetime.now(timezone.utc))


@app.get("/reservations", response_model=List[Reservation])
async def list_reservations(
    date: Optional[str] = None,
    store: ReservationStore = Depends(get_store),
):
    try:
        if date:
            return await store.list_by_date(date)
        return await store.list_all()
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except SQLAlchemyError as exc:
        raise _server_error("GET /reservations", exc)


# /reservations/week?start=YYYY-MM-DD (start = Monday)
@app.get("/reservations/week", response_model=List[Reservation])
async def list_week(
    start: Optional[str] = None,
    store: ReservationStore = Depends(get_store),
):
    try:
        return await store.list_by_week(start)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except SQLAlchemyError as exc:
        raise _server_error("GET /reservations/week", exc)


@app.post("/reservations", response_model=Reservation, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationIn,
    store: ReservationStore = Depends(get_store),
):
    try:
        return await store.create(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except ConflictError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Time slot already booked (reservation {exc.existing_id}).",
        )
    except SQLAlchemyError as exc:
        raise _server_error("POST /reservations", exc)


@app.put("/reservations/{reservation_id}", response_model=Reservation)
async def update_reservation(
    reservation_id: int,
    payload: ReservationIn,
    store: ReservationStore = Depends(get_store),
):
    try:
        return await store.update(reservation_id, payload)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except ConflictError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Time slot already booked (reservation {exc.existing_id}).",
        )
    except SQLAlchemyError as exc:
        raise _server_error("PUT /reservations", exc)


@app.delete("/reservations/{reservation_id}")
async def delete_reservation(
    reservation_id: int,
    store: ReservationStore = Depends(get_store),
):
    try:
        await store.delete(reservation_id)
    except SQLAlchemyError as exc:
        raise _server_error("DELETE /reservations", exc)
    return {"ok": True}


@app.get("/audit", response_model=List[AuditEntry])
async def list_audit(store: ReservationStore = Depends(get_store)):
    try:
        return await store.list_audit()
    except SQLAlchemyError as exc:
        raise _server_error("GET /audit", exc)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
