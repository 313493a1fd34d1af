"""Reservation store: admission checks, persistence and the audit trail.

Every mutation writes the reservation change and its audit entry inside one
transaction, so the audit log never records an uncommitted write and no
committed write lacks an audit entry.

Admission for ``create`` is a read-check-write sequence. With
``serialize_admission`` enabled, creates are serialized per date with an
``asyncio.Lock``; this only covers a single worker process. With it disabled,
two concurrent creates can both pass the check against a stale read and both
commit overlapping reservations.
"""

import asyncio
import datetime
import logging
from collections import defaultdict
from contextlib import asynccontextmanager, nullcontext
from typing import Any, Dict, List, Optional, Union

import pydantic
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from conflicts import find_conflict
from models import AuditAction, AuditEntry, Reservation
from schemas import ReservationIn

logger = logging.getLogger(__name__)

DAYS_IN_WEEK = 7


class ReservationError(Exception):
    """Base exception for rejected reservation operations."""


class ValidationError(ReservationError):
    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []


class ConflictError(ReservationError):
    def __init__(self, existing: Dict[str, Any]):
        super().__init__(f"Time slot already booked (reservation {existing['id']})")
        # Plain snapshot: the clashing row is detached once the session rolls back
        self.existing = existing
        self.existing_id = existing["id"]


class NotFoundError(ReservationError):
    def __init__(self, reservation_id: int):
        super().__init__(f"Reservation {reservation_id} not found")
        self.reservation_id = reservation_id


def validate_request(payload: Union[ReservationIn, Dict[str, Any]]) -> ReservationIn:
    try:
        return ReservationIn.model_validate(payload)
    except pydantic.ValidationError as exc:
        problems = "; ".join(err["msg"] for err in exc.errors())
        raise ValidationError(f"Invalid reservation: {problems}", exc.errors()) from exc


def parse_date(value: Union[datetime.date, str, None], name: str = "date") -> datetime.date:
    if isinstance(value, datetime.date):
        return value
    if not value:
        raise ValidationError(f"Missing {name} (YYYY-MM-DD)")
    try:
        return datetime.date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid {name} '{value}', expected YYYY-MM-DD") from exc


def week_dates(start: datetime.date) -> List[datetime.date]:
    # Plain date arithmetic: no wall-clock instants, so DST shifts cannot move a day
    return [start + datetime.timedelta(days=offset) for offset in range(DAYS_IN_WEEK)]


class ReservationStore:
    def __init__(
        self,
        session_factory,
        serialize_admission: bool = True,
        check_update_conflicts: bool = False,
    ):
        self._session_factory = session_factory
        self.serialize_admission = serialize_admission
        self.check_update_conflicts = check_update_conflicts
        self._admission_locks: Dict[datetime.date, asyncio.Lock] = {}
        self._lock_users: Dict[datetime.date, int] = defaultdict(int)

    @asynccontextmanager
    async def _admission_lock(self, day: datetime.date):
        if not self.serialize_admission:
            yield
            return

        lock = self._admission_locks.setdefault(day, asyncio.Lock())
        self._lock_users[day] += 1
        try:
            async with lock:
                yield
        finally:
            # Drop the lock once no holder or waiter is left for the date
            self._lock_users[day] -= 1
            if not self._lock_users[day]:
                del self._lock_users[day]
                del self._admission_locks[day]

    async def _reservations_on(self, session: AsyncSession, day: datetime.date) -> List[Reservation]:
        statement = select(Reservation).where(Reservation.date == day).order_by(Reservation.id)
        result = await session.execute(statement)
        return list(result.scalars().all())

    def _audit(self, session: AsyncSession, action: AuditAction, detail: Dict[str, Any]) -> AuditEntry:
        entry = AuditEntry(
            time=datetime.datetime.now(datetime.timezone.utc),
            action=action.value,
            detail=detail,
        )
        session.add(entry)
        return entry

    async def create(self, payload: Union[ReservationIn, Dict[str, Any]]) -> Reservation:
        request = validate_request(payload)

        async with self._admission_lock(request.date):
            async with self._session_factory() as session, session.begin():
                existing = await self._reservations_on(session, request.date)
                clash = find_conflict(request, existing)
                if clash is not None:
                    logger.warning(
                        "Rejected reservation on %s %s-%s for %s: collides with #%s",
                        request.date, request.start, request.end, request.fields, clash.id,
                    )
                    raise ConflictError(clash.snapshot())

                reservation = Reservation(**request.model_dump())
                session.add(reservation)
                # Flush to get the id before snapshotting the row
                await session.flush()
                self._audit(session, AuditAction.CREATE, reservation.snapshot())

        logger.info("Reservation %s created for %s on %s", reservation.id, reservation.group, reservation.date)
        return reservation

    async def update(self, reservation_id: int, payload: Union[ReservationIn, Dict[str, Any]]) -> Reservation:
        request = validate_request(payload)

        lock = self._admission_lock(request.date) if self.check_update_conflicts else nullcontext()
        async with lock:
            async with self._session_factory() as session, session.begin():
                reservation = await session.get(Reservation, reservation_id)
                if reservation is None:
                    raise NotFoundError(reservation_id)

                if self.check_update_conflicts:
                    others = [
                        r for r in await self._reservations_on(session, request.date)
                        if r.id != reservation_id
                    ]
                    clash = find_conflict(request, others)
                    if clash is not None:
                        logger.warning("Rejected update of #%s: collides with #%s", reservation_id, clash.id)
                        raise ConflictError(clash.snapshot())

                for key, value in request.model_dump().items():
                    setattr(reservation, key, value)
                await session.flush()
                self._audit(session, AuditAction.UPDATE, reservation.snapshot())

        logger.info("Reservation %s updated", reservation_id)
        return reservation

    async def delete(self, reservation_id: int) -> None:
        async with self._session_factory() as session, session.begin():
            result = await session.execute(delete(Reservation).where(Reservation.id == reservation_id))
            self._audit(session, AuditAction.DELETE, {"id": reservation_id})

        if result.rowcount:
            logger.info("Reservation %s deleted", reservation_id)
        else:
            logger.info("Delete of missing reservation %s recorded", reservation_id)

    async def list_by_date(self, day: Union[datetime.date, str]) -> List[Reservation]:
        day = parse_date(day)
        async with self._session_factory() as session:
            return await self._reservations_on(session, day)

    async def list_all(self) -> List[Reservation]:
        async with self._session_factory() as session:
            result = await session.execute(select(Reservation).order_by(Reservation.id))
            return list(result.scalars().all())

    async def list_by_week(self, start: Union[datetime.date, str, None]) -> List[Reservation]:
        dates = week_dates(parse_date(start, name="start"))
        statement = (
            select(Reservation)
            .where(Reservation.date.in_(dates))
            .order_by(Reservation.date, Reservation.id)
        )
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return list(result.scalars().all())

    async def list_audit(self) -> List[AuditEntry]:
        statement = select(AuditEntry).order_by(AuditEntry.time.desc(), AuditEntry.id.desc())
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return list(result.scalars().all())
