"""
SQLAlchemy Repositories

Atomicity comes from guarded UPDATE statements:
- registration: bump registered_count only while the row is open,
  non-terminal, below capacity and without this student; the row lock held
  until commit serialises competing registrants for the same session
- status changes: UPDATE ... WHERE status = :expected
- completion: the status update, counter increments (SET col = col + n) and
  training-point entries commit in one transaction
"""
import logging
from datetime import date, datetime
from typing import Iterable, List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError

from scheduling_engine.models import (
    SessionRegistration,
    StudentProfile,
    TrainingPointEntry,
    TutorProfile,
    TutoringSession,
)
from scheduling_engine.repositories.base import (
    PartyRole,
    ProfileRepository,
    SessionRepository,
    check_mutable_fields,
)
from scheduling_engine.schemas import (
    CompletionCredit,
    Registration,
    SessionRecord,
    StudentProfileRecord,
    TutorProfileRecord,
)
from scheduling_engine.services.errors import NotFound
from scheduling_engine.services.state_machine import NON_TERMINAL_STATUSES, SessionStatus

logger = logging.getLogger(__name__)

NON_TERMINAL_VALUES = [s.value for s in NON_TERMINAL_STATUSES]


def _to_record(row: TutoringSession) -> SessionRecord:
    return SessionRecord(
        id=row.id,
        tutor_id=row.tutor_id,
        student_id=row.student_id,
        title=row.title,
        subject=row.subject,
        is_open=row.is_open,
        max_participants=row.max_participants,
        registered_students=[
            Registration(student_id=r.student_id, registered_at=r.registered_at)
            for r in row.registrations
        ],
        scheduled_date=row.scheduled_date,
        start_time=row.start_time,
        end_time=row.end_time,
        duration_minutes=row.duration_minutes,
        status=SessionStatus(row.status),
        auto_completed=row.auto_completed,
        completed_at=row.completed_at,
        cancelled_by=row.cancelled_by,
        cancellation_reason=row.cancellation_reason,
        cancelled_at=row.cancelled_at,
    )


class SqlSessionRepository(SessionRepository):

    def __init__(self, session_factory):
        self._session_factory = session_factory

    async def create_session(self, record: SessionRecord) -> SessionRecord:
        async with self._session_factory() as db:
            row = TutoringSession(
                id=record.id,
                tutor_id=record.tutor_id,
                student_id=record.student_id,
                title=record.title,
                subject=record.subject,
                is_open=record.is_open,
                max_participants=record.max_participants,
                registered_count=len(record.registered_students),
                scheduled_date=record.scheduled_date,
                start_time=record.start_time,
                end_time=record.end_time,
                duration_minutes=record.duration_minutes,
                status=SessionStatus(record.status).value,
                auto_completed=record.auto_completed,
            )
            row.registrations = [
                SessionRegistration(student_id=r.student_id, registered_at=r.registered_at)
                for r in record.registered_students
            ]
            db.add(row)
            await db.commit()
        return await self.get_session(record.id)

    async def get_session(self, session_id: str) -> Optional[SessionRecord]:
        async with self._session_factory() as db:
            row = await db.get(TutoringSession, session_id)
            return _to_record(row) if row else None

    async def find_party_sessions(
        self,
        role: PartyRole,
        party_id: str,
        on_date: date,
        statuses: Iterable[SessionStatus],
    ) -> List[SessionRecord]:
        stmt = select(TutoringSession).where(
            TutoringSession.scheduled_date == on_date,
            TutoringSession.status.in_([SessionStatus(s).value for s in statuses]),
        )
        if role == PartyRole.TUTOR:
            stmt = stmt.where(TutoringSession.tutor_id == party_id)
        else:
            registered = select(SessionRegistration.session_id).where(
                SessionRegistration.student_id == party_id
            )
            stmt = stmt.where(
                or_(TutoringSession.student_id == party_id, TutoringSession.id.in_(registered))
            )
        stmt = stmt.order_by(TutoringSession.start_time, TutoringSession.id)

        async with self._session_factory() as db:
            result = await db.execute(stmt)
            return [_to_record(row) for row in result.scalars().all()]

    async def register_student(
        self, session_id: str, student_id: str, registered_at: datetime
    ) -> Optional[SessionRecord]:
        already_registered = (
            select(SessionRegistration.id)
            .where(
                SessionRegistration.session_id == session_id,
                SessionRegistration.student_id == student_id,
            )
            .exists()
        )
        claim_seat = (
            update(TutoringSession)
            .where(
                TutoringSession.id == session_id,
                TutoringSession.is_open.is_(True),
                TutoringSession.status.in_(NON_TERMINAL_VALUES),
                TutoringSession.registered_count < TutoringSession.max_participants,
                ~already_registered,
            )
            .values(registered_count=TutoringSession.registered_count + 1)
            .execution_options(synchronize_session=False)
        )

        async with self._session_factory() as db:
            result = await db.execute(claim_seat)
            if result.rowcount != 1:
                await db.rollback()
                return None

            db.add(SessionRegistration(
                session_id=session_id,
                student_id=student_id,
                registered_at=registered_at,
            ))
            try:
                await db.commit()
            except IntegrityError:
                # Unique (session_id, student_id) caught a concurrent duplicate
                await db.rollback()
                logger.info(f"Duplicate registration rejected: session={session_id} student={student_id}")
                return None

        return await self.get_session(session_id)

    async def compare_and_set(
        self, session_id: str, expected_status: SessionStatus, **changes
    ) -> Optional[SessionRecord]:
        check_mutable_fields(changes)
        values = dict(changes)
        if "status" in values:
            values["status"] = SessionStatus(values["status"]).value

        stmt = (
            update(TutoringSession)
            .where(
                TutoringSession.id == session_id,
                TutoringSession.status == SessionStatus(expected_status).value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as db:
            result = await db.execute(stmt)
            if result.rowcount != 1:
                await db.rollback()
                return None
            await db.commit()

        return await self.get_session(session_id)

    async def complete_with_credit(
        self, session_id: str, expected_status: SessionStatus, credit: CompletionCredit, **changes
    ) -> Optional[SessionRecord]:
        check_mutable_fields(changes)
        values = dict(changes, status=SessionStatus.COMPLETED.value)

        complete = (
            update(TutoringSession)
            .where(
                TutoringSession.id == session_id,
                TutoringSession.status == SessionStatus(expected_status).value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        # One transaction; leaving the block without commit rolls everything back
        async with self._session_factory() as db:
            result = await db.execute(complete)
            if result.rowcount != 1:
                await db.rollback()
                return None

            # The updated row stays locked, so registrations cannot change under us
            stored = _to_record(await db.get(TutoringSession, session_id))

            result = await db.execute(
                update(TutorProfile)
                .where(TutorProfile.id == stored.tutor_id)
                .values(completed_sessions=TutorProfile.completed_sessions + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await db.rollback()
                raise NotFound(f"Tutor profile {stored.tutor_id} not found")

            for student_id in stored.bound_student_ids:
                result = await db.execute(
                    update(StudentProfile)
                    .where(StudentProfile.id == student_id)
                    .values(
                        completed_sessions=StudentProfile.completed_sessions + 1,
                        training_points=StudentProfile.training_points + credit.points,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    await db.rollback()
                    raise NotFound(f"Student profile {student_id} not found")
                db.add(TrainingPointEntry(
                    student_id=student_id,
                    points=credit.points,
                    reason=credit.reason,
                    session_id=session_id,
                    awarded_at=credit.awarded_at,
                ))

            await db.commit()

        return await self.get_session(session_id)

    async def list_by_status(
        self, status: SessionStatus, scheduled_on_or_before: date
    ) -> List[SessionRecord]:
        stmt = (
            select(TutoringSession)
            .where(
                TutoringSession.status == SessionStatus(status).value,
                TutoringSession.scheduled_date <= scheduled_on_or_before,
            )
            .order_by(TutoringSession.scheduled_date, TutoringSession.start_time, TutoringSession.id)
        )
        async with self._session_factory() as db:
            result = await db.execute(stmt)
            return [_to_record(row) for row in result.scalars().all()]

    async def list_open_sessions(self, from_date: date) -> List[SessionRecord]:
        stmt = (
            select(TutoringSession)
            .where(
                TutoringSession.is_open.is_(True),
                TutoringSession.status.in_(NON_TERMINAL_VALUES),
                TutoringSession.scheduled_date >= from_date,
                TutoringSession.registered_count < TutoringSession.max_participants,
            )
            .order_by(TutoringSession.scheduled_date, TutoringSession.start_time, TutoringSession.id)
        )
        async with self._session_factory() as db:
            result = await db.execute(stmt)
            return [_to_record(row) for row in result.scalars().all()]


class SqlProfileRepository(ProfileRepository):

    def __init__(self, session_factory):
        self._session_factory = session_factory

    async def get_tutor(self, tutor_id: str) -> Optional[TutorProfileRecord]:
        async with self._session_factory() as db:
            row = await db.get(TutorProfile, tutor_id)
            return TutorProfileRecord.model_validate(row) if row else None

    async def get_student(self, student_id: str) -> Optional[StudentProfileRecord]:
        async with self._session_factory() as db:
            row = await db.get(StudentProfile, student_id)
            return StudentProfileRecord.model_validate(row) if row else None

    async def list_tutors(self) -> List[TutorProfileRecord]:
        async with self._session_factory() as db:
            result = await db.execute(select(TutorProfile).order_by(TutorProfile.id))
            return [TutorProfileRecord.model_validate(row) for row in result.scalars().all()]
