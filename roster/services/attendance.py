from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from roster.errors import ConflictError, NotFoundError, StorageError, ValidationError
from roster.models import (
    ApprovalStatus,
    AttendanceStatus,
    LeaveType,
    PersonnelType,
    RecordType,
    StaffAttendance,
    StaffLeave,
    TraineeAttendance,
    TraineeLeave,
)
from roster.security import Actor
from roster.services.approval import approval_status_for
from roster.services.personnel import Personnel, get_by_pno
from roster.services.storage import commit_or_raise, describe_db_error
from roster.services.tables import PersonnelTables, tables_for

logger = logging.getLogger("roster.attendance")

DayRecord = TraineeAttendance | StaffAttendance
LeaveRecord = TraineeLeave | StaffLeave

# Dialects with INSERT ... ON CONFLICT DO UPDATE.
_UPSERT_INSERTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}
_UPSERT_COLUMNS = ("status", "reason", "approval_status", "reviewed_by", "reviewed_at", "updated_at")


@dataclass(slots=True)
class AttendanceHistory:
    attendance: list[DayRecord]
    leave: list[LeaveRecord]


@dataclass(slots=True)
class ApprovalResult:
    record: DayRecord | LeaveRecord
    reconciled_days: int | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iter_days(start_date: date, end_date: date) -> Iterator[date]:
    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)


def _parse_status(value: AttendanceStatus | str) -> AttendanceStatus:
    try:
        return AttendanceStatus(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown attendance status '{value}'", field="status") from exc


def _parse_leave_type(value: LeaveType | str | None) -> LeaveType | None:
    if value is None or value == "":
        return None
    try:
        return LeaveType(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown leave type '{value}'", field="leave_type") from exc


def _require_reason(reason: str | None) -> str:
    normalized = (reason or "").strip()
    if not normalized:
        raise ValidationError("Reason is required", field="reason")
    return normalized


def _validate_range(start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise ValidationError("end_date must be greater than or equal to start_date", field="end_date")


def _ensure_personnel_exists(db: Session, tables: PersonnelTables, personnel_id: str) -> None:
    if db.get(tables.personnel, personnel_id) is None:
        raise NotFoundError(f"{tables.label} record not found")


def _upsert_day_record(
    db: Session,
    model: type[TraineeAttendance] | type[StaffAttendance],
    *,
    personnel_id: str,
    day: date,
    status: AttendanceStatus,
    reason: str | None,
    approval_status: ApprovalStatus,
    reviewed_by: str | None = None,
) -> None:
    now = _utcnow()
    values: dict[str, Any] = {
        "status": status,
        "reason": reason,
        "approval_status": approval_status,
        "reviewed_by": reviewed_by,
        "reviewed_at": now if reviewed_by else None,
        "updated_at": now,
    }

    insert_factory = _UPSERT_INSERTS.get(db.get_bind().dialect.name)
    if insert_factory is not None:
        table = model.__table__
        stmt = insert_factory(table).values(
            id=str(uuid4()),
            personnel_id=personnel_id,
            date=day,
            created_at=now,
            **values,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.personnel_id, table.c.date],
            set_={column: stmt.excluded[column] for column in _UPSERT_COLUMNS},
        )
        db.execute(stmt)
        return

    # Check-then-write: concurrent submissions for the same day can race here.
    existing = db.scalar(select(model).where(model.personnel_id == personnel_id, model.date == day))
    if existing is None:
        db.add(model(personnel_id=personnel_id, date=day, created_at=now, **values))
    else:
        for key, value in values.items():
            setattr(existing, key, value)
    db.flush()


def _get_day_record(db: Session, tables: PersonnelTables, personnel_id: str, day: date) -> DayRecord:
    record = db.scalar(
        select(tables.attendance).where(
            tables.attendance.personnel_id == personnel_id,
            tables.attendance.date == day,
        )
    )
    if record is None:
        raise StorageError("Attendance record was not persisted")
    return record


def submit_day_status(
    db: Session,
    *,
    personnel_type: PersonnelType | str,
    personnel_id: str,
    day: date,
    status: AttendanceStatus | str,
    reason: str | None,
    actor: Actor,
) -> DayRecord:
    tables = tables_for(personnel_type)
    normalized_status = _parse_status(status)
    normalized_reason = _require_reason(reason)
    _ensure_personnel_exists(db, tables, personnel_id)

    approval_status = approval_status_for(normalized_status)
    try:
        _upsert_day_record(
            db,
            tables.attendance,
            personnel_id=personnel_id,
            day=day,
            status=normalized_status,
            reason=normalized_reason,
            approval_status=approval_status,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError(f"Failed to save attendance record: {describe_db_error(exc)}") from exc
    commit_or_raise(db, action="Save attendance record")

    logger.info(
        "day_status_submitted",
        extra={
            "personnel_type": tables.personnel_type.value,
            "personnel_id": personnel_id,
            "day": day.isoformat(),
            "status": normalized_status.value,
            "approval_status": approval_status.value,
            "actor_id": actor.actor_id,
        },
    )
    return _get_day_record(db, tables, personnel_id, day)


def submit_leave_range(
    db: Session,
    *,
    personnel_type: PersonnelType | str,
    personnel_id: str,
    start_date: date,
    end_date: date | None,
    reason: str | None,
    leave_type: LeaveType | str | None = None,
    actor: Actor,
) -> LeaveRecord:
    tables = tables_for(personnel_type)
    effective_end = end_date or start_date
    _validate_range(start_date, effective_end)
    normalized_reason = _require_reason(reason)
    normalized_leave_type = _parse_leave_type(leave_type)
    _ensure_personnel_exists(db, tables, personnel_id)

    model = tables.leave
    leave = db.scalar(
        select(model)
        .where(model.personnel_id == personnel_id, model.start_date == start_date)
        .order_by(model.created_at.asc())
        .limit(1)
    )
    if leave is None:
        leave = model(
            personnel_id=personnel_id,
            start_date=start_date,
            end_date=effective_end,
            reason=normalized_reason,
            leave_type=normalized_leave_type,
            status=ApprovalStatus.PENDING,
        )
        db.add(leave)
    else:
        leave.end_date = effective_end
        leave.reason = normalized_reason
        leave.leave_type = normalized_leave_type
        leave.status = ApprovalStatus.PENDING
        leave.reviewed_by = None
        leave.reviewed_at = None

    commit_or_raise(db, action="Save leave record")
    db.refresh(leave)
    logger.info(
        "leave_range_submitted",
        extra={
            "personnel_type": tables.personnel_type.value,
            "personnel_id": personnel_id,
            "leave_id": leave.id,
            "start_date": start_date.isoformat(),
            "end_date": effective_end.isoformat(),
            "actor_id": actor.actor_id,
        },
    )
    return leave


def _record_model(tables: PersonnelTables, record_type: RecordType) -> type:
    return tables.leave if record_type == RecordType.LEAVE else tables.attendance


def _parse_record_type(value: RecordType | str) -> RecordType:
    try:
        return RecordType(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown record type '{value}'", field="record_type") from exc


def _get_record(db: Session, tables: PersonnelTables, record_type: RecordType, record_id: str) -> Any:
    record = db.get(_record_model(tables, record_type), record_id)
    if record is None:
        noun = "Leave" if record_type == RecordType.LEAVE else "Attendance"
        raise NotFoundError(f"{noun} record not found")
    return record


def reconcile_approved_leave(
    db: Session,
    *,
    personnel_type: PersonnelType | str,
    leave: LeaveRecord,
    reviewed_by: str | None = None,
) -> int:
    """Materialise an approved leave range as one on-leave day record per date.

    Safe to re-run: every day goes through the (personnel_id, date) upsert.
    """
    tables = tables_for(personnel_type)
    leave_id = leave.id
    personnel_id = leave.personnel_id
    start_date = leave.start_date
    end_date = leave.end_date
    reason = leave.reason

    day_count = 0
    current_day: date | None = None
    try:
        for current_day in iter_days(start_date, end_date):
            _upsert_day_record(
                db,
                tables.attendance,
                personnel_id=personnel_id,
                day=current_day,
                status=AttendanceStatus.ON_LEAVE,
                reason=reason,
                approval_status=ApprovalStatus.APPROVED,
                reviewed_by=reviewed_by,
            )
            day_count += 1
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(
            "leave_reconciliation_failed",
            extra={
                "personnel_type": tables.personnel_type.value,
                "leave_id": leave_id,
                "personnel_id": personnel_id,
                "failed_day": current_day.isoformat() if current_day else None,
            },
        )
        raise StorageError(f"Failed to create attendance for approved leave: {describe_db_error(exc)}") from exc

    logger.info(
        "leave_reconciled",
        extra={
            "personnel_type": tables.personnel_type.value,
            "leave_id": leave_id,
            "personnel_id": personnel_id,
            "days": day_count,
        },
    )
    return day_count


def update_approval_status(
    db: Session,
    *,
    record_id: str,
    record_type: RecordType | str,
    personnel_type: PersonnelType | str,
    approval_status: ApprovalStatus | str,
    actor: Actor,
) -> ApprovalResult:
    tables = tables_for(personnel_type)
    normalized_type = _parse_record_type(record_type)
    try:
        new_status = ApprovalStatus(approval_status)
    except ValueError as exc:
        raise ValidationError(f"Unknown approval status '{approval_status}'", field="approval_status") from exc

    record = _get_record(db, tables, normalized_type, record_id)
    if normalized_type == RecordType.LEAVE:
        record.status = new_status
    else:
        record.approval_status = new_status
    record.reviewed_by = actor.actor_id
    record.reviewed_at = _utcnow()
    commit_or_raise(db, action=f"Update {normalized_type.value} approval status")

    logger.info(
        "approval_status_updated",
        extra={
            "personnel_type": tables.personnel_type.value,
            "record_type": normalized_type.value,
            "record_id": record_id,
            "approval_status": new_status.value,
            "actor_id": actor.actor_id,
        },
    )

    result = ApprovalResult(record=record)
    if normalized_type == RecordType.LEAVE and new_status == ApprovalStatus.APPROVED:
        try:
            result.reconciled_days = reconcile_approved_leave(
                db,
                personnel_type=tables.personnel_type,
                leave=record,
                reviewed_by=actor.actor_id,
            )
        except StorageError:
            # The approval itself stays committed.
            result.reconciled_days = None
        db.refresh(record)
    return result


def get_history(
    db: Session,
    *,
    personnel_type: PersonnelType | str,
    personnel_id: str,
    start_date: date | None = None,
    end_date: date | None = None,
) -> AttendanceHistory:
    tables = tables_for(personnel_type)
    if start_date is not None and end_date is not None:
        _validate_range(start_date, end_date)

    day_model = tables.attendance
    day_stmt = select(day_model).where(day_model.personnel_id == personnel_id)
    leave_model = tables.leave
    leave_stmt = select(leave_model).where(leave_model.personnel_id == personnel_id)
    if start_date is not None:
        day_stmt = day_stmt.where(day_model.date >= start_date)
        leave_stmt = leave_stmt.where(leave_model.end_date >= start_date)
    if end_date is not None:
        day_stmt = day_stmt.where(day_model.date <= end_date)
        leave_stmt = leave_stmt.where(leave_model.start_date <= end_date)

    return AttendanceHistory(
        attendance=list(db.scalars(day_stmt.order_by(day_model.date.desc())).all()),
        leave=list(db.scalars(leave_stmt.order_by(leave_model.start_date.desc())).all()),
    )


def get_history_by_pno(
    db: Session,
    *,
    personnel_type: PersonnelType | str,
    pno: str,
) -> tuple[Personnel, AttendanceHistory]:
    person = get_by_pno(db, personnel_type=personnel_type, pno=pno)
    return person, get_history(db, personnel_type=personnel_type, personnel_id=person.id)


def list_pending(db: Session, *, personnel_type: PersonnelType | str) -> AttendanceHistory:
    tables = tables_for(personnel_type)
    day_model = tables.attendance
    leave_model = tables.leave
    return AttendanceHistory(
        attendance=list(
            db.scalars(
                select(day_model)
                .where(day_model.approval_status == ApprovalStatus.PENDING)
                .order_by(day_model.date.asc(), day_model.id.asc())
            ).all()
        ),
        leave=list(
            db.scalars(
                select(leave_model)
                .where(leave_model.status == ApprovalStatus.PENDING)
                .order_by(leave_model.start_date.asc(), leave_model.id.asc())
            ).all()
        ),
    )


def edit_day_record(
    db: Session,
    *,
    personnel_type: PersonnelType | str,
    record_id: str,
    status: AttendanceStatus | str | None = None,
    reason: str | None = None,
    actor: Actor,
) -> DayRecord:
    tables = tables_for(personnel_type)
    record = _get_record(db, tables, RecordType.ABSENCE, record_id)
    if status is not None:
        normalized_status = _parse_status(status)
        record.status = normalized_status
        record.approval_status = approval_status_for(normalized_status)
        record.reviewed_by = None
        record.reviewed_at = None
    if reason is not None:
        record.reason = _require_reason(reason)

    commit_or_raise(db, action="Update attendance record")
    db.refresh(record)
    logger.info(
        "day_record_edited",
        extra={"personnel_type": tables.personnel_type.value, "record_id": record_id, "actor_id": actor.actor_id},
    )
    return record


def edit_leave_range(
    db: Session,
    *,
    personnel_type: PersonnelType | str,
    record_id: str,
    start_date: date | None = None,
    end_date: date | None = None,
    reason: str | None = None,
    leave_type: LeaveType | str | None = None,
    actor: Actor,
) -> LeaveRecord:
    tables = tables_for(personnel_type)
    leave = _get_record(db, tables, RecordType.LEAVE, record_id)

    new_start = start_date or leave.start_date
    new_end = end_date or leave.end_date
    _validate_range(new_start, new_end)
    if new_start != leave.start_date:
        model = tables.leave
        clash = db.scalar(
            select(model.id)
            .where(
                model.personnel_id == leave.personnel_id,
                model.start_date == new_start,
                model.id != leave.id,
            )
            .limit(1)
        )
        if clash is not None:
            raise ConflictError(f"A leave record starting {new_start.isoformat()} already exists for this person")
    if leave.status == ApprovalStatus.APPROVED:
        # Day rows written by reconciliation are left as they are.
        logger.warning(
            "approved_leave_edited",
            extra={
                "personnel_type": tables.personnel_type.value,
                "record_id": record_id,
                "previous_start_date": leave.start_date.isoformat(),
                "previous_end_date": leave.end_date.isoformat(),
                "start_date": new_start.isoformat(),
                "end_date": new_end.isoformat(),
                "actor_id": actor.actor_id,
            },
        )


    leave.start_date = new_start
    leave.end_date = new_end
    if reason is not None:
        leave.reason = _require_reason(reason)
    if leave_type is not None:
        leave.leave_type = _parse_leave_type(leave_type)
    leave.status = ApprovalStatus.PENDING
    leave.reviewed_by = None
    leave.reviewed_at = None

    commit_or_raise(db, action="Update leave record")
    db.refresh(leave)
    logger.info(
        "leave_record_edited",
        extra={"personnel_type": tables.personnel_type.value, "record_id": record_id, "actor_id": actor.actor_id},
    )
    return leave


def delete_record(
    db: Session,
    *,
    personnel_type: PersonnelType | str,
    record_type: RecordType | str,
    record_id: str,
) -> None:
    tables = tables_for(personnel_type)
    normalized_type = _parse_record_type(record_type)
    record = _get_record(db, tables, normalized_type, record_id)
    db.delete(record)
    commit_or_raise(db, action=f"Delete {normalized_type.value} record")
