from __future__ import annotations

import enum
from datetime import date, datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from roster.db import Base


class PersonnelType(str, enum.Enum):
    TRAINEE = "trainee"
    STAFF = "staff"


class AttendanceStatus(str, enum.Enum):
    ABSENT = "absent"
    DUTY = "duty"
    TRAINING = "training"
    ON_LEAVE = "on_leave"
    RETURN_TO_UNIT = "return_to_unit"
    SUSPENSION = "suspension"
    RESIGNATION = "resignation"
    TERMINATION = "termination"
    OTHER = "other"


class ApprovalStatus(str, enum.Enum):
    APPROVED = "approved"
    PENDING = "pending"
    REJECTED = "rejected"


class RecordType(str, enum.Enum):
    ABSENCE = "absence"
    LEAVE = "leave"


class LeaveType(str, enum.Enum):
    CL = "CL"
    EL = "EL"
    ML = "ML"
    MATERNITY = "Maternity"
    OTHER = "other"


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    STAFF = "staff"


class AuditActorType(str, enum.Enum):
    USER = "USER"
    SYSTEM = "SYSTEM"


# Column named "date" shadows the type inside DayRecordColumns.
DayDate = date


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _value_enum(enum_cls: type[enum.Enum], name: str) -> Enum:
    # Persist the lowercase wire values rather than member names.
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


class PersonnelColumns:
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    pno: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    father_name: Mapped[str] = mapped_column(String(255), nullable=False)
    rank: Mapped[str] = mapped_column(String(50), nullable=False, default="CONST")
    mobile_number: Mapped[str] = mapped_column(String(20), nullable=False)
    education: Mapped[str] = mapped_column(String(255), nullable=False, default="Not specified")
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    date_of_joining: Mapped[date | None] = mapped_column(Date, nullable=True)
    blood_group: Mapped[str] = mapped_column(String(20), nullable=False, default="Not specified")
    nominee: Mapped[str] = mapped_column(String(255), nullable=False, default="Not specified")
    home_address: Mapped[str] = mapped_column(Text, nullable=False)
    current_posting_district: Mapped[str] = mapped_column(String(255), nullable=False, default="Not specified")
    category_caste: Mapped[str | None] = mapped_column(String(100), nullable=True)
    toli_no: Mapped[str | None] = mapped_column(String(50), nullable=True)
    photo_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=_utcnow,
    )


class ArchiveColumns:
    archived_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    archived_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    folder_id: Mapped[str | None] = mapped_column(
        ForeignKey("archive_folders.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    status: Mapped[str | None] = mapped_column(String(20), nullable=True, default="archived")


class Trainee(PersonnelColumns, Base):
    __tablename__ = "trainees"
    __table_args__ = (UniqueConstraint("pno", name="uq_trainees_pno"),)

    chest_no: Mapped[str] = mapped_column(String(50), nullable=False)
    arrival_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    departure_date: Mapped[date | None] = mapped_column(Date, nullable=True)


class Staff(PersonnelColumns, Base):
    __tablename__ = "staff"
    __table_args__ = (UniqueConstraint("pno", name="uq_staff_pno"),)

    class_no: Mapped[str | None] = mapped_column(String(50), nullable=True)
    class_subject: Mapped[str | None] = mapped_column(String(255), nullable=True)
    arrival_date: Mapped[date | None] = mapped_column(Date, nullable=True)


class ArchiveFolder(Base):
    __tablename__ = "archive_folders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    folder_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=_utcnow,
    )


class ArchivedTrainee(PersonnelColumns, ArchiveColumns, Base):
    __tablename__ = "archived_trainees"

    chest_no: Mapped[str] = mapped_column(String(50), nullable=False)
    arrival_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    departure_date: Mapped[date | None] = mapped_column(Date, nullable=True)


class ArchivedStaff(PersonnelColumns, ArchiveColumns, Base):
    __tablename__ = "archived_staff"

    class_no: Mapped[str | None] = mapped_column(String(50), nullable=True)
    class_subject: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # Holds the live table's arrival_date.
    arrival_date_rtc: Mapped[date | None] = mapped_column(Date, nullable=True)


class DayRecordColumns:
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    # No FK: history outlives the live personnel row across archive/unarchive.
    personnel_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    date: Mapped[DayDate] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[AttendanceStatus] = mapped_column(_value_enum(AttendanceStatus, "attendance_status"), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    approval_status: Mapped[ApprovalStatus] = mapped_column(
        _value_enum(ApprovalStatus, "approval_status"),
        nullable=False,
        default=ApprovalStatus.PENDING,
    )
    reviewed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=_utcnow,
    )


class LeaveRangeColumns:
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    personnel_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str] = mapped_column(String(1000), nullable=False)
    leave_type: Mapped[LeaveType | None] = mapped_column(_value_enum(LeaveType, "leave_type"), nullable=True)
    status: Mapped[ApprovalStatus] = mapped_column(
        _value_enum(ApprovalStatus, "approval_status"),
        nullable=False,
        default=ApprovalStatus.PENDING,
    )
    reviewed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=_utcnow,
    )


class TraineeAttendance(DayRecordColumns, Base):
    __tablename__ = "trainee_attendance"
    __table_args__ = (
        UniqueConstraint("personnel_id", "date", name="uq_trainee_attendance_personnel_date"),
    )


class StaffAttendance(DayRecordColumns, Base):
    __tablename__ = "staff_attendance"
    __table_args__ = (
        UniqueConstraint("personnel_id", "date", name="uq_staff_attendance_personnel_date"),
    )


class TraineeLeave(LeaveRangeColumns, Base):
    __tablename__ = "trainee_leave"
    __table_args__ = (CheckConstraint("end_date >= start_date", name="ck_trainee_leave_range"),)


class StaffLeave(LeaveRangeColumns, Base):
    __tablename__ = "staff_leave"
    __table_args__ = (CheckConstraint("end_date >= start_date", name="ck_staff_leave_range"),)


class AppUser(Base):
    __tablename__ = "app_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[UserRole] = mapped_column(_value_enum(UserRole, "user_role"), nullable=False, default=UserRole.STAFF)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ts_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    actor_type: Mapped[AuditActorType] = mapped_column(Enum(AuditActorType, name="audit_actor_type"), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    entity_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ip: Mapped[str | None] = mapped_column(String(100), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
