"""Per-personnel-type table mapping shared by the services.

Each personnel type owns a live table, an archive table, a day-status
table and a date-range leave table. Archive tables may store a live column
under a different name; ``archive_aliases`` maps live name to archive name.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import inspect

from roster.errors import ValidationError
from roster.models import (
    ArchivedStaff,
    ArchivedTrainee,
    PersonnelType,
    Staff,
    StaffAttendance,
    StaffLeave,
    Trainee,
    TraineeAttendance,
    TraineeLeave,
)

ARCHIVE_ONLY_FIELDS: frozenset[str] = frozenset({"archived_at", "archived_by", "folder_id", "status"})


@dataclass(frozen=True, slots=True)
class PersonnelTables:
    personnel_type: PersonnelType
    personnel: type[Trainee] | type[Staff]
    archive: type[ArchivedTrainee] | type[ArchivedStaff]
    attendance: type[TraineeAttendance] | type[StaffAttendance]
    leave: type[TraineeLeave] | type[StaffLeave]
    label: str
    archive_aliases: Mapping[str, str] = field(default_factory=dict)


_TABLES: dict[PersonnelType, PersonnelTables] = {
    PersonnelType.TRAINEE: PersonnelTables(
        personnel_type=PersonnelType.TRAINEE,
        personnel=Trainee,
        archive=ArchivedTrainee,
        attendance=TraineeAttendance,
        leave=TraineeLeave,
        label="Trainee",
    ),
    PersonnelType.STAFF: PersonnelTables(
        personnel_type=PersonnelType.STAFF,
        personnel=Staff,
        archive=ArchivedStaff,
        attendance=StaffAttendance,
        leave=StaffLeave,
        label="Staff",
        archive_aliases={"arrival_date": "arrival_date_rtc"},
    ),
}


def parse_personnel_type(value: PersonnelType | str) -> PersonnelType:
    try:
        return PersonnelType(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown personnel type '{value}'", field="personnel_type") from exc


def tables_for(personnel_type: PersonnelType | str) -> PersonnelTables:
    return _TABLES[parse_personnel_type(personnel_type)]


def all_tables() -> list[PersonnelTables]:
    return list(_TABLES.values())


def column_names(model: type) -> set[str]:
    return {attr.key for attr in inspect(model).column_attrs}


def row_values(obj: Any) -> dict[str, Any]:
    mapper = inspect(obj).mapper
    return {attr.key: getattr(obj, attr.key) for attr in mapper.column_attrs}


def to_archive_values(tables: PersonnelTables, live_values: Mapping[str, Any]) -> dict[str, Any]:
    archive_columns = column_names(tables.archive)
    values: dict[str, Any] = {}
    for key, value in live_values.items():
        target = tables.archive_aliases.get(key, key)
        if target in archive_columns:
            values[target] = value
    return values


def to_live_values(tables: PersonnelTables, archived_values: Mapping[str, Any]) -> dict[str, Any]:
    live_columns = column_names(tables.personnel)
    reverse_aliases = {archive_name: live_name for live_name, archive_name in tables.archive_aliases.items()}
    values: dict[str, Any] = {}
    for key, value in archived_values.items():
        if key in ARCHIVE_ONLY_FIELDS:
            continue
        target = reverse_aliases.get(key, key)
        if target in live_columns:
            values[target] = value
    return values
