from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError


@dataclass(frozen=True, slots=True)
class SchemaGuardResult:
    ok: bool
    checked_at_utc: datetime
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "checked_at_utc": self.checked_at_utc.isoformat(),
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "issue_count": len(self.issues),
            "warning_count": len(self.warnings),
        }


_PERSONNEL_COLUMNS = {"id", "pno", "name", "father_name", "mobile_number", "home_address"}
_ARCHIVE_COLUMNS = _PERSONNEL_COLUMNS | {"archived_at", "archived_by", "folder_id"}
_DAY_RECORD_COLUMNS = {"id", "personnel_id", "date", "status", "reason", "approval_status"}
_LEAVE_COLUMNS = {"id", "personnel_id", "start_date", "end_date", "reason", "status"}

REQUIRED_TABLE_COLUMNS: dict[str, set[str]] = {
    "trainees": _PERSONNEL_COLUMNS | {"chest_no", "arrival_date"},
    "staff": _PERSONNEL_COLUMNS | {"arrival_date"},
    "archived_trainees": _ARCHIVE_COLUMNS | {"chest_no", "arrival_date"},
    "archived_staff": _ARCHIVE_COLUMNS | {"arrival_date_rtc"},
    "archive_folders": {"id", "folder_name", "created_by", "created_at"},
    "trainee_attendance": _DAY_RECORD_COLUMNS,
    "staff_attendance": _DAY_RECORD_COLUMNS,
    "trainee_leave": _LEAVE_COLUMNS,
    "staff_leave": _LEAVE_COLUMNS,
    "audit_logs": {"id", "action", "actor_id", "success"},
    "alembic_version": {"version_num"},
}

REQUIRED_ENUM_VALUES: dict[str, set[str]] = {
    "attendance_status": {"absent", "on_leave", "suspension", "termination", "resignation"},
    "approval_status": {"approved", "pending", "rejected"},
}

# Upsert target for day-status submissions.
REQUIRED_UNIQUE_CONSTRAINTS: dict[str, tuple[str, ...]] = {
    "trainee_attendance": ("personnel_id", "date"),
    "staff_attendance": ("personnel_id", "date"),
}


def _unique_column_sets(inspector: Any, table_name: str) -> list[tuple[str, ...]]:
    column_sets = [tuple(item.get("column_names") or ()) for item in inspector.get_unique_constraints(table_name)]
    for index in inspector.get_indexes(table_name):
        if index.get("unique"):
            column_sets.append(tuple(index.get("column_names") or ()))
    return column_sets


def verify_runtime_schema(engine: Engine) -> SchemaGuardResult:
    issues: list[str] = []
    warnings: list[str] = []
    checked_at_utc = datetime.now(timezone.utc)
    inspector = inspect(engine)

    for table_name, required_columns in REQUIRED_TABLE_COLUMNS.items():
        try:
            column_names = {str(item.get("name")) for item in inspector.get_columns(table_name)}
        except SQLAlchemyError as exc:
            issues.append(f"TABLE_UNREADABLE:{table_name}:{exc.__class__.__name__}")
            continue

        missing_columns = sorted(item for item in required_columns if item not in column_names)
        if missing_columns:
            issues.append(f"MISSING_COLUMNS:{table_name}:{','.join(missing_columns)}")

    for table_name, columns in REQUIRED_UNIQUE_CONSTRAINTS.items():
        try:
            unique_sets = _unique_column_sets(inspector, table_name)
        except SQLAlchemyError as exc:
            warnings.append(f"UNIQUE_INSPECTION_FAILED:{table_name}:{exc.__class__.__name__}")
            continue
        if not any(set(item) == set(columns) for item in unique_sets):
            issues.append(f"MISSING_UNIQUE:{table_name}:{','.join(columns)}")

    if engine.dialect.name == "postgresql":
        try:
            enums = inspector.get_enums() or []
        except SQLAlchemyError as exc:
            warnings.append(f"ENUM_INSPECTION_FAILED:{exc.__class__.__name__}")
            enums = []

        enum_values_by_name: dict[str, set[str]] = {}
        for enum_item in enums:
            name = str(enum_item.get("name") or "").strip()
            if not name:
                continue
            labels = enum_item.get("labels")
            if isinstance(labels, list):
                enum_values_by_name[name] = {str(label) for label in labels}

        for enum_name, required_values in REQUIRED_ENUM_VALUES.items():
            if enum_name not in enum_values_by_name:
                warnings.append(f"ENUM_NOT_FOUND:{enum_name}")
                continue
            missing_values = sorted(item for item in required_values if item not in enum_values_by_name[enum_name])
            if missing_values:
                issues.append(f"MISSING_ENUM_VALUES:{enum_name}:{','.join(missing_values)}")

    try:
        with engine.connect() as connection:
            row = connection.execute(text("SELECT version_num FROM alembic_version LIMIT 1")).scalar()
            version = str(row).strip() if row is not None else ""
            if not version:
                issues.append("ALEMBIC_VERSION_EMPTY")
    except SQLAlchemyError as exc:
        issues.append(f"ALEMBIC_VERSION_CHECK_FAILED:{exc.__class__.__name__}")

    return SchemaGuardResult(
        ok=len(issues) == 0,
        checked_at_utc=checked_at_utc,
        issues=issues,
        warnings=warnings,
    )
