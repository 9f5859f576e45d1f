from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from roster.errors import ConflictError, NotFoundError, ValidationError
from roster.models import PersonnelType, Staff, Trainee
from roster.services.storage import commit_or_raise
from roster.services.tables import PersonnelTables, column_names, tables_for

logger = logging.getLogger("roster.personnel")

REQUIRED_FIELDS: tuple[str, ...] = ("pno", "name", "father_name", "mobile_number", "home_address")
_FIELD_DEFAULTS: dict[str, str] = {
    "current_posting_district": "Not specified",
    "education": "Not specified",
    "blood_group": "Not specified",
    "nominee": "Not specified",
    "rank": "CONST",
}
_SYSTEM_FIELDS = frozenset({"id", "created_at", "updated_at"})

Personnel = Trainee | Staff


def _editable_fields(tables: PersonnelTables) -> set[str]:
    return column_names(tables.personnel) - _SYSTEM_FIELDS


def _clean_values(tables: PersonnelTables, values: Mapping[str, Any]) -> dict[str, Any]:
    editable = _editable_fields(tables)
    cleaned: dict[str, Any] = {}
    for key, value in values.items():
        if key not in editable:
            continue
        if isinstance(value, str):
            value = value.strip() or None
        cleaned[key] = value
    return cleaned


def _duplicate_pno_message(tables: PersonnelTables) -> str:
    return f"A {tables.label.lower()} with this PNO already exists"


def _ensure_pno_available(
    db: Session,
    tables: PersonnelTables,
    pno: str,
    *,
    exclude_id: str | None = None,
) -> None:
    stmt = select(tables.personnel.id).where(tables.personnel.pno == pno)
    if exclude_id is not None:
        stmt = stmt.where(tables.personnel.id != exclude_id)
    if db.scalar(stmt.limit(1)) is not None:
        raise ConflictError(_duplicate_pno_message(tables))


def register_personnel(
    db: Session,
    *,
    personnel_type: PersonnelType | str,
    values: Mapping[str, Any],
) -> Personnel:
    tables = tables_for(personnel_type)
    cleaned = _clean_values(tables, values)

    missing = [field for field in REQUIRED_FIELDS if not cleaned.get(field)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", field=missing[0])

    for key, default in _FIELD_DEFAULTS.items():
        if not cleaned.get(key):
            cleaned[key] = default
    if tables.personnel_type == PersonnelType.TRAINEE and not cleaned.get("chest_no"):
        cleaned["chest_no"] = cleaned["pno"]

    _ensure_pno_available(db, tables, cleaned["pno"])

    person = tables.personnel(**cleaned)
    db.add(person)
    commit_or_raise(db, action=f"Register {tables.label.lower()}", conflict_message=_duplicate_pno_message(tables))
    db.refresh(person)
    logger.info(
        "personnel_registered",
        extra={"personnel_type": tables.personnel_type.value, "personnel_id": person.id, "pno": person.pno},
    )
    return person


def get_personnel(db: Session, *, personnel_type: PersonnelType | str, personnel_id: str) -> Personnel:
    tables = tables_for(personnel_type)
    person = db.get(tables.personnel, personnel_id)
    if person is None:
        raise NotFoundError(f"{tables.label} record not found")
    return person


def get_by_pno(db: Session, *, personnel_type: PersonnelType | str, pno: str) -> Personnel:
    tables = tables_for(personnel_type)
    normalized = (pno or "").strip()
    if not normalized:
        raise ValidationError("PNO is required", field="pno")
    person = db.scalar(select(tables.personnel).where(tables.personnel.pno == normalized))
    if person is None:
        raise NotFoundError(f"{tables.label} with PNO {normalized} not found")
    return person


def list_personnel(
    db: Session,
    *,
    personnel_type: PersonnelType | str,
    search: str | None = None,
    rank: str | None = None,
    district: str | None = None,
    toli_no: str | None = None,
) -> list[Personnel]:
    tables = tables_for(personnel_type)
    model = tables.personnel
    stmt = select(model).order_by(model.name.asc(), model.pno.asc())

    term = (search or "").strip().lower()
    if term:
        pattern = f"%{term}%"
        conditions = [func.lower(model.name).like(pattern), func.lower(model.pno).like(pattern)]
        if model is Trainee:
            conditions.append(func.lower(Trainee.chest_no).like(pattern))
        stmt = stmt.where(or_(*conditions))
    if rank:
        stmt = stmt.where(model.rank == rank.strip())
    if district:
        stmt = stmt.where(func.lower(model.current_posting_district) == district.strip().lower())
    if toli_no:
        stmt = stmt.where(model.toli_no == toli_no.strip())

    return list(db.scalars(stmt).all())


def update_personnel(
    db: Session,
    *,
    personnel_type: PersonnelType | str,
    personnel_id: str,
    changes: Mapping[str, Any],
) -> Personnel:
    tables = tables_for(personnel_type)
    person = get_personnel(db, personnel_type=tables.personnel_type, personnel_id=personnel_id)
    cleaned = _clean_values(tables, changes)

    blanked = [field for field in REQUIRED_FIELDS if field in cleaned and not cleaned[field]]
    if blanked:
        raise ValidationError(f"Required fields cannot be empty: {', '.join(blanked)}", field=blanked[0])

    new_pno = cleaned.get("pno")
    if new_pno and new_pno != person.pno:
        _ensure_pno_available(db, tables, new_pno, exclude_id=person.id)

    for key, value in cleaned.items():
        setattr(person, key, value)

    commit_or_raise(db, action=f"Update {tables.label.lower()}", conflict_message=_duplicate_pno_message(tables))
    db.refresh(person)
    return person


def delete_personnel(db: Session, *, personnel_type: PersonnelType | str, personnel_id: str) -> None:
    tables = tables_for(personnel_type)
    person = get_personnel(db, personnel_type=tables.personnel_type, personnel_id=personnel_id)
    db.delete(person)
    commit_or_raise(db, action=f"Delete {tables.label.lower()}")
    logger.info(
        "personnel_deleted",
        extra={"personnel_type": tables.personnel_type.value, "personnel_id": personnel_id},
    )
