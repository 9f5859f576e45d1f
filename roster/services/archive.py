from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, func, insert, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from roster.errors import ConflictError, ForbiddenError, NotFoundError, StorageError, ValidationError
from roster.models import ArchivedStaff, ArchivedTrainee, ArchiveFolder, PersonnelType
from roster.security import Actor
from roster.services.saga import SagaStep, run_saga
from roster.services.storage import commit_or_raise, describe_db_error
from roster.services.tables import all_tables, row_values, tables_for, to_archive_values, to_live_values
from roster.settings import get_settings

logger = logging.getLogger("roster.archive")

ArchivedPersonnel = ArchivedTrainee | ArchivedStaff


@dataclass(slots=True)
class ArchiveResult:
    archived_count: int
    folder_id: str | None
    archived_ids: list[str] = field(default_factory=list)


@dataclass(slots=True)
class FolderSummary:
    folder: ArchiveFolder
    item_count: int


@dataclass(slots=True)
class FolderDeleteResult:
    folder_id: str
    action: str
    affected_count: int
    target_folder_id: str | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _insert_rows(db: Session, model: type, values_list: Sequence[dict[str, Any]]) -> None:
    if values_list:
        db.execute(insert(model.__table__), list(values_list))


def _delete_rows(db: Session, model: type, ids: Sequence[str]) -> None:
    if ids:
        table = model.__table__
        db.execute(delete(table).where(table.c.id.in_(list(ids))))


def _ensure_folder_exists(db: Session, folder_id: str, *, message: str = "Archive folder not found") -> ArchiveFolder:
    folder = db.get(ArchiveFolder, folder_id)
    if folder is None:
        raise NotFoundError(message)
    return folder


def _normalize_ids(personnel_ids: Sequence[str]) -> list[str]:
    ids: list[str] = []
    seen: set[str] = set()
    for raw in personnel_ids:
        value = (raw or "").strip()
        if value and value not in seen:
            seen.add(value)
            ids.append(value)
    return ids


def _chunks(items: Sequence[str], size: int) -> list[list[str]]:
    size = max(1, size)
    return [list(items[start : start + size]) for start in range(0, len(items), size)]


def archive_many(
    db: Session,
    *,
    personnel_type: PersonnelType | str,
    personnel_ids: Sequence[str],
    actor: Actor,
    folder_id: str | None = None,
) -> ArchiveResult:
    """Move live personnel rows into the archive table.

    Ids are processed in chunks of ``archive_batch_size``. Every chunk is
    copied into the archive before any live row is removed, and each step
    carries a compensation, so a failure anywhere restores the whole call.
    """
    tables = tables_for(personnel_type)
    ids = _normalize_ids(personnel_ids)
    if not ids:
        raise ValidationError("At least one personnel id is required", field="personnel_ids")
    if folder_id:
        _ensure_folder_exists(db, folder_id)
    else:
        folder_id = None

    chunks: list[tuple[list[dict[str, Any]], list[dict[str, Any]]]] = []
    archived_at = _utcnow()
    for chunk_ids in _chunks(ids, get_settings().archive_batch_size):
        rows = list(db.scalars(select(tables.personnel).where(tables.personnel.id.in_(chunk_ids))).all())
        if not rows:
            continue
        live_values = [row_values(row) for row in rows]
        archive_values: list[dict[str, Any]] = []
        for live in live_values:
            values = to_archive_values(tables, live)
            values.update(
                archived_at=archived_at,
                archived_by=actor.actor_id,
                folder_id=folder_id,
                status="archived",
            )
            archive_values.append(values)
        # Drop identity-map copies so the Core deletes below are the only writers.
        for row in rows:
            db.expunge(row)
        chunks.append((live_values, archive_values))

    if not chunks:
        raise NotFoundError(f"No {tables.label.lower()} records found to archive")

    steps: list[SagaStep] = []
    for index, (_, archive_values) in enumerate(chunks):
        chunk_ids = [values["id"] for values in archive_values]
        steps.append(
            SagaStep(
                name=f"insert_archive_rows_{index}",
                action=lambda values=archive_values: _insert_rows(db, tables.archive, values),
                compensate=lambda row_ids=chunk_ids: _delete_rows(db, tables.archive, row_ids),
                failure_message="Failed to archive records",
            )
        )
    for index, (live_values, archive_values) in enumerate(chunks):
        chunk_ids = [values["id"] for values in archive_values]
        steps.append(
            SagaStep(
                name=f"delete_live_rows_{index}",
                action=lambda row_ids=chunk_ids: _delete_rows(db, tables.personnel, row_ids),
                compensate=lambda values=live_values: _insert_rows(db, tables.personnel, values),
                failure_message="Failed to remove records from the active list",
            )
        )

    archived_ids = [values["id"] for _, archive_values in chunks for values in archive_values]
    run_saga(
        db,
        steps,
        saga="archive",
        context={
            "personnel_type": tables.personnel_type.value,
            "record_count": len(archived_ids),
            "chunk_count": len(chunks),
            "folder_id": folder_id,
            "actor_id": actor.actor_id,
        },
    )

    logger.info(
        "personnel_archived",
        extra={
            "personnel_type": tables.personnel_type.value,
            "archived_count": len(archived_ids),
            "requested_count": len(ids),
            "folder_id": folder_id,
            "actor_id": actor.actor_id,
        },
    )
    return ArchiveResult(archived_count=len(archived_ids), folder_id=folder_id, archived_ids=archived_ids)


def archive_one(
    db: Session,
    *,
    personnel_type: PersonnelType | str,
    personnel_id: str,
    actor: Actor,
    folder_id: str | None = None,
) -> ArchiveResult:
    tables = tables_for(personnel_type)
    if db.get(tables.personnel, personnel_id) is None:
        raise NotFoundError(f"{tables.label} record not found")
    return archive_many(
        db,
        personnel_type=tables.personnel_type,
        personnel_ids=[personnel_id],
        actor=actor,
        folder_id=folder_id,
    )


def unarchive_one(
    db: Session,
    *,
    personnel_type: PersonnelType | str,
    archived_id: str,
    actor: Actor,
) -> str:
    tables = tables_for(personnel_type)
    archived = db.get(tables.archive, archived_id)
    if archived is None:
        raise NotFoundError("Archived record not found")

    live_values = to_live_values(tables, row_values(archived))
    if db.get(tables.personnel, archived_id) is not None:
        raise ConflictError(f"{tables.label} record is already active")
    clash = db.scalar(select(tables.personnel.id).where(tables.personnel.pno == live_values["pno"]).limit(1))
    if clash is not None:
        raise ConflictError(f"An active {tables.label.lower()} with PNO {live_values['pno']} already exists")
    db.expunge(archived)

    run_saga(
        db,
        [
            SagaStep(
                name="insert_live_row",
                action=lambda: _insert_rows(db, tables.personnel, [live_values]),
                compensate=lambda: _delete_rows(db, tables.personnel, [archived_id]),
                failure_message="Failed to restore record",
            ),
            SagaStep(
                name="delete_archive_row",
                action=lambda: _delete_rows(db, tables.archive, [archived_id]),
                failure_message="Failed to remove record from archive",
            ),
        ],
        saga="unarchive",
        context={
            "personnel_type": tables.personnel_type.value,
            "personnel_id": archived_id,
            "actor_id": actor.actor_id,
        },
    )

    logger.info(
        "personnel_unarchived",
        extra={"personnel_type": tables.personnel_type.value, "personnel_id": archived_id, "actor_id": actor.actor_id},
    )
    return f"{tables.label} record restored successfully"


def list_archived(
    db: Session,
    *,
    personnel_type: PersonnelType | str,
    folder_id: str | None = None,
    search: str | None = None,
) -> list[ArchivedPersonnel]:
    tables = tables_for(personnel_type)
    model = tables.archive
    stmt = select(model).order_by(model.archived_at.desc(), model.id.asc())
    if folder_id:
        stmt = stmt.where(model.folder_id == folder_id)
    term = (search or "").strip().lower()
    if term:
        pattern = f"%{term}%"
        stmt = stmt.where(or_(func.lower(model.name).like(pattern), func.lower(model.pno).like(pattern)))
    return list(db.scalars(stmt).all())


def _member_counts(db: Session) -> dict[str, int]:
    counts: dict[str, int] = {}
    for tables in all_tables():
        model = tables.archive
        rows = db.execute(
            select(model.folder_id, func.count(model.id))
            .where(model.folder_id.is_not(None))
            .group_by(model.folder_id)
        ).all()
        for folder_id, count in rows:
            counts[folder_id] = counts.get(folder_id, 0) + int(count)
    return counts


def list_folders(db: Session) -> list[FolderSummary]:
    folders = db.scalars(
        select(ArchiveFolder).order_by(ArchiveFolder.created_at.desc(), ArchiveFolder.id.asc())
    ).all()
    counts = _member_counts(db)
    return [FolderSummary(folder=folder, item_count=counts.get(folder.id, 0)) for folder in folders]


def create_folder(
    db: Session,
    *,
    name: str | None,
    description: str | None,
    actor: Actor,
) -> ArchiveFolder:
    folder_name = (name or "").strip()
    if not folder_name:
        raise ValidationError("Folder name is required", field="folder_name")

    folder = ArchiveFolder(
        folder_name=folder_name,
        description=(description or "").strip() or None,
        created_by=actor.actor_id,
    )
    db.add(folder)
    commit_or_raise(db, action="Create archive folder")
    db.refresh(folder)
    logger.info(
        "archive_folder_created",
        extra={"folder_id": folder.id, "folder_name": folder.folder_name, "actor_id": actor.actor_id},
    )
    return folder


def delete_folder(
    db: Session,
    *,
    folder_id: str,
    actor: Actor,
    target_folder_id: str | None = None,
) -> FolderDeleteResult:
    folder = _ensure_folder_exists(db, folder_id)
    if not actor.is_admin and folder.created_by != actor.actor_id:
        raise ForbiddenError("Only admins or the folder creator can delete this folder")

    target_folder_id = target_folder_id or None
    if target_folder_id is not None:
        if target_folder_id == folder_id:
            raise ValidationError("Destination folder must differ from the deleted folder", field="target_folder_id")
        _ensure_folder_exists(db, target_folder_id, message="Destination folder not found")

    affected = 0
    try:
        # Members are resolved before the folder row goes away.
        for tables in all_tables():
            table = tables.archive.__table__
            if target_folder_id is not None:
                result = db.execute(
                    update(table).where(table.c.folder_id == folder_id).values(folder_id=target_folder_id)
                )
            else:
                result = db.execute(delete(table).where(table.c.folder_id == folder_id))
            affected += result.rowcount or 0
        db.execute(delete(ArchiveFolder.__table__).where(ArchiveFolder.__table__.c.id == folder_id))
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "archive_folder_delete_failed",
            extra={"folder_id": folder_id, "target_folder_id": target_folder_id, "error": describe_db_error(exc)},
        )
        raise StorageError(f"Failed to delete archive folder: {describe_db_error(exc)}") from exc

    action = "moved_and_deleted" if target_folder_id is not None else "deleted_with_contents"
    logger.info(
        "archive_folder_deleted",
        extra={
            "folder_id": folder_id,
            "target_folder_id": target_folder_id,
            "action": action,
            "affected_count": affected,
            "actor_id": actor.actor_id,
        },
    )
    return FolderDeleteResult(
        folder_id=folder_id,
        action=action,
        affected_count=affected,
        target_folder_id=target_folder_id,
    )
