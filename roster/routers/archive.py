from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from roster.audit import log_request_audit
from roster.db import get_db
from roster.models import PersonnelType
from roster.schemas import (
    ArchivedPersonnelRead,
    ArchiveRequest,
    ArchiveResponse,
    FolderCreateRequest,
    FolderDeleteResponse,
    FolderListResponse,
    FolderRead,
    MessageResponse,
    UnarchiveRequest,
)
from roster.security import Actor, require_actor
from roster.services.archive import (
    archive_many,
    archive_one,
    create_folder,
    delete_folder,
    list_archived,
    list_folders,
    unarchive_one,
)

router = APIRouter(tags=["archive"])


@router.post("/api/archive", response_model=ArchiveResponse)
def archive_endpoint(
    payload: ArchiveRequest,
    request: Request,
    actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> ArchiveResponse:
    if payload.personnel_id:
        result = archive_one(
            db,
            personnel_type=payload.personnel_type,
            personnel_id=payload.personnel_id,
            actor=actor,
            folder_id=payload.folder_id,
        )
    else:
        result = archive_many(
            db,
            personnel_type=payload.personnel_type,
            personnel_ids=payload.personnel_ids or [],
            actor=actor,
            folder_id=payload.folder_id,
        )
    log_request_audit(
        db,
        request,
        actor=actor,
        action="PERSONNEL_ARCHIVED",
        entity_type=payload.personnel_type.value,
        entity_id=result.archived_ids[0] if len(result.archived_ids) == 1 else None,
        details={
            "archived_count": result.archived_count,
            "archived_ids": result.archived_ids,
            "folder_id": result.folder_id,
        },
    )
    return ArchiveResponse(archived_count=result.archived_count, folder_id=result.folder_id)


@router.post("/api/archive/unarchive", response_model=MessageResponse)
def unarchive_endpoint(
    payload: UnarchiveRequest,
    request: Request,
    actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> MessageResponse:
    message = unarchive_one(
        db,
        personnel_type=payload.personnel_type,
        archived_id=payload.archived_id,
        actor=actor,
    )
    log_request_audit(
        db,
        request,
        actor=actor,
        action="PERSONNEL_UNARCHIVED",
        entity_type=payload.personnel_type.value,
        entity_id=payload.archived_id,
    )
    return MessageResponse(message=message)


@router.get("/api/archive/folders", response_model=FolderListResponse)
def list_folders_endpoint(
    _actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> FolderListResponse:
    folders = [
        FolderRead.model_validate(summary.folder).model_copy(update={"item_count": summary.item_count})
        for summary in list_folders(db)
    ]
    return FolderListResponse(folders=folders)


@router.post("/api/archive/folders", response_model=FolderRead, status_code=status.HTTP_201_CREATED)
def create_folder_endpoint(
    payload: FolderCreateRequest,
    request: Request,
    actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> FolderRead:
    folder = create_folder(db, name=payload.name, description=payload.description, actor=actor)
    log_request_audit(
        db,
        request,
        actor=actor,
        action="ARCHIVE_FOLDER_CREATED",
        entity_type="archive_folder",
        entity_id=folder.id,
        details={"folder_name": folder.folder_name},
    )
    return FolderRead.model_validate(folder)


@router.delete("/api/archive/folders/{folder_id}", response_model=FolderDeleteResponse)
def delete_folder_endpoint(
    folder_id: str,
    request: Request,
    target_folder_id: str | None = Query(default=None, alias="targetFolderId"),
    actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> FolderDeleteResponse:
    result = delete_folder(db, folder_id=folder_id, actor=actor, target_folder_id=target_folder_id)
    log_request_audit(
        db,
        request,
        actor=actor,
        action="ARCHIVE_FOLDER_DELETED",
        entity_type="archive_folder",
        entity_id=folder_id,
        details={
            "action": result.action,
            "affected_count": result.affected_count,
            "target_folder_id": result.target_folder_id,
        },
    )
    return FolderDeleteResponse(
        action=result.action,
        affected_count=result.affected_count,
        target_folder_id=result.target_folder_id,
    )


@router.get("/api/archive/{personnel_type}", response_model=list[ArchivedPersonnelRead])
def list_archived_endpoint(
    personnel_type: PersonnelType,
    folder_id: str | None = Query(default=None, alias="folderId"),
    search: str | None = Query(default=None, max_length=255),
    _actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> list[ArchivedPersonnelRead]:
    return list_archived(db, personnel_type=personnel_type, folder_id=folder_id, search=search)
