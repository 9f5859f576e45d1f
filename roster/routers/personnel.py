from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from roster.audit import log_request_audit
from roster.db import get_db
from roster.models import PersonnelType
from roster.schemas import PersonnelFields, PersonnelRead
from roster.security import Actor, require_actor, require_admin
from roster.services.personnel import (
    delete_personnel,
    get_by_pno,
    get_personnel,
    list_personnel,
    register_personnel,
    update_personnel,
)

router = APIRouter(tags=["personnel"])


@router.post(
    "/api/personnel/{personnel_type}",
    response_model=PersonnelRead,
    status_code=status.HTTP_201_CREATED,
)
def register_personnel_endpoint(
    personnel_type: PersonnelType,
    payload: PersonnelFields,
    request: Request,
    actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> PersonnelRead:
    person = register_personnel(
        db,
        personnel_type=personnel_type,
        values=payload.model_dump(exclude_unset=True),
    )
    log_request_audit(
        db,
        request,
        actor=actor,
        action="PERSONNEL_REGISTERED",
        entity_type=personnel_type.value,
        entity_id=person.id,
        details={"pno": person.pno},
    )
    return person


@router.get("/api/personnel/{personnel_type}", response_model=list[PersonnelRead])
def list_personnel_endpoint(
    personnel_type: PersonnelType,
    search: str | None = Query(default=None, max_length=255),
    rank: str | None = Query(default=None, max_length=50),
    district: str | None = Query(default=None, max_length=255),
    toli_no: str | None = Query(default=None, alias="toliNo", max_length=50),
    _actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> list[PersonnelRead]:
    return list_personnel(
        db,
        personnel_type=personnel_type,
        search=search,
        rank=rank,
        district=district,
        toli_no=toli_no,
    )


@router.get("/api/personnel/{personnel_type}/by-pno/{pno}", response_model=PersonnelRead)
def get_personnel_by_pno_endpoint(
    personnel_type: PersonnelType,
    pno: str,
    _actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> PersonnelRead:
    return get_by_pno(db, personnel_type=personnel_type, pno=pno)


@router.get("/api/personnel/{personnel_type}/{personnel_id}", response_model=PersonnelRead)
def get_personnel_endpoint(
    personnel_type: PersonnelType,
    personnel_id: str,
    _actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> PersonnelRead:
    return get_personnel(db, personnel_type=personnel_type, personnel_id=personnel_id)


@router.patch("/api/personnel/{personnel_type}/{personnel_id}", response_model=PersonnelRead)
def update_personnel_endpoint(
    personnel_type: PersonnelType,
    personnel_id: str,
    payload: PersonnelFields,
    request: Request,
    actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> PersonnelRead:
    changes = payload.model_dump(exclude_unset=True)
    person = update_personnel(
        db,
        personnel_type=personnel_type,
        personnel_id=personnel_id,
        changes=changes,
    )
    log_request_audit(
        db,
        request,
        actor=actor,
        action="PERSONNEL_UPDATED",
        entity_type=personnel_type.value,
        entity_id=personnel_id,
        details={"fields": sorted(changes)},
    )
    return person


@router.delete(
    "/api/personnel/{personnel_type}/{personnel_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_personnel_endpoint(
    personnel_type: PersonnelType,
    personnel_id: str,
    request: Request,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
) -> None:
    delete_personnel(db, personnel_type=personnel_type, personnel_id=personnel_id)
    log_request_audit(
        db,
        request,
        actor=actor,
        action="PERSONNEL_DELETED",
        entity_type=personnel_type.value,
        entity_id=personnel_id,
    )
