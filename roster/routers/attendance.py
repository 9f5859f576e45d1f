from datetime import date

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from roster.audit import log_request_audit
from roster.db import get_db
from roster.models import PersonnelType, RecordType
from roster.schemas import (
    ApprovalRequest,
    ApprovalResponse,
    AttendanceHistoryRead,
    DayRecordRead,
    DayRecordUpdateRequest,
    DayStatusRequest,
    LeaveRangeRead,
    LeaveRangeRequest,
    LeaveRangeUpdateRequest,
    PersonnelHistoryRead,
    SuccessResponse,
)
from roster.security import Actor, require_actor, require_admin
from roster.services.attendance import (
    delete_record,
    edit_day_record,
    edit_leave_range,
    get_history,
    get_history_by_pno,
    list_pending,
    submit_day_status,
    submit_leave_range,
    update_approval_status,
)

router = APIRouter(tags=["attendance"])


@router.post("/api/attendance/day-status", response_model=SuccessResponse)
def submit_day_status_endpoint(
    payload: DayStatusRequest,
    request: Request,
    actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> SuccessResponse:
    record = submit_day_status(
        db,
        personnel_type=payload.personnel_type,
        personnel_id=payload.personnel_id,
        day=payload.date,
        status=payload.status,
        reason=payload.reason,
        actor=actor,
    )
    log_request_audit(
        db,
        request,
        actor=actor,
        action="DAY_STATUS_SUBMITTED",
        entity_type=f"{payload.personnel_type.value}_attendance",
        entity_id=record.id,
        details={
            "personnel_id": payload.personnel_id,
            "date": payload.date.isoformat(),
            "status": payload.status.value,
        },
    )
    return SuccessResponse()


@router.post("/api/attendance/leave", response_model=SuccessResponse)
def submit_leave_endpoint(
    payload: LeaveRangeRequest,
    request: Request,
    actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> SuccessResponse:
    leave = submit_leave_range(
        db,
        personnel_type=payload.personnel_type,
        personnel_id=payload.personnel_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        reason=payload.reason,
        leave_type=payload.leave_type,
        actor=actor,
    )
    log_request_audit(
        db,
        request,
        actor=actor,
        action="LEAVE_SUBMITTED",
        entity_type=f"{payload.personnel_type.value}_leave",
        entity_id=leave.id,
        details={
            "personnel_id": payload.personnel_id,
            "start_date": leave.start_date.isoformat(),
            "end_date": leave.end_date.isoformat(),
        },
    )
    return SuccessResponse()


@router.post("/api/attendance/approval", response_model=ApprovalResponse)
def update_approval_endpoint(
    payload: ApprovalRequest,
    request: Request,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
) -> ApprovalResponse:
    result = update_approval_status(
        db,
        record_id=payload.record_id,
        record_type=payload.record_type,
        personnel_type=payload.personnel_type,
        approval_status=payload.approval_status,
        actor=actor,
    )
    log_request_audit(
        db,
        request,
        actor=actor,
        action="APPROVAL_UPDATED",
        entity_type=f"{payload.personnel_type.value}_{payload.record_type.value}",
        entity_id=payload.record_id,
        details={
            "approval_status": payload.approval_status.value,
            "reconciled_days": result.reconciled_days,
        },
    )
    return ApprovalResponse(
        record_type=payload.record_type,
        record_id=payload.record_id,
        approval_status=payload.approval_status,
        reconciled_days=result.reconciled_days,
    )


@router.get("/api/attendance/{personnel_type}/pending", response_model=AttendanceHistoryRead)
def list_pending_endpoint(
    personnel_type: PersonnelType,
    _actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> AttendanceHistoryRead:
    return AttendanceHistoryRead.model_validate(list_pending(db, personnel_type=personnel_type))


@router.get("/api/attendance/{personnel_type}/by-pno/{pno}", response_model=PersonnelHistoryRead)
def history_by_pno_endpoint(
    personnel_type: PersonnelType,
    pno: str,
    _actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> PersonnelHistoryRead:
    person, history = get_history_by_pno(db, personnel_type=personnel_type, pno=pno)
    return PersonnelHistoryRead.model_validate(
        {"personnel": person, "attendance": history.attendance, "leave": history.leave},
        from_attributes=True,
    )


@router.get("/api/attendance/{personnel_type}/{personnel_id}", response_model=AttendanceHistoryRead)
def history_endpoint(
    personnel_type: PersonnelType,
    personnel_id: str,
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    _actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> AttendanceHistoryRead:
    history = get_history(
        db,
        personnel_type=personnel_type,
        personnel_id=personnel_id,
        start_date=start_date,
        end_date=end_date,
    )
    return AttendanceHistoryRead.model_validate(history)


@router.patch("/api/attendance/{personnel_type}/day-records/{record_id}", response_model=DayRecordRead)
def edit_day_record_endpoint(
    personnel_type: PersonnelType,
    record_id: str,
    payload: DayRecordUpdateRequest,
    request: Request,
    actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> DayRecordRead:
    record = edit_day_record(
        db,
        personnel_type=personnel_type,
        record_id=record_id,
        status=payload.status,
        reason=payload.reason,
        actor=actor,
    )
    log_request_audit(
        db,
        request,
        actor=actor,
        action="DAY_RECORD_UPDATED",
        entity_type=f"{personnel_type.value}_attendance",
        entity_id=record_id,
        details=payload.model_dump(mode="json", exclude_unset=True),
    )
    return record


@router.patch("/api/attendance/{personnel_type}/leave-records/{record_id}", response_model=LeaveRangeRead)
def edit_leave_range_endpoint(
    personnel_type: PersonnelType,
    record_id: str,
    payload: LeaveRangeUpdateRequest,
    request: Request,
    actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> LeaveRangeRead:
    leave = edit_leave_range(
        db,
        personnel_type=personnel_type,
        record_id=record_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        reason=payload.reason,
        leave_type=payload.leave_type,
        actor=actor,
    )
    log_request_audit(
        db,
        request,
        actor=actor,
        action="LEAVE_RECORD_UPDATED",
        entity_type=f"{personnel_type.value}_leave",
        entity_id=record_id,
        details=payload.model_dump(mode="json", exclude_unset=True),
    )
    return leave


@router.delete(
    "/api/attendance/{personnel_type}/{record_type}/{record_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_record_endpoint(
    personnel_type: PersonnelType,
    record_type: RecordType,
    record_id: str,
    request: Request,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
) -> None:
    delete_record(db, personnel_type=personnel_type, record_type=record_type, record_id=record_id)
    log_request_audit(
        db,
        request,
        actor=actor,
        action="RECORD_DELETED",
        entity_type=f"{personnel_type.value}_{record_type.value}",
        entity_id=record_id,
    )
