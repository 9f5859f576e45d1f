from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from roster.models import ApprovalStatus, AttendanceStatus, LeaveType, PersonnelType, RecordType, UserRole


class CamelRequest(BaseModel):
    """Request body accepting camelCase keys as well as snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


class LoginRequest(BaseModel):
    username: str
    password: str


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class MeResponse(BaseModel):
    actor_id: str
    username: str
    role: UserRole


class PersonnelFields(CamelRequest):
    pno: str | None = Field(default=None, max_length=50)
    name: str | None = Field(default=None, max_length=255)
    father_name: str | None = Field(default=None, max_length=255)
    rank: str | None = Field(default=None, max_length=50)
    mobile_number: str | None = Field(default=None, max_length=20)
    education: str | None = None
    date_of_birth: date | None = None
    date_of_joining: date | None = None
    blood_group: str | None = None
    nominee: str | None = None
    home_address: str | None = None
    current_posting_district: str | None = None
    category_caste: str | None = None
    toli_no: str | None = None
    photo_url: str | None = None
    chest_no: str | None = None
    arrival_date: date | None = None
    departure_date: date | None = None
    class_no: str | None = None
    class_subject: str | None = None


class PersonnelRead(BaseModel):
    id: str
    pno: str
    name: str
    father_name: str
    rank: str
    mobile_number: str
    education: str | None = None
    date_of_birth: date | None = None
    date_of_joining: date | None = None
    blood_group: str | None = None
    nominee: str | None = None
    home_address: str
    current_posting_district: str | None = None
    category_caste: str | None = None
    toli_no: str | None = None
    photo_url: str | None = None
    chest_no: str | None = None
    arrival_date: date | None = None
    departure_date: date | None = None
    class_no: str | None = None
    class_subject: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class ArchivedPersonnelRead(PersonnelRead):
    arrival_date_rtc: date | None = None
    archived_at: datetime
    archived_by: str | None = None
    folder_id: str | None = None
    status: str | None = None


class DayStatusRequest(CamelRequest):
    personnel_id: str = Field(min_length=1)
    personnel_type: PersonnelType
    date: date
    status: AttendanceStatus
    reason: str = Field(min_length=1, max_length=1000)


class LeaveRangeRequest(CamelRequest):
    personnel_id: str = Field(min_length=1)
    personnel_type: PersonnelType
    start_date: date
    end_date: date | None = None
    reason: str = Field(min_length=1, max_length=1000)
    leave_type: LeaveType | None = None

    @model_validator(mode="after")
    def _validate_range(self) -> "LeaveRangeRequest":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must be greater than or equal to start_date")
        return self


class ApprovalRequest(CamelRequest):
    record_id: str = Field(min_length=1)
    record_type: RecordType
    personnel_type: PersonnelType
    approval_status: ApprovalStatus

    @field_validator("approval_status")
    @classmethod
    def _decision_only(cls, value: ApprovalStatus) -> ApprovalStatus:
        if value == ApprovalStatus.PENDING:
            raise ValueError("approval_status must be approved or rejected")
        return value


class DayRecordUpdateRequest(CamelRequest):
    status: AttendanceStatus | None = None
    reason: str | None = Field(default=None, max_length=1000)


class LeaveRangeUpdateRequest(CamelRequest):
    start_date: date | None = None
    end_date: date | None = None
    reason: str | None = Field(default=None, max_length=1000)
    leave_type: LeaveType | None = None


class DayRecordRead(BaseModel):
    id: str
    personnel_id: str
    date: date
    status: AttendanceStatus
    reason: str | None = None
    approval_status: ApprovalStatus
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class LeaveRangeRead(BaseModel):
    id: str
    personnel_id: str
    start_date: date
    end_date: date
    reason: str
    leave_type: LeaveType | None = None
    status: ApprovalStatus
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class AttendanceHistoryRead(BaseModel):
    attendance: list[DayRecordRead] = Field(default_factory=list)
    leave: list[LeaveRangeRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class PersonnelHistoryRead(BaseModel):
    personnel: PersonnelRead
    attendance: list[DayRecordRead] = Field(default_factory=list)
    leave: list[LeaveRangeRead] = Field(default_factory=list)


class ApprovalResponse(BaseModel):
    success: bool = True
    record_type: RecordType
    record_id: str
    approval_status: ApprovalStatus
    reconciled_days: int | None = None


class SuccessResponse(BaseModel):
    success: bool = True


class MessageResponse(BaseModel):
    message: str


class ArchiveRequest(CamelRequest):
    personnel_type: PersonnelType
    personnel_id: str | None = None
    personnel_ids: list[str] | None = None
    folder_id: str | None = None

    @model_validator(mode="after")
    def _validate_target(self) -> "ArchiveRequest":
        has_single = bool((self.personnel_id or "").strip())
        has_many = bool(self.personnel_ids)
        if not has_single and not has_many:
            raise ValueError("Either personnelId or personnelIds is required.")
        if has_single and has_many:
            raise ValueError("Provide personnelId or personnelIds, not both.")
        return self


class ArchiveResponse(BaseModel):
    archived_count: int = Field(alias="archivedCount")
    folder_id: str | None = Field(default=None, alias="folderId")

    model_config = ConfigDict(populate_by_name=True)


class UnarchiveRequest(CamelRequest):
    personnel_type: PersonnelType
    archived_id: str = Field(min_length=1)


class FolderCreateRequest(CamelRequest):
    name: str = Field(max_length=255)
    description: str | None = None


class FolderRead(BaseModel):
    id: str
    folder_name: str
    description: str | None = None
    created_by: str | None = None
    created_at: datetime
    item_count: int = 0

    model_config = ConfigDict(from_attributes=True)


class FolderListResponse(BaseModel):
    folders: list[FolderRead] = Field(default_factory=list)


class FolderDeleteResponse(BaseModel):
    success: bool = True
    action: Literal["moved_and_deleted", "deleted_with_contents"]
    affected_count: int
    target_folder_id: str | None = None
