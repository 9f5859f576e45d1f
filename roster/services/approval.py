from __future__ import annotations

from roster.models import ApprovalStatus, AttendanceStatus

AUTO_APPROVED_STATUSES: frozenset[AttendanceStatus] = frozenset(
    {
        AttendanceStatus.ABSENT,
        AttendanceStatus.SUSPENSION,
        AttendanceStatus.TERMINATION,
    }
)


def approval_status_for(status: AttendanceStatus | str) -> ApprovalStatus:
    """Initial approval state for a submitted day status.

    Absence, suspension and termination need no review. Everything else,
    including leave, resignation and unrecognised or custom statuses,
    waits for an explicit decision.
    """
    try:
        normalized = AttendanceStatus(status)
    except ValueError:
        return ApprovalStatus.PENDING
    if normalized in AUTO_APPROVED_STATUSES:
        return ApprovalStatus.APPROVED
    return ApprovalStatus.PENDING
