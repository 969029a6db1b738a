"""Staff rosters and attendance marking."""

from datetime import date

from fastapi import APIRouter, Depends, Query

from sharecrm.core import attendance
from sharecrm.db.staff_repository import UserRecord
from sharecrm.web.deps import require_permission
from sharecrm.web.schemas import (
    AttendanceBatchRequest,
    AttendanceBatchResponse,
    AttendanceRecordResponse,
    RosterEntryResponse,
    RosterResponse,
)

router = APIRouter(prefix="/api/attendance", tags=["attendance"])


@router.get("/roster", response_model=RosterResponse)
async def roster(
    session_id: str,
    class_date: date = Query(..., alias="date"),
    user: UserRecord = Depends(require_permission("class_read")),
) -> RosterResponse:
    entries = attendance.roster(session_id, class_date)
    return RosterResponse(
        session_id=session_id,
        class_date=class_date,
        entries=[RosterEntryResponse.model_validate(e) for e in entries],
        count=len(entries),
    )


@router.post("", response_model=AttendanceBatchResponse)
async def mark_attendance(
    body: AttendanceBatchRequest,
    user: UserRecord = Depends(require_permission("class_update")),
) -> AttendanceBatchResponse:
    records = [
        attendance.mark_attendance(mark.enrollment_session_id, mark.class_date, mark.status, marked_by=user.id)
        for mark in body.records
    ]
    return AttendanceBatchResponse(
        records=[AttendanceRecordResponse.model_validate(r) for r in records],
        count=len(records),
    )
