"""Instructor portal endpoints: own sessions, rosters, attendance, class cancellations."""

from datetime import date

from fastapi import APIRouter, Depends, Query, Response, status

from sharecrm.core import attendance, cancellations, catalog, reports
from sharecrm.core.errors import PermissionDeniedError
from sharecrm.db.catalog_repository import InstructorRecord
from sharecrm.web.deps import get_current_instructor
from sharecrm.web.routes.reports import file_response
from sharecrm.web.schemas import (
    AttendanceBatchRequest,
    AttendanceBatchResponse,
    AttendanceRecordResponse,
    ClassCancellationListResponse,
    ClassCancellationRequest,
    ClassCancellationResponse,
    ClassDatesResponse,
    HistoryEntryResponse,
    HistoryResponse,
    RosterEntryResponse,
    RosterResponse,
    SessionListResponse,
    SessionResponse,
)

router = APIRouter(prefix="/api/instructor", tags=["instructor"])


@router.get("/sessions", response_model=SessionListResponse)
async def my_sessions(
    term_id: int | None = None,
    instructor: InstructorRecord = Depends(get_current_instructor),
) -> SessionListResponse:
    sessions = catalog.list_sessions(term_id=term_id, instructor_id=instructor.id)
    return SessionListResponse(
        sessions=[SessionResponse.model_validate(s) for s in sessions],
        count=len(sessions),
    )


@router.get("/sessions/{session_id}/dates", response_model=ClassDatesResponse)
async def session_dates(
    session_id: str,
    instructor: InstructorRecord = Depends(get_current_instructor),
) -> ClassDatesResponse:
    if catalog.get_session(session_id).instructor_id != instructor.id:
        raise PermissionDeniedError("You are not assigned to this session")
    return ClassDatesResponse(session_id=session_id, dates=catalog.session_class_dates(session_id))


@router.get("/sessions/{session_id}/roster", response_model=RosterResponse)
async def session_roster(
    session_id: str,
    class_date: date = Query(..., alias="date"),
    instructor: InstructorRecord = Depends(get_current_instructor),
) -> RosterResponse:
    entries = attendance.roster(session_id, class_date, instructor_id=instructor.id)
    return RosterResponse(
        session_id=session_id,
        class_date=class_date,
        entries=[RosterEntryResponse.model_validate(e) for e in entries],
        count=len(entries),
    )


@router.post("/attendance", response_model=AttendanceBatchResponse)
async def mark_attendance(
    body: AttendanceBatchRequest,
    instructor: InstructorRecord = Depends(get_current_instructor),
) -> AttendanceBatchResponse:
    records = [
        attendance.mark_attendance(
            mark.enrollment_session_id,
            mark.class_date,
            mark.status,
            marked_by=instructor.user_id,
            instructor_id=instructor.id,
        )
        for mark in body.records
    ]
    return AttendanceBatchResponse(
        records=[AttendanceRecordResponse.model_validate(r) for r in records],
        count=len(records),
    )


@router.get("/class-cancellations", response_model=ClassCancellationListResponse)
async def my_class_cancellations(
    instructor: InstructorRecord = Depends(get_current_instructor),
) -> ClassCancellationListResponse:
    items = [
        c for c in cancellations.list_class_cancellations() if c.instructor_id == instructor.id
    ]
    return ClassCancellationListResponse(
        cancellations=[ClassCancellationResponse.model_validate(c) for c in items],
        count=len(items),
    )


@router.post(
    "/class-cancellations",
    response_model=ClassCancellationListResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_class_cancellation(
    body: ClassCancellationRequest,
    instructor: InstructorRecord = Depends(get_current_instructor),
) -> ClassCancellationListResponse:
    created = cancellations.request_class_cancellation(
        instructor.id, body.session_id, body.dates, body.reason
    )
    return ClassCancellationListResponse(
        cancellations=[ClassCancellationResponse.model_validate(c) for c in created],
        count=len(created),
    )


@router.get("/history", response_model=HistoryResponse)
async def attendance_history(
    instructor: InstructorRecord = Depends(get_current_instructor),
) -> HistoryResponse:
    entries = attendance.instructor_history(instructor.id)
    return HistoryResponse(
        history=[HistoryEntryResponse.model_validate(e) for e in entries],
        count=len(entries),
    )


@router.get("/sessions/{session_id}/roll")
async def class_roll(
    session_id: str,
    class_date: date = Query(..., alias="date"),
    fmt: str = Query("pdf", alias="format"),
    instructor: InstructorRecord = Depends(get_current_instructor),
) -> Response:
    """Printable class roll for one of the instructor's classes."""
    attendance.roster(session_id, class_date, instructor_id=instructor.id)
    report, _ = reports.class_roll(session_id, class_date, fmt)
    return file_response(report)
