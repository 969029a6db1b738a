"""Report downloads and generated class rolls."""

from datetime import date

from fastapi import APIRouter, Depends, Query, Response

from sharecrm.core import reports
from sharecrm.core.reports import RenderedReport
from sharecrm.db.staff_repository import UserRecord
from sharecrm.web.deps import require_permission
from sharecrm.web.schemas import ClassRollListResponse, ClassRollResponse

router = APIRouter(prefix="/api/reports", tags=["reports"])
rolls_router = APIRouter(prefix="/api/class-rolls", tags=["reports"])


def file_response(report: RenderedReport) -> Response:
    return Response(
        content=report.data,
        media_type=report.content_type,
        headers={"Content-Disposition": f'attachment; filename="{report.filename}"'},
    )


@router.get("/attendance")
async def attendance_report(
    start: date,
    end: date,
    session_id: str | None = None,
    fmt: str = Query("pdf", alias="format"),
    user: UserRecord = Depends(require_permission("report_read")),
) -> Response:
    return file_response(reports.attendance_report_document(start, end, session_id, fmt))


@router.get("/class-cancellations")
async def class_cancellation_report(
    status: str | None = None,
    fmt: str = Query("pdf", alias="format"),
    user: UserRecord = Depends(require_permission("report_read")),
) -> Response:
    return file_response(reports.class_cancellation_report(status, fmt))


@router.get("/participants")
async def participants_report(
    term_id: int | None = None,
    fmt: str = Query("pdf", alias="format"),
    user: UserRecord = Depends(require_permission("report_read")),
) -> Response:
    return file_response(reports.participants_report(term_id, fmt))


@router.get("/class-roll")
async def class_roll(
    session_id: str,
    class_date: date = Query(..., alias="date"),
    fmt: str = Query("pdf", alias="format"),
    user: UserRecord = Depends(require_permission("report_read")),
) -> Response:
    report, _ = reports.class_roll(session_id, class_date, fmt)
    return file_response(report)


@rolls_router.get("", response_model=ClassRollListResponse)
async def list_class_rolls(
    session_id: str | None = None,
    user: UserRecord = Depends(require_permission("report_read")),
) -> ClassRollListResponse:
    rolls = reports.list_class_rolls(session_id)
    return ClassRollListResponse(
        rolls=[ClassRollResponse.model_validate(r) for r in rolls],
        count=len(rolls),
    )


@rolls_router.get("/{roll_id}/download")
async def download_class_roll(
    roll_id: str,
    user: UserRecord = Depends(require_permission("report_read")),
) -> Response:
    return file_response(reports.download_class_roll(roll_id))
