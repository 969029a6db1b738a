"""Enrollment administration endpoints."""

from fastapi import APIRouter, Depends, Query, Response, status

from sharecrm.core import enrollment, reports
from sharecrm.db.staff_repository import UserRecord
from sharecrm.web.deps import require_permission
from sharecrm.web.routes.public import to_lines
from sharecrm.web.routes.reports import file_response
from sharecrm.web.schemas import (
    DirectEnrollmentRequest,
    EnrollmentCreatedResponse,
    EnrollmentDetailResponse,
    EnrollmentListResponse,
    EnrollmentResponse,
)

router = APIRouter(prefix="/api/enrollments", tags=["enrollments"])


@router.get("", response_model=EnrollmentListResponse)
async def list_enrollments(
    customer_id: str | None = None,
    status: str | None = None,
    user: UserRecord = Depends(require_permission("booking_read")),
) -> EnrollmentListResponse:
    items = enrollment.list_enrollments(customer_id, status)
    return EnrollmentListResponse(
        enrollments=[EnrollmentResponse.model_validate(e) for e in items],
        count=len(items),
    )


@router.post("", response_model=EnrollmentCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_direct_enrollment(
    body: DirectEnrollmentRequest,
    user: UserRecord = Depends(require_permission("create_enrollments")),
) -> EnrollmentCreatedResponse:
    """Front-desk enrollment paid in cash or by cheque."""
    outcome = enrollment.create_direct_enrollment(
        body.customer_id, to_lines(body.lines), body.payment_method, body.notes
    )
    return EnrollmentCreatedResponse(
        detail=EnrollmentDetailResponse.model_validate(outcome.detail),
        total=outcome.amount_due,
    )


@router.get("/{enrollment_id}", response_model=EnrollmentDetailResponse)
async def get_enrollment(
    enrollment_id: str,
    user: UserRecord = Depends(require_permission("booking_read")),
) -> EnrollmentDetailResponse:
    return EnrollmentDetailResponse.model_validate(enrollment.get_enrollment(enrollment_id))


@router.post("/{enrollment_id}/cancel", response_model=EnrollmentDetailResponse)
async def cancel_enrollment(
    enrollment_id: str,
    user: UserRecord = Depends(require_permission("booking_delete")),
) -> EnrollmentDetailResponse:
    return EnrollmentDetailResponse.model_validate(enrollment.cancel_enrollment(enrollment_id))


@router.get("/{enrollment_id}/receipt")
async def enrollment_receipt(
    enrollment_id: str,
    fmt: str = Query("pdf", alias="format"),
    user: UserRecord = Depends(require_permission("booking_read")),
) -> Response:
    return file_response(reports.enrollment_receipt(enrollment_id, fmt))
