"""Review of booking and class cancellation requests."""

from fastapi import APIRouter, Depends

from sharecrm.core import cancellations
from sharecrm.core.storage import get_storage
from sharecrm.db.cancellations_repository import BookingCancellationRecord
from sharecrm.db.staff_repository import UserRecord
from sharecrm.web.deps import require_permission
from sharecrm.web.schemas import (
    BookingCancellationListResponse,
    BookingCancellationResponse,
    ClassCancellationListResponse,
    ClassCancellationResponse,
    ReviewRequest,
)

booking_router = APIRouter(prefix="/api/booking-cancellations", tags=["cancellations"])
class_router = APIRouter(prefix="/api/class-cancellations", tags=["cancellations"])


def _with_certificate_url(record: BookingCancellationRecord) -> BookingCancellationResponse:
    response = BookingCancellationResponse.model_validate(record)
    if record.medical_certificate_path:
        response.certificate_url = get_storage().signed_url(
            "medical-certificates", record.medical_certificate_path
        )
    return response


@booking_router.get("", response_model=BookingCancellationListResponse)
async def list_booking_cancellations(
    status: str | None = "pending",
    user: UserRecord = Depends(require_permission("booking_read")),
) -> BookingCancellationListResponse:
    """Booking cancellations ordered by class date (pending by default)."""
    items = cancellations.list_booking_cancellations(status=status or None)
    return BookingCancellationListResponse(
        cancellations=[_with_certificate_url(c) for c in items],
        count=len(items),
    )


@booking_router.post("/{cancellation_id}/review", response_model=BookingCancellationResponse)
async def review_booking_cancellation(
    cancellation_id: str,
    body: ReviewRequest,
    user: UserRecord = Depends(require_permission("booking_update")),
) -> BookingCancellationResponse:
    reviewed = cancellations.review_booking_cancellation(cancellation_id, body.status, body.admin_notes)
    return _with_certificate_url(reviewed)


@class_router.get("", response_model=ClassCancellationListResponse)
async def list_class_cancellations(
    status: str | None = None,
    session_id: str | None = None,
    user: UserRecord = Depends(require_permission("class_read")),
) -> ClassCancellationListResponse:
    items = cancellations.list_class_cancellations(status, session_id)
    return ClassCancellationListResponse(
        cancellations=[ClassCancellationResponse.model_validate(c) for c in items],
        count=len(items),
    )


@class_router.post("/{cancellation_id}/review", response_model=ClassCancellationResponse)
async def review_class_cancellation(
    cancellation_id: str,
    body: ReviewRequest,
    user: UserRecord = Depends(require_permission("class_update")),
) -> ClassCancellationResponse:
    reviewed = cancellations.review_class_cancellation(cancellation_id, body.status, body.admin_notes)
    return ClassCancellationResponse.model_validate(reviewed)
