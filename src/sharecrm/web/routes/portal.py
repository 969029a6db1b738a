"""Customer self-service portal endpoints."""

import json
from datetime import date

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status

from sharecrm.core import cancellations, customers, enrollment, reports
from sharecrm.core.errors import NotFoundError, ValidationError
from sharecrm.core.storage import UploadedFile, get_storage
from sharecrm.db.customers_repository import CustomerRecord
from sharecrm.web.deps import get_current_customer
from sharecrm.web.routes.public import to_lines
from sharecrm.web.routes.reports import file_response
from sharecrm.web.schemas import (
    BookingCancellationListResponse,
    BookingCancellationResponse,
    CustomerResponse,
    CustomerUpdate,
    EnrollmentCreatedResponse,
    EnrollmentDetailListResponse,
    EnrollmentDetailResponse,
    PaqFormResponse,
    PaqQuestion,
    PortalEnrollmentRequest,
    TerminationCreate,
    TerminationResponse,
)

router = APIRouter(prefix="/api/portal", tags=["portal"])


async def read_upload(upload: UploadFile | None) -> UploadedFile | None:
    if upload is None or not upload.filename:
        return None
    return UploadedFile(
        filename=upload.filename,
        content_type=upload.content_type,
        data=await upload.read(),
    )


@router.get("/profile", response_model=CustomerResponse)
async def get_profile(customer: CustomerRecord = Depends(get_current_customer)) -> CustomerResponse:
    return CustomerResponse.model_validate(customer)


@router.put("/profile", response_model=CustomerResponse)
async def update_profile(
    body: CustomerUpdate,
    customer: CustomerRecord = Depends(get_current_customer),
) -> CustomerResponse:
    updated = customers.update_customer(
        customer.id, body.model_dump(exclude_unset=True), notify_staff=True
    )
    return CustomerResponse.model_validate(updated)


@router.get("/paq", response_model=PaqFormResponse)
async def get_paq(customer: CustomerRecord = Depends(get_current_customer)) -> PaqFormResponse:
    """PAQ questions with the customer's latest submission."""
    document_url = None
    if customer.paq_document_path:
        document_url = get_storage().signed_url("paq-documents", customer.paq_document_path)
    return PaqFormResponse(
        questions=[PaqQuestion(id=k, text=v) for k, v in customers.PAQ_QUESTIONS.items()],
        paq_form=customer.paq_form,
        paq_status=customer.paq_status,
        paq_answers=customer.paq_answers,
        paq_filled_date=customer.paq_filled_date,
        document_url=document_url,
    )


@router.post("/paq", response_model=CustomerResponse)
async def submit_paq(
    answers: str = Form(..., description="JSON object of question id to true/false"),
    document: UploadFile | None = File(default=None),
    customer: CustomerRecord = Depends(get_current_customer),
) -> CustomerResponse:
    try:
        parsed = json.loads(answers)
    except json.JSONDecodeError:
        raise ValidationError("answers must be a JSON object") from None
    if not isinstance(parsed, dict):
        raise ValidationError("answers must be a JSON object")
    updated = customers.submit_paq(customer.id, parsed, await read_upload(document))
    return CustomerResponse.model_validate(updated)


@router.get("/enrollments", response_model=EnrollmentDetailListResponse)
async def my_enrollments(customer: CustomerRecord = Depends(get_current_customer)) -> EnrollmentDetailListResponse:
    details = enrollment.list_customer_enrollments(customer.id)
    return EnrollmentDetailListResponse(
        enrollments=[EnrollmentDetailResponse.model_validate(d) for d in details],
        count=len(details),
    )


@router.post("/enrollments", response_model=EnrollmentCreatedResponse, status_code=status.HTTP_201_CREATED)
async def enroll(
    body: PortalEnrollmentRequest,
    customer: CustomerRecord = Depends(get_current_customer),
) -> EnrollmentCreatedResponse:
    """Enroll in sessions; paid enrollments return a payment intent."""
    outcome = enrollment.create_portal_enrollment(customer.id, to_lines(body.lines))
    return EnrollmentCreatedResponse(
        detail=EnrollmentDetailResponse.model_validate(outcome.detail),
        total=outcome.amount_due,
        payment_intent=outcome.payment_intent,
        currency=outcome.currency,
    )


@router.get("/enrollments/{enrollment_id}/receipt")
async def my_receipt(
    enrollment_id: str,
    fmt: str = Query("pdf", alias="format"),
    customer: CustomerRecord = Depends(get_current_customer),
) -> Response:
    if enrollment.get_enrollment(enrollment_id).enrollment.customer_id != customer.id:
        raise NotFoundError("Enrollment", enrollment_id)
    return file_response(reports.enrollment_receipt(enrollment_id, fmt))


@router.get("/cancellations", response_model=BookingCancellationListResponse)
async def my_cancellations(customer: CustomerRecord = Depends(get_current_customer)) -> BookingCancellationListResponse:
    items = cancellations.list_booking_cancellations(customer_id=customer.id)
    return BookingCancellationListResponse(
        cancellations=[BookingCancellationResponse.model_validate(c) for c in items],
        count=len(items),
    )


@router.post("/cancellations", response_model=BookingCancellationListResponse, status_code=status.HTTP_201_CREATED)
async def request_cancellation(
    enrollment_session_id: str = Form(...),
    dates: list[date] = Form(...),
    reason: str = Form(...),
    certificate: UploadFile | None = File(default=None),
    customer: CustomerRecord = Depends(get_current_customer),
) -> BookingCancellationListResponse:
    """Ask to skip dated classes of a booking (medical certificate required)."""
    created = cancellations.request_booking_cancellation(
        customer.id,
        enrollment_session_id,
        dates,
        reason,
        await read_upload(certificate),
    )
    return BookingCancellationListResponse(
        cancellations=[BookingCancellationResponse.model_validate(c) for c in created],
        count=len(created),
    )


@router.post("/termination", response_model=TerminationResponse, status_code=status.HTTP_201_CREATED)
async def request_termination(
    body: TerminationCreate,
    customer: CustomerRecord = Depends(get_current_customer),
) -> TerminationResponse:
    termination = customers.request_termination(customer.id, body.termination_date, body.reason)
    return TerminationResponse.model_validate(termination)
