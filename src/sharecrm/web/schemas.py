"""Pydantic schemas for the Web API.

Request bodies and response models. Response models read core records
directly (``from_attributes``).
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field

ReviewStatus = Literal["accepted", "rejected"]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str


# =============================================================================
# AUTH SCHEMAS
# =============================================================================


class SignUpRequest(BaseModel):
    email: str
    password: str
    first_name: str = Field(..., min_length=1, max_length=100)
    surname: str = Field(..., min_length=1, max_length=100)


class SignInRequest(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    """Login account without its password hash."""

    id: str
    email: str
    full_name: str
    role: str
    staff_role_id: str | None = None
    staff_role_name: str | None = None
    phone: str | None = None
    bio: str | None = None
    disabled: bool = False

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    access_token: str
    token_type: str
    expires_at: datetime
    user: UserResponse


class MeResponse(BaseModel):
    """Signed-in user with what they may access."""

    user: UserResponse
    permissions: list[str]
    customer_id: str | None = None
    instructor_id: str | None = None


# =============================================================================
# CUSTOMER SCHEMAS
# =============================================================================


class CustomerProfileFields(BaseModel):
    """Optional profile fields shared by create and update bodies."""

    contact_no: str | None = None
    street_number: str | None = None
    street_name: str | None = None
    suburb: str | None = None
    post_code: str | None = None
    country_of_birth: str | None = None
    date_of_birth: date | None = None
    work_mobile: str | None = None
    australian_citizen: bool | None = None
    language_other_than_english: str | None = None
    english_proficiency: str | None = None
    indigenous_status: str | None = None
    reason_for_class: str | None = None
    how_did_you_hear: str | None = None
    occupation: str | None = None
    next_of_kin_name: str | None = None
    next_of_kin_relationship: str | None = None
    next_of_kin_mobile: str | None = None
    next_of_kin_phone: str | None = None


class CustomerCreate(CustomerProfileFields):
    first_name: str
    surname: str
    email: str


class CustomerUpdate(CustomerProfileFields):
    first_name: str | None = None
    surname: str | None = None
    email: str | None = None


class CustomerResponse(BaseModel):
    id: str
    user_id: str | None
    first_name: str
    surname: str
    full_name: str
    email: str
    status: str
    customer_credit: int
    paq_form: bool
    paq_status: str | None
    paq_answers: dict[str, bool]
    paq_document_path: str | None
    paq_filled_date: str | None
    block_note: str | None
    blocked_at: str | None
    created_at: str
    updated_at: str
    profile: dict[str, Any]

    model_config = {"from_attributes": True}


class CustomerListResponse(BaseModel):
    customers: list[CustomerResponse]
    count: int


class BlockRequest(BaseModel):
    note: str = Field(..., min_length=1)


class CreditRequest(BaseModel):
    delta: int


class TerminationCreate(BaseModel):
    termination_date: date
    reason: str
    admin_notes: str | None = None


class TerminationResponse(BaseModel):
    id: str
    customer_id: str
    customer_name: str
    termination_date: str
    reason: str
    admin_notes: str | None
    status: str
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class TerminationListResponse(BaseModel):
    terminations: list[TerminationResponse]
    count: int


class ReviewRequest(BaseModel):
    """Accept or reject a pending request."""

    status: ReviewStatus
    admin_notes: str | None = None


class PaqQuestion(BaseModel):
    id: str
    text: str


class PaqFormResponse(BaseModel):
    questions: list[PaqQuestion]
    paq_form: bool
    paq_status: str | None
    paq_answers: dict[str, bool]
    paq_filled_date: str | None
    document_url: str | None = None


class PaqReviewItem(BaseModel):
    customer: CustomerResponse
    document_url: str | None = None


class PaqReviewListResponse(BaseModel):
    reviews: list[PaqReviewItem]
    count: int


# =============================================================================
# CATALOG SCHEMAS
# =============================================================================


class VenueCreate(BaseModel):
    name: str
    street_address: str
    city: str
    status: Literal["active", "inactive"] = "active"


class VenueUpdate(BaseModel):
    name: str | None = None
    street_address: str | None = None
    city: str | None = None
    status: Literal["active", "inactive"] | None = None


class VenueResponse(BaseModel):
    id: str
    name: str
    street_address: str
    city: str
    status: str

    model_config = {"from_attributes": True}


class VenueListResponse(BaseModel):
    venues: list[VenueResponse]
    count: int


class TermCreate(BaseModel):
    fiscal_year: int
    term_number: int
    day_of_week: str
    start_date: date
    end_date: date
    number_of_weeks: int | None = None


class TermUpdate(BaseModel):
    fiscal_year: int | None = None
    term_number: int | None = None
    day_of_week: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    number_of_weeks: int | None = None


class TermResponse(BaseModel):
    id: int
    fiscal_year: int
    term_number: int
    day_of_week: str
    start_date: date
    end_date: date
    number_of_weeks: int
    label: str

    model_config = {"from_attributes": True}


class TermListResponse(BaseModel):
    terms: list[TermResponse]
    count: int


class ExerciseTypeCreate(BaseModel):
    name: str
    description: str | None = None


class ExerciseTypeUpdate(BaseModel):
    name: str | None = None
    description: str | None = None


class ExerciseTypeResponse(BaseModel):
    id: str
    name: str
    description: str | None

    model_config = {"from_attributes": True}


class ExerciseTypeListResponse(BaseModel):
    exercise_types: list[ExerciseTypeResponse]
    count: int


class InstructorCreate(BaseModel):
    name: str
    email: str
    contact_no: str
    specialty: str
    address: str
    description: str | None = None
    image_link: str | None = None
    password: str | None = None


class InstructorUpdate(BaseModel):
    name: str | None = None
    email: str | None = None
    contact_no: str | None = None
    specialty: str | None = None
    address: str | None = None
    description: str | None = None
    image_link: str | None = None


class InstructorResponse(BaseModel):
    id: str
    user_id: str | None
    name: str
    email: str
    contact_no: str
    specialty: str
    address: str
    description: str | None
    image_link: str | None

    model_config = {"from_attributes": True}


class InstructorCreatedResponse(BaseModel):
    instructor: InstructorResponse
    generated_password: str | None = None


class InstructorListResponse(BaseModel):
    instructors: list[InstructorResponse]
    count: int


class SessionCreate(BaseModel):
    name: str
    code: str
    venue_id: str
    instructor_id: str
    exercise_type_id: str | None = None
    term_id: int
    fee_criteria: str
    fee_amount: float = Field(..., ge=0)
    day_of_week: str
    start_time: str
    end_time: str | None = None
    zip_code: str | None = None
    is_subsidised: bool = False
    class_capacity: int | None = None


class SessionUpdate(BaseModel):
    name: str | None = None
    code: str | None = None
    venue_id: str | None = None
    instructor_id: str | None = None
    exercise_type_id: str | None = None
    term_id: int | None = None
    fee_criteria: str | None = None
    fee_amount: float | None = Field(default=None, ge=0)
    day_of_week: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    zip_code: str | None = None
    is_subsidised: bool | None = None
    class_capacity: int | None = None


class SessionResponse(BaseModel):
    id: str
    name: str
    code: str
    venue_id: str
    venue_name: str
    instructor_id: str
    instructor_name: str
    exercise_type_id: str | None
    exercise_type_name: str
    term_id: int
    fee_criteria: str
    fee_amount: float
    day_of_week: str
    start_time: str
    end_time: str | None
    zip_code: str | None
    is_subsidised: bool
    class_capacity: int | None

    model_config = {"from_attributes": True}


class SessionListResponse(BaseModel):
    sessions: list[SessionResponse]
    count: int
    term: TermResponse | None = None


class ClassDatesResponse(BaseModel):
    session_id: str
    dates: list[date]


# =============================================================================
# ENROLLMENT SCHEMAS
# =============================================================================


class EnrollmentLineRequest(BaseModel):
    session_id: str
    enrollment_type: Literal["full", "trial", "partial"] = "full"
    trial_date: date | None = None
    partial_dates: list[date] = Field(default_factory=list)


class QuoteRequest(BaseModel):
    lines: list[EnrollmentLineRequest]


class QuoteLineResponse(BaseModel):
    session_id: str
    session_name: str
    enrollment_type: str
    dates: list[date]
    fee: Decimal

    model_config = {"from_attributes": True}


class QuoteResponse(BaseModel):
    lines: list[QuoteLineResponse]
    total: Decimal

    model_config = {"from_attributes": True}


class DirectEnrollmentRequest(BaseModel):
    customer_id: str
    lines: list[EnrollmentLineRequest]
    payment_method: Literal["cash", "cheque"]
    notes: str | None = None


class PortalEnrollmentRequest(BaseModel):
    lines: list[EnrollmentLineRequest]


class BookingResponse(BaseModel):
    id: str
    enrollment_id: str
    session_id: str
    session_name: str
    session_code: str
    enrollment_type: str
    trial_date: date | None
    partial_dates: list[date]
    fee_amount: float
    booking_date: str

    model_config = {"from_attributes": True}


class PaymentResponse(BaseModel):
    id: str
    enrollment_id: str
    amount: float
    payment_method: str
    payment_status: str
    transaction_id: str | None
    receipt_number: str
    payment_date: str | None
    notes: str | None

    model_config = {"from_attributes": True}


class EnrollmentResponse(BaseModel):
    id: str
    customer_id: str
    customer_name: str
    enrollment_type: str
    status: str
    payment_status: str
    payment_intent: str | None
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class EnrollmentDetailResponse(BaseModel):
    enrollment: EnrollmentResponse
    bookings: list[BookingResponse]
    payments: list[PaymentResponse]

    model_config = {"from_attributes": True}


class EnrollmentCreatedResponse(BaseModel):
    """New enrollment; card enrollments include what the client pays with."""

    detail: EnrollmentDetailResponse
    total: Decimal
    payment_intent: str | None = None
    currency: str | None = None


class EnrollmentListResponse(BaseModel):
    enrollments: list[EnrollmentResponse]
    count: int


class EnrollmentDetailListResponse(BaseModel):
    enrollments: list[EnrollmentDetailResponse]
    count: int


# =============================================================================
# CANCELLATION SCHEMAS
# =============================================================================


class BookingCancellationResponse(BaseModel):
    id: str
    enrollment_session_id: str
    class_date: date
    reason: str
    medical_certificate_path: str | None
    status: str
    admin_notes: str | None
    credit_awarded: bool
    requested_at: str
    reviewed_at: str | None
    session_id: str
    session_name: str
    is_subsidised: bool
    customer_id: str
    customer_name: str
    certificate_url: str | None = None

    model_config = {"from_attributes": True}


class BookingCancellationListResponse(BaseModel):
    cancellations: list[BookingCancellationResponse]
    count: int


class ClassCancellationRequest(BaseModel):
    session_id: str
    dates: list[date] = Field(..., min_length=1)
    reason: str


class ClassCancellationResponse(BaseModel):
    id: str
    session_id: str
    session_name: str
    venue_name: str
    instructor_id: str | None
    instructor_name: str
    class_date: date
    reason: str
    status: str
    admin_notes: str | None
    created_at: str
    reviewed_at: str | None

    model_config = {"from_attributes": True}


class ClassCancellationListResponse(BaseModel):
    cancellations: list[ClassCancellationResponse]
    count: int


# =============================================================================
# ATTENDANCE SCHEMAS
# =============================================================================


class RosterEntryResponse(BaseModel):
    enrollment_session_id: str
    customer_id: str
    customer_name: str
    customer_email: str
    contact_no: str | None
    enrollment_type: str
    status: str | None

    model_config = {"from_attributes": True}


class RosterResponse(BaseModel):
    session_id: str
    class_date: date
    entries: list[RosterEntryResponse]
    count: int


class AttendanceMark(BaseModel):
    enrollment_session_id: str
    class_date: date
    status: Literal["present", "absent", "late"]


class AttendanceBatchRequest(BaseModel):
    records: list[AttendanceMark] = Field(..., min_length=1)


class AttendanceRecordResponse(BaseModel):
    enrollment_session_id: str
    class_date: date
    status: str
    marked_by: str | None
    marked_at: str

    model_config = {"from_attributes": True}


class AttendanceBatchResponse(BaseModel):
    records: list[AttendanceRecordResponse]
    count: int


class HistoryEntryResponse(BaseModel):
    session_id: str
    session_name: str
    class_date: date
    present: int
    absent: int
    late: int
    total: int

    model_config = {"from_attributes": True}


class HistoryResponse(BaseModel):
    history: list[HistoryEntryResponse]
    count: int


# =============================================================================
# STAFF SCHEMAS
# =============================================================================


class PermissionResponse(BaseModel):
    id: str
    name: str
    description: str | None

    model_config = {"from_attributes": True}


class PermissionListResponse(BaseModel):
    permissions: list[PermissionResponse]
    count: int


class StaffRoleCreate(BaseModel):
    name: str
    description: str | None = None
    permissions: list[str] = Field(default_factory=list)


class StaffRoleUpdate(BaseModel):
    name: str | None = None
    description: str | None = None


class PermissionAssignRequest(BaseModel):
    permissions: list[str]


class StaffRoleResponse(BaseModel):
    id: str
    name: str
    description: str | None
    permissions: list[str]

    model_config = {"from_attributes": True}


class StaffRoleListResponse(BaseModel):
    roles: list[StaffRoleResponse]
    count: int


class StaffCreate(BaseModel):
    full_name: str
    email: str
    staff_role_id: str | None = None
    phone: str | None = None
    bio: str | None = None
    password: str | None = None


class StaffUpdate(BaseModel):
    full_name: str | None = None
    staff_role_id: str | None = None
    phone: str | None = None
    bio: str | None = None
    disabled: bool | None = None
    password: str | None = None


class StaffCreatedResponse(BaseModel):
    user: UserResponse
    generated_password: str | None = None


class StaffListResponse(BaseModel):
    staff: list[UserResponse]
    count: int


class EmailingListsResponse(BaseModel):
    lists: dict[str, list[str]]


class EmailingListUpdate(BaseModel):
    emails: list[str]


# =============================================================================
# REPORT AND PAYMENT SCHEMAS
# =============================================================================


class ClassRollResponse(BaseModel):
    id: str
    session_id: str
    session_name: str
    class_date: date
    format: str
    file_path: str | None
    generated_at: str
    downloaded_at: str | None

    model_config = {"from_attributes": True}


class ClassRollListResponse(BaseModel):
    rolls: list[ClassRollResponse]
    count: int


class WebhookResponse(BaseModel):
    received: bool
    handled: bool
    event_type: str
    enrollment_id: str | None = None
