"""Public catalog endpoints (no sign-in required)."""

from fastapi import APIRouter

from sharecrm.core import catalog, enrollment
from sharecrm.web.schemas import (
    ExerciseTypeListResponse,
    ExerciseTypeResponse,
    QuoteRequest,
    QuoteResponse,
    SessionListResponse,
    SessionResponse,
    TermResponse,
)

router = APIRouter(prefix="/api/public", tags=["public"])


def to_lines(lines) -> list[enrollment.EnrollmentLine]:
    return [enrollment.EnrollmentLine.from_dict(line.model_dump()) for line in lines]


@router.get("/sessions", response_model=SessionListResponse)
async def current_sessions(exercise_type_id: str | None = None) -> SessionListResponse:
    """Timetable of the term running today."""
    term, sessions = catalog.list_current_sessions(exercise_type_id)
    return SessionListResponse(
        sessions=[SessionResponse.model_validate(s) for s in sessions],
        count=len(sessions),
        term=TermResponse.model_validate(term) if term else None,
    )


@router.get("/exercise-types", response_model=ExerciseTypeListResponse)
async def exercise_types() -> ExerciseTypeListResponse:
    types = catalog.list_exercise_types()
    return ExerciseTypeListResponse(
        exercise_types=[ExerciseTypeResponse.model_validate(t) for t in types],
        count=len(types),
    )


@router.post("/quote", response_model=QuoteResponse)
async def quote(body: QuoteRequest) -> QuoteResponse:
    """Price a basket of session bookings."""
    result = enrollment.quote(to_lines(body.lines))
    return QuoteResponse.model_validate(result)
