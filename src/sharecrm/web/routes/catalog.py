"""Catalog administration: venues, terms, exercise types, sessions, instructors."""

from fastapi import APIRouter, Depends, status

from sharecrm.core import catalog
from sharecrm.db.staff_repository import UserRecord
from sharecrm.web.deps import require_permission
from sharecrm.web.schemas import (
    ClassDatesResponse,
    ExerciseTypeCreate,
    ExerciseTypeListResponse,
    ExerciseTypeResponse,
    ExerciseTypeUpdate,
    InstructorCreate,
    InstructorCreatedResponse,
    InstructorListResponse,
    InstructorResponse,
    InstructorUpdate,
    SessionCreate,
    SessionListResponse,
    SessionResponse,
    SessionUpdate,
    TermCreate,
    TermListResponse,
    TermResponse,
    TermUpdate,
    VenueCreate,
    VenueListResponse,
    VenueResponse,
    VenueUpdate,
)

venues_router = APIRouter(prefix="/api/venues", tags=["catalog"])
terms_router = APIRouter(prefix="/api/terms", tags=["catalog"])
exercise_types_router = APIRouter(prefix="/api/exercise-types", tags=["catalog"])
sessions_router = APIRouter(prefix="/api/sessions", tags=["catalog"])
instructors_router = APIRouter(prefix="/api/instructors", tags=["catalog"])


# =============================================================================
# VENUES
# =============================================================================


@venues_router.get("", response_model=VenueListResponse)
async def list_venues(
    status: str | None = None,
    user: UserRecord = Depends(require_permission("class_read")),
) -> VenueListResponse:
    venues = catalog.list_venues(status)
    return VenueListResponse(venues=[VenueResponse.model_validate(v) for v in venues], count=len(venues))


@venues_router.post("", response_model=VenueResponse, status_code=status.HTTP_201_CREATED)
async def create_venue(
    body: VenueCreate,
    user: UserRecord = Depends(require_permission("class_create")),
) -> VenueResponse:
    return VenueResponse.model_validate(catalog.create_venue(body.model_dump()))


@venues_router.get("/{venue_id}", response_model=VenueResponse)
async def get_venue(
    venue_id: str,
    user: UserRecord = Depends(require_permission("class_read")),
) -> VenueResponse:
    return VenueResponse.model_validate(catalog.get_venue(venue_id))


@venues_router.put("/{venue_id}", response_model=VenueResponse)
async def update_venue(
    venue_id: str,
    body: VenueUpdate,
    user: UserRecord = Depends(require_permission("class_update")),
) -> VenueResponse:
    return VenueResponse.model_validate(catalog.update_venue(venue_id, body.model_dump(exclude_unset=True)))


@venues_router.delete("/{venue_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_venue(
    venue_id: str,
    user: UserRecord = Depends(require_permission("class_update")),
) -> None:
    catalog.delete_venue(venue_id)


# =============================================================================
# TERMS
# =============================================================================


@terms_router.get("", response_model=TermListResponse)
async def list_terms(user: UserRecord = Depends(require_permission("class_read"))) -> TermListResponse:
    terms = catalog.list_terms()
    return TermListResponse(terms=[TermResponse.model_validate(t) for t in terms], count=len(terms))


@terms_router.post("", response_model=TermResponse, status_code=status.HTTP_201_CREATED)
async def create_term(
    body: TermCreate,
    user: UserRecord = Depends(require_permission("class_create")),
) -> TermResponse:
    return TermResponse.model_validate(catalog.create_term(body.model_dump()))


@terms_router.get("/{term_id}", response_model=TermResponse)
async def get_term(
    term_id: int,
    user: UserRecord = Depends(require_permission("class_read")),
) -> TermResponse:
    return TermResponse.model_validate(catalog.get_term(term_id))


@terms_router.put("/{term_id}", response_model=TermResponse)
async def update_term(
    term_id: int,
    body: TermUpdate,
    user: UserRecord = Depends(require_permission("class_update")),
) -> TermResponse:
    return TermResponse.model_validate(catalog.update_term(term_id, body.model_dump(exclude_unset=True)))


@terms_router.delete("/{term_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_term(
    term_id: int,
    user: UserRecord = Depends(require_permission("class_update")),
) -> None:
    catalog.delete_term(term_id)


# =============================================================================
# EXERCISE TYPES
# =============================================================================


@exercise_types_router.get("", response_model=ExerciseTypeListResponse)
async def list_exercise_types(
    user: UserRecord = Depends(require_permission("class_read")),
) -> ExerciseTypeListResponse:
    types = catalog.list_exercise_types()
    return ExerciseTypeListResponse(
        exercise_types=[ExerciseTypeResponse.model_validate(t) for t in types],
        count=len(types),
    )


@exercise_types_router.post("", response_model=ExerciseTypeResponse, status_code=status.HTTP_201_CREATED)
async def create_exercise_type(
    body: ExerciseTypeCreate,
    user: UserRecord = Depends(require_permission("class_create")),
) -> ExerciseTypeResponse:
    return ExerciseTypeResponse.model_validate(catalog.create_exercise_type(body.model_dump()))


@exercise_types_router.put("/{type_id}", response_model=ExerciseTypeResponse)
async def update_exercise_type(
    type_id: str,
    body: ExerciseTypeUpdate,
    user: UserRecord = Depends(require_permission("class_update")),
) -> ExerciseTypeResponse:
    updated = catalog.update_exercise_type(type_id, body.model_dump(exclude_unset=True))
    return ExerciseTypeResponse.model_validate(updated)


@exercise_types_router.delete("/{type_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_exercise_type(
    type_id: str,
    user: UserRecord = Depends(require_permission("class_update")),
) -> None:
    catalog.delete_exercise_type(type_id)


# =============================================================================
# SESSIONS
# =============================================================================


@sessions_router.get("", response_model=SessionListResponse)
async def list_sessions(
    term_id: int | None = None,
    exercise_type_id: str | None = None,
    day_of_week: str | None = None,
    user: UserRecord = Depends(require_permission("class_read")),
) -> SessionListResponse:
    sessions = catalog.list_sessions(term_id, exercise_type_id, day_of_week)
    return SessionListResponse(
        sessions=[SessionResponse.model_validate(s) for s in sessions],
        count=len(sessions),
    )


@sessions_router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    body: SessionCreate,
    user: UserRecord = Depends(require_permission("class_create")),
) -> SessionResponse:
    return SessionResponse.model_validate(catalog.create_session(body.model_dump()))


@sessions_router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    user: UserRecord = Depends(require_permission("class_read")),
) -> SessionResponse:
    return SessionResponse.model_validate(catalog.get_session(session_id))


@sessions_router.get("/{session_id}/dates", response_model=ClassDatesResponse)
async def session_dates(
    session_id: str,
    user: UserRecord = Depends(require_permission("class_read")),
) -> ClassDatesResponse:
    return ClassDatesResponse(session_id=session_id, dates=catalog.session_class_dates(session_id))


@sessions_router.put("/{session_id}", response_model=SessionResponse)
async def update_session(
    session_id: str,
    body: SessionUpdate,
    user: UserRecord = Depends(require_permission("class_update")),
) -> SessionResponse:
    updated = catalog.update_session(session_id, body.model_dump(exclude_unset=True))
    return SessionResponse.model_validate(updated)


@sessions_router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: str,
    user: UserRecord = Depends(require_permission("class_update")),
) -> None:
    catalog.delete_session(session_id)


# =============================================================================
# INSTRUCTORS
# =============================================================================


@instructors_router.get("", response_model=InstructorListResponse)
async def list_instructors(
    user: UserRecord = Depends(require_permission("instructor_read")),
) -> InstructorListResponse:
    instructors = catalog.list_instructors()
    return InstructorListResponse(
        instructors=[InstructorResponse.model_validate(i) for i in instructors],
        count=len(instructors),
    )


@instructors_router.post("", response_model=InstructorCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_instructor(
    body: InstructorCreate,
    user: UserRecord = Depends(require_permission("instructor_create")),
) -> InstructorCreatedResponse:
    """Create an instructor and their login; a generated password is returned once."""
    instructor, generated = catalog.create_instructor(
        body.model_dump(exclude={"password"}), password=body.password
    )
    return InstructorCreatedResponse(
        instructor=InstructorResponse.model_validate(instructor),
        generated_password=generated,
    )


@instructors_router.get("/{instructor_id}", response_model=InstructorResponse)
async def get_instructor(
    instructor_id: str,
    user: UserRecord = Depends(require_permission("instructor_read")),
) -> InstructorResponse:
    return InstructorResponse.model_validate(catalog.get_instructor(instructor_id))


@instructors_router.put("/{instructor_id}", response_model=InstructorResponse)
async def update_instructor(
    instructor_id: str,
    body: InstructorUpdate,
    user: UserRecord = Depends(require_permission("instructor_update")),
) -> InstructorResponse:
    updated = catalog.update_instructor(instructor_id, body.model_dump(exclude_unset=True))
    return InstructorResponse.model_validate(updated)


@instructors_router.delete("/{instructor_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_instructor(
    instructor_id: str,
    user: UserRecord = Depends(require_permission("instructor_update")),
) -> None:
    catalog.delete_instructor(instructor_id)
