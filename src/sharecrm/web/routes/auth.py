"""Sign-up, sign-in and current user endpoints."""

from fastapi import APIRouter, Depends, status

from sharecrm.core import auth, permissions
from sharecrm.core.errors import NotFoundError
from sharecrm.core.catalog import get_instructor_for_user
from sharecrm.core.customers import get_customer_for_user
from sharecrm.db.staff_repository import UserRecord
from sharecrm.web.deps import get_current_user
from sharecrm.web.schemas import (
    MeResponse,
    SignInRequest,
    SignUpRequest,
    TokenResponse,
    UserResponse,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/signup", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def sign_up(body: SignUpRequest) -> UserResponse:
    """Register a customer account."""
    user = auth.sign_up(body.email, body.password, body.first_name, body.surname)
    return UserResponse.model_validate(user)


@router.post("/signin", response_model=TokenResponse)
async def sign_in(body: SignInRequest) -> TokenResponse:
    result = auth.sign_in(body.email, body.password)
    return TokenResponse(
        access_token=result.access_token,
        token_type=result.token_type,
        expires_at=result.expires_at,
        user=UserResponse.model_validate(result.user),
    )


@router.get("/me", response_model=MeResponse)
async def me(user: UserRecord = Depends(get_current_user)) -> MeResponse:
    """Current user, their permissions and linked profile ids."""
    customer_id = instructor_id = None
    try:
        if user.role == "customer":
            customer_id = get_customer_for_user(user.id).id
        elif user.role == "instructor":
            instructor_id = get_instructor_for_user(user.id).id
    except NotFoundError:
        pass
    return MeResponse(
        user=UserResponse.model_validate(user),
        permissions=permissions.user_permissions(user),
        customer_id=customer_id,
        instructor_id=instructor_id,
    )
