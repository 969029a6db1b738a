"""Staff accounts, staff roles, permissions and emailing lists."""

from fastapi import APIRouter, Depends, status

from sharecrm.core import notifications, permissions
from sharecrm.db.staff_repository import UserRecord
from sharecrm.web.deps import require_permission
from sharecrm.web.schemas import (
    EmailingListsResponse,
    EmailingListUpdate,
    PermissionAssignRequest,
    PermissionListResponse,
    PermissionResponse,
    StaffCreate,
    StaffCreatedResponse,
    StaffListResponse,
    StaffRoleCreate,
    StaffRoleListResponse,
    StaffRoleResponse,
    StaffRoleUpdate,
    StaffUpdate,
    UserResponse,
)

staff_router = APIRouter(prefix="/api/staff", tags=["staff"])
roles_router = APIRouter(prefix="/api/staff-roles", tags=["staff"])
permissions_router = APIRouter(prefix="/api/permissions", tags=["staff"])
emailing_router = APIRouter(prefix="/api/emailing-lists", tags=["staff"])

manage_roles = require_permission("roles_manage")


@staff_router.get("", response_model=StaffListResponse)
async def list_staff(user: UserRecord = Depends(manage_roles)) -> StaffListResponse:
    staff = permissions.list_staff()
    return StaffListResponse(staff=[UserResponse.model_validate(s) for s in staff], count=len(staff))


@staff_router.post("", response_model=StaffCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_staff(body: StaffCreate, user: UserRecord = Depends(manage_roles)) -> StaffCreatedResponse:
    created, generated = permissions.create_staff(
        body.full_name, body.email, body.staff_role_id, body.phone, body.bio, body.password
    )
    return StaffCreatedResponse(user=UserResponse.model_validate(created), generated_password=generated)


@staff_router.put("/{user_id}", response_model=UserResponse)
async def update_staff(
    user_id: str,
    body: StaffUpdate,
    user: UserRecord = Depends(manage_roles),
) -> UserResponse:
    return UserResponse.model_validate(permissions.update_staff(user_id, body.model_dump(exclude_unset=True)))


@roles_router.get("", response_model=StaffRoleListResponse)
async def list_roles(user: UserRecord = Depends(manage_roles)) -> StaffRoleListResponse:
    roles = permissions.list_staff_roles()
    return StaffRoleListResponse(roles=[StaffRoleResponse.model_validate(r) for r in roles], count=len(roles))


@roles_router.post("", response_model=StaffRoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(body: StaffRoleCreate, user: UserRecord = Depends(manage_roles)) -> StaffRoleResponse:
    role = permissions.create_staff_role(body.name, body.description, body.permissions)
    return StaffRoleResponse.model_validate(role)


@roles_router.put("/{role_id}", response_model=StaffRoleResponse)
async def update_role(
    role_id: str,
    body: StaffRoleUpdate,
    user: UserRecord = Depends(manage_roles),
) -> StaffRoleResponse:
    return StaffRoleResponse.model_validate(permissions.update_staff_role(role_id, body.name, body.description))


@roles_router.put("/{role_id}/permissions", response_model=StaffRoleResponse)
async def assign_permissions(
    role_id: str,
    body: PermissionAssignRequest,
    user: UserRecord = Depends(manage_roles),
) -> StaffRoleResponse:
    """Replace the role's permission set."""
    return StaffRoleResponse.model_validate(permissions.assign_permissions(role_id, body.permissions))


@roles_router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(role_id: str, user: UserRecord = Depends(manage_roles)) -> None:
    permissions.delete_staff_role(role_id)


@permissions_router.get("", response_model=PermissionListResponse)
async def list_permissions(user: UserRecord = Depends(manage_roles)) -> PermissionListResponse:
    items = permissions.list_permissions()
    return PermissionListResponse(
        permissions=[PermissionResponse.model_validate(p) for p in items],
        count=len(items),
    )


@emailing_router.get("", response_model=EmailingListsResponse)
async def get_emailing_lists(user: UserRecord = Depends(manage_roles)) -> EmailingListsResponse:
    return EmailingListsResponse(lists=notifications.get_lists())


@emailing_router.put("/{list_name}", response_model=EmailingListsResponse)
async def set_emailing_list(
    list_name: str,
    body: EmailingListUpdate,
    user: UserRecord = Depends(manage_roles),
) -> EmailingListsResponse:
    notifications.set_list(list_name, body.emails)
    return EmailingListsResponse(lists=notifications.get_lists())
