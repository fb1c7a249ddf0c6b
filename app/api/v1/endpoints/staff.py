"""
Staff management endpoints (back office).

Admin accounts pass every route; staff pass when their role grants the
route's permission (``staff.manage`` / ``roles.manage``).
"""

from fastapi import APIRouter, Depends, Query

from app.api.v1.deps import get_staff_directory, require_role
from app.core.permissions import ROLE_INFO, STAFF_ROLES, permissions_for
from app.models.user import User
from app.schemas.common import ApiResponse, MessageData
from app.schemas.staff import (LoginCredentials, RoleRead, StaffCreate,
                               StaffCreated, StaffPasswordUpdate, StaffRead,
                               StaffStatusUpdate, StaffUpdate)
from app.services.staff import StaffDirectory

router = APIRouter(prefix="/admin/staff", tags=["staff"])

require_staff_manager = require_role("admin", "staff.manage")
require_role_manager = require_role("admin", "roles.manage")


@router.get("", response_model=ApiResponse[list[StaffRead]])
async def list_staff(
    role: str | None = Query(default=None),
    status: str | None = Query(default=None),
    directory: StaffDirectory = Depends(get_staff_directory),
    _manager: User = Depends(require_staff_manager),
) -> ApiResponse[list[StaffRead]]:
    staff = await directory.list_staff(role=role, status=status)
    return ApiResponse[list[StaffRead]](data=[StaffRead.model_validate(s) for s in staff])


@router.get("/roles", response_model=ApiResponse[list[RoleRead]])
async def list_roles(
    _manager: User = Depends(require_role_manager),
) -> ApiResponse[list[RoleRead]]:
    roles = [
        RoleRead(
            id=role,
            name=ROLE_INFO[role]["display_name"],
            description=ROLE_INFO[role]["description"],
            color=ROLE_INFO[role]["color"],
            permissions=list(permissions_for(role)),
        )
        for role in STAFF_ROLES
    ]
    return ApiResponse[list[RoleRead]](data=roles)


@router.post("", response_model=ApiResponse[StaffCreated], status_code=201)
async def create_staff(
    body: StaffCreate,
    directory: StaffDirectory = Depends(get_staff_directory),
    manager: User = Depends(require_staff_manager),
) -> ApiResponse[StaffCreated]:
    """Create a staff account; the generated password is returned once."""
    staff, password = await directory.create_staff(
        name=body.name,
        email=body.email,
        phone=body.phone,
        role=body.role,
        status=body.status,
        password=body.password,
        auto_generate_password=body.auto_generate_password,
        created_by=manager.id,
    )
    credentials = LoginCredentials(
        username=staff.username,
        password=password,
        email=staff.email,
        role=staff.role,
    )
    return ApiResponse[StaffCreated](
        data=StaffCreated(id=staff.id, login_credentials=credentials),
        message="Staff member created successfully",
    )


@router.put("/{staff_id}", response_model=ApiResponse[StaffRead])
async def update_staff(
    staff_id: int,
    body: StaffUpdate,
    directory: StaffDirectory = Depends(get_staff_directory),
    _manager: User = Depends(require_staff_manager),
) -> ApiResponse[StaffRead]:
    staff = await directory.update_staff(staff_id, body.model_dump(exclude_unset=True))
    return ApiResponse[StaffRead](
        data=StaffRead.model_validate(staff), message="Staff member updated successfully"
    )


@router.delete("/{staff_id}", response_model=ApiResponse[MessageData])
async def delete_staff(
    staff_id: int,
    directory: StaffDirectory = Depends(get_staff_directory),
    _manager: User = Depends(require_staff_manager),
) -> ApiResponse[MessageData]:
    await directory.delete_staff(staff_id)
    return ApiResponse[MessageData](data=MessageData(message="Staff member deleted successfully"))


@router.patch("/{staff_id}/status", response_model=ApiResponse[StaffRead])
async def update_staff_status(
    staff_id: int,
    body: StaffStatusUpdate,
    directory: StaffDirectory = Depends(get_staff_directory),
    _manager: User = Depends(require_staff_manager),
) -> ApiResponse[StaffRead]:
    staff = await directory.set_status(staff_id, body.status)
    return ApiResponse[StaffRead](
        data=StaffRead.model_validate(staff), message="Staff status updated successfully"
    )


@router.put("/{staff_id}/password", response_model=ApiResponse[MessageData])
async def update_staff_password(
    staff_id: int,
    body: StaffPasswordUpdate,
    directory: StaffDirectory = Depends(get_staff_directory),
    _manager: User = Depends(require_staff_manager),
) -> ApiResponse[MessageData]:
    await directory.set_password(staff_id, body.new_password)
    return ApiResponse[MessageData](data=MessageData(message="Password updated successfully"))
