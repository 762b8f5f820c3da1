from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from teamspark.models.user import UserRole
from teamspark.routers.auth_deps import get_service
from teamspark.schemas.user import UserCreateRequest, UserDetail, UserListResponse, UserUpdateRequest
from teamspark.services.user_admin_service import UserAdminService

router = APIRouter(prefix="/admin/users", tags=["admin"])


@router.get("/", response_model=UserListResponse)
def list_users(
    search: Optional[str] = None,
    role: Optional[UserRole] = None,
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: UserAdminService = Depends(get_service(UserAdminService)),
):
    return service.list_users(search=search, role=role, is_active=is_active, page=page, limit=limit)


@router.post("/", response_model=UserDetail, status_code=status.HTTP_201_CREATED)
def create_user(data: UserCreateRequest, service: UserAdminService = Depends(get_service(UserAdminService))):
    return service.create_user(data)


@router.get("/{user_id}", response_model=UserDetail)
def get_user(user_id: int, service: UserAdminService = Depends(get_service(UserAdminService))):
    return service.get_user(user_id)


@router.patch("/{user_id}", response_model=UserDetail)
def update_user(
    user_id: int,
    data: UserUpdateRequest,
    service: UserAdminService = Depends(get_service(UserAdminService)),
):
    return service.update_user(user_id, data)


@router.delete("/{user_id}")
def delete_user(user_id: int, service: UserAdminService = Depends(get_service(UserAdminService))):
    """Soft delete: the user is deactivated and keeps their history."""
    user = service.delete_user(user_id)
    return {
        "success": True,
        "message": "User deactivated",
        "user": UserDetail.model_validate(user),
    }
