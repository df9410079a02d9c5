from __future__ import annotations

from fastapi import APIRouter, Depends, status

from users_api.api.deps import get_users_service, validated_body
from users_api.schemas.common import ErrorResponse
from users_api.schemas.user import UserCreate, UserRead, UserUpdate
from users_api.services.users import UsersService

router = APIRouter(
    prefix="/users",
    tags=["users"],
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)


@router.post(
    "", response_model=UserRead, status_code=status.HTTP_201_CREATED, summary="Create user"
)
async def create_user(
    payload: UserCreate = Depends(validated_body(UserCreate)),
    svc: UsersService = Depends(get_users_service),
):
    return await svc.create(payload)


@router.get("", response_model=list[UserRead], summary="List users")
async def list_users(svc: UsersService = Depends(get_users_service)):
    return await svc.list()


@router.get("/{user_id}", response_model=UserRead, summary="Get user by ID")
async def get_user(user_id: str, svc: UsersService = Depends(get_users_service)):
    return await svc.get(user_id)


@router.put("/{user_id}", response_model=UserRead, summary="Update user")
async def update_user(
    user_id: str,
    payload: UserUpdate = Depends(validated_body(UserUpdate)),
    svc: UsersService = Depends(get_users_service),
):
    return await svc.update(user_id, payload)


@router.delete("/{user_id}", response_model=UserRead, summary="Delete user")
async def delete_user(user_id: str, svc: UsersService = Depends(get_users_service)):
    return await svc.remove(user_id)
