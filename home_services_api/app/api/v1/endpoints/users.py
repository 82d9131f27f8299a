"""
User endpoints: registration, login, provider skills and administration.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status

from home_services_api.app.core.errors import ServiceError, raise_http_error
from home_services_api.app.core.security import ROLE_ADMIN, ROLE_PROVIDER, require_roles
from home_services_api.app.schemas.user import (
    AuthResponse,
    MonthlyCounts,
    ProviderList,
    Role,
    UserCreate,
    UserList,
    UserLogin,
    UserRead,
    UserSkillsRead,
    UserSkillsUpdate,
    UserUpdate,
)
from home_services_api.app.services.user_service import UserService

router = APIRouter()


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(user: UserCreate) -> AuthResponse:
    """Create an account.  A mobile number already in use returns 409."""
    try:
        return await UserService.register(user)
    except ServiceError as e:
        raise_http_error(e)


@router.post("/login", response_model=AuthResponse)
async def login(credentials: UserLogin) -> AuthResponse:
    try:
        return await UserService.login(credentials)
    except ServiceError as e:
        raise_http_error(e)


@router.get("/skills", response_model=UserSkillsRead)
async def get_my_skills(current_user: dict = Depends(require_roles(ROLE_PROVIDER))) -> UserSkillsRead:
    try:
        return await UserService.get_user_skills(current_user["user_id"])
    except ServiceError as e:
        raise_http_error(e)


@router.put("/skills", response_model=UserSkillsRead)
async def update_my_skills(
    payload: UserSkillsUpdate,
    current_user: dict = Depends(require_roles(ROLE_PROVIDER)),
) -> UserSkillsRead:
    """Replace the caller's skill list.

    Exactly one skill ends up primary: more than one flagged returns 400,
    none flagged promotes the first entry.
    """
    try:
        return await UserService.update_user_skills(current_user["user_id"], payload.skills)
    except ServiceError as e:
        raise_http_error(e)


@router.get("/providers", response_model=ProviderList)
async def list_providers(
    skill_id: Optional[int] = Query(None, alias="skill"),
    min_rating: Optional[float] = Query(None, ge=0, le=5, alias="minRating"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> ProviderList:
    try:
        return await UserService.list_service_providers(skill_id, min_rating, page, limit)
    except ServiceError as e:
        raise_http_error(e)


@router.get("/stats", response_model=MonthlyCounts)
async def user_stats(current_user: dict = Depends(require_roles(ROLE_ADMIN))) -> MonthlyCounts:
    return await UserService.user_stats()


@router.get("", response_model=UserList)
async def list_users(
    keyword: Optional[str] = None,
    role: Optional[Role] = None,
    page: int = Query(1, ge=1, alias="pageNumber"),
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> UserList:
    try:
        return await UserService.list_users(keyword, role, page)
    except ServiceError as e:
        raise_http_error(e)


@router.get("/{user_id}", response_model=UserRead)
async def get_user(
    user_id: int = Path(..., description="ID of the user"),
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> UserRead:
    try:
        return await UserService.get_user(user_id)
    except ServiceError as e:
        raise_http_error(e)


@router.put("/{user_id}", response_model=UserRead)
async def update_user(
    update: UserUpdate,
    user_id: int = Path(..., description="ID of the user"),
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> UserRead:
    try:
        return await UserService.update_user(user_id, update)
    except ServiceError as e:
        raise_http_error(e)


@router.delete("/{user_id}")
async def delete_user(
    user_id: int = Path(..., description="ID of the user"),
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> dict:
    try:
        await UserService.delete_user(user_id)
    except ServiceError as e:
        raise_http_error(e)
    return {"message": "User removed"}
