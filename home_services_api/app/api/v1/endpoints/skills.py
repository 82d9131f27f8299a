"""
Skill endpoints.  Reading is public; writing requires an administrator.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, status

from home_services_api.app.core.errors import ServiceError, raise_http_error
from home_services_api.app.core.security import ROLE_ADMIN, require_roles
from home_services_api.app.schemas.skill import SkillCategory, SkillCreate, SkillRead, SkillUpdate
from home_services_api.app.services.skill_service import SkillService

router = APIRouter()


@router.get("", response_model=List[SkillRead])
async def list_skills(category: Optional[SkillCategory] = None, search: Optional[str] = None) -> List[SkillRead]:
    """Active skills sorted by name."""
    return await SkillService.list_skills(category, search)


@router.get("/{skill_id}", response_model=SkillRead)
async def get_skill(skill_id: int = Path(..., description="ID of the skill")) -> SkillRead:
    try:
        return await SkillService.get_skill(skill_id)
    except ServiceError as e:
        raise_http_error(e)


@router.post("", response_model=SkillRead, status_code=status.HTTP_201_CREATED)
async def create_skill(
    skill: SkillCreate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> SkillRead:
    try:
        return await SkillService.create_skill(skill)
    except ServiceError as e:
        raise_http_error(e)


@router.put("/{skill_id}", response_model=SkillRead)
async def update_skill(
    update: SkillUpdate,
    skill_id: int = Path(..., description="ID of the skill"),
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> SkillRead:
    try:
        return await SkillService.update_skill(skill_id, update)
    except ServiceError as e:
        raise_http_error(e)


@router.delete("/{skill_id}")
async def delete_skill(
    skill_id: int = Path(..., description="ID of the skill"),
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> dict:
    """Delete a skill no provider lists; otherwise 400."""
    try:
        await SkillService.delete_skill(skill_id)
    except ServiceError as e:
        raise_http_error(e)
    return {"message": "Skill removed"}
