"""Pydantic models for skills (provider capabilities)."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

SkillCategory = Literal["home_repair", "cleaning", "plumbing", "electrical", "other"]


class SkillCreate(BaseModel):
    name: str = Field(..., min_length=1, examples=["Plumbing"])
    description: Optional[str] = None
    category: SkillCategory


class SkillUpdate(BaseModel):
    """Partial update.  ``is_active = False`` soft-deactivates the skill."""

    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    category: Optional[SkillCategory] = None
    is_active: Optional[bool] = None


class SkillRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    category: SkillCategory
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True,
    }
