"""
Pydantic models for users, authentication and provider skill lists.

Users are identified publicly by id; the mobile number is the unique
business key (enforced by the service layer and a UNIQUE constraint).
Passwords are accepted on registration and login only and never
returned.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

Role = Literal["customer", "service_provider", "admin"]


class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None


class UserCreate(BaseModel):
    """Registration payload.

    ``role`` defaults to ``customer``.  ``admin`` is only honoured while
    the marketplace has no administrator yet.
    """

    name: str = Field(..., min_length=1, examples=["Asha Verma"])
    mobile_number: str = Field(..., min_length=4, examples=["9876543210"])
    email: Optional[str] = Field(None, examples=["asha@example.com"])
    password: str = Field(..., min_length=6)
    role: Role = "customer"


class UserLogin(BaseModel):
    """Login by email address or mobile number."""

    identifier: str = Field(..., examples=["9876543210"])
    password: str


class UserUpdate(BaseModel):
    """Admin update; only provided fields change."""

    name: Optional[str] = None
    email: Optional[str] = None
    mobile_number: Optional[str] = None
    role: Optional[Role] = None
    is_active: Optional[bool] = None
    is_verified: Optional[bool] = None
    bio: Optional[str] = None
    address: Optional[Address] = None


class UserRead(BaseModel):
    id: int
    name: str
    mobile_number: str
    email: Optional[str] = None
    role: Role
    is_active: bool = True
    is_verified: bool = False
    bio: Optional[str] = None
    address: Optional[Address] = None
    rating_average: float = 0
    rating_count: int = 0
    created_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True,
    }


class AuthResponse(BaseModel):
    """Returned by register and login: the user plus a bearer token."""

    user: UserRead
    access_token: str
    token_type: str = "bearer"


class UserSummary(BaseModel):
    """Compact user reference embedded in bookings and services."""

    id: int
    name: str
    email: Optional[str] = None
    mobile_number: Optional[str] = None


class UserList(BaseModel):
    users: list[UserRead]
    page: int
    pages: int
    total: int


class SkillAssignment(BaseModel):
    """One entry of a provider's skill list as sent by the client.

    ``experience`` (years) and ``hourly_rate`` are deliberately loose:
    negative or missing values are clamped to zero by the service.
    """

    skill_id: int
    experience: Optional[float] = 0
    hourly_rate: Optional[float] = 0
    is_primary: bool = False


class UserSkillsUpdate(BaseModel):
    skills: list[SkillAssignment]


class UserSkillRead(BaseModel):
    skill_id: int
    name: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    experience: float
    hourly_rate: float
    is_primary: bool


class UserSkillsRead(BaseModel):
    user_id: int
    skills: list[UserSkillRead]


class ProviderRead(UserRead):
    skills: list[UserSkillRead] = []


class ProviderList(BaseModel):
    providers: list[ProviderRead]
    total_pages: int
    current_page: int
    total_providers: int


class MonthlyCounts(BaseModel):
    labels: list[str]
    data: list[int]
