"""
Pydantic models for the service catalogue.

A service is a bookable offering with a fixed unit price; a booking's
amount is the unit price times the booked quantity.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ServiceBase(BaseModel):
    title: str = Field(..., min_length=1, examples=["AC Repair"])
    description: Optional[str] = Field(None, examples=["Expert AC repair services for all brands."])
    price: float = Field(..., ge=0, examples=[499])
    category: Optional[str] = Field(None, examples=["Appliance Repair"])
    image: Optional[str] = None
    provider_id: Optional[int] = None


class ServiceCreate(ServiceBase):
    """Schema for creating a service."""
    pass


class ServiceUpdate(BaseModel):
    """All fields optional; only provided fields are changed."""

    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None
    image: Optional[str] = None
    provider_id: Optional[int] = None
    is_active: Optional[bool] = None


class ServiceRead(ServiceBase):
    id: int
    is_active: bool = True

    model_config = {
        "from_attributes": True,
    }


class ServiceSummary(BaseModel):
    """Compact service reference embedded in bookings."""

    id: int
    title: str
    price: float
    category: Optional[str] = None
