"""
Trip planner request model
"""

from datetime import date
from typing import List, Optional

from pydantic import Field, field_validator, model_validator

from iholiday.models.flight import CamelModel

MAX_TRIP_DAYS = 14


class TripPlanRequest(CamelModel):
    """Free-text prompt and/or a destination, with optional preferences"""
    prompt: Optional[str] = Field(None, max_length=2000)
    destination: Optional[str] = Field(None, max_length=120)
    days: int = Field(default=3, ge=1, le=MAX_TRIP_DAYS)
    start_date: Optional[date] = None
    budget: Optional[float] = Field(None, gt=0)
    currency: str = Field(default="INR", min_length=3, max_length=3)
    interests: List[str] = Field(default_factory=list, max_length=20)

    class Config:
        json_schema_extra = {
            "example": {
                "destination": "Bali",
                "days": 5,
                "startDate": "2026-12-10",
                "budget": 90000,
                "currency": "INR",
                "interests": ["beach", "food", "honeymoon"],
            }
        }

    @field_validator("currency")
    @classmethod
    def upper(cls, v):
        return v.upper()

    @field_validator("interests")
    @classmethod
    def normalize_interests(cls, v):
        return [i.strip().lower() for i in v if i and i.strip()]

    @model_validator(mode="after")
    def require_subject(self):
        if not (self.prompt and self.prompt.strip()) and not (self.destination and self.destination.strip()):
            raise ValueError("either prompt or destination is required")
        return self
