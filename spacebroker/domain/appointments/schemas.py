"""Appointment domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...shared.validators import time_to_minutes, validate_time_slot


class AppointmentCreate(BaseModel):
    reservation_id: int
    scheduled_date: date
    scheduled_time: str
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("scheduled_time")
    @classmethod
    def check_time(cls, value: str) -> str:
        return validate_time_slot(value)


class AppointmentReject(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


class AppointmentReschedule(BaseModel):
    new_date: date
    new_time: str
    reason: Optional[str] = Field(None, max_length=2000)

    @field_validator("new_time")
    @classmethod
    def check_time(cls, value: str) -> str:
        return validate_time_slot(value)


class AvailabilityWindow(BaseModel):
    day_of_week: Optional[int] = Field(None, ge=0, le=6)
    specific_date: Optional[date] = None
    start_time: str
    end_time: str
    is_blocked: bool = False

    @field_validator("start_time", "end_time")
    @classmethod
    def check_time(cls, value: str) -> str:
        return validate_time_slot(value)

    @model_validator(mode="after")
    def check_window(self):
        if (self.day_of_week is None) == (self.specific_date is None):
            raise ValueError("Provide exactly one of day_of_week or specific_date")
        if time_to_minutes(self.start_time) >= time_to_minutes(self.end_time):
            raise ValueError("start_time must be before end_time")
        return self


class AvailabilityUpdate(BaseModel):
    is_calendar_active: bool = True
    windows: list[AvailabilityWindow] = Field(default_factory=list, max_length=200)


class AvailabilityWindowResponse(AvailabilityWindow):
    id: int

    class Config:
        from_attributes = True


class AvailabilityResponse(BaseModel):
    listing_id: int
    is_calendar_active: bool
    windows: list[AvailabilityWindowResponse]


class AppointmentResponse(BaseModel):
    id: int
    public_id: Optional[str] = None
    reservation_id: int
    listing_id: Optional[int] = None
    requester_id: int
    owner_id: int
    scheduled_date: date
    scheduled_time: str
    requester_notes: Optional[str] = None
    status: str
    rejection_reason: Optional[str] = None
    reschedule_date: Optional[date] = None
    reschedule_time: Optional[str] = None
    reschedule_reason: Optional[str] = None
    anti_circumvention_accepted: bool
    anti_circumvention_accepted_at: Optional[datetime] = None
    anti_circumvention_version: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
