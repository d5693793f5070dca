"""User domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from .identity import REQUIRED_DOCUMENT, PersonType


class LegalIdentityUpdate(BaseModel):
    person_type: PersonType
    national_id: Optional[str] = Field(None, max_length=50)
    tax_id: Optional[str] = Field(None, max_length=50)
    company_name: Optional[str] = Field(None, max_length=255)

    @model_validator(mode="after")
    def document_matches_person_type(self):
        field = REQUIRED_DOCUMENT[self.person_type]
        value = getattr(self, field)
        if not value or not value.strip():
            raise ValueError(f"{field} is required for person_type '{self.person_type.value}'")
        if self.person_type == PersonType.COMPANY and not self.company_name:
            raise ValueError("company_name is required for companies")
        return self


class UserResponse(BaseModel):
    id: int
    public_id: Optional[str] = None
    email: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    role: str
    person_type: Optional[str] = None
    national_id: Optional[str] = None
    tax_id: Optional[str] = None
    company_name: Optional[str] = None
    anti_circumvention_accepted: bool
    anti_circumvention_accepted_at: Optional[datetime] = None
    anti_circumvention_version: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
