from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, Any, Dict
from shared.security_config import sanitize_input

class ContactSubmission(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=32)
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=5000)

    @field_validator('name', 'phone', 'subject', 'message')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class NewsletterSubscription(BaseModel):
    email: EmailStr
    source_url: Optional[str] = Field(None, max_length=500)

    @field_validator('source_url')
    def sanitize_source(cls, v):
        return sanitize_input(v)

class SessionRegistration(NewsletterSubscription):
    pass

class ChecklistRequest(NewsletterSubscription):
    asset: Optional[str] = Field(None, max_length=100)

    @field_validator('asset')
    def sanitize_asset(cls, v):
        return sanitize_input(v)

class MentorshipApplication(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=32)
    experience: str = Field(..., min_length=1, max_length=5000)
    goals: str = Field(..., min_length=1, max_length=5000)
    availability: str = Field(..., min_length=1, max_length=500)

    @field_validator('name', 'phone', 'experience', 'goals', 'availability')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class LeadCreated(BaseModel):
    success: bool = True
    id: str
    message: Optional[str] = None

class LeadRecord(BaseModel):
    id: str
    status: str
    fields: Dict[str, Any]
