from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

class LeadDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    status: str = "new" # new, contacted, closed
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        populate_by_name = True

class ContactSubmissionDB(LeadDB):
    name: str
    email: str
    phone: Optional[str] = None
    subject: str
    message: str

class NewsletterSubscriptionDB(LeadDB):
    email: str
    source_url: str = "unknown"

class SessionRegistrationDB(LeadDB):
    email: str
    source_url: str = "unknown"

class ChecklistRequestDB(LeadDB):
    email: str
    asset: str = "drive_checklist"
    source_url: str = "unknown"

class MentorshipApplicationDB(LeadDB):
    name: str
    email: str
    phone: Optional[str] = None
    experience: str
    goals: str
    availability: str

# Public route segment -> collection
LEAD_COLLECTIONS = {
    "contact": "contact_submissions",
    "newsletter": "newsletter_subscriptions",
    "session-registration": "session_registrations",
    "checklist": "checklist_requests",
    "mentorship": "mentorship_applications",
}
