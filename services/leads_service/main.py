from fastapi import FastAPI, Depends, Query, Request, status
from datetime import datetime
from typing import List, Optional
from pymongo.errors import PyMongoError

from shared.utils import (
    get_db_client, settings, SuccessResponse, NotFoundException, AppException,
    HealthResponse, require_admin, setup_exception_handlers
)
from shared.logging_config import setup_logging, RequestLoggingMiddleware
from shared.security_config import setup_security, limiter, sanitize_input

from services.leads_service.schemas import (
    ContactSubmission, NewsletterSubscription, SessionRegistration, ChecklistRequest,
    MentorshipApplication, LeadCreated, LeadRecord
)
from services.leads_service.models import (
    LeadDB, ContactSubmissionDB, NewsletterSubscriptionDB, SessionRegistrationDB,
    ChecklistRequestDB, MentorshipApplicationDB, LEAD_COLLECTIONS
)
from services.leads_service.store import LeadStore
from services.leads_service.mailer import ResendMailer, EmailMessage
from services.leads_service import emails

# Setup Logging
logger = setup_logging("leads-service")

app = FastAPI(title="Leads Service")

# Security Setup
setup_security(app)
setup_exception_handlers(app)

# Middleware
app.add_middleware(RequestLoggingMiddleware, service_name="leads-service")

@app.on_event("startup")
async def startup_db_client():
    app.mongodb_client = get_db_client()
    app.mongodb = app.mongodb_client.leads_db
    await LeadStore(app.mongodb).create_indexes()

@app.on_event("shutdown")
async def shutdown_db_client():
    app.mongodb_client.close()

# --- Dependencies ---
def get_lead_store() -> LeadStore:
    return LeadStore(app.mongodb)

def get_mailer() -> ResendMailer:
    return ResendMailer.from_settings(settings)

# --- Helpers ---
def resolve_source(source_url: Optional[str], request: Request) -> str:
    return source_url or sanitize_input(request.headers.get("referer")) or "unknown"

async def save_lead(store: LeadStore, kind: str, lead: LeadDB) -> str:
    try:
        lead_id = await store.insert(kind, lead)
    except PyMongoError:
        logger.exception("Failed to save submission", extra={"kind": kind})
        raise AppException(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to save submission")
    logger.info("Lead stored", extra={"kind": kind, "record_id": lead_id})
    return lead_id

async def notify(mailer: ResendMailer, messages: List[EmailMessage], kind: str, lead_id: str):
    sent = await mailer.send_all(messages)
    logger.info("Lead notifications sent", extra={"kind": kind, "record_id": lead_id, "status": f"{sent}/{len(messages)}"})

# --- Endpoints ---

@app.post("/leads/contact", response_model=LeadCreated)
@limiter.limit("5/minute")
async def submit_contact(
    form: ContactSubmission,
    request: Request,
    store: LeadStore = Depends(get_lead_store),
    mailer: ResendMailer = Depends(get_mailer),
):
    lead = ContactSubmissionDB(**form.model_dump())
    lead_id = await save_lead(store, "contact", lead)
    await notify(mailer, emails.contact_emails(
        lead_id, settings.ADMIN_NOTIFY_EMAIL, lead.name, lead.email, lead.phone, lead.subject, lead.message
    ), "contact", lead_id)
    return LeadCreated(id=lead_id, message="Message sent successfully")

@app.post("/leads/newsletter", response_model=LeadCreated)
@limiter.limit("5/minute")
async def submit_newsletter(
    form: NewsletterSubscription,
    request: Request,
    store: LeadStore = Depends(get_lead_store),
    mailer: ResendMailer = Depends(get_mailer),
):
    lead = NewsletterSubscriptionDB(email=form.email, source_url=resolve_source(form.source_url, request))
    lead_id = await save_lead(store, "newsletter", lead)
    await notify(mailer, emails.newsletter_emails(
        lead_id, settings.ADMIN_NOTIFY_EMAIL, lead.email, lead.source_url
    ), "newsletter", lead_id)
    return LeadCreated(id=lead_id)

@app.post("/leads/session-registration", response_model=LeadCreated)
@limiter.limit("5/minute")
async def submit_session_registration(
    form: SessionRegistration,
    request: Request,
    store: LeadStore = Depends(get_lead_store),
    mailer: ResendMailer = Depends(get_mailer),
):
    lead = SessionRegistrationDB(email=form.email, source_url=resolve_source(form.source_url, request))
    lead_id = await save_lead(store, "session-registration", lead)
    await notify(mailer, emails.session_emails(
        lead_id, settings.ADMIN_NOTIFY_EMAIL, lead.email, lead.source_url
    ), "session-registration", lead_id)
    return LeadCreated(id=lead_id)

@app.post("/leads/checklist", response_model=LeadCreated)
@limiter.limit("5/minute")
async def submit_checklist(
    form: ChecklistRequest,
    request: Request,
    store: LeadStore = Depends(get_lead_store),
    mailer: ResendMailer = Depends(get_mailer),
):
    lead = ChecklistRequestDB(
        email=form.email,
        asset=form.asset or "drive_checklist",
        source_url=resolve_source(form.source_url, request),
    )
    lead_id = await save_lead(store, "checklist", lead)
    await notify(mailer, emails.checklist_emails(
        lead_id, settings.ADMIN_NOTIFY_EMAIL, lead.email, lead.asset, lead.source_url
    ), "checklist", lead_id)
    return LeadCreated(id=lead_id)

@app.post("/leads/mentorship", response_model=LeadCreated)
@limiter.limit("5/minute")
async def submit_mentorship(
    form: MentorshipApplication,
    request: Request,
    store: LeadStore = Depends(get_lead_store),
    mailer: ResendMailer = Depends(get_mailer),
):
    lead = MentorshipApplicationDB(**form.model_dump())
    lead_id = await save_lead(store, "mentorship", lead)
    await notify(mailer, emails.mentorship_emails(
        lead_id, settings.ADMIN_NOTIFY_EMAIL, lead.name, lead.email, lead.phone,
        lead.experience, lead.goals, lead.availability
    ), "mentorship", lead_id)
    return LeadCreated(id=lead_id, message="Application submitted successfully")

@app.get("/leads/{kind}", response_model=SuccessResponse[List[LeadRecord]])
async def list_leads(
    kind: str,
    limit: int = Query(50, ge=1, le=200),
    admin: dict = Depends(require_admin),
    store: LeadStore = Depends(get_lead_store),
):
    if kind not in LEAD_COLLECTIONS:
        raise NotFoundException(f"Unknown lead type: {kind}")
    docs = await store.recent(kind, limit)
    records = [
        LeadRecord(id=doc.pop("id"), status=doc.pop("status", "new"), fields=doc)
        for doc in docs
    ]
    return SuccessResponse(data=records)

@app.get("/health", response_model=HealthResponse)
async def health_check():
    try:
        await app.mongodb_client.admin.command('ping')
        db_status = "connected"
    except (PyMongoError, AttributeError):
        db_status = "disconnected"

    if db_status != "connected":
        raise AppException(status.HTTP_503_SERVICE_UNAVAILABLE, "Service Unhealthy")

    return HealthResponse(
        service="leads-service",
        status="healthy",
        timestamp=datetime.utcnow(),
        version="1.0.0",
        database=db_status,
        dependencies={"resend": "configured" if settings.RESEND_API_KEY else "unconfigured"},
    )
