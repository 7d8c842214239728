"""HTML bodies for lead notifications. Field values arrive HTML-escaped from the schemas."""
from datetime import datetime
from typing import List, Optional

from services.leads_service.mailer import EmailMessage

BRAND = "KenneDyne spot"
WHATSAPP = "+254 101 316 169"
ADMIN_LEADS_URL = "https://institutional-trader.com/admin/leads"


def _paragraphs(text: str) -> str:
    return text.replace("\n", "<br>")


def _signature() -> str:
    return f"<p>Best regards,<br>The {BRAND} Team</p>"


def contact_emails(lead_id: str, admin: str, name: str, email: str, phone: Optional[str],
                   subject: str, message: str) -> List[EmailMessage]:
    admin_html = f"""
        <h2>New Contact Form Submission</h2>
        <p><strong>Name:</strong> {name}</p>
        <p><strong>Email:</strong> {email}</p>
        <p><strong>Phone:</strong> {phone or 'Not provided'}</p>
        <p><strong>Subject:</strong> {subject}</p>
        <h3>Message:</h3>
        <p>{_paragraphs(message)}</p>
        <p><a href="{ADMIN_LEADS_URL}">View in Admin Panel</a> (ID: {lead_id})</p>
    """
    user_html = f"""
        <h2>Thank you for contacting us, {name}!</h2>
        <p>We have received your message about "{subject}" and will get back to you within 24-48 hours during business days.</p>
        <h3>Your message:</h3>
        <p style="background: #f5f5f5; padding: 15px; border-radius: 5px;">{_paragraphs(message)}</p>
        <p>If you need immediate assistance, you can reach us on WhatsApp: {WHATSAPP}</p>
        {_signature()}
    """
    return [
        EmailMessage(to=[admin], subject=f"New Contact Form: {subject}", html=admin_html),
        EmailMessage(to=[email], subject="We received your message!", html=user_html),
    ]


def signup_emails(lead_id: str, admin: str, email: str, source_url: str, admin_subject: str,
                  user_subject: str, user_body: str, extra_rows: Optional[dict] = None) -> List[EmailMessage]:
    """Newsletter, session and checklist sign-ups share one admin layout."""
    rows = "".join(f"<p><strong>{label}:</strong> {value}</p>" for label, value in (extra_rows or {}).items())
    admin_html = f"""
        <h2>{admin_subject}</h2>
        <p><strong>Email:</strong> {email}</p>
        {rows}
        <p><strong>Source:</strong> {source_url}</p>
        <p><strong>Time:</strong> {datetime.utcnow().strftime('%Y-%m-%d %H:%M:%S')} UTC</p>
        <p><strong>ID:</strong> {lead_id}</p>
    """
    user_html = f"""
        <h2>{user_subject}</h2>
        {user_body}
        <p>If you have any questions, feel free to contact us.</p>
        {_signature()}
    """
    return [
        EmailMessage(to=[admin], subject=admin_subject, html=admin_html),
        EmailMessage(to=[email], subject=user_subject, html=user_html),
    ]


def newsletter_emails(lead_id: str, admin: str, email: str, source_url: str) -> List[EmailMessage]:
    return signup_emails(
        lead_id, admin, email, source_url,
        admin_subject="New Newsletter Subscription",
        user_subject="Welcome to Weekly Market Notes!",
        user_body=(
            "<p>Thank you for subscribing to our weekly market insights.</p>"
            "<p>You'll receive trading insights, market analysis, and educational content "
            "directly to your inbox every week.</p>"
        ),
    )


def session_emails(lead_id: str, admin: str, email: str, source_url: str) -> List[EmailMessage]:
    return signup_emails(
        lead_id, admin, email, source_url,
        admin_subject="New Trading Session Registration",
        user_subject="You're registered for the live trading session!",
        user_body=(
            "<p>Thank you for registering for our upcoming live trading session.</p>"
            "<p>We'll send you the session link and schedule before we go live.</p>"
        ),
    )


def checklist_emails(lead_id: str, admin: str, email: str, asset: str, source_url: str) -> List[EmailMessage]:
    return signup_emails(
        lead_id, admin, email, source_url,
        admin_subject="New Checklist Download Request",
        user_subject="Your trading checklist is on its way",
        user_body=(
            "<p>Thank you for requesting our trading checklist.</p>"
            "<p>Keep it next to your charts and run through it before every trade.</p>"
        ),
        extra_rows={"Asset": asset},
    )


def mentorship_emails(lead_id: str, admin: str, name: str, email: str, phone: Optional[str],
                      experience: str, goals: str, availability: str) -> List[EmailMessage]:
    phone_row = f"<p><strong>Phone:</strong> {phone}</p>" if phone else ""
    admin_html = f"""
        <h2>New Mentorship Application</h2>
        <p><strong>Name:</strong> {name}</p>
        <p><strong>Email:</strong> {email}</p>
        {phone_row}
        <p><strong>Availability:</strong> {availability}</p>
        <h3>Trading Experience:</h3>
        <p>{_paragraphs(experience)}</p>
        <h3>Goals:</h3>
        <p>{_paragraphs(goals)}</p>
        <p><a href="{ADMIN_LEADS_URL}">View in Admin Panel</a> (ID: {lead_id})</p>
    """
    user_html = f"""
        <h2>Thank you for applying, {name}!</h2>
        <p>We have received your mentorship application and will review it carefully.</p>
        <p>Expect to hear from us within 48 hours with next steps.</p>
        <p>If you need immediate assistance, you can reach us on WhatsApp: {WHATSAPP}</p>
        {_signature()}
    """
    return [
        EmailMessage(to=[admin], subject=f"New Mentorship Application from {name}", html=admin_html),
        EmailMessage(to=[email], subject="Mentorship Application Received", html=user_html),
    ]
