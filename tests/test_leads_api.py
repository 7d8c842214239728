import httpx
import pytest
from fastapi.testclient import TestClient

from services.leads_service import main as leads
from services.leads_service.mailer import ResendMailer

from conftest import RecordingTransport


def resend_ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"id": "email-1"})


def make_mailer(transport, api_key="re_test") -> ResendMailer:
    return ResendMailer(
        api_key=api_key,
        api_url="https://api.resend.test/emails",
        from_name="KenneDyne spot",
        from_address="hello@institutionaltrader.com",
        transport=transport,
    )


@pytest.fixture
def resend():
    return RecordingTransport(resend_ok)


@pytest.fixture
def client(lead_store, resend):
    leads.app.dependency_overrides[leads.get_lead_store] = lambda: lead_store
    leads.app.dependency_overrides[leads.get_mailer] = lambda: make_mailer(resend)
    yield TestClient(leads.app)
    leads.app.dependency_overrides.clear()


def test_contact_stores_lead_and_sends_both_emails(client, lead_store, resend):
    resp = client.post("/leads/contact", json={
        "name": "Jane <b>Trader</b>",
        "email": "jane@example.com",
        "subject": "Mentorship",
        "message": "Line one\nLine two",
    })

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Message sent successfully"

    stored = lead_store.leads["contact"][0]
    assert stored["id"] == body["id"]
    assert stored["name"] == "Jane &lt;b&gt;Trader&lt;/b&gt;"
    assert stored["status"] == "new"

    admin_mail, user_mail = resend.json_bodies()
    assert admin_mail["to"] == [leads.settings.ADMIN_NOTIFY_EMAIL]
    assert admin_mail["subject"] == "New Contact Form: Mentorship"
    assert "Line one<br>Line two" in admin_mail["html"]
    assert user_mail["to"] == ["jane@example.com"]
    assert user_mail["from"] == "KenneDyne spot <hello@institutionaltrader.com>"
    assert resend.requests[0].headers["Authorization"] == "Bearer re_test"


def test_newsletter_source_falls_back_to_referer(client, lead_store):
    resp = client.post(
        "/leads/newsletter",
        json={"email": "reader@example.com"},
        headers={"Referer": "https://institutional-trader.com/blog"},
    )

    assert resp.status_code == 200
    assert lead_store.leads["newsletter"][0]["source_url"] == "https://institutional-trader.com/blog"


def test_session_registration_without_source_is_unknown(client, lead_store):
    client.post("/leads/session-registration", json={"email": "live@example.com"})
    assert lead_store.leads["session-registration"][0]["source_url"] == "unknown"


def test_checklist_defaults_asset(client, lead_store, resend):
    client.post("/leads/checklist", json={"email": "c@example.com", "source_url": "/checklist"})

    stored = lead_store.leads["checklist"][0]
    assert stored["asset"] == "drive_checklist"
    assert stored["source_url"] == "/checklist"
    assert "drive_checklist" in resend.json_bodies()[0]["html"]


def test_mentorship_application(client, lead_store, resend):
    resp = client.post("/leads/mentorship", json={
        "name": "Otieno",
        "email": "otieno@example.com",
        "phone": "0712345678",
        "experience": "Two years on majors",
        "goals": "Consistency",
        "availability": "Weekends",
    })

    assert resp.status_code == 200
    assert resp.json()["message"] == "Application submitted successfully"
    assert lead_store.leads["mentorship"][0]["availability"] == "Weekends"
    assert resend.json_bodies()[0]["subject"] == "New Mentorship Application from Otieno"


def test_email_failure_does_not_fail_submission(lead_store, caplog):
    failing = RecordingTransport(lambda request: httpx.Response(422, json={"message": "invalid from"}))
    leads.app.dependency_overrides[leads.get_lead_store] = lambda: lead_store
    leads.app.dependency_overrides[leads.get_mailer] = lambda: make_mailer(failing)
    try:
        resp = TestClient(leads.app).post("/leads/newsletter", json={"email": "reader@example.com"})
    finally:
        leads.app.dependency_overrides.clear()

    assert resp.status_code == 200
    assert len(lead_store.leads["newsletter"]) == 1
    assert "Email send failed" in caplog.text


def test_missing_mail_key_skips_sending(lead_store):
    transport = RecordingTransport(resend_ok)
    leads.app.dependency_overrides[leads.get_lead_store] = lambda: lead_store
    leads.app.dependency_overrides[leads.get_mailer] = lambda: make_mailer(transport, api_key=None)
    try:
        resp = TestClient(leads.app).post("/leads/newsletter", json={"email": "reader@example.com"})
    finally:
        leads.app.dependency_overrides.clear()

    assert resp.status_code == 200
    assert transport.requests == []


def test_store_failure_is_a_500(client, lead_store, resend):
    lead_store.fail_writes = True

    resp = client.post("/leads/newsletter", json={"email": "reader@example.com"})

    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "Failed to save submission"}
    assert resend.requests == []


@pytest.mark.parametrize("path, body", [
    ("/leads/newsletter", {"email": "not-an-email"}),
    ("/leads/contact", {"name": "A", "email": "a@example.com", "subject": "Hi"}),
    ("/leads/mentorship", {"name": "A", "email": "a@example.com"}),
])
def test_invalid_forms_are_400(client, path, body):
    resp = client.post(path, json=body)

    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid_payload"


def test_listing_requires_admin(client, user_headers):
    assert client.get("/leads/newsletter").status_code == 401
    assert client.get("/leads/newsletter", headers=user_headers).status_code == 403


def test_admin_lists_newest_first(client, admin_headers):
    client.post("/leads/newsletter", json={"email": "first@example.com"})
    client.post("/leads/newsletter", json={"email": "second@example.com"})

    resp = client.get("/leads/newsletter", headers=admin_headers)

    assert resp.status_code == 200
    records = resp.json()["data"]
    assert [r["fields"]["email"] for r in records] == ["second@example.com", "first@example.com"]
    assert records[0]["status"] == "new"


def test_unknown_lead_kind_is_404(client, admin_headers):
    resp = client.get("/leads/webinar", headers=admin_headers)

    assert resp.status_code == 404
    assert resp.json()["error"] == "Unknown lead type: webinar"
