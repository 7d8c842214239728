import pytest
from fastapi.testclient import TestClient

from services.translation_service import main as translation
from services.translation_service.cache import MemoryTranslationCache
from services.translation_service.translator import Translator

from conftest import FakeTranslationProvider


@pytest.fixture
def make_client():
    def build(provider):
        translator = Translator(provider, MemoryTranslationCache())
        translation.app.dependency_overrides[translation.get_translator] = lambda: translator
        return TestClient(translation.app)

    yield build
    translation.app.dependency_overrides.clear()


@pytest.fixture
def client(make_client, provider):
    return make_client(provider)


def test_single_text(client, provider):
    resp = client.post("/translate", json={"text": "Stop loss", "target": "fr"})

    assert resp.status_code == 200
    assert resp.json() == {"translated": "[fr] Stop loss"}
    assert provider.calls == [("Stop loss", "fr", "en")]


def test_explicit_source_language(client, provider):
    client.post("/translate", json={"text": "Hola", "target": "en", "source": "es"})
    assert provider.calls == [("Hola", "en", "es")]


def test_same_language_returns_text_untouched(client, provider):
    resp = client.post("/translate", json={"text": "Hello", "target": "en"})

    assert resp.json() == {"translated": "Hello"}
    assert provider.calls == []


def test_batch_preserves_order(client):
    resp = client.post("/translate", json={"texts": ["One", "Two", 3], "target": "de"})

    assert resp.status_code == 200
    assert resp.json() == {"translated": ["[de] One", "[de] Two", "[de] 3"]}


def test_batch_item_failure_falls_back_to_original(make_client):
    client = make_client(FakeTranslationProvider(failing={"Two"}))

    resp = client.post("/translate", json={"texts": ["One", "Two"], "target": "de"})

    assert resp.status_code == 200
    assert resp.json() == {"translated": ["[de] One", "Two"]}


def test_single_failure_is_a_502(make_client):
    client = make_client(FakeTranslationProvider(fail_all=True))

    resp = client.post("/translate", json={"text": "Hello", "target": "fr"})

    assert resp.status_code == 502
    assert resp.json() == {"success": False, "error": "translate_failed"}


@pytest.mark.parametrize("body", [
    {"target": "fr"},
    {"text": "Hello"},
    {"text": "", "target": "fr"},
    {"text": "Hello", "target": "not a language"},
])
def test_missing_or_invalid_fields_are_400(client, body):
    resp = client.post("/translate", json=body)

    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid_payload"


def test_preflight_is_answered(client):
    resp = client.options("/translate")

    assert resp.status_code == 200
    assert resp.headers["Access-Control-Allow-Origin"] == "*"


def test_translate_post_fields(client):
    resp = client.post("/translate/post", json={"title": "Pips explained", "content": "A pip is...", "target": "sw"})

    assert resp.status_code == 200
    assert resp.json() == {"translated": {"title": "[sw] Pips explained", "content": "[sw] A pip is..."}}


def test_translate_object_reports_errors(make_client):
    client = make_client(FakeTranslationProvider(failing={"Broken"}))
    content = {"title": "Course", "slug": "course", "modules": [{"name": "Broken"}]}

    resp = client.post("/translate/object", json={"content": content, "target": "fr"})

    assert resp.status_code == 200
    assert resp.json() == {
        "translated": {"title": "[fr] Course", "slug": "course", "modules": [{"name": "Broken"}]},
        "errors": [{"path": "modules[0].name", "error": "translate-failed: HTTP 503"}],
    }
