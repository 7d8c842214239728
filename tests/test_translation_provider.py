import httpx
import pytest

from services.translation_service.provider import LibreTranslateProvider, TranslationProviderError

from conftest import RecordingTransport

URL = "https://libretranslate.example/translate"


@pytest.mark.asyncio
async def test_posts_libretranslate_payload():
    transport = RecordingTransport(lambda request: httpx.Response(200, json={"translatedText": "Bonjour"}))
    provider = LibreTranslateProvider(URL, api_key="k-1", transport=transport)

    assert await provider.translate("Hello", "fr") == "Bonjour"
    assert str(transport.requests[0].url) == URL
    assert transport.json_bodies() == [{"q": "Hello", "source": "en", "target": "fr", "format": "text", "api_key": "k-1"}]


@pytest.mark.asyncio
async def test_accepts_translation_key():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"translation": "Hola"}))
    provider = LibreTranslateProvider(URL, transport=transport)
    assert await provider.translate("Hello", "es") == "Hola"


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    httpx.Response(429, json={"error": "Too many requests"}),
    httpx.Response(200, text="<html>maintenance</html>"),
    httpx.Response(200, json={"translatedText": ""}),
    httpx.Response(200, json=["unexpected"]),
])
async def test_bad_responses_raise(response):
    provider = LibreTranslateProvider(URL, transport=httpx.MockTransport(lambda request: response))
    with pytest.raises(TranslationProviderError):
        await provider.translate("Hello", "fr")


@pytest.mark.asyncio
async def test_network_errors_raise():
    def unreachable(request):
        raise httpx.ConnectError("connection refused", request=request)

    provider = LibreTranslateProvider(URL, transport=httpx.MockTransport(unreachable))
    with pytest.raises(TranslationProviderError):
        await provider.translate("Hello", "fr")
