from typing import Optional

import httpx

from shared.utils import Settings


class TranslationProviderError(Exception):
    pass


class LibreTranslateProvider:
    """Single-attempt client for a LibreTranslate ``/translate`` endpoint."""

    def __init__(self, url: str, api_key: Optional[str] = None, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "LibreTranslateProvider":
        return cls(
            url=settings.LIBRETRANSLATE_URL,
            api_key=settings.LIBRETRANSLATE_API_KEY,
            timeout=settings.TRANSLATION_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def translate(self, text: str, target: str, source: str = "en") -> str:
        payload = {"q": text, "source": source, "target": target, "format": "text"}
        if self.api_key:
            payload["api_key"] = self.api_key

        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            try:
                response = await client.post(self.url, json=payload)
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as e:
                raise TranslationProviderError(f"translate-failed: HTTP {e.response.status_code}")
            except httpx.HTTPError as e:
                raise TranslationProviderError(f"translate-failed: {e}")
            except ValueError:
                raise TranslationProviderError("translate-failed: invalid JSON")

        translated = None
        if isinstance(data, dict):
            translated = data.get("translatedText") or data.get("translation")
        if not translated:
            raise TranslationProviderError("translate-failed: empty translation")
        return translated
