"""
Content-addressed translation with paragraph chunking.

Translations are cached under (fingerprint of the source text, target
language), so identical input always maps to the same cached output and
entries never need invalidating. Texts of ``CHUNK_THRESHOLD`` characters or
more are translated paragraph by paragraph, sequentially, to stay within the
request size and rate limits of public LibreTranslate instances. Fenced code
blocks are never sent to the provider.

``translate`` is best-effort: a failed chunk keeps its original text.
``translate_unit`` raises ``TranslationProviderError`` instead.
"""
import base64
import hashlib
import logging
import re
from typing import Any, List, Optional, Tuple

from services.translation_service.provider import TranslationProviderError

logger = logging.getLogger("translation-service")

CHUNK_THRESHOLD = 3000

# Fields holding enums, ids, urls and other values that must stay as-is
SKIP_FIELDS = frozenset({
    "level", "type", "slug", "url", "href", "id",
    "readTime", "createdAt", "updatedAt", "date",
    "icon", "image", "alt", "path", "link",
})

POST_FIELDS = ("title", "excerpt", "content")

# Fences open and close at the start of a line; inline ``` spans stay in their paragraph
_FENCED_BLOCK = re.compile(r"^```.*?^```[^\n]*", re.DOTALL | re.MULTILINE)
_BLANK_LINES = re.compile(r"(\n\s*\n)")


def content_fingerprint(text: str) -> str:
    data = text.encode("utf-8")
    try:
        return hashlib.new("sha256", data).hexdigest()
    except ValueError:
        # sha256 disabled in this runtime: stable but far less collision resistant
        return base64.urlsafe_b64encode(data).decode("ascii")[:64]


def split_chunks(text: str) -> List[str]:
    """
    Split text into paragraph chunks such that ``"".join(chunks) == text``.

    Blank-line separators become chunks of their own, and a fenced code block
    is always a single chunk even when it contains blank lines.
    """
    chunks = []
    pos = 0
    for match in _FENCED_BLOCK.finditer(text):
        chunks.extend(_BLANK_LINES.split(text[pos:match.start()]))
        chunks.append(match.group(0))
        pos = match.end()
    chunks.extend(_BLANK_LINES.split(text[pos:]))
    return [chunk for chunk in chunks if chunk]


def is_code_block(chunk: str) -> bool:
    stripped = chunk.strip()
    return len(stripped) >= 6 and stripped.startswith("```") and stripped.endswith("```")


class Translator:
    def __init__(self, provider, cache, chunk_threshold: int = CHUNK_THRESHOLD):
        self.provider = provider
        self.cache = cache
        self.chunk_threshold = chunk_threshold

    async def translate_unit(self, text: str, target: str, source: str = "en") -> str:
        if not text:
            return ""
        if target == source:
            return text

        key = content_fingerprint(text)
        cached = await self.cache.get(key, target)
        if cached is not None:
            return cached
        return await self._fetch(text, key, target, source)

    async def translate(self, text: str, target: str, source: str = "en") -> str:
        if not text:
            return ""
        if target == source:
            return text

        key = content_fingerprint(text)
        cached = await self.cache.get(key, target)
        if cached is not None:
            return cached

        if len(text) < self.chunk_threshold:
            try:
                return await self._fetch(text, key, target, source)
            except TranslationProviderError as e:
                logger.warning("Translation failed, falling back to original text",
                               extra={"target": target, "error": str(e)})
                return text

        translated, failures = await self._translate_chunks(text, target, source)
        if not failures:
            await self.cache.set(key, target, translated, original_text=text, source=source)
        return translated

    async def translate_post_fields(self, fields: dict, target: str, source: str = "en") -> dict:
        result = {}
        for name in POST_FIELDS:
            if fields.get(name):
                result[name] = await self.translate(fields[name], target, source)
        return result

    async def translate_object(self, obj: Any, target: str, source: str = "en") -> Tuple[Any, List[dict]]:
        """Translate every string leaf of a JSON structure. Returns (result, errors)."""
        errors: List[dict] = []

        async def walk(node: Any, path: str, field: Optional[str]) -> Any:
            if isinstance(node, str):
                if field in SKIP_FIELDS or not node.strip():
                    return node
                try:
                    return await self.translate_unit(node, target, source)
                except TranslationProviderError as e:
                    logger.warning("Field translation failed", extra={"target": target, "error": str(e)})
                    errors.append({"path": path, "error": str(e)})
                    return node
            if isinstance(node, list):
                return [await walk(item, f"{path}[{i}]", field) for i, item in enumerate(node)]
            if isinstance(node, dict):
                result = {}
                for key, value in node.items():
                    if key in SKIP_FIELDS:
                        result[key] = value
                    else:
                        result[key] = await walk(value, f"{path}.{key}" if path else key, key)
                return result
            return node

        return await walk(obj, "", None), errors

    async def _fetch(self, text: str, key: str, target: str, source: str) -> str:
        translated = await self.provider.translate(text, target, source)
        await self.cache.set(key, target, translated, original_text=text, source=source)
        return translated

    async def _translate_chunks(self, text: str, target: str, source: str) -> Tuple[str, int]:
        parts = []
        failures = 0
        chunks = split_chunks(text)
        for chunk in chunks:
            if not chunk.strip() or is_code_block(chunk):
                parts.append(chunk)
                continue

            # Send only the paragraph body; keep surrounding whitespace byte-identical
            body = chunk.strip()
            leading = chunk[:len(chunk) - len(chunk.lstrip())]
            trailing = chunk[len(chunk.rstrip()):]
            try:
                parts.append(leading + await self.translate_unit(body, target, source) + trailing)
            except TranslationProviderError as e:
                failures += 1
                logger.warning("Chunk translation failed, keeping original",
                               extra={"target": target, "error": str(e)})
                parts.append(chunk)

        logger.info("Chunked translation finished", extra={"target": target, "chunks": len(chunks)})
        return "".join(parts), failures
