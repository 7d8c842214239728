from fastapi import FastAPI, Depends, Request, status
from datetime import datetime
from pymongo.errors import PyMongoError

from shared.utils import (
    get_db_client, settings, AppException, HealthResponse, setup_exception_handlers
)
from shared.logging_config import setup_logging, RequestLoggingMiddleware
from shared.security_config import setup_security, limiter

from services.translation_service.schemas import (
    TranslateRequest, TranslateResponse, PostTranslateRequest, PostTranslateResponse,
    ObjectTranslateRequest, ObjectTranslateResponse
)
from services.translation_service.cache import MemoryTranslationCache, MongoTranslationCache, TieredTranslationCache
from services.translation_service.provider import LibreTranslateProvider, TranslationProviderError
from services.translation_service.translator import Translator

# Setup Logging
logger = setup_logging("translation-service")

app = FastAPI(title="Translation Service")

# Security Setup
setup_security(app)
setup_exception_handlers(app)

# Middleware
app.add_middleware(RequestLoggingMiddleware, service_name="translation-service")

# Shared by every request handled by this process
memory_cache = MemoryTranslationCache(ttl_seconds=settings.TRANSLATION_CACHE_TTL_SECONDS)

@app.on_event("startup")
async def startup_db_client():
    app.mongodb_client = get_db_client()
    app.mongodb = app.mongodb_client.translation_db
    await MongoTranslationCache(app.mongodb.translations).create_indexes()

@app.on_event("shutdown")
async def shutdown_db_client():
    app.mongodb_client.close()

# --- Dependencies ---
def get_translator() -> Translator:
    cache = TieredTranslationCache(memory_cache, MongoTranslationCache(app.mongodb.translations))
    return Translator(LibreTranslateProvider.from_settings(settings), cache)

# --- Endpoints ---

@app.post("/translate", response_model=TranslateResponse)
@limiter.limit("60/minute")
async def translate(payload: TranslateRequest, request: Request, translator: Translator = Depends(get_translator)):
    if payload.is_batch:
        results = []
        # Sequential on purpose: the upstream instance is rate limited
        for text in payload.texts:
            try:
                results.append(await translator.translate_unit(text, payload.target, payload.source_lang))
            except TranslationProviderError as e:
                logger.warning("Batch item translation failed, returning original",
                               extra={"target": payload.target, "error": str(e)})
                results.append(text)
        return TranslateResponse(translated=results)

    try:
        translated = await translator.translate_unit(payload.text, payload.target, payload.source_lang)
    except TranslationProviderError as e:
        logger.error("Translation failed", extra={"target": payload.target, "error": str(e)})
        raise AppException(status.HTTP_502_BAD_GATEWAY, "translate_failed")
    return TranslateResponse(translated=translated)

@app.post("/translate/post", response_model=PostTranslateResponse)
@limiter.limit("20/minute")
async def translate_post(payload: PostTranslateRequest, request: Request, translator: Translator = Depends(get_translator)):
    fields = payload.model_dump(include={"title", "excerpt", "content"})
    translated = await translator.translate_post_fields(fields, payload.target, payload.source)
    return PostTranslateResponse(translated=translated)

@app.post("/translate/object", response_model=ObjectTranslateResponse)
@limiter.limit("10/minute")
async def translate_object(payload: ObjectTranslateRequest, request: Request, translator: Translator = Depends(get_translator)):
    translated, errors = await translator.translate_object(payload.content, payload.target, payload.source)
    return ObjectTranslateResponse(translated=translated, errors=errors)

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
        service="translation-service",
        status="healthy",
        timestamp=datetime.utcnow(),
        version="1.0.0",
        database=db_status,
        dependencies={"memory_cache_entries": len(memory_cache)},
    )
