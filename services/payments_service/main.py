from fastapi import FastAPI, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from datetime import datetime
from typing import List
from pymongo.errors import PyMongoError

from shared.utils import (
    get_db_client, settings, SuccessResponse, ErrorResponse,
    NotFoundException, AppException, HealthResponse,
    require_admin, setup_exception_handlers
)
from shared.logging_config import setup_logging, RequestLoggingMiddleware
from shared.security_config import setup_security, limiter

from services.payments_service.schemas import (
    StkPushRequest, StkPushResponse, CallbackAck, TransactionResponse, TransactionStatusResponse
)
from services.payments_service.models import TransactionDB, TransactionStatus
from services.payments_service.store import TransactionStore, STORE_ERRORS
from services.payments_service.daraja import DarajaClient, DarajaError
from services.payments_service.reconciler import CallbackReconciler, CallbackParseError, get_ci

# Setup Logging
logger = setup_logging("payments-service")

app = FastAPI(title="Payments Service")

# Security Setup
setup_security(app)
setup_exception_handlers(app)

# Middleware
app.add_middleware(RequestLoggingMiddleware, service_name="payments-service")

@app.on_event("startup")
async def startup_db_client():
    app.mongodb_client = get_db_client()
    app.mongodb = app.mongodb_client.payments_db
    await TransactionStore(app.mongodb.mpesa_transactions).create_indexes()

@app.on_event("shutdown")
async def shutdown_db_client():
    app.mongodb_client.close()

# --- Dependencies ---
def get_transaction_store() -> TransactionStore:
    return TransactionStore(app.mongodb.mpesa_transactions)

def get_daraja_client() -> DarajaClient:
    return DarajaClient.from_settings(settings)

def get_reconciler(store: TransactionStore = Depends(get_transaction_store)) -> CallbackReconciler:
    return CallbackReconciler(store, scan_limit=settings.CALLBACK_SCAN_LIMIT)

def error_response(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=error).model_dump(exclude_none=True))

# --- Endpoints ---

@app.post("/mpesa/stk-push", response_model=StkPushResponse)
@limiter.limit("10/minute")
async def stk_push(
    payload: StkPushRequest,
    request: Request,
    store: TransactionStore = Depends(get_transaction_store),
    daraja: DarajaClient = Depends(get_daraja_client),
):
    try:
        stk_body, stk_json = await daraja.stk_push(
            payload.amount, payload.phone, payload.account_reference, payload.description
        )
    except DarajaError as e:
        logger.error("STK push failed", extra={"error": str(e), "status_code": e.status_code})
        raise AppException(e.status_code, str(e))

    accepted = str(get_ci(stk_json, "ResponseCode")) == "0"
    transaction = TransactionDB(
        phone=payload.phone,
        amount=payload.amount,
        account_reference=payload.account_reference,
        description=payload.description,
        # The STK password is derived from the passkey, never persist it
        request_payload={**stk_body, "Password": "***"},
        response_payload=stk_json,
        status=TransactionStatus.PENDING if accepted else TransactionStatus.FAILED,
    )

    tx_id = None
    try:
        tx_id = await store.insert(transaction)
    except STORE_ERRORS:
        logger.exception("Failed to store mpesa transaction")

    return StkPushResponse(data=stk_json, tx_id=tx_id)

@app.post("/mpesa/callback", response_model=CallbackAck)
async def mpesa_callback(request: Request, reconciler: CallbackReconciler = Depends(get_reconciler)):
    try:
        body = await request.json()
    except ValueError:
        logger.error("Callback body is not valid JSON")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "invalid_json")

    try:
        result = await reconciler.reconcile(body)
    except CallbackParseError as e:
        logger.error("Error in mpesa callback", extra={"error": str(e)})
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e))

    logger.info("Callback processed", extra={"tx_id": result.tx_id, "status": result.status})
    return CallbackAck()

@app.get("/mpesa/transactions", response_model=SuccessResponse[List[TransactionResponse]])
async def list_transactions(
    limit: int = Query(50, ge=1, le=200),
    admin: dict = Depends(require_admin),
    store: TransactionStore = Depends(get_transaction_store),
):
    docs = await store.recent(limit)
    return SuccessResponse(data=[TransactionResponse(**doc) for doc in docs])

@app.get("/mpesa/transactions/{tx_id}", response_model=SuccessResponse[TransactionStatusResponse])
async def get_transaction_status(tx_id: str, store: TransactionStore = Depends(get_transaction_store)):
    doc = await store.get(tx_id)
    if not doc:
        raise NotFoundException("Transaction not found")
    return SuccessResponse(data=TransactionStatusResponse(
        id=doc["id"],
        status=doc["status"],
        result_desc=get_ci(doc.get("callback_payload"), "ResultDesc"),
        created_at=doc["created_at"],
        updated_at=doc.get("updated_at"),
    ))

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
        service="payments-service",
        status="healthy",
        timestamp=datetime.utcnow(),
        version="1.0.0",
        database=db_status,
        dependencies={"daraja": "configured" if get_daraja_client().is_configured() else "unconfigured"},
    )
