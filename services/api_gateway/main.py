import asyncio
import os
import time
from datetime import datetime
from typing import Optional

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from shared.logging_config import setup_logging, RequestLoggingMiddleware
from shared.security_config import setup_security, limiter

# Configuration
PAYMENTS_SERVICE_URL = os.getenv("PAYMENTS_SERVICE_URL", "http://payments-service:8001")
TRANSLATION_SERVICE_URL = os.getenv("TRANSLATION_SERVICE_URL", "http://translation-service:8002")
LEADS_SERVICE_URL = os.getenv("LEADS_SERVICE_URL", "http://leads-service:8003")

DOWNSTREAM_SERVICES = {
    "payments-service": PAYMENTS_SERVICE_URL,
    "translation-service": TRANSLATION_SERVICE_URL,
    "leads-service": LEADS_SERVICE_URL,
}

# Hop-by-hop and length headers are recomputed by the receiving side
STRIPPED_REQUEST_HEADERS = {"host", "content-length"}
STRIPPED_RESPONSE_HEADERS = {"content-length", "content-encoding", "transfer-encoding", "connection"}

# Setup Logging
logger = setup_logging("api-gateway")

app = FastAPI(title="API Gateway")

# Security Setup
setup_security(app)

# Middleware
app.add_middleware(RequestLoggingMiddleware, service_name="api-gateway")

# Replaced in tests with a client bound to a mock transport
transport: Optional[httpx.AsyncBaseTransport] = None

def http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=transport)

# --- Proxy Logic ---

async def forward_request(service_url: str, request: Request, path: str) -> Response:
    headers = {k: v for k, v in request.headers.items() if k.lower() not in STRIPPED_REQUEST_HEADERS}

    # Inject Correlation ID
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        headers["X-Request-ID"] = request_id

    url = f"{service_url}{path}"
    if request.url.query:
        url += f"?{request.url.query}"

    content = await request.body()
    start_time = time.time()
    logger.info("Calling Downstream Service", extra={
        "target": service_url,
        "path": path,
        "method": request.method,
        "request_id": request_id,
    })

    async with http_client() as client:
        try:
            resp = await client.request(
                method=request.method,
                url=url,
                headers=headers,
                content=content,
                timeout=30.0,
            )
        except httpx.RequestError as e:
            logger.error("Downstream Call Failed", extra={"target": service_url, "path": path, "error": str(e)})
            return JSONResponse(status_code=503, content={"success": False, "error": "Service Unavailable"})

    duration = (time.time() - start_time) * 1000
    logger.info("Downstream Call Completed", extra={
        "target": service_url,
        "path": path,
        "status_code": resp.status_code,
        "duration_ms": round(duration, 2),
        "request_id": request_id,
    })

    response_headers = {
        k: v for k, v in resp.headers.items() if k.lower() not in STRIPPED_RESPONSE_HEADERS
    }
    return Response(content=resp.content, status_code=resp.status_code, headers=response_headers)

# --- Routes ---

@app.get("/health")
async def health_check():
    async def check_service(name: str, url: str) -> dict:
        start = time.time()
        status_val = "unhealthy"
        details = None
        try:
            async with http_client() as client:
                res = await client.get(f"{url}/health", timeout=2.0)
            if res.status_code == 200:
                status_val = "healthy"
                details = res.json()
            else:
                details = {"error": f"Status {res.status_code}"}
        except (httpx.HTTPError, ValueError) as e:
            status_val = "unreachable"
            details = {"error": str(e)}

        return {
            "service": name,
            "status": status_val,
            "latency": f"{time.time() - start:.4f}s",
            "details": details,
        }

    results = await asyncio.gather(*(check_service(name, url) for name, url in DOWNSTREAM_SERVICES.items()))
    overall_status = "healthy" if all(r["status"] == "healthy" for r in results) else "unhealthy"

    response_data = {
        "service": "api-gateway",
        "status": overall_status,
        "timestamp": datetime.utcnow().isoformat(),
        "version": "1.0.0",
        "services": results,
    }
    # 503 still carries the per-service details
    return JSONResponse(content=response_data, status_code=200 if overall_status == "healthy" else 503)

# Not rate limited: Safaricom redelivers callbacks on any non-2xx, 429 included
@app.api_route("/api/payments/callback", methods=["POST"])
async def payments_callback_proxy(request: Request):
    return await forward_request(PAYMENTS_SERVICE_URL, request, "/mpesa/callback")

@app.api_route("/api/payments{path:path}", methods=["GET", "POST"])
@limiter.limit("100/minute")
async def payments_proxy(request: Request, path: str):
    # /api/payments/stk-push -> payments-service/mpesa/stk-push
    return await forward_request(PAYMENTS_SERVICE_URL, request, f"/mpesa{path}")

@app.api_route("/api/translate{path:path}", methods=["POST"])
@limiter.limit("100/minute")
async def translate_proxy(request: Request, path: str):
    # /api/translate -> translation-service/translate
    return await forward_request(TRANSLATION_SERVICE_URL, request, f"/translate{path}")

@app.api_route("/api/leads{path:path}", methods=["GET", "POST"])
@limiter.limit("100/minute")
async def leads_proxy(request: Request, path: str):
    # /api/leads/contact -> leads-service/leads/contact
    return await forward_request(LEADS_SERVICE_URL, request, f"/leads{path}")
