"""
Custody Ledger API Service

FastAPI application exposing the order fulfillment core.

Endpoints:
- /api/orders/* - Customer and supplier order operations
- /api/legs/*, /api/orders/{id}/forward - Distributor custody operations
- /api/transporters - Transporter management
- /api/verify - QR authenticity verification
- /api/admin/* - Supplier key provisioning
- GET / - Root health check

Run:
    uvicorn fulfillment.service.api:app --reload
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fulfillment.errors import FulfillmentError
from fulfillment.service.orders_api import router as orders_router
from fulfillment.service.legs_api import router as legs_router
from fulfillment.service.verify_api import router as verification_router
from fulfillment.service.admin_api import router as admin_router
from signing.server_keys import load_server_keys

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Refuse to start without the server countersigning keypair
    load_server_keys()
    yield


app = FastAPI(
    title="Custody Ledger API",
    description="Multi-hop order fulfillment with signed chain-of-custody QR verification",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(orders_router)
app.include_router(legs_router)
app.include_router(verification_router)
app.include_router(admin_router)

# Allow local tools and UIs
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(FulfillmentError)
async def fulfillment_error_handler(request: Request, exc: FulfillmentError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.kind}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.kind}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"{request.method} {request.url.path} raised unexpected error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "INTERNAL_ERROR", "message": "Internal Server Error"}
    )


@app.get("/", response_model=dict)
async def root():
    """Root health check endpoint."""
    return {
        "service": "Custody Ledger API",
        "status": "operational",
        "version": "1.0.0",
        "endpoints": [
            "POST /api/orders",
            "POST /api/orders/{order_id}/approve",
            "POST /api/legs/{leg_id}/accept",
            "POST /api/orders/{order_id}/forward",
            "GET /api/verify?token=...",
        ]
    }
