"""Storefront FastAPI application.

Processes commands synchronously over HTTP inside the storefront domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay is applied:
#   - "test"       -> event_processing = "sync"  (commission attribution fires in UoW)
#   - "production" -> event_processing = "async" (attribution fires via Engine)
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from storefront.domain import storefront  # noqa: E402
from storefront.utils.logging import configure_logging

configure_logging()
storefront.init()

_DOMAIN_PREFIXES = ("/carts", "/orders", "/referrals")


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Storefront API",
    description="Carts, checkout, order lifecycle and referral commissions",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the storefront domain context for API requests."""
    if request.url.path.startswith(_DOMAIN_PREFIXES):
        with storefront.domain_context():
            response = await call_next(request)
        return response
    # Health check, docs
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from storefront.api import (  # noqa: E402
    cart_router,
    order_router,
    referral_router,
    register_error_handlers,
)

app.include_router(cart_router)
app.include_router(order_router)
app.include_router(referral_router)
register_error_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": storefront.name})
