"""Paaniyo checkout FastAPI application.

Single-domain web server: commands are processed synchronously per HTTP
request inside the checkout domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Logging and domain initialization
# ---------------------------------------------------------------------------
# PROTEAN_ENV selects the config overlay (domain.toml) and the log renderer:
#   - "test" / "development" → memory stores, console logs
#   - "production"           → PostgreSQL, JSON logs
from checkout.domain import checkout  # noqa: E402
from checkout.utils.logging import configure_logging  # noqa: E402
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

configure_logging()
checkout.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Paaniyo Checkout API",
    description="Order pricing, payment sessions and gateway settlement",
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
    """Push the checkout domain context for each request."""
    with checkout.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers and error handlers
# ---------------------------------------------------------------------------
from checkout.api import order_router, payment_router, register_checkout_error_handlers  # noqa: E402

app.include_router(order_router)
app.include_router(payment_router)

register_exception_handlers(app)
register_checkout_error_handlers(app)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": checkout.name})
