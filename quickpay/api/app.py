"""
QuickPay local service: redirect landing page and payment history.

Start it with:
    quickpay serve
or
    uvicorn quickpay.api.app:app --port 3000
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from quickpay.api.callback import router as callback_router
from quickpay.api.health import router as health_router
from quickpay.api.payments import router as payments_router
from quickpay.database import init_db


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    await init_db()
    yield


app = FastAPI(
    title="QuickPay",
    description=(
        "Local companion service for the QuickPay CLI: receives the payer back "
        "from bank redirects and exposes the recorded payments with their "
        "authorization audit trails."
    ),
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health_router)
app.include_router(callback_router)
app.include_router(payments_router, prefix="/api")
