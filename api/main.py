"""
Session Earnings Ledger API - Main Application.

FastAPI application with CORS enabled for the recording client and admin UI.
"""

import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Session Earnings Ledger API",
    description="REST API for recording sessions, revenue distribution and payouts",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# TODO: Restrict origins once the admin UI has a fixed host
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
def health_check():
    """Liveness check; also reports which ledger backend is configured."""
    return {
        "status": "healthy",
        "version": __version__,
        "ledger_store": os.getenv("LEDGER_STORE", "memory").strip().lower(),
    }


@app.get("/", tags=["Root"])
def root():
    return {
        "message": "Session Earnings Ledger API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "api": "/api/v1",
    }


from api.routers import payouts, rates, reports, sales, sessions  # noqa: E402

app.include_router(sessions.router, prefix="/api/v1", tags=["Sessions"])
app.include_router(sales.router, prefix="/api/v1", tags=["Sales"])
app.include_router(payouts.router, prefix="/api/v1", tags=["Payouts"])
app.include_router(rates.router, prefix="/api/v1", tags=["Rates"])
app.include_router(reports.router, prefix="/api/v1", tags=["Reports"])
