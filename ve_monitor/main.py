"""
FastAPI Backend for VE Threshold Monitor

Provides:
- Live monitoring sessions fed with VitalPro frames
- CUSUM zone, alarm and LOESS trend line per interval
- CSV export of recorded breaths
- Parsing and replay of exported recordings
"""

import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routers import files_router, sessions_router

LOG_LEVEL = os.environ.get("VE_MONITOR_LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("VE_MONITOR_CORS_ORIGINS", "*").split(",")
    if origin.strip()
]

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="VE Threshold Monitor API",
    description="Real-time ventilatory threshold monitoring from breath-by-breath VE",
    version="1.0.0"
)

# Include routers
app.include_router(sessions_router)
app.include_router(files_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger.info("VE Threshold Monitor API ready (CORS origins: %s)", ", ".join(CORS_ORIGINS))


@app.get("/api/health")
def health():
    """Health check endpoint for the API."""
    return {"status": "ok", "service": "VE Threshold Monitor API"}


@app.get("/")
def root():
    return {"status": "ok", "service": "VE Threshold Monitor API"}
